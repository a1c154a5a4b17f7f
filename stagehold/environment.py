"""Environment helpers shared by the store and the command line."""

from __future__ import annotations

import os
from pathlib import Path

__all__ = ["HOME_ENV", "resolve_basedir"]

HOME_ENV = "STAGEHOLD_HOME"


def resolve_basedir(explicit: Path | str | None = None) -> Path:
    """Return the directory holding stores and settings.

    An explicit argument wins, then a non-empty ``STAGEHOLD_HOME``, then
    ``~/.stagehold``.
    """
    if explicit:
        return Path(explicit).expanduser()
    if value := os.environ.get(HOME_ENV):
        return Path(value).expanduser()
    return Path("~/.stagehold").expanduser()
