"""Filesystem helpers for stores."""

from __future__ import annotations

import os
import tempfile
import typing as typ
from pathlib import Path, PurePosixPath

from .errors import StoreError

__all__ = ["atomic_write_text", "content_files", "safe_destination_path"]


def safe_destination_path(root: Path, destination: str | PurePosixPath) -> Path:
    """Return ``destination`` resolved beneath ``root``.

    Parameters
    ----------
    root : Path
        Directory under which the file must reside.
    destination : str | PurePosixPath
        Relative target path, typically an artifact layout path or a bundle
        entry name.

    Returns
    -------
    Path
        Absolute destination located below ``root``; parent directories are
        created.

    Raises
    ------
    StoreError
        Raised when ``destination`` resolves outside ``root``.
    """
    target = (root / destination).resolve()
    base = root.resolve()
    if not target.is_relative_to(base):
        message = f"Destination escapes store directory: {destination}"
        raise StoreError(message)
    target.parent.mkdir(parents=True, exist_ok=True)
    return target


def atomic_write_text(path: Path, content: str, encoding: str = "utf-8") -> None:
    """Replace ``path`` with ``content`` without exposing partial writes."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_name = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding=encoding,
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp_file:
            tmp_file.write(content)
            temp_name = tmp_file.name
        os.replace(temp_name, path)
    except OSError:
        if temp_name and os.path.exists(temp_name):
            os.unlink(temp_name)
        raise


def content_files(root: Path) -> typ.Iterator[PurePosixPath]:
    """Yield relative paths of regular files below ``root``, skipping dot entries."""
    for path in sorted(root.rglob("*")):
        relative = path.relative_to(root)
        if any(part.startswith(".") for part in relative.parts):
            continue
        if path.is_file():
            yield PurePosixPath(relative.as_posix())
