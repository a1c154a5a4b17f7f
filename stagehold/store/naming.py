"""Store name grammar and sequential name allocation."""

from __future__ import annotations

import re
import typing as typ

from ..errors import InvalidNameError

__all__ = [
    "NAME_PATTERN",
    "format_store_name",
    "new_store_name",
    "sequence_number",
    "validate_name",
]

NAME_PATTERN = re.compile(r"[a-z][a-z0-9._-]*")
SEQUENCE_WIDTH = 5


def validate_name(name: str | None) -> str:
    """Return ``name`` unchanged when it is a legal store name.

    Parameters
    ----------
    name:
        Candidate store name.

    Raises
    ------
    InvalidNameError
        Raised for ``None``, blank names, names containing ``..`` and any
        name not matching ``[a-z][a-z0-9._-]*``.

    Examples
    --------
    >>> validate_name("release-00001")
    'release-00001'
    """
    if name is None or not name.strip():
        message = "Store name must not be empty"
        raise InvalidNameError(message)
    if ".." in name or NAME_PATTERN.fullmatch(name) is None:
        message = f"Invalid store name: {name!r}"
        raise InvalidNameError(message)
    return name


def format_store_name(prefix: str, number: int) -> str:
    """Return ``prefix`` joined with ``number`` zero padded to five digits."""
    return f"{prefix}-{number:0{SEQUENCE_WIDTH}d}"


def sequence_number(prefix: str, name: str) -> int | None:
    """Return the sequence number of ``name`` under ``prefix``, if it has one.

    Examples
    --------
    >>> sequence_number("demo", "demo-00042")
    42
    >>> sequence_number("demo", "demo-extra-00007") is None
    True
    """
    match = re.fullmatch(rf"{re.escape(prefix)}-(\d+)", name)
    return int(match.group(1)) if match is not None else None


def new_store_name(prefix: str, existing_names: typ.Iterable[str]) -> str:
    """Return the next free sequential name for ``prefix``.

    Only siblings named exactly ``<prefix>-<digits>`` take part, so
    ``demo-extra-00007`` never advances the ``demo`` sequence.

    Examples
    --------
    >>> new_store_name("demo", ["demo-00002", "demo-extra-00007"])
    'demo-00003'
    """
    numbers = [
        number
        for number in (sequence_number(prefix, name) for name in existing_names)
        if number is not None
    ]
    return format_store_name(prefix, max(numbers, default=0) + 1)
