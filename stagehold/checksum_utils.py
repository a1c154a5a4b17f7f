"""Checksum helpers for staged artifacts."""

from __future__ import annotations

import hashlib
import typing as typ
from pathlib import Path

__all__ = [
    "ALGORITHMS",
    "checksum_extension",
    "digest_bytes",
    "digest_file",
    "hashlib_name",
    "read_checksum",
    "write_checksum",
]

# Repository algorithm name -> (hashlib name, sidecar extension).
ALGORITHMS: dict[str, tuple[str, str]] = {
    "SHA-512": ("sha512", "sha512"),
    "SHA-256": ("sha256", "sha256"),
    "SHA-1": ("sha1", "sha1"),
    "MD5": ("md5", "md5"),
}


def _lookup(algorithm: str) -> tuple[str, str]:
    try:
        return ALGORITHMS[algorithm.upper()]
    except KeyError as exc:
        message = f"Unsupported checksum algorithm: {algorithm}"
        raise ValueError(message) from exc


def hashlib_name(algorithm: str) -> str:
    """Return the :mod:`hashlib` name for ``algorithm`` (``"SHA-1"`` -> ``"sha1"``)."""
    return _lookup(algorithm)[0]


def checksum_extension(algorithm: str) -> str:
    """Return the sidecar extension for ``algorithm``."""
    return _lookup(algorithm)[1]


def digest_bytes(content: bytes, algorithm: str) -> str:
    return hashlib.new(hashlib_name(algorithm), content).hexdigest()


def digest_file(path: Path, algorithm: str) -> str:
    hasher = hashlib.new(hashlib_name(algorithm))
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(8192), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def write_checksum(path: Path, algorithm: str) -> str:
    """Write the checksum sidecar for ``path`` using ``algorithm``.

    Parameters
    ----------
    path:
        Path to the file whose contents should be hashed.
    algorithm:
        Repository algorithm name such as ``"SHA-1"`` or ``"SHA-256"``.

    Returns
    -------
    str
        Hex digest generated for ``path`` using ``algorithm``.
    """
    digest = digest_file(path, algorithm)
    checksum_path = path.with_name(f"{path.name}.{checksum_extension(algorithm)}")
    checksum_path.write_text(f"{digest}  {path.name}\n", encoding="utf-8")
    return digest


def read_checksum(content: bytes | str) -> str:
    """Return the digest recorded in sidecar ``content``.

    Sidecars hold the hex digest optionally followed by the file name, so
    only the first whitespace separated token is significant.
    """
    text = content.decode("utf-8", "replace") if isinstance(content, bytes) else content
    tokens: typ.Sequence[str] = text.split()
    return tokens[0].lower() if tokens else ""
