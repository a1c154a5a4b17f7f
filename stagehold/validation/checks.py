"""Built-in checksum and signature checks plus their registries.

New checks are registered by name; validators look them up through
:func:`checksum_check` and :func:`signature_check` so the engine itself
never changes.
"""

from __future__ import annotations

import hmac
import json
import logging
import shutil
import tempfile
import threading
import typing as typ
from pathlib import Path

from plumbum import CommandNotFound, ProcessExecutionError, local

from ..checksum_utils import checksum_extension, digest_bytes, read_checksum
from ..errors import ConfigError
from .spi import Check, CheckFactory, Verdict

__all__ = [
    "CHECKSUM_CHECKS",
    "SIGNATURE_CHECKS",
    "ChecksumCheck",
    "GpgSignatureCheck",
    "SigstoreSignatureCheck",
    "checksum_check",
    "register_checksum_check",
    "register_signature_check",
    "signature_check",
]

logger = logging.getLogger(__name__)

GPG_VALID = 0
GPG_BAD_SIGNATURE = 1


class ChecksumCheck:
    """Compare a digest sidecar with the digest of the content."""

    def __init__(self, algorithm: str) -> None:
        self.name = algorithm
        self.extension = checksum_extension(algorithm)
        self.description = f"{algorithm} checksum"

    def verify(self, content: bytes, companion: bytes) -> Verdict:
        recorded = read_checksum(companion)
        if not recorded:
            return Verdict.INVALID
        actual = digest_bytes(content, self.name)
        if hmac.compare_digest(actual, recorded):
            return Verdict.VALID
        return Verdict.INVALID

    def close(self) -> None:
        """Nothing to release."""


def _gpg_command(executable: str) -> typ.Any:
    return local[executable]


class GpgSignatureCheck:
    """Verify detached ASCII-armoured OpenPGP signatures with ``gpg``.

    ``gpg --verify`` needs files, so each call writes both inputs below a
    working directory that lives until :meth:`close`. A missing executable, missing
    public key or any other inconclusive outcome yields
    :attr:`Verdict.UNKNOWN`.
    """

    name = "GPG"
    description = "OpenPGP detached signature"
    extension = "asc"

    def __init__(self, executable: str = "gpg") -> None:
        self.executable = executable
        self._workdir: Path | None = None
        self._mutex = threading.Lock()

    def _scratch(self) -> Path:
        with self._mutex:
            if self._workdir is None:
                self._workdir = Path(tempfile.mkdtemp(prefix="stagehold-gpg-"))
            return Path(tempfile.mkdtemp(dir=self._workdir))

    def verify(self, content: bytes, companion: bytes) -> Verdict:
        workdir = self._scratch()
        try:
            return self._verify_in(workdir, content, companion)
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

    def _verify_in(self, workdir: Path, content: bytes, companion: bytes) -> Verdict:
        data_path = workdir / "content"
        signature_path = workdir / "content.asc"
        data_path.write_bytes(content)
        signature_path.write_bytes(companion)
        try:
            gpg = _gpg_command(self.executable)
            retcode, _stdout, stderr = gpg[
                "--batch", "--verify", str(signature_path), str(data_path)
            ].run(retcode=None)
        except CommandNotFound:
            logger.debug("%s not found; signature left unverified", self.executable)
            return Verdict.UNKNOWN
        except ProcessExecutionError as exc:
            logger.debug("gpg failed: %s", exc)
            return Verdict.UNKNOWN
        if retcode == GPG_VALID:
            return Verdict.VALID
        if retcode == GPG_BAD_SIGNATURE:
            return Verdict.INVALID
        logger.debug("gpg could not verify signature: %s", stderr.strip())
        return Verdict.UNKNOWN

    def close(self) -> None:
        with self._mutex:
            if self._workdir is not None:
                shutil.rmtree(self._workdir)
                self._workdir = None


class SigstoreSignatureCheck:
    """Structural check of Sigstore bundles.

    Cryptographic verification is out of reach without a trust root, so a
    well formed bundle is reported as unverified rather than valid.
    """

    name = "Sigstore"
    description = "Sigstore bundle"
    extension = "sigstore.json"

    def verify(self, content: bytes, companion: bytes) -> Verdict:
        try:
            bundle = json.loads(companion.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return Verdict.INVALID
        if not isinstance(bundle, dict) or not bundle:
            return Verdict.INVALID
        return Verdict.UNKNOWN

    def close(self) -> None:
        """Nothing to release."""


CHECKSUM_CHECKS: dict[str, CheckFactory] = {
    "SHA-512": lambda: ChecksumCheck("SHA-512"),
    "SHA-256": lambda: ChecksumCheck("SHA-256"),
    "SHA-1": lambda: ChecksumCheck("SHA-1"),
    "MD5": lambda: ChecksumCheck("MD5"),
}

SIGNATURE_CHECKS: dict[str, CheckFactory] = {
    "GPG": GpgSignatureCheck,
    "Sigstore": SigstoreSignatureCheck,
}


def register_checksum_check(name: str, factory: CheckFactory) -> None:
    CHECKSUM_CHECKS[name] = factory


def register_signature_check(name: str, factory: CheckFactory) -> None:
    SIGNATURE_CHECKS[name] = factory


def _lookup(registry: dict[str, CheckFactory], kind: str, name: str) -> Check:
    try:
        factory = registry[name]
    except KeyError as exc:
        message = f"Unknown {kind} check {name!r}; known: {', '.join(registry)}"
        raise ConfigError(message) from exc
    return factory()


def checksum_check(name: str) -> Check:
    """Instantiate the checksum check registered as ``name``."""
    return _lookup(CHECKSUM_CHECKS, "checksum", name)


def signature_check(name: str) -> Check:
    """Instantiate the signature check registered as ``name``."""
    return _lookup(SIGNATURE_CHECKS, "signature", name)
