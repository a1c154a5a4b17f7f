"""Move validated store content to its publishing target.

Transfers are handed a fully validated store and a resolved repository;
retry policy, if any, belongs here rather than in the publishers.
"""

from __future__ import annotations

import logging
import typing as typ
import urllib.parse
import urllib.request
from pathlib import Path

from plumbum import CommandNotFound, ProcessExecutionError, local

from .errors import TransferError

if typ.TYPE_CHECKING:
    from .config import SessionConfig
    from .model import RemoteRepository
    from .store.artifact_store import ArtifactStore

__all__ = [
    "ArtifactTransfer",
    "CurlTransfer",
    "DirectoryTransfer",
    "file_url_path",
    "select_transfer",
]

logger = logging.getLogger(__name__)


class ArtifactTransfer(typ.Protocol):
    """Upload the content of a store to a repository."""

    def deploy(
        self,
        store: ArtifactStore,
        repository: RemoteRepository,
        config: SessionConfig,
    ) -> None: ...


def file_url_path(url: str) -> Path:
    """Return the local path named by a ``file:`` URL."""
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme != "file":
        message = f"Not a file URL: {url}"
        raise TransferError(message)
    return Path(urllib.request.url2pathname(parsed.path))


class DirectoryTransfer:
    """Copy store content into a local repository directory."""

    def deploy(
        self,
        store: ArtifactStore,
        repository: RemoteRepository,
        config: SessionConfig,
    ) -> None:
        target = file_url_path(repository.url)
        try:
            written = store.write_to(target)
        except OSError as exc:
            message = f"Failed to copy {store.name} to {target}: {exc}"
            raise TransferError(message) from exc
        logger.info("Copied %d file(s) from %s to %s", len(written), store.name, target)


class CurlTransfer:
    """PUT every store file to an HTTP(S) repository with ``curl``.

    Examples
    --------
    >>> CurlTransfer().deploy(store, repository, config)  # doctest: +SKIP
    """

    def __init__(self, executable: str = "curl") -> None:
        self.executable = executable

    def _command(self) -> typ.Any:
        return local[self.executable]

    def deploy(
        self,
        store: ArtifactStore,
        repository: RemoteRepository,
        config: SessionConfig,
    ) -> None:
        base = repository.url.rstrip("/")
        auth: list[str] = []
        if repository.credentials is not None:
            credentials = repository.credentials
            auth = ["--user", f"{credentials.username}:{credentials.password}"]
        try:
            curl = self._command()
            for relative in store.files():
                url = f"{base}/{relative.as_posix()}"
                logger.debug("Uploading %s", url)
                curl[
                    "--fail",
                    "--silent",
                    "--show-error",
                    *auth,
                    "--upload-file",
                    str(store.directory / relative),
                    url,
                ]()
        except CommandNotFound as exc:
            message = f"{self.executable} is not available on PATH"
            raise TransferError(message) from exc
        except ProcessExecutionError as exc:
            message = f"Upload to {repository.id} failed: {exc}"
            raise TransferError(message) from exc
        logger.info("Uploaded artifact store %s to %s", store.name, base)


def select_transfer(url: str) -> ArtifactTransfer:
    """Return the transfer able to handle ``url``.

    Raises
    ------
    TransferError
        Raised for URL schemes no transfer understands.
    """
    scheme = urllib.parse.urlparse(url).scheme.lower()
    if scheme == "file":
        return DirectoryTransfer()
    if scheme in {"http", "https"}:
        return CurlTransfer()
    message = f"No transfer available for URL {url}"
    raise TransferError(message)
