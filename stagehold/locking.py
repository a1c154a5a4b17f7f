"""Directory locks guarding artifact stores.

Locks are tracked per directory inside the process and mirrored with a
non-blocking ``flock`` on a ``.lock`` marker file so other processes sharing
the base directory observe them. Nothing here ever waits: a conflicting
request fails immediately with :class:`~stagehold.errors.LockingError`.
"""

from __future__ import annotations

import contextlib
import dataclasses
import logging
import threading
import typing as typ
from pathlib import Path

from .errors import LockingError

try:
    import fcntl  # type: ignore[attr-defined]
except ImportError:  # pragma: no cover - Windows fallback
    fcntl = None

__all__ = ["LOCK_FILE_NAME", "DirectoryLocker"]

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = ".lock"


@dataclasses.dataclass(slots=True)
class _Holding:
    exclusive: bool
    handle: typ.IO[str]
    count: int = 1


class DirectoryLocker:
    """Grant shared or exclusive locks on directories.

    Any number of shared holders may coexist; an exclusive holder excludes
    every other holder. The check and the grant happen under one mutex.

    Examples
    --------
    >>> locker = DirectoryLocker()  # doctest: +SKIP
    >>> with locker.locked(Path("store"), exclusive=True):  # doctest: +SKIP
    ...     pass
    """

    INSTANCE: typ.ClassVar[DirectoryLocker]

    def __init__(self) -> None:
        self._mutex = threading.Lock()
        self._holdings: dict[Path, _Holding] = {}

    @staticmethod
    def _key(directory: Path) -> Path:
        return Path(directory).resolve()

    def lock_directory(self, directory: Path, *, exclusive: bool) -> None:
        """Lock ``directory`` or raise :class:`LockingError` on conflict.

        Parameters
        ----------
        directory:
            Existing directory to lock.
        exclusive:
            ``True`` for an exclusive lock, ``False`` for a shared one.

        Raises
        ------
        LockingError
            Raised when the request conflicts with a holder in this or
            another process, or when the directory does not exist.
        """
        key = self._key(directory)
        kind = "exclusive" if exclusive else "shared"
        with self._mutex:
            holding = self._holdings.get(key)
            if holding is not None:
                if exclusive or holding.exclusive:
                    message = f"Directory {key} is already locked; {kind} lock refused"
                    raise LockingError(message)
                holding.count += 1
                return
            self._holdings[key] = _Holding(exclusive, self._acquire(key, exclusive))
        logger.debug("Locked %s (%s)", key, kind)

    def unlock_directory(self, directory: Path) -> None:
        """Release one hold on ``directory``; unknown directories are ignored."""
        key = self._key(directory)
        with self._mutex:
            holding = self._holdings.get(key)
            if holding is None:
                return
            holding.count -= 1
            if holding.count > 0:
                return
            del self._holdings[key]
            self._release(holding.handle)
        logger.debug("Unlocked %s", key)

    def is_locked(self, directory: Path) -> bool:
        """Return ``True`` while this locker holds ``directory`` in any mode."""
        with self._mutex:
            return self._key(directory) in self._holdings

    @contextlib.contextmanager
    def locked(self, directory: Path, *, exclusive: bool) -> typ.Iterator[Path]:
        """Hold a lock on ``directory`` for the duration of the block."""
        self.lock_directory(directory, exclusive=exclusive)
        try:
            yield directory
        finally:
            self.unlock_directory(directory)

    @staticmethod
    def _acquire(directory: Path, exclusive: bool) -> typ.IO[str]:
        if not directory.is_dir():
            message = f"Cannot lock missing directory {directory}"
            raise LockingError(message)
        handle = (directory / LOCK_FILE_NAME).open("a+", encoding="utf-8")
        if fcntl is None:
            return handle
        flags = (fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH) | fcntl.LOCK_NB
        try:
            fcntl.flock(handle.fileno(), flags)
        except OSError as exc:
            handle.close()
            message = f"Directory {directory} is locked by another process"
            raise LockingError(message) from exc
        return handle

    @staticmethod
    def _release(handle: typ.IO[str]) -> None:
        try:
            if fcntl is not None:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()


DirectoryLocker.INSTANCE = DirectoryLocker()
