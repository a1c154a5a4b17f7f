"""A single named staging area holding artifacts in repository layout.

Usage
-----
Stores are obtained from :class:`~stagehold.store.manager.ArtifactStoreManager`
and closed when no longer needed::

    with manager.create(RELEASE) as store:
        store.put({Artifact.parse("org.example:demo:1.0"): Path("demo.jar")})
"""

from __future__ import annotations

import dataclasses
import datetime as dt
import json
import logging
import os
import shutil
import tempfile
import typing as typ
from pathlib import Path, PurePosixPath

from ..checksum_utils import ALGORITHMS, checksum_extension, write_checksum
from ..errors import LockingError, StoreStateError
from ..fs_utils import atomic_write_text, content_files, safe_destination_path
from ..model import Artifact, ArtifactStoreTemplate, RepositoryMode

if typ.TYPE_CHECKING:
    from ..locking import DirectoryLocker

__all__ = [
    "INDEX_FILE",
    "META_DIR",
    "METADATA_FILE",
    "ArtifactStore",
    "StoreMetadata",
    "StoreState",
]

logger = logging.getLogger(__name__)

META_DIR = ".meta"
METADATA_FILE = "store.json"
INDEX_FILE = "artifacts"

StoreState = typ.Literal["open", "published", "dropped"]


@dataclasses.dataclass(slots=True)
class StoreMetadata:
    """Persisted attributes of a store, kept in ``.meta/store.json``."""

    name: str
    template_name: str
    prefix: str
    created: str
    repository_mode: RepositoryMode
    allow_redeploy: bool
    checksum_algorithms: tuple[str, ...]
    omit_checksums_for_extensions: tuple[str, ...]
    state: StoreState = "open"

    @classmethod
    def for_template(
        cls,
        name: str,
        template: ArtifactStoreTemplate,
        checksum_algorithms: typ.Sequence[str],
        omit_checksums_for_extensions: typ.Sequence[str],
    ) -> StoreMetadata:
        """Seed metadata from ``template``; template overrides win."""
        return cls(
            name=name,
            template_name=template.name,
            prefix=template.effective_prefix,
            created=dt.datetime.now(dt.timezone.utc).isoformat(),
            repository_mode=template.repository_mode,
            allow_redeploy=template.allow_redeploy,
            checksum_algorithms=tuple(
                template.checksum_algorithms or checksum_algorithms
            ),
            omit_checksums_for_extensions=tuple(
                template.omit_checksums_for_extensions or omit_checksums_for_extensions
            ),
        )

    def to_json(self) -> str:
        payload = dataclasses.asdict(self)
        payload["repository_mode"] = self.repository_mode.value
        payload["checksum_algorithms"] = list(self.checksum_algorithms)
        payload["omit_checksums_for_extensions"] = list(
            self.omit_checksums_for_extensions
        )
        return json.dumps(payload, indent=2, sort_keys=True) + "\n"

    @classmethod
    def from_json(cls, text: str) -> StoreMetadata:
        payload = json.loads(text)
        payload["repository_mode"] = RepositoryMode.parse(payload["repository_mode"])
        payload["checksum_algorithms"] = tuple(payload["checksum_algorithms"])
        payload["omit_checksums_for_extensions"] = tuple(
            payload["omit_checksums_for_extensions"]
        )
        return cls(**payload)

    @classmethod
    def load(cls, directory: Path) -> StoreMetadata:
        path = directory / META_DIR / METADATA_FILE
        return cls.from_json(path.read_text(encoding="utf-8"))

    def save(self, directory: Path) -> None:
        atomic_write_text(directory / META_DIR / METADATA_FILE, self.to_json())

    def template(self) -> ArtifactStoreTemplate:
        return ArtifactStoreTemplate(
            name=self.template_name,
            repository_mode=self.repository_mode,
            allow_redeploy=self.allow_redeploy,
            prefix=self.prefix,
            checksum_algorithms=self.checksum_algorithms,
            omit_checksums_for_extensions=self.omit_checksums_for_extensions,
        )


class ArtifactStore:
    """Open handle on a store directory.

    The handle owns one hold on the directory lock until :meth:`close`.
    Writes need an exclusive hold; a shared handle upgrades on demand by
    releasing and reacquiring, which fails if anybody else holds the lock.
    """

    def __init__(
        self,
        directory: Path,
        metadata: StoreMetadata,
        locker: DirectoryLocker,
        *,
        exclusive: bool,
    ) -> None:
        self.directory = directory
        self._metadata = metadata
        self._locker = locker
        self._exclusive = exclusive
        self._closed = False

    def __repr__(self) -> str:
        return (
            f"ArtifactStore(name={self.name!r}, mode={self.repository_mode.value}, "
            f"state={self.state})"
        )

    def __enter__(self) -> ArtifactStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def name(self) -> str:
        return self._metadata.name

    @property
    def template(self) -> ArtifactStoreTemplate:
        """Template the store was created from, including its prefix."""
        return self._metadata.template()

    @property
    def prefix(self) -> str:
        return self._metadata.prefix

    @property
    def created(self) -> dt.datetime:
        return dt.datetime.fromisoformat(self._metadata.created)

    @property
    def repository_mode(self) -> RepositoryMode:
        return self._metadata.repository_mode

    @property
    def allow_redeploy(self) -> bool:
        return self._metadata.allow_redeploy

    @property
    def checksum_algorithms(self) -> tuple[str, ...]:
        return self._metadata.checksum_algorithms

    @property
    def omit_checksums_for_extensions(self) -> tuple[str, ...]:
        return self._metadata.omit_checksums_for_extensions

    @property
    def state(self) -> StoreState:
        return self._metadata.state

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def exclusive(self) -> bool:
        return self._exclusive

    # -- reading -----------------------------------------------------------

    def _index_path(self) -> Path:
        return self.directory / META_DIR / INDEX_FILE

    def _read_index(self) -> dict[str, str]:
        path = self._index_path()
        if not path.is_file():
            return {}
        index: dict[str, str] = {}
        for line in path.read_text(encoding="utf-8").splitlines():
            key, sep, value = line.partition("=")
            if sep:
                index[key.strip()] = value.strip()
        return index

    def artifacts(self) -> list[Artifact]:
        """Return the indexed artifacts in insertion order."""
        self._ensure_not_closed()
        return [Artifact.parse(artifact_id) for artifact_id in self._read_index()]

    def artifact_path(self, artifact: Artifact) -> Path:
        return self.directory / artifact.relative_path()

    def artifact_present(self, artifact: Artifact) -> bool:
        self._ensure_not_closed()
        return self.artifact_path(artifact).is_file()

    def artifact_content(self, artifact: Artifact) -> typ.BinaryIO | None:
        """Open ``artifact`` for reading, or return ``None`` when absent.

        Lookups are path based, so companions such as checksum sidecars
        resolve even though they are not in the index.
        """
        self._ensure_not_closed()
        path = self.artifact_path(artifact)
        if not path.is_file():
            return None
        return path.open("rb")

    def files(self) -> list[PurePosixPath]:
        """Return indexed content and its checksum sidecars, relative to the store.

        Files that never entered the index are not store content and are
        neither exported nor published.
        """
        self._ensure_not_closed()
        found: list[PurePosixPath] = []
        for value in self._read_index().values():
            relative = PurePosixPath(value)
            candidates = [relative] + [
                relative.with_name(f"{relative.name}.{checksum_extension(name)}")
                for name in ALGORITHMS
            ]
            found.extend(
                path for path in candidates if (self.directory / path).is_file()
            )
        return sorted(found)

    def write_to(self, destination: Path) -> list[Path]:
        """Copy the store content into ``destination`` in repository layout.

        Returns
        -------
        list[Path]
            Paths written beneath ``destination``.
        """
        written: list[Path] = []
        for relative in self.files():
            target = safe_destination_path(destination, relative)
            shutil.copyfile(self.directory / relative, target)
            written.append(target)
        return written

    # -- writing -----------------------------------------------------------

    def put(self, entries: typ.Mapping[Artifact, Path | bytes]) -> None:
        """Add ``entries`` to the store.

        Parameters
        ----------
        entries:
            Mapping of coordinates to a source file or raw content.

        Raises
        ------
        StoreStateError
            Raised when the store is closed or no longer open, when an
            artifact does not match the store repository mode, or when a
            coordinate is already present and redeploy is not allowed.
        LockingError
            Raised when the exclusive lock needed for writing cannot be
            obtained.
        """
        self._ensure_writable()
        index = self._read_index()
        for artifact in entries:
            self._check_acceptable(artifact, index)
        self._require_exclusive()
        staging = self._stage(entries)
        try:
            for relative in content_files(staging):
                target = safe_destination_path(self.directory, relative)
                os.replace(staging / relative, target)
        finally:
            shutil.rmtree(staging, ignore_errors=True)
        for artifact in entries:
            index[artifact.id] = artifact.relative_path().as_posix()
            logger.debug("Stored %s in %s", artifact.id, self.name)
        self._write_index(index)

    def _stage(self, entries: typ.Mapping[Artifact, Path | bytes]) -> Path:
        """Write ``entries`` and their sidecars below a scratch directory.

        The scratch directory lives under ``.meta`` so a failed batch never
        leaves content in the store.
        """
        meta = self.directory / META_DIR
        meta.mkdir(exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix="put-", dir=meta))
        try:
            for artifact, source in entries.items():
                target = safe_destination_path(staging, artifact.relative_path())
                if isinstance(source, bytes):
                    target.write_bytes(source)
                else:
                    shutil.copyfile(source, target)
                if self._wants_checksums(target.name):
                    for algorithm in self.checksum_algorithms:
                        write_checksum(target, algorithm)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise
        return staging

    def _check_acceptable(self, artifact: Artifact, index: dict[str, str]) -> None:
        if self.repository_mode is RepositoryMode.RELEASE and artifact.is_snapshot:
            message = f"Release store {self.name} refuses snapshot {artifact.id}"
            raise StoreStateError(message)
        if self.repository_mode is RepositoryMode.SNAPSHOT and not artifact.is_snapshot:
            message = f"Snapshot store {self.name} refuses release {artifact.id}"
            raise StoreStateError(message)
        if artifact.id in index and not self.allow_redeploy:
            message = f"Redeploy of {artifact.id} to {self.name} is not allowed"
            raise StoreStateError(message)

    def _wants_checksums(self, file_name: str) -> bool:
        sidecars = tuple(f".{checksum_extension(name)}" for name in ALGORITHMS)
        if file_name.endswith(sidecars):
            return False
        return not file_name.endswith(tuple(self.omit_checksums_for_extensions))

    def _write_index(self, index: dict[str, str]) -> None:
        text = "".join(f"{key}={value}\n" for key, value in index.items())
        atomic_write_text(self._index_path(), text)

    def mark_published(self) -> None:
        """Record that the store content has been published."""
        self._ensure_writable()
        self._set_state("published")

    def mark_dropped(self) -> None:
        """Record that the store is being dropped; open or published stores only."""
        self._ensure_not_closed()
        if self.state == "dropped":
            message = f"Artifact store {self.name} is already dropped"
            raise StoreStateError(message)
        self._set_state("dropped")

    def _set_state(self, state: StoreState) -> None:
        self._require_exclusive()
        self._metadata.state = state
        self._metadata.save(self.directory)
        logger.info("Artifact store %s is now %s", self.name, state)

    def _require_exclusive(self) -> None:
        if self._exclusive:
            return
        self._locker.unlock_directory(self.directory)
        try:
            self._locker.lock_directory(self.directory, exclusive=True)
        except LockingError:
            self._locker.lock_directory(self.directory, exclusive=False)
            raise
        self._exclusive = True

    def _ensure_not_closed(self) -> None:
        if self._closed:
            message = f"Artifact store {self.name} is closed"
            raise StoreStateError(message)

    def _ensure_writable(self) -> None:
        self._ensure_not_closed()
        if self.state != "open":
            message = f"Artifact store {self.name} is {self.state}; no changes allowed"
            raise StoreStateError(message)

    def close(self) -> None:
        """Release the directory lock; closing twice is harmless."""
        if self._closed:
            return
        self._closed = True
        self._locker.unlock_directory(self.directory)
