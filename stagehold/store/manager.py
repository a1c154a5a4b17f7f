"""Create, select, enumerate, merge, transfer and drop artifact stores.

Usage
-----
::

    from pathlib import Path
    from stagehold.model import RELEASE
    from stagehold.store import ArtifactStoreManager

    manager = ArtifactStoreManager(Path("~/.stagehold").expanduser())
    with manager.create(RELEASE.with_prefix("demo")) as store:
        print(store.name)  # demo-00001
    print(list(manager.list_names()))
"""

from __future__ import annotations

import logging
import shutil
import typing as typ
import zipfile
from pathlib import Path, PurePosixPath

from ..config import CHECKSUM_ALGORITHMS, OMIT_CHECKSUMS_FOR_EXTENSIONS, SessionConfig
from ..errors import (
    ConfigError,
    InvalidNameError,
    StoreError,
    StoreNotFoundError,
    StoreStateError,
)
from ..fs_utils import safe_destination_path
from ..locking import LOCK_FILE_NAME, DirectoryLocker
from ..model import BUILTIN_TEMPLATES, RELEASE, Artifact, ArtifactStoreTemplate
from .artifact_store import (
    INDEX_FILE,
    META_DIR,
    METADATA_FILE,
    ArtifactStore,
    StoreMetadata,
)
from .naming import format_store_name, new_store_name, sequence_number, validate_name

__all__ = [
    "DEFAULT_CHECKSUM_ALGORITHMS",
    "DEFAULT_OMIT_CHECKSUMS_FOR_EXTENSIONS",
    "ArtifactStoreManager",
]

logger = logging.getLogger(__name__)

DEFAULT_CHECKSUM_ALGORITHMS: tuple[str, ...] = ("SHA-1", "MD5")
DEFAULT_OMIT_CHECKSUMS_FOR_EXTENSIONS: tuple[str, ...] = (".asc", ".sigstore.json")
METADATA_ENTRY = f"{META_DIR}/{METADATA_FILE}"


class ArtifactStoreManager:
    """Own the stores kept beneath ``basedir``.

    Parameters
    ----------
    basedir : Path
        Directory holding one sub-directory per store.
    locker : DirectoryLocker, optional
        Lock registry; defaults to the process-wide instance.
    checksum_algorithms : Sequence[str]
        Sidecar algorithms applied to stores whose template sets none.
    omit_checksums_for_extensions : Sequence[str]
        File suffixes that never receive checksum sidecars.
    templates : Sequence[ArtifactStoreTemplate]
        Templates available by name.
    dry_run : bool, default=False
        When ``True`` :meth:`drop` reports but deletes nothing.
    """

    validate_name = staticmethod(validate_name)
    new_store_name = staticmethod(new_store_name)
    format_store_name = staticmethod(format_store_name)

    def __init__(
        self,
        basedir: Path,
        locker: DirectoryLocker | None = None,
        *,
        checksum_algorithms: typ.Sequence[str] = DEFAULT_CHECKSUM_ALGORITHMS,
        omit_checksums_for_extensions: typ.Sequence[str] = (
            DEFAULT_OMIT_CHECKSUMS_FOR_EXTENSIONS
        ),
        templates: typ.Sequence[ArtifactStoreTemplate] = BUILTIN_TEMPLATES,
        dry_run: bool = False,
    ) -> None:
        self.basedir = Path(basedir)
        self.locker = locker or DirectoryLocker.INSTANCE
        self.checksum_algorithms = tuple(checksum_algorithms)
        self.omit_checksums_for_extensions = tuple(omit_checksums_for_extensions)
        self._templates = {template.name: template for template in templates}
        self.dry_run = dry_run

    @classmethod
    def from_config(
        cls, config: SessionConfig, locker: DirectoryLocker | None = None
    ) -> ArtifactStoreManager:
        """Build a manager from the store directory and checksum settings."""
        return cls(
            config.basedir,
            locker,
            checksum_algorithms=config.list_property(
                CHECKSUM_ALGORITHMS, DEFAULT_CHECKSUM_ALGORITHMS
            ),
            omit_checksums_for_extensions=config.list_property(
                OMIT_CHECKSUMS_FOR_EXTENSIONS, DEFAULT_OMIT_CHECKSUMS_FOR_EXTENSIONS
            ),
            dry_run=config.dry_run,
        )

    # -- templates ---------------------------------------------------------

    def list_templates(self) -> list[ArtifactStoreTemplate]:
        return list(self._templates.values())

    def template(self, name: str) -> ArtifactStoreTemplate:
        """Return the template called ``name``.

        Raises
        ------
        ConfigError
            Raised when no template of that name is known.
        """
        try:
            return self._templates[name]
        except KeyError as exc:
            known = ", ".join(self._templates)
            message = f"Unknown store template {name!r}; known templates: {known}"
            raise ConfigError(message) from exc

    def default_template(self) -> ArtifactStoreTemplate:
        return self._templates.get(RELEASE.name, RELEASE)

    # -- enumeration -------------------------------------------------------

    def _store_dir(self, name: str) -> Path:
        return self.basedir / name

    @staticmethod
    def _is_store(directory: Path) -> bool:
        return (directory / META_DIR / METADATA_FILE).is_file()

    def list_names(self) -> typ.Iterator[str]:
        """Yield the names of existing stores, sorted; rescans on every call."""
        if not self.basedir.is_dir():
            return
        for child in sorted(self.basedir.iterdir()):
            if child.is_dir() and self._is_store(child):
                yield child.name

    def list_names_for_prefix(self, prefix: str) -> list[str]:
        """Return the names of stores created under template ``prefix``."""
        return [
            name
            for name in self.list_names()
            if StoreMetadata.load(self._store_dir(name)).prefix == prefix
        ]

    # -- lifecycle ---------------------------------------------------------

    def create(self, template: ArtifactStoreTemplate | None = None) -> ArtifactStore:
        """Create a new store from ``template`` and return it exclusively locked.

        The name is the next free ``<prefix>-NNNNN`` for the template prefix.
        Directory creation is the allocation step, so concurrent creators
        never share a name.

        Raises
        ------
        InvalidNameError
            Raised before any filesystem access when the template prefix
            cannot form a legal store name.
        """
        template = template or self.default_template()
        prefix = template.effective_prefix
        try:
            validate_name(format_store_name(prefix, 1))
        except InvalidNameError as exc:
            message = f"Invalid store prefix {prefix!r}: {exc}"
            raise InvalidNameError(message) from exc
        self.basedir.mkdir(parents=True, exist_ok=True)
        while True:
            siblings = [child.name for child in self.basedir.iterdir()]
            name = new_store_name(prefix, siblings)
            directory = self._store_dir(name)
            try:
                directory.mkdir()
            except FileExistsError:
                continue
            break
        self.locker.lock_directory(directory, exclusive=True)
        metadata = StoreMetadata.for_template(
            name,
            template,
            self.checksum_algorithms,
            self.omit_checksums_for_extensions,
        )
        try:
            metadata.save(directory)
        except OSError:
            self.locker.unlock_directory(directory)
            raise
        logger.info("Created artifact store %s from template %s", name, template.name)
        return ArtifactStore(directory, metadata, self.locker, exclusive=True)

    def select(self, name: str, *, exclusive: bool = False) -> ArtifactStore:
        """Open the existing store ``name``.

        Raises
        ------
        InvalidNameError
            Raised before any filesystem access when ``name`` is illegal.
        StoreNotFoundError
            Raised when no such store exists.
        LockingError
            Raised when the requested lock conflicts with a holder.
        """
        validate_name(name)
        directory = self._store_dir(name)
        if not self._is_store(directory):
            raise StoreNotFoundError(name)
        self.locker.lock_directory(directory, exclusive=exclusive)
        try:
            metadata = StoreMetadata.load(directory)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            self.locker.unlock_directory(directory)
            message = f"Unreadable metadata for artifact store {name}: {exc}"
            raise StoreError(message) from exc
        return ArtifactStore(directory, metadata, self.locker, exclusive=exclusive)

    def drop(self, name: str) -> bool:
        """Delete the store ``name`` with all its content.

        Returns
        -------
        bool
            ``True`` when the store was deleted, ``False`` in dry run.

        Raises
        ------
        InvalidNameError
            Raised before any filesystem access when ``name`` is illegal.
        StoreNotFoundError
            Raised when the store does not exist.
        LockingError
            Raised when the store is in use.
        """
        with self.select(name, exclusive=True) as store:
            if self.dry_run:
                logger.info("Dry run; not dropping artifact store %s", name)
                return False
            store.mark_dropped()
            shutil.rmtree(store.directory)
        logger.info("Dropped artifact store %s", name)
        return True

    # -- merging -----------------------------------------------------------

    def merge(self, source: ArtifactStore, target: ArtifactStore) -> list[Artifact]:
        """Copy every artifact of ``source`` into ``target``.

        The copy is a single :meth:`ArtifactStore.put`, so an artifact the
        target refuses leaves the target unchanged. Sidecars are recomputed
        with the target's checksum algorithms.

        Returns
        -------
        list[Artifact]
            The artifacts copied.

        Raises
        ------
        StoreStateError
            Raised when both handles refer to one store, when the repository
            modes differ, or when the target refuses an artifact.
        """
        if source.name == target.name:
            message = f"Cannot merge artifact store {source.name} into itself"
            raise StoreStateError(message)
        if source.repository_mode is not target.repository_mode:
            message = (
                f"Cannot merge {source.repository_mode.value} store {source.name} "
                f"into {target.repository_mode.value} store {target.name}"
            )
            raise StoreStateError(message)
        artifacts = source.artifacts()
        target.put({artifact: source.artifact_path(artifact) for artifact in artifacts})
        logger.info(
            "Merged %d artifact(s) from %s into %s",
            len(artifacts),
            source.name,
            target.name,
        )
        return artifacts

    def merge_all(self) -> str:
        """Merge every store into a new one, drop the sources and renumber.

        All stores must share one template. In dry run the sources are kept
        and nothing is renamed.

        Returns
        -------
        str
            Name of the merged store.

        Raises
        ------
        StoreError
            Raised when there is nothing to merge or the templates differ.
            A merge the target refuses drops the new store and keeps every
            source.
        """
        names = list(self.list_names())
        if not names:
            message = f"No artifact stores to merge in {self.basedir}"
            raise StoreError(message)
        templates = {
            StoreMetadata.load(self._store_dir(name)).template() for name in names
        }
        if len(templates) > 1:
            message = f"Conflicting templates used by {', '.join(names)}"
            raise StoreError(message)
        (template,) = templates
        target = self.create(template)
        merged = target.name
        try:
            with target:
                for name in names:
                    with self.select(name) as source:
                        self.merge(source, target)
        except StoreError:
            self.drop(merged)
            raise
        for name in names:
            self.drop(name)
        return self.renumber().get(merged, merged)

    def renumber(self) -> dict[str, str]:
        """Close the gaps left in name sequences by dropped stores.

        Stores are grouped by prefix and renamed ``<prefix>-00001`` onwards,
        keeping their order. Each store is locked exclusively while it moves.

        Returns
        -------
        dict[str, str]
            Old name to new name for every store that moved, or would move
            in dry run.

        Raises
        ------
        LockingError
            Raised when a store that has to move is in use.
        """
        groups: dict[str, list[tuple[int, str]]] = {}
        for name in self.list_names():
            prefix = StoreMetadata.load(self._store_dir(name)).prefix
            number = sequence_number(prefix, name)
            if number is not None:
                groups.setdefault(prefix, []).append((number, name))
        renamed: dict[str, str] = {}
        for prefix, members in groups.items():
            for position, (_, name) in enumerate(sorted(members), start=1):
                new_name = format_store_name(prefix, position)
                if new_name == name:
                    continue
                renamed[name] = new_name
                if self.dry_run:
                    logger.info("Dry run; not renaming %s to %s", name, new_name)
                    continue
                self._rename(name, new_name)
        return renamed

    def _rename(self, name: str, new_name: str) -> None:
        directory = self._store_dir(name)
        target = self._store_dir(new_name)
        with self.locker.locked(directory, exclusive=True):
            metadata = StoreMetadata.load(directory)
            metadata.name = new_name
            directory.rename(target)
            metadata.save(target)
        logger.info("Renamed artifact store %s to %s", name, new_name)

    # -- bundles -----------------------------------------------------------

    def export_to(self, store: ArtifactStore, destination: Path) -> Path:
        """Write ``store`` as ``<destination>/<name>.zip`` and return the bundle path.

        Raises
        ------
        StoreError
            Raised when the bundle already exists.
        """
        destination.mkdir(parents=True, exist_ok=True)
        bundle = destination / f"{store.name}.zip"
        if bundle.exists():
            message = f"Refusing to overwrite existing bundle {bundle}"
            raise StoreError(message)
        members = [
            PurePosixPath(META_DIR, METADATA_FILE),
            PurePosixPath(META_DIR, INDEX_FILE),
            *store.files(),
        ]
        with zipfile.ZipFile(bundle, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for relative in members:
                path = store.directory / relative
                if path.is_file():
                    archive.write(path, relative.as_posix())
        logger.info("Exported artifact store %s to %s", store.name, bundle)
        return bundle

    def import_from(self, bundle: Path) -> ArtifactStore:
        """Create a new store holding the content of ``bundle``.

        The new store is named from the bundle's template prefix and is
        returned exclusively locked.
        """
        try:
            archive = zipfile.ZipFile(bundle)
        except zipfile.BadZipFile as exc:
            message = f"{bundle} is not a zip bundle"
            raise StoreError(message) from exc
        with archive:
            try:
                source = StoreMetadata.from_json(
                    archive.read(METADATA_ENTRY).decode("utf-8")
                )
            except KeyError as exc:
                message = f"{bundle} is not an artifact store bundle"
                raise StoreError(message) from exc
            store = self.create(
                ArtifactStoreTemplate(
                    name=source.template_name,
                    repository_mode=source.repository_mode,
                    allow_redeploy=source.allow_redeploy,
                    prefix=source.prefix,
                    checksum_algorithms=source.checksum_algorithms,
                    omit_checksums_for_extensions=source.omit_checksums_for_extensions,
                )
            )
            try:
                for entry in archive.infolist():
                    if entry.is_dir() or entry.filename in (
                        METADATA_ENTRY,
                        LOCK_FILE_NAME,
                    ):
                        continue
                    target = safe_destination_path(store.directory, entry.filename)
                    target.write_bytes(archive.read(entry))
            except BaseException:
                store.close()
                shutil.rmtree(store.directory, ignore_errors=True)
                raise
        logger.info("Imported %s as artifact store %s", bundle, store.name)
        return store
