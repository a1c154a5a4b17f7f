"""Value types shared by stores, validators and publishers.

Usage
-----
Build coordinates and derive companion artifacts::

    from stagehold.model import Artifact

    jar = Artifact.parse("org.example:demo:1.0")
    signature = jar.sub_artifact("*", f"{jar.extension}.asc")
    print(signature.relative_path())
"""

from __future__ import annotations

import dataclasses
import enum
import typing as typ
from pathlib import PurePosixPath

__all__ = [
    "BUILTIN_TEMPLATES",
    "RELEASE",
    "RELEASE_REDEPLOY",
    "SNAPSHOT",
    "Artifact",
    "ArtifactStoreTemplate",
    "Credentials",
    "RemoteRepository",
    "RepositoryMode",
    "is_snapshot_version",
]

SNAPSHOT_SUFFIX = "-SNAPSHOT"
KEEP = "*"


class RepositoryMode(enum.Enum):
    """Kind of content a store or repository accepts."""

    RELEASE = "release"
    SNAPSHOT = "snapshot"

    @classmethod
    def parse(cls, value: str) -> RepositoryMode:
        """Return the mode named by ``value`` (case insensitive)."""
        try:
            return cls[value.strip().upper()]
        except KeyError as exc:
            message = f"Unknown repository mode: {value!r}"
            raise ValueError(message) from exc


def is_snapshot_version(version: str) -> bool:
    """Return ``True`` when ``version`` denotes a snapshot."""
    return version.endswith(SNAPSHOT_SUFFIX)


@dataclasses.dataclass(frozen=True, slots=True)
class Artifact:
    """Coordinate of one file held by a store.

    Parameters
    ----------
    group_id : str
        Dotted group identifier, for example ``"org.example"``.
    artifact_id : str
        Artifact identifier within the group.
    version : str
        Version string; snapshot versions end with ``-SNAPSHOT``.
    classifier : str, default=""
        Optional classifier such as ``"sources"``.
    extension : str, default="jar"
        File extension, possibly compound (``"jar.asc"``).

    Examples
    --------
    >>> Artifact.parse("org.example:demo:jar:sources:1.0").id
    'org.example:demo:jar:sources:1.0'
    """

    group_id: str
    artifact_id: str
    version: str
    classifier: str = ""
    extension: str = "jar"

    @classmethod
    def parse(cls, coordinate: str) -> Artifact:
        """Parse ``g:a[:ext[:classifier]]:v`` into an :class:`Artifact`."""
        parts = coordinate.strip().split(":")
        if len(parts) == 3:
            group_id, artifact_id, version = parts
            return cls(group_id, artifact_id, version)
        if len(parts) == 4:
            group_id, artifact_id, extension, version = parts
            return cls(group_id, artifact_id, version, extension=extension)
        if len(parts) == 5:
            group_id, artifact_id, extension, classifier, version = parts
            return cls(group_id, artifact_id, version, classifier, extension)
        message = (
            f"Bad artifact coordinates {coordinate!r}, expected format "
            "<groupId>:<artifactId>[:<extension>[:<classifier>]]:<version>"
        )
        raise ValueError(message)

    @property
    def id(self) -> str:
        """Canonical identifier used for report nodes and the store index."""
        parts = [self.group_id, self.artifact_id, self.extension]
        if self.classifier:
            parts.append(self.classifier)
        parts.append(self.version)
        return ":".join(parts)

    @property
    def is_snapshot(self) -> bool:
        return is_snapshot_version(self.version)

    @property
    def is_main_jar(self) -> bool:
        """``True`` for the unclassified ``jar`` of a component."""
        return not self.classifier and self.extension == "jar"

    def sub_artifact(self, classifier: str, extension: str) -> Artifact:
        """Return a sibling coordinate; ``"*"`` keeps this artifact's value."""
        return dataclasses.replace(
            self,
            classifier=self.classifier if classifier == KEEP else classifier,
            extension=self.extension if extension == KEEP else extension,
        )

    def relative_path(self) -> PurePosixPath:
        """Return the repository layout path of this artifact."""
        file_name = self.artifact_id + "-" + self.version
        if self.classifier:
            file_name += "-" + self.classifier
        file_name += "." + self.extension
        return PurePosixPath(
            *self.group_id.split("."), self.artifact_id, self.version, file_name
        )


@dataclasses.dataclass(frozen=True, slots=True)
class ArtifactStoreTemplate:
    """Seed for the fixed attributes of a newly created store."""

    name: str
    repository_mode: RepositoryMode
    allow_redeploy: bool = False
    prefix: str | None = None
    checksum_algorithms: tuple[str, ...] | None = None
    omit_checksums_for_extensions: tuple[str, ...] | None = None

    @property
    def effective_prefix(self) -> str:
        """Prefix used for generated store names; defaults to :attr:`name`."""
        return self.prefix or self.name

    def with_prefix(self, prefix: str) -> ArtifactStoreTemplate:
        return dataclasses.replace(self, prefix=prefix)


RELEASE = ArtifactStoreTemplate("release", RepositoryMode.RELEASE)
RELEASE_REDEPLOY = ArtifactStoreTemplate(
    "release-redeploy", RepositoryMode.RELEASE, allow_redeploy=True
)
SNAPSHOT = ArtifactStoreTemplate("snapshot", RepositoryMode.SNAPSHOT)

BUILTIN_TEMPLATES: tuple[ArtifactStoreTemplate, ...] = (
    RELEASE,
    RELEASE_REDEPLOY,
    SNAPSHOT,
)


@dataclasses.dataclass(frozen=True, slots=True)
class Credentials:
    """Username and password pair used for uploads."""

    username: str
    password: str = dataclasses.field(repr=False, default="")


@dataclasses.dataclass(frozen=True, slots=True)
class RemoteRepository:
    """Logical publishing target identified by ``id``."""

    id: str
    url: str
    content_type: str = "default"
    credentials: Credentials | None = None

    @classmethod
    def parse(cls, value: str) -> RemoteRepository:
        """Parse the ``id::url`` shorthand."""
        repo_id, sep, url = value.partition("::")
        if not sep or not repo_id.strip() or not url.strip():
            message = f"Invalid repository {value!r}, expected format id::url"
            raise ValueError(message)
        return cls(repo_id.strip(), url.strip())

    def with_changes(self, **changes: typ.Any) -> RemoteRepository:
        return dataclasses.replace(self, **changes)
