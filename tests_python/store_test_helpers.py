"""Shared helpers for the store test suites."""

from __future__ import annotations

import typing as typ

from stagehold.model import Artifact

if typ.TYPE_CHECKING:
    from stagehold.store import ArtifactStore

__all__ = [
    "DEMO_JAR",
    "FakeGpg",
    "SIGNATURE",
    "pom_for",
    "populate_component",
    "signature_for",
]

DEMO_JAR = Artifact("org.example", "demo", "1.0")
SIGNATURE = b"-----BEGIN PGP SIGNATURE-----\nstub\n-----END PGP SIGNATURE-----\n"


class FakeGpg:
    """Stand-in for the plumbum ``gpg`` command returning a fixed exit code."""

    def __init__(self, retcode: int) -> None:
        self.retcode = retcode
        self.calls: list[tuple[str, ...]] = []

    def __getitem__(self, args: tuple[str, ...]) -> FakeGpg:
        self.calls.append(tuple(args))
        return self

    def run(self, retcode: object = 0) -> tuple[int, str, str]:
        stderr = "" if self.retcode in (0, 1) else "gpg: Can't check signature"
        return self.retcode, "", stderr


def pom_for(artifact: Artifact) -> bytes:
    """Return a minimal POM declaring the coordinates of ``artifact``."""
    return (
        '<project xmlns="http://maven.apache.org/POM/4.0.0">'
        "<modelVersion>4.0.0</modelVersion>"
        f"<groupId>{artifact.group_id}</groupId>"
        f"<artifactId>{artifact.artifact_id}</artifactId>"
        f"<version>{artifact.version}</version>"
        "</project>"
    ).encode("utf-8")


def signature_for(artifact: Artifact) -> Artifact:
    return artifact.sub_artifact("*", f"{artifact.extension}.asc")


def populate_component(
    store: ArtifactStore,
    artifact: Artifact = DEMO_JAR,
    *,
    sources: bool = True,
    javadoc: bool = True,
    pom: bool = True,
    signatures: bool = True,
) -> list[Artifact]:
    """Put a main jar and the requested companions into ``store``.

    Returns
    -------
    list[Artifact]
        The content artifacts written, signatures excluded.
    """
    entries: dict[Artifact, bytes] = {artifact: b"main jar bytes"}
    if sources:
        entries[artifact.sub_artifact("sources", "jar")] = b"sources jar bytes"
    if javadoc:
        entries[artifact.sub_artifact("javadoc", "jar")] = b"javadoc jar bytes"
    if pom:
        entries[artifact.sub_artifact("", "pom")] = pom_for(artifact)
    content = list(entries)
    if signatures:
        entries.update({signature_for(item): SIGNATURE for item in content})
    store.put(entries)
    return content
