"""Tests for coordinates, templates and repository value types."""

from __future__ import annotations

from pathlib import PurePosixPath

import pytest

from stagehold.model import (
    RELEASE,
    Artifact,
    RemoteRepository,
    RepositoryMode,
    is_snapshot_version,
)


@pytest.mark.parametrize(
    ("coordinate", "expected"),
    [
        ("org.example:demo:1.0", Artifact("org.example", "demo", "1.0")),
        (
            "org.example:demo:pom:1.0",
            Artifact("org.example", "demo", "1.0", extension="pom"),
        ),
        (
            "org.example:demo:jar:sources:1.0",
            Artifact("org.example", "demo", "1.0", "sources", "jar"),
        ),
    ],
)
def test_parse_accepts_supported_forms(coordinate: str, expected: Artifact) -> None:
    """Three, four and five part coordinates are understood."""
    assert Artifact.parse(coordinate) == expected


@pytest.mark.parametrize("coordinate", ["org.example:demo", "a:b:c:d:e:f", ""])
def test_parse_rejects_other_forms(coordinate: str) -> None:
    """Anything else is a ``ValueError`` naming the expected format."""
    with pytest.raises(ValueError, match="expected format"):
        Artifact.parse(coordinate)


def test_id_round_trips_through_parse() -> None:
    """The canonical id parses back to the same coordinate."""
    artifact = Artifact("org.example", "demo", "1.0", "javadoc", "jar")
    assert artifact.id == "org.example:demo:jar:javadoc:1.0"
    assert Artifact.parse(artifact.id) == artifact


def test_relative_path_uses_repository_layout() -> None:
    """Group segments become directories followed by artifact and version."""
    artifact = Artifact("org.example", "demo", "1.0", "sources", "jar")
    assert artifact.relative_path() == PurePosixPath(
        "org/example/demo/1.0/demo-1.0-sources.jar"
    )


def test_sub_artifact_keeps_wildcard_values() -> None:
    """``*`` keeps the current classifier or extension."""
    sources = Artifact("org.example", "demo", "1.0", "sources", "jar")
    signature = sources.sub_artifact("*", "jar.asc")
    assert signature.classifier == "sources"
    assert signature.extension == "jar.asc"
    assert sources.sub_artifact("", "*") == Artifact("org.example", "demo", "1.0")


def test_snapshot_detection() -> None:
    """Snapshot versions end with ``-SNAPSHOT``."""
    assert is_snapshot_version("1.0-SNAPSHOT")
    assert not is_snapshot_version("1.0")
    assert Artifact("g", "a", "2-SNAPSHOT").is_snapshot


def test_main_jar_detection() -> None:
    """Only the unclassified jar is the main jar."""
    main = Artifact("g", "a", "1")
    assert main.is_main_jar
    assert not main.sub_artifact("sources", "jar").is_main_jar
    assert not main.sub_artifact("", "pom").is_main_jar


def test_repository_mode_parse_is_case_insensitive() -> None:
    """Mode names parse regardless of case."""
    assert RepositoryMode.parse(" Snapshot ") is RepositoryMode.SNAPSHOT
    with pytest.raises(ValueError, match="Unknown repository mode"):
        RepositoryMode.parse("nightly")


def test_template_prefix_defaults_to_name() -> None:
    """Templates name their stores after themselves unless given a prefix."""
    assert RELEASE.effective_prefix == "release"
    assert RELEASE.with_prefix("demo").effective_prefix == "demo"
    assert RELEASE.prefix is None, "with_prefix must not mutate the original"


def test_remote_repository_parse() -> None:
    """The ``id::url`` shorthand yields a repository without credentials."""
    repo = RemoteRepository.parse("releases::https://repo.example.com/releases")
    assert repo.id == "releases"
    assert repo.url == "https://repo.example.com/releases"
    assert repo.credentials is None


@pytest.mark.parametrize("value", ["releases", "::https://x", "releases::"])
def test_remote_repository_parse_rejects_bad_input(value: str) -> None:
    """Missing id or url is refused."""
    with pytest.raises(ValueError, match="id::url"):
        RemoteRepository.parse(value)
