"""Tests for writing to and reading from a single artifact store."""

from __future__ import annotations

from pathlib import Path

import pytest
from store_test_helpers import DEMO_JAR, SIGNATURE, signature_for

from stagehold.checksum_utils import digest_bytes, read_checksum
from stagehold.errors import LockingError, StoreStateError
from stagehold.fs_utils import content_files
from stagehold.model import RELEASE, RELEASE_REDEPLOY, SNAPSHOT, Artifact
from stagehold.store import ArtifactStore, ArtifactStoreManager


def test_put_writes_repository_layout_and_sidecars(
    release_store: ArtifactStore,
) -> None:
    """Content lands in repository layout with SHA-1 and MD5 sidecars."""
    release_store.put({DEMO_JAR: b"jar"})
    path = release_store.directory / "org/example/demo/1.0/demo-1.0.jar"
    assert path.read_bytes() == b"jar"
    sha1 = path.with_name("demo-1.0.jar.sha1").read_text(encoding="utf-8")
    assert read_checksum(sha1) == digest_bytes(b"jar", "SHA-1")
    assert path.with_name("demo-1.0.jar.md5").is_file()
    assert release_store.artifacts() == [DEMO_JAR]


def test_put_copies_source_files(release_store: ArtifactStore, tmp_path: Path) -> None:
    """A path source is copied into the store."""
    source = tmp_path / "demo.jar"
    source.write_bytes(b"from disk")
    release_store.put({DEMO_JAR: source})
    stream = release_store.artifact_content(DEMO_JAR)
    assert stream is not None
    with stream:
        assert stream.read() == b"from disk"


def test_signatures_get_no_checksums(release_store: ArtifactStore) -> None:
    """Extensions in the omit set receive no sidecars."""
    release_store.put({DEMO_JAR: b"jar", signature_for(DEMO_JAR): SIGNATURE})
    signature = release_store.artifact_path(signature_for(DEMO_JAR))
    assert signature.is_file()
    assert not signature.with_name(signature.name + ".sha1").exists()


def test_companions_resolve_without_index_entries(release_store: ArtifactStore) -> None:
    """Checksum sidecars are readable through the artifact API."""
    release_store.put({DEMO_JAR: b"jar"})
    sidecar = DEMO_JAR.sub_artifact("*", "jar.sha1")
    assert release_store.artifact_present(sidecar)
    assert sidecar not in release_store.artifacts()


def test_missing_artifact_content_is_none(release_store: ArtifactStore) -> None:
    """Absent artifacts yield no stream."""
    assert release_store.artifact_content(DEMO_JAR) is None
    assert not release_store.artifact_present(DEMO_JAR)


def test_release_store_refuses_snapshots(release_store: ArtifactStore) -> None:
    """Snapshot versions do not belong in a release store."""
    snapshot = Artifact("org.example", "demo", "1.0-SNAPSHOT")
    with pytest.raises(StoreStateError, match="refuses snapshot"):
        release_store.put({snapshot: b"jar"})


def test_snapshot_store_refuses_releases(manager: ArtifactStoreManager) -> None:
    """Release versions do not belong in a snapshot store."""
    with manager.create(SNAPSHOT) as store:
        with pytest.raises(StoreStateError, match="refuses release"):
            store.put({DEMO_JAR: b"jar"})
        store.put({Artifact("org.example", "demo", "1.0-SNAPSHOT"): b"jar"})


def test_redeploy_is_refused_by_default(release_store: ArtifactStore) -> None:
    """Writing the same coordinate twice fails without redeploy."""
    release_store.put({DEMO_JAR: b"first"})
    with pytest.raises(StoreStateError, match="Redeploy"):
        release_store.put({DEMO_JAR: b"second"})
    assert release_store.artifact_path(DEMO_JAR).read_bytes() == b"first"


def test_redeploy_template_allows_overwrite(manager: ArtifactStoreManager) -> None:
    """The redeploy template replaces existing content."""
    with manager.create(RELEASE_REDEPLOY) as store:
        store.put({DEMO_JAR: b"first"})
        store.put({DEMO_JAR: b"second"})
        assert store.artifact_path(DEMO_JAR).read_bytes() == b"second"
        assert store.artifacts() == [DEMO_JAR], "index should not duplicate entries"


def test_rejected_batch_writes_nothing(release_store: ArtifactStore) -> None:
    """A batch with one bad entry leaves the store untouched."""
    snapshot = Artifact("org.example", "other", "2.0-SNAPSHOT")
    with pytest.raises(StoreStateError):
        release_store.put({DEMO_JAR: b"jar", snapshot: b"jar"})
    assert release_store.artifacts() == []


def test_shared_handle_upgrades_for_writes(manager: ArtifactStoreManager) -> None:
    """A sole shared holder can write after upgrading to exclusive."""
    with manager.create(RELEASE) as created:
        name = created.name
    with manager.select(name) as store:
        assert not store.exclusive
        store.put({DEMO_JAR: b"jar"})
        assert store.exclusive


def test_upgrade_fails_with_other_holder(manager: ArtifactStoreManager) -> None:
    """Writes fail while another shared holder exists."""
    with manager.create(RELEASE) as created:
        name = created.name
    with manager.select(name) as first, manager.select(name) as second:
        with pytest.raises(LockingError):
            first.put({DEMO_JAR: b"jar"})
        assert second.artifacts() == []
    with manager.select(name, exclusive=True):
        pass


def test_published_store_refuses_changes(release_store: ArtifactStore) -> None:
    """Published stores are terminal."""
    release_store.put({DEMO_JAR: b"jar"})
    release_store.mark_published()
    assert release_store.state == "published"
    with pytest.raises(StoreStateError, match="published"):
        release_store.put({DEMO_JAR.sub_artifact("sources", "jar"): b"src"})
    with pytest.raises(StoreStateError):
        release_store.mark_published()


def test_closed_store_refuses_use(release_store: ArtifactStore) -> None:
    """Closing is idempotent and ends all access."""
    release_store.close()
    release_store.close()
    assert release_store.closed
    with pytest.raises(StoreStateError, match="closed"):
        release_store.artifacts()


def test_write_to_skips_metadata(release_store: ArtifactStore, tmp_path: Path) -> None:
    """Exported layout holds content and sidecars but no store internals."""
    release_store.put({DEMO_JAR: b"jar"})
    target = tmp_path / "repo"
    written = release_store.write_to(target)
    names = sorted(path.name for path in written)
    assert names == ["demo-1.0.jar", "demo-1.0.jar.md5", "demo-1.0.jar.sha1"]
    assert not (target / ".meta").exists()
    assert not (target / ".lock").exists()


def test_store_attributes_come_from_template(release_store: ArtifactStore) -> None:
    """Metadata mirrors the template and manager defaults."""
    assert release_store.template.name == "release"
    assert release_store.prefix == "release"
    assert release_store.checksum_algorithms == ("SHA-1", "MD5")
    assert release_store.omit_checksums_for_extensions == (".asc", ".sigstore.json")
    assert not release_store.allow_redeploy
    assert release_store.created.tzinfo is not None


def test_failed_batch_leaves_no_content(
    release_store: ArtifactStore, tmp_path: Path
) -> None:
    """A source failing midway leaves neither files nor index entries behind."""
    pom = DEMO_JAR.sub_artifact("", "pom")
    with pytest.raises(FileNotFoundError):
        release_store.put({DEMO_JAR: b"unsigned", pom: tmp_path / "absent.pom"})
    assert release_store.artifacts() == []
    assert release_store.files() == []
    assert list(content_files(release_store.directory)) == [], "no stray content"
    meta = sorted(path.name for path in (release_store.directory / ".meta").iterdir())
    assert meta == ["store.json"], "scratch space is cleaned up"


def test_unindexed_files_are_not_content(
    release_store: ArtifactStore, tmp_path: Path
) -> None:
    """Files placed beside the index are neither listed nor copied out."""
    release_store.put({DEMO_JAR: b"jar"})
    stray = release_store.directory / "org/example/demo/1.0/demo-1.0-extra.jar"
    stray.write_bytes(b"stray")
    listed = [path.name for path in release_store.files()]
    assert listed == ["demo-1.0.jar", "demo-1.0.jar.md5", "demo-1.0.jar.sha1"]
    target = tmp_path / "repo"
    release_store.write_to(target)
    assert not (target / "org/example/demo/1.0/demo-1.0-extra.jar").exists()
