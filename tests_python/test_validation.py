"""Tests for result trees, checks, validators and the validation engine."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest
from store_test_helpers import DEMO_JAR, SIGNATURE, FakeGpg, pom_for, signature_for

from stagehold.checksum_utils import digest_bytes
from stagehold.errors import CloseError, ConfigError
from stagehold.model import Artifact
from stagehold.store import ArtifactStore
from stagehold.validation import (
    ArtifactStoreValidator,
    ChecksumCheck,
    CompanionValidator,
    CompletenessValidator,
    GpgSignatureCheck,
    PomCoordinatesValidator,
    ResultCollector,
    SigstoreSignatureCheck,
    ValidationResult,
    Verdict,
    checks,
    render_result,
    signature_check,
)

POM = DEMO_JAR.sub_artifact("", "pom")


def _companions(
    store: ArtifactStore, artifact: Artifact, *check_names: str
) -> list[str]:
    validator = CompanionValidator(
        "signatures", "test", [signature_check(name) for name in check_names]
    )
    collector = ResultCollector(artifact.id)
    try:
        validator.validate(store, artifact, collector)
    finally:
        validator.close()
    return collector.errors + collector.info


class _Closing:
    def __init__(self, name: str, *, fail: bool = False) -> None:
        self.name = name
        self.fail = fail
        self.closed = False

    def close(self) -> None:
        self.closed = True
        if self.fail:
            message = f"{self.name} would not close"
            raise OSError(message)


# -- results -----------------------------------------------------------------


def test_collector_builds_nested_result() -> None:
    """Messages and children freeze into an immutable tree."""
    root = ResultCollector("store")
    root.child("a").add_info("fine").add_warning("hmm")
    root.child("b").child("c").add_error("broken")
    result = root.result()
    assert [child.name for child in result.children] == ["a", "b"]
    assert result.child("a").warnings == ("hmm",)
    assert not result.is_valid(), "nested errors invalidate the root"
    assert result.error_count() == 1


def test_empty_children_are_dropped() -> None:
    """Only nodes without messages anywhere below are removed."""
    root = ResultCollector("store")
    empty = root.child("empty")
    empty.child("also-empty")
    kept = root.child("kept")
    kept.child("deep").add_info("x")
    assert root.drop_if_empty(empty)
    assert not root.drop_if_empty(kept)
    assert [child.name for child in root.children] == ["kept"]


def test_render_result_orders_severities() -> None:
    """Errors come before warnings and info, indented per depth."""
    result = ValidationResult(
        "demo",
        children=(
            ValidationResult(
                "checksums", info=("VALID SHA-1",), errors=("MISSING MD5",)
            ),
        ),
    )
    assert render_result(result) == (
        "demo\n  checksums\n    ERROR: MISSING MD5\n    INFO: VALID SHA-1"
    )


# -- checks ------------------------------------------------------------------


def test_checksum_check_verdicts() -> None:
    """Matching digests are valid; wrong or empty sidecars are not."""
    check = ChecksumCheck("SHA-1")
    digest = digest_bytes(b"payload", "SHA-1")
    assert check.extension == "sha1"
    assert check.verify(b"payload", f"{digest.upper()}  x.jar\n".encode()) is (
        Verdict.VALID
    )
    assert check.verify(b"other", digest.encode()) is Verdict.INVALID
    assert check.verify(b"payload", b"  \n") is Verdict.INVALID


@pytest.mark.parametrize(
    ("retcode", "verdict"),
    [(0, Verdict.VALID), (1, Verdict.INVALID), (2, Verdict.UNKNOWN)],
)
def test_gpg_check_maps_exit_codes(
    monkeypatch: pytest.MonkeyPatch, retcode: int, verdict: Verdict
) -> None:
    """``gpg --verify`` exit codes become verdicts."""
    gpg = FakeGpg(retcode)
    monkeypatch.setattr(checks, "_gpg_command", lambda executable: gpg)
    check = GpgSignatureCheck()
    try:
        assert check.verify(b"content", SIGNATURE) is verdict
    finally:
        check.close()
    (args,) = gpg.calls
    assert args[:2] == ("--batch", "--verify")
    assert not Path(args[2]).exists(), "scratch files are removed after each call"


def test_gpg_check_without_executable_is_unknown() -> None:
    """A missing ``gpg`` leaves signatures unverified rather than failing."""
    check = GpgSignatureCheck(executable="stagehold-no-such-gpg")
    try:
        assert check.verify(b"content", SIGNATURE) is Verdict.UNKNOWN
    finally:
        check.close()


@pytest.mark.parametrize(
    ("companion", "verdict"),
    [
        (b'{"mediaType": "application/json"}', Verdict.UNKNOWN),
        (b"{}", Verdict.INVALID),
        (b"[1, 2]", Verdict.INVALID),
        (b"not json", Verdict.INVALID),
    ],
)
def test_sigstore_check_is_structural(companion: bytes, verdict: Verdict) -> None:
    """Only malformed bundles are rejected."""
    assert SigstoreSignatureCheck().verify(b"content", companion) is verdict


def test_unknown_check_is_config_error() -> None:
    """Lookups of unregistered checks fail with the known names."""
    with pytest.raises(ConfigError, match="GPG"):
        signature_check("PGP")


# -- validators ----------------------------------------------------------------


def test_companion_validator_reports_each_check(
    release_store: ArtifactStore, fake_gpg: FakeGpg
) -> None:
    """Present, missing and optional companions each produce one message."""
    release_store.put({DEMO_JAR: b"jar", signature_for(DEMO_JAR): SIGNATURE})
    validator = CompanionValidator(
        "checks",
        "test",
        mandatory=[ChecksumCheck("SHA-1"), ChecksumCheck("SHA-512")],
        optional=[ChecksumCheck("SHA-256"), signature_check("GPG")],
    )
    collector = ResultCollector(DEMO_JAR.id)
    validator.validate(release_store, DEMO_JAR, collector)
    validator.close()
    assert collector.errors == ["MISSING SHA-512"]
    assert collector.info == ["VALID SHA-1", "MISSING (optional) SHA-256", "VALID GPG"]


def test_companion_validator_flags_tampered_content(
    release_store: ArtifactStore,
) -> None:
    """Content changed after its sidecar was written is invalid."""
    release_store.put({DEMO_JAR: b"jar"})
    release_store.artifact_path(DEMO_JAR).write_bytes(b"tampered")
    validator = CompanionValidator("checksums", "test", [ChecksumCheck("MD5")])
    collector = ResultCollector(DEMO_JAR.id)
    validator.validate(release_store, DEMO_JAR, collector)
    assert collector.errors == ["INVALID MD5"]


def test_sigstore_bundle_is_present_but_unverified(
    release_store: ArtifactStore,
) -> None:
    """A well formed bundle is reported without failing validation."""
    bundle = DEMO_JAR.sub_artifact("*", "jar.sigstore.json")
    release_store.put({DEMO_JAR: b"jar", bundle: b'{"mediaType": "bundle"}'})
    assert _companions(release_store, DEMO_JAR, "Sigstore") == [
        "PRESENT (not validated) Sigstore"
    ]


def test_companion_files_are_exempt(release_store: ArtifactStore) -> None:
    """Signatures and sidecars are never checked for their own companions."""
    release_store.put({DEMO_JAR: b"jar", signature_for(DEMO_JAR): SIGNATURE})
    assert _companions(release_store, signature_for(DEMO_JAR), "GPG") == []
    sidecar = DEMO_JAR.sub_artifact("*", "jar.sha1")
    assert _companions(release_store, sidecar, "GPG") == []


def test_close_all_collects_every_failure() -> None:
    """All resources are closed and failures are reported together."""
    resources = [_Closing("a", fail=True), _Closing("b"), _Closing("c", fail=True)]
    validator = CompanionValidator("owner", "test", resources)
    with pytest.raises(CloseError, match="Failed to close owner") as excinfo:
        validator.close()
    assert all(resource.closed for resource in resources)
    assert len(excinfo.value.errors) == 2


def test_completeness_validator(release_store: ArtifactStore) -> None:
    """Main jars need sources and javadoc; other artifacts are ignored."""
    release_store.put(
        {
            DEMO_JAR: b"jar",
            DEMO_JAR.sub_artifact("sources", "jar"): b"src",
            POM: pom_for(DEMO_JAR),
        }
    )
    collector = ResultCollector(release_store.name)
    CompletenessValidator().validate(release_store, collector)
    (node,) = collector.children
    assert node.name == DEMO_JAR.id
    assert node.info == ["PRESENT: sources"]
    assert node.errors == ["MISSING: javadoc"]


def test_pom_validator_accepts_matching_coordinates(
    release_store: ArtifactStore,
) -> None:
    """A POM declaring its own coordinates passes."""
    release_store.put({POM: pom_for(DEMO_JAR)})
    collector = ResultCollector(POM.id)
    PomCoordinatesValidator().validate(release_store, POM, collector)
    assert collector.info == ["VALID coordinates"]


def test_pom_validator_inherits_from_parent(release_store: ArtifactStore) -> None:
    """Group and version may come from the parent element."""
    pom = (
        b"<project><parent><groupId>org.example</groupId>"
        b"<version>1.0</version></parent>"
        b"<artifactId>demo</artifactId></project>"
    )
    release_store.put({POM: pom})
    collector = ResultCollector(POM.id)
    PomCoordinatesValidator().validate(release_store, POM, collector)
    assert collector.errors == []


def test_pom_validator_reports_mismatch(release_store: ArtifactStore) -> None:
    """Declared coordinates that differ are errors."""
    release_store.put({POM: pom_for(Artifact("org.example", "other", "1.0"))})
    collector = ResultCollector(POM.id)
    PomCoordinatesValidator().validate(release_store, POM, collector)
    (error,) = collector.errors
    assert error.startswith("MISMATCH: artifactId 'other' != 'demo'")


def test_pom_validator_warns_on_unparsable_pom(release_store: ArtifactStore) -> None:
    """Malformed XML is a warning, not an error."""
    release_store.put({POM: b"<project>"})
    collector = ResultCollector(POM.id)
    PomCoordinatesValidator().validate(release_store, POM, collector)
    assert collector.errors == []
    assert collector.warnings[0].startswith("UNREADABLE")


# -- engine --------------------------------------------------------------------


class _Recording:
    """Per-artifact validator noting the thread each artifact ran on."""

    name = "recording"
    description = "records calls"

    def __init__(self, seen: list[tuple[str, str]]) -> None:
        self.seen = seen

    def validate(self, store, artifact, collector) -> None:
        self.seen.append((artifact.id, threading.current_thread().name))
        if artifact.extension == "pom":
            collector.add_info("looked")

    def close(self) -> None:
        """Nothing to release."""


def test_engine_builds_tree_and_drops_empty_nodes(
    release_store: ArtifactStore,
) -> None:
    """Only validators and artifacts that said something appear."""
    release_store.put({DEMO_JAR: b"jar", POM: pom_for(DEMO_JAR)})
    seen: list[tuple[str, str]] = []
    engine = ArtifactStoreValidator(
        "test",
        "test",
        bulk_factories=[CompletenessValidator],
        validator_factories=[lambda: _Recording(seen)],
    )
    result = engine.validate(release_store)
    assert result.name == release_store.name
    assert [child.name for child in result.children] == ["source-javadoc", POM.id]
    assert result.child(POM.id).child("recording").info == ("looked",)
    assert sorted(artifact_id for artifact_id, _ in seen) == sorted(
        [DEMO_JAR.id, POM.id]
    )


def test_engine_parallel_run_keeps_index_order(release_store: ArtifactStore) -> None:
    """Parallel validation reports artifacts in store order."""
    artifacts = [Artifact("org.example", f"lib{n}", "1.0", "", "pom") for n in range(8)]
    release_store.put({artifact: b"<project/>" for artifact in artifacts})
    seen: list[tuple[str, str]] = []
    engine = ArtifactStoreValidator(
        "test", "test", validator_factories=[lambda: _Recording(seen)], max_workers=4
    )
    result = engine.validate(release_store)
    assert [child.name for child in result.children] == [a.id for a in artifacts]
    assert len(seen) == len(artifacts)
    assert result.is_valid()


def test_engine_closes_validators_after_failure(release_store: ArtifactStore) -> None:
    """Validators are closed even when one of them raises."""
    release_store.put({DEMO_JAR: b"jar"})
    closing = _Closing("exploding")

    class _Exploding:
        name = "exploding"
        description = "raises"

        def validate(self, store, artifact, collector) -> None:
            message = "validator broke"
            raise RuntimeError(message)

        def close(self) -> None:
            closing.close()

    engine = ArtifactStoreValidator("test", "test", validator_factories=[_Exploding])
    with pytest.raises(RuntimeError, match="validator broke"):
        engine.validate(release_store)
    assert closing.closed
