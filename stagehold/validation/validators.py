"""Validators built on top of the single-purpose checks."""

from __future__ import annotations

import logging
import typing as typ
import xml.etree.ElementTree as ET

from ..checksum_utils import ALGORITHMS, checksum_extension
from ..errors import CloseError
from .spi import Verdict

if typ.TYPE_CHECKING:
    from ..model import Artifact
    from ..store.artifact_store import ArtifactStore
    from .results import ResultCollector
    from .spi import Check

__all__ = [
    "COMPLETENESS_CLASSIFIERS",
    "CompanionValidator",
    "CompletenessValidator",
    "PomCoordinatesValidator",
    "close_all",
]

logger = logging.getLogger(__name__)

COMPLETENESS_CLASSIFIERS: tuple[str, ...] = ("sources", "javadoc")


def close_all(owner: str, resources: typ.Iterable[typ.Any]) -> None:
    """Close every resource, raising one :class:`CloseError` for all failures."""
    errors: list[Exception] = []
    for resource in resources:
        try:
            resource.close()
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)
    if errors:
        message = f"Failed to close {owner}"
        raise CloseError(message, errors)


def _read_fully(store: ArtifactStore, artifact: Artifact) -> bytes | None:
    stream = store.artifact_content(artifact)
    if stream is None:
        return None
    with stream:
        return stream.read()


class CompanionValidator:
    """Verify companion files (checksums or signatures) of each artifact.

    Parameters
    ----------
    name : str
        Validator name; also the result node name.
    description : str
        Human readable summary.
    mandatory : Sequence[Check]
        Checks whose companion must be present.
    optional : Sequence[Check]
        Checks whose companion is verified when present.

    Every check contributes exactly one message per examined artifact:
    ``VALID``, ``INVALID``, ``MISSING``, ``MISSING (optional)`` or
    ``PRESENT (not validated)`` followed by the check name.
    """

    def __init__(
        self,
        name: str,
        description: str,
        mandatory: typ.Sequence[Check],
        optional: typ.Sequence[Check] = (),
    ) -> None:
        self.name = name
        self.description = description
        self.mandatory = list(mandatory)
        self.optional = list(optional)

    def _exempt(self, store: ArtifactStore, artifact: Artifact) -> bool:
        suffix = f".{artifact.extension}"
        exempt = tuple(store.omit_checksums_for_extensions) + tuple(
            f".{checksum_extension(name)}" for name in ALGORITHMS
        )
        return suffix.endswith(exempt)

    def validate(
        self, store: ArtifactStore, artifact: Artifact, collector: ResultCollector
    ) -> None:
        if self._exempt(store, artifact):
            return
        content: bytes | None = None
        checks = [(check, True) for check in self.mandatory]
        checks += [(check, False) for check in self.optional]
        for check, mandatory in checks:
            extension = f"{artifact.extension}.{check.extension}"
            companion = artifact.sub_artifact("*", extension)
            companion_content = _read_fully(store, companion)
            if companion_content is None:
                if mandatory:
                    collector.add_error(f"MISSING {check.name}")
                else:
                    collector.add_info(f"MISSING (optional) {check.name}")
                continue
            if content is None:
                content = _read_fully(store, artifact)
                if content is None:
                    message = f"Artifact {artifact.id} vanished from store {store.name}"
                    raise FileNotFoundError(message)
            verdict = check.verify(content, companion_content)
            if verdict is Verdict.VALID:
                collector.add_info(f"VALID {check.name}")
            elif verdict is Verdict.INVALID:
                collector.add_error(f"INVALID {check.name}")
            else:
                collector.add_info(f"PRESENT (not validated) {check.name}")

    def close(self) -> None:
        close_all(self.name, [*self.mandatory, *self.optional])


class CompletenessValidator:
    """Require ``sources`` and ``javadoc`` jars next to every main jar."""

    def __init__(
        self,
        name: str = "source-javadoc",
        classifiers: typ.Sequence[str] = COMPLETENESS_CLASSIFIERS,
    ) -> None:
        self.name = name
        self.description = "Sources and javadoc jars accompany main jars"
        self.classifiers = tuple(classifiers)

    def validate(self, store: ArtifactStore, collector: ResultCollector) -> None:
        for artifact in store.artifacts():
            if not artifact.is_main_jar:
                continue
            present: list[str] = []
            missing: list[str] = []
            for classifier in self.classifiers:
                candidate = artifact.sub_artifact(classifier, "jar")
                (present if store.artifact_present(candidate) else missing).append(
                    classifier
                )
            node = collector.child(artifact.id)
            if present:
                node.add_info("PRESENT: " + ", ".join(present))
            if missing:
                node.add_error("MISSING: " + ", ".join(missing))

    def close(self) -> None:
        """Nothing to release."""


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> str | None:
    for child in element:
        if _local(child.tag) == name:
            return (child.text or "").strip() or None
    return None


def _child(element: ET.Element, name: str) -> ET.Element | None:
    return next((child for child in element if _local(child.tag) == name), None)


class PomCoordinatesValidator:
    """Check that a component POM declares the coordinates it is stored under.

    ``groupId`` and ``version`` fall back to the ``<parent>`` element as
    POM inheritance does.
    """

    name = "pom-coordinates"
    description = "POM coordinates match the stored coordinates"

    def validate(
        self, store: ArtifactStore, artifact: Artifact, collector: ResultCollector
    ) -> None:
        if artifact.extension != "pom" or artifact.classifier:
            return
        content = _read_fully(store, artifact)
        if content is None:
            message = f"Artifact {artifact.id} vanished from store {store.name}"
            raise FileNotFoundError(message)
        try:
            root = ET.fromstring(content)
        except ET.ParseError as exc:
            collector.add_warning(f"UNREADABLE: {exc}")
            return
        parent = _child(root, "parent")
        declared = {
            "groupId": _child_text(root, "groupId"),
            "artifactId": _child_text(root, "artifactId"),
            "version": _child_text(root, "version"),
        }
        if parent is not None:
            declared["groupId"] = declared["groupId"] or _child_text(parent, "groupId")
            declared["version"] = declared["version"] or _child_text(parent, "version")
        expected = {
            "groupId": artifact.group_id,
            "artifactId": artifact.artifact_id,
            "version": artifact.version,
        }
        mismatches = [
            f"{key} {declared[key]!r} != {value!r}"
            for key, value in expected.items()
            if declared[key] != value
        ]
        if mismatches:
            collector.add_error("MISMATCH: " + "; ".join(mismatches))
        else:
            collector.add_info("VALID coordinates")

    def close(self) -> None:
        """Nothing to release."""
