"""Capabilities implemented by checks and validators."""

from __future__ import annotations

import enum
import typing as typ

if typ.TYPE_CHECKING:
    from ..model import Artifact
    from ..store.artifact_store import ArtifactStore
    from .results import ResultCollector

__all__ = [
    "BulkValidator",
    "BulkValidatorFactory",
    "Check",
    "CheckFactory",
    "Validator",
    "ValidatorFactory",
    "Verdict",
]


class Verdict(enum.Enum):
    """Three-way outcome of verifying content against a companion."""

    VALID = "valid"
    INVALID = "invalid"
    UNKNOWN = "unknown"


@typ.runtime_checkable
class Check(typ.Protocol):
    """Single-purpose verification of content against one companion file.

    ``extension`` is appended to the target extension to find the companion
    (``jar`` -> ``jar.sha1``).
    """

    name: str
    description: str
    extension: str

    def verify(self, content: bytes, companion: bytes) -> Verdict: ...

    def close(self) -> None: ...


@typ.runtime_checkable
class Validator(typ.Protocol):
    """Examines one artifact at a time."""

    name: str
    description: str

    def validate(
        self, store: ArtifactStore, artifact: Artifact, collector: ResultCollector
    ) -> None: ...

    def close(self) -> None: ...


@typ.runtime_checkable
class BulkValidator(typ.Protocol):
    """Examines a whole store at once."""

    name: str
    description: str

    def validate(self, store: ArtifactStore, collector: ResultCollector) -> None: ...

    def close(self) -> None: ...


CheckFactory = typ.Callable[[], Check]
ValidatorFactory = typ.Callable[[], Validator]
BulkValidatorFactory = typ.Callable[[], BulkValidator]
