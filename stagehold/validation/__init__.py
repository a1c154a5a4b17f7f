"""Validation engine: result trees, checks and validators."""

from __future__ import annotations

from .checks import (
    CHECKSUM_CHECKS,
    SIGNATURE_CHECKS,
    ChecksumCheck,
    GpgSignatureCheck,
    SigstoreSignatureCheck,
    checksum_check,
    register_checksum_check,
    register_signature_check,
    signature_check,
)
from .engine import ArtifactStoreValidator
from .results import ResultCollector, ValidationResult, render_result
from .spi import BulkValidator, Check, Validator, Verdict
from .validators import (
    CompanionValidator,
    CompletenessValidator,
    PomCoordinatesValidator,
)

__all__ = [
    "CHECKSUM_CHECKS",
    "SIGNATURE_CHECKS",
    "ArtifactStoreValidator",
    "BulkValidator",
    "Check",
    "ChecksumCheck",
    "CompanionValidator",
    "CompletenessValidator",
    "GpgSignatureCheck",
    "PomCoordinatesValidator",
    "ResultCollector",
    "SigstoreSignatureCheck",
    "ValidationResult",
    "Validator",
    "Verdict",
    "checksum_check",
    "register_checksum_check",
    "register_signature_check",
    "render_result",
    "signature_check",
]
