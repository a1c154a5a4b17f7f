"""Named policy bundles deciding what a store must satisfy before publishing.

Usage
-----
::

    from stagehold.requirements import select_requirements

    requirements = select_requirements("central")
    result = requirements.store_validator(store.repository_mode).validate(store)
"""

from __future__ import annotations

import dataclasses
import functools
import typing as typ

from .errors import ConfigError
from .model import RepositoryMode
from .validation.checks import checksum_check, signature_check
from .validation.engine import ArtifactStoreValidator
from .validation.validators import (
    CompanionValidator,
    CompletenessValidator,
    PomCoordinatesValidator,
)

if typ.TYPE_CHECKING:
    from .validation.spi import BulkValidatorFactory, ValidatorFactory

__all__ = [
    "NONE",
    "REQUIREMENTS",
    "ArtifactStoreRequirements",
    "basic_requirements",
    "central_requirements",
    "register_requirements",
    "select_requirements",
]


def _companion_validator(
    name: str,
    description: str,
    lookup: typ.Callable[[str], typ.Any],
    mandatory: typ.Sequence[str],
    optional: typ.Sequence[str],
) -> CompanionValidator:
    return CompanionValidator(
        name,
        description,
        [lookup(check) for check in mandatory],
        [lookup(check) for check in optional],
    )


@dataclasses.dataclass(frozen=True, slots=True)
class ArtifactStoreRequirements:
    """Immutable set of checks a publish target imposes on a store.

    Parameters
    ----------
    name : str
        Registry name, also used as the validator set name.
    description : str
        Human readable summary.
    mandatory_checksums, optional_checksums : tuple[str, ...]
        Checksum algorithms whose sidecars must (or may) be present.
    mandatory_signatures, optional_signatures : tuple[str, ...]
        Signature schemes whose companions must (or may) be present.
    release_validator, snapshot_validator : BulkValidatorFactory | None
        Whole-store validator for the given mode; ``None`` skips bulk
        validation for that mode.
    validators : tuple[ValidatorFactory, ...]
        Extra per-artifact validators run before the companion checks.
    enforced : bool, default=True
        ``False`` only for :data:`NONE`; publishers then skip validation.
    """

    name: str
    description: str
    mandatory_checksums: tuple[str, ...] = ()
    optional_checksums: tuple[str, ...] = ()
    mandatory_signatures: tuple[str, ...] = ()
    optional_signatures: tuple[str, ...] = ()
    release_validator: BulkValidatorFactory | None = None
    snapshot_validator: BulkValidatorFactory | None = None
    validators: tuple[ValidatorFactory, ...] = ()
    enforced: bool = True

    def mode_validator(self, mode: RepositoryMode) -> BulkValidatorFactory | None:
        if mode is RepositoryMode.RELEASE:
            return self.release_validator
        return self.snapshot_validator

    def store_validator(
        self, mode: RepositoryMode, *, max_workers: int = 1
    ) -> ArtifactStoreValidator:
        """Assemble the validator applied to stores of ``mode``."""
        mode_validator = self.mode_validator(mode)
        bulk = [mode_validator] if mode_validator is not None else []
        per_artifact: list[ValidatorFactory] = list(self.validators)
        if self.mandatory_checksums or self.optional_checksums:
            per_artifact.append(
                functools.partial(
                    _companion_validator,
                    "checksums",
                    "Checksum sidecars",
                    checksum_check,
                    self.mandatory_checksums,
                    self.optional_checksums,
                )
            )
        if self.mandatory_signatures or self.optional_signatures:
            per_artifact.append(
                functools.partial(
                    _companion_validator,
                    "signatures",
                    "Detached signatures",
                    signature_check,
                    self.mandatory_signatures,
                    self.optional_signatures,
                )
            )
        return ArtifactStoreValidator(
            self.name,
            self.description,
            bulk,
            per_artifact,
            max_workers=max_workers,
        )


NONE = ArtifactStoreRequirements(
    "none", "No requirements; behaves like a plain install", enforced=False
)


def central_requirements() -> ArtifactStoreRequirements:
    """Requirements of the well known public release repository."""
    return ArtifactStoreRequirements(
        name="central",
        description="Central publishing requirements",
        mandatory_checksums=("SHA-1", "MD5"),
        optional_checksums=("SHA-512", "SHA-256"),
        mandatory_signatures=("GPG",),
        optional_signatures=("Sigstore",),
        release_validator=CompletenessValidator,
        validators=(PomCoordinatesValidator,),
    )


def basic_requirements() -> ArtifactStoreRequirements:
    return ArtifactStoreRequirements(
        name="basic",
        description="Checksums required, signatures optional",
        mandatory_checksums=("SHA-1",),
        optional_checksums=("MD5",),
        optional_signatures=("GPG",),
    )


REQUIREMENTS: dict[str, typ.Callable[[], ArtifactStoreRequirements]] = {
    "none": lambda: NONE,
    "central": central_requirements,
    "basic": basic_requirements,
}


def register_requirements(
    name: str, factory: typ.Callable[[], ArtifactStoreRequirements]
) -> None:
    REQUIREMENTS[name] = factory


def select_requirements(name: str) -> ArtifactStoreRequirements:
    """Return the requirements registered as ``name``.

    Raises
    ------
    ConfigError
        Raised when ``name`` is not registered.
    """
    try:
        factory = REQUIREMENTS[name]
    except KeyError as exc:
        known = ", ".join(sorted(REQUIREMENTS))
        message = f"Unknown requirements {name!r}; known requirements: {known}"
        raise ConfigError(message) from exc
    return factory()
