"""Exception hierarchy for the staging store."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from .publisher import PublishReport
    from .validation.results import ValidationResult

__all__ = [
    "CloseError",
    "ConfigError",
    "InvalidNameError",
    "LockingError",
    "PublisherResolutionError",
    "RedirectCycleError",
    "StoreError",
    "StoreNotFoundError",
    "StoreStateError",
    "TransferError",
    "ValidationFailedError",
]


class StoreError(RuntimeError):
    """Base class for every failure raised by :mod:`stagehold`.

    Failures raised while publishing carry the publish report in ``report``.
    """

    report: PublishReport | None = None


class InvalidNameError(StoreError, ValueError):
    """Raised when a store name does not match the name grammar."""


class LockingError(StoreError):
    """Raised when a directory lock conflicts with an existing holder."""


class StoreNotFoundError(StoreError):
    """Raised when a named store does not exist under the base directory."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Artifact store not found: {name}")
        self.name = name


class StoreStateError(StoreError):
    """Raised when a store cannot accept the requested mutation."""


class ConfigError(StoreError):
    """Raised when settings are missing or malformed."""


class RedirectCycleError(StoreError):
    """Raised when service or auth redirects loop back on themselves."""

    def __init__(self, repository_id: str, chain: typ.Sequence[str]) -> None:
        self.chain = list(chain)
        trail = " -> ".join([*self.chain, repository_id])
        super().__init__(f"Redirect forms a cycle: {trail}")


class PublisherResolutionError(StoreError):
    """Raised when no publisher name can be derived from configuration."""

    def __init__(self, key: str, detail: str = "") -> None:
        self.key = key
        message = (
            f"Failed to resolve publisher name for '{key}'. "
            "Check the logs and your settings (server configuration)."
        )
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)


class TransferError(StoreError):
    """Raised when uploading store content to a repository fails."""


class CloseError(StoreError):
    """Aggregate of every failure raised while closing owned resources."""

    def __init__(self, message: str, errors: typ.Sequence[BaseException]) -> None:
        self.errors = list(errors)
        details = "; ".join(f"{type(exc).__name__}: {exc}" for exc in self.errors)
        super().__init__(f"{message}: {details}" if details else message)


class ValidationFailedError(StoreError):
    """Raised when a store fails the requirements of a publisher."""

    def __init__(self, store_name: str, result: ValidationResult) -> None:
        super().__init__(f"Artifact store {store_name} failed validation")
        self.store_name = store_name
        self.result = result
