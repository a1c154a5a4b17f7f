"""Two-phase publish lifecycle: prepare validates, perform publishes.

A host drives the phases in order so validation problems surface before any
irreversible upload.
"""

from __future__ import annotations

import logging
import typing as typ

from .errors import StoreStateError, ValidationFailedError

if typ.TYPE_CHECKING:
    from .publisher import ArtifactStorePublisher, PublishReport
    from .store.manager import ArtifactStoreManager
    from .validation.results import ValidationResult

__all__ = ["perform", "prepare"]

logger = logging.getLogger(__name__)


def prepare(
    manager: ArtifactStoreManager,
    store_name: str,
    publisher: ArtifactStorePublisher,
) -> ValidationResult | None:
    """Validate ``store_name`` for ``publisher`` under a shared lock.

    Returns
    -------
    ValidationResult | None
        The result tree, or ``None`` when the publisher enforces nothing.

    Raises
    ------
    ValidationFailedError
        Raised when the store does not satisfy the requirements.
    """
    with manager.select(store_name) as store:
        logger.info("Preparing %s for publisher %s", store_name, publisher.name)
        result = publisher.validate(store)
    if result is not None and not result.is_valid():
        raise ValidationFailedError(store_name, result)
    return result


def perform(
    manager: ArtifactStoreManager,
    store_name: str,
    publisher: ArtifactStorePublisher,
    *,
    dry_run: bool | None = None,
) -> PublishReport:
    """Validate and publish ``store_name`` while holding its exclusive lock.

    Only open stores are published. The store is marked published on success
    unless this is a dry run. The lock is released however the publish ends.
    """
    with manager.select(store_name, exclusive=True) as store:
        if store.state != "open":
            message = (
                f"Artifact store {store_name} is {store.state}; no changes allowed"
            )
            raise StoreStateError(message)
        logger.info("Publishing %s with publisher %s", store_name, publisher.name)
        report = publisher.publish(store, dry_run=dry_run)
        if not report.dry_run:
            store.mark_published()
    return report
