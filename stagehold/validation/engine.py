"""Run bulk and per-artifact validators over a store."""

from __future__ import annotations

import concurrent.futures
import logging
import typing as typ

from .results import ResultCollector, ValidationResult
from .validators import close_all

if typ.TYPE_CHECKING:
    from ..model import Artifact
    from ..store.artifact_store import ArtifactStore
    from .spi import BulkValidator, BulkValidatorFactory, Validator, ValidatorFactory

__all__ = ["ArtifactStoreValidator"]

logger = logging.getLogger(__name__)


class ArtifactStoreValidator:
    """Validate a whole store and return the result tree.

    The tree is rooted at the store name. Each bulk validator gets one child;
    each artifact gets a child named by its id holding one grandchild per
    validator. Nodes that recorded nothing are dropped.

    Parameters
    ----------
    name : str
        Name of the validator set, usually the requirements name.
    description : str
        Human readable summary.
    bulk_factories : Sequence[BulkValidatorFactory]
        Factories for whole-store validators, run first in order.
    validator_factories : Sequence[ValidatorFactory]
        Factories for per-artifact validators.
    max_workers : int, default=1
        Artifacts are validated in parallel when greater than one.

    Notes
    -----
    Validators are created fresh for every :meth:`validate` call and closed
    when it finishes; close failures surface as a single
    :class:`~stagehold.errors.CloseError`.
    """

    def __init__(
        self,
        name: str,
        description: str,
        bulk_factories: typ.Sequence[BulkValidatorFactory] = (),
        validator_factories: typ.Sequence[ValidatorFactory] = (),
        *,
        max_workers: int = 1,
    ) -> None:
        self.name = name
        self.description = description
        self.bulk_factories = tuple(bulk_factories)
        self.validator_factories = tuple(validator_factories)
        self.max_workers = max(1, max_workers)

    def validate(self, store: ArtifactStore) -> ValidationResult:
        root = ResultCollector(store.name)
        bulk: list[BulkValidator] = [factory() for factory in self.bulk_factories]
        validators: list[Validator] = [
            factory() for factory in self.validator_factories
        ]
        try:
            for validator in bulk:
                node = root.child(validator.name)
                validator.validate(store, node)
                root.drop_if_empty(node)
            self._validate_artifacts(store, root, validators)
        finally:
            close_all(self.name, [*bulk, *validators])
        result = root.result()
        if result.is_valid():
            logger.info("Artifact store %s passed %s validation", store.name, self.name)
        else:
            logger.error(
                "Artifact store %s failed %s validation with %d error(s)",
                store.name,
                self.name,
                result.error_count(),
            )
        return result

    def _validate_artifacts(
        self,
        store: ArtifactStore,
        root: ResultCollector,
        validators: typ.Sequence[Validator],
    ) -> None:
        if not validators:
            return
        # Children are created up front so report order follows the index.
        work = [(artifact, root.child(artifact.id)) for artifact in store.artifacts()]

        def run(item: tuple[Artifact, ResultCollector]) -> None:
            artifact, node = item
            for validator in validators:
                leaf = node.child(validator.name)
                validator.validate(store, artifact, leaf)
                node.drop_if_empty(leaf)

        if self.max_workers > 1 and len(work) > 1:
            with concurrent.futures.ThreadPoolExecutor(self.max_workers) as pool:
                for _ in pool.map(run, work):
                    pass
        else:
            for item in work:
                run(item)
        for _, node in work:
            root.drop_if_empty(node)
