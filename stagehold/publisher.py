"""Publishers: validate a store against requirements, then hand it to a transfer.

Usage
-----
::

    from stagehold.publisher import create_publisher

    publisher = create_publisher(config, "deploy")
    report = publisher.publish(store)
    print(report.state)
"""

from __future__ import annotations

import abc
import dataclasses
import enum
import logging
import typing as typ
from pathlib import Path

from .config import (
    DEPLOY_RELEASE_REPOSITORY,
    DEPLOY_SNAPSHOT_REPOSITORY,
    INSTALL_REPOSITORY,
    REQUIREMENTS,
    SessionConfig,
)
from .errors import (
    ConfigError,
    PublisherResolutionError,
    StoreError,
    ValidationFailedError,
)
from .model import RemoteRepository, RepositoryMode
from .redirect import (
    central_urls,
    is_central_direct,
    publisher_name,
    publishing_repository,
    repository_url,
)
from .requirements import NONE, ArtifactStoreRequirements, select_requirements
from .transfer import ArtifactTransfer, DirectoryTransfer, select_transfer

if typ.TYPE_CHECKING:
    from .store.artifact_store import ArtifactStore
    from .validation.results import ValidationResult

__all__ = [
    "PUBLISHERS",
    "ArtifactStorePublisher",
    "DeployPublisher",
    "InstallPublisher",
    "PublishReport",
    "PublishState",
    "create_publisher",
    "register_publisher",
]

logger = logging.getLogger(__name__)


class PublishState(enum.Enum):
    PREPARED = "prepared"
    VALIDATING = "validating"
    VALID = "valid"
    INVALID = "invalid"
    PUBLISHING = "publishing"
    PUBLISHED = "published"
    FAILED = "failed"


@dataclasses.dataclass(slots=True)
class PublishReport:
    """Outcome of one publish invocation.

    Attributes
    ----------
    store_name : str
        Store that was published.
    publisher : str
        Publisher name.
    dry_run : bool
        ``True`` when nothing was transferred.
    history : list[PublishState]
        States in the order they were entered; the last one is current.
    result : ValidationResult | None
        Validation tree, ``None`` when requirements are not enforced.
    target : RemoteRepository | None
        Resolved repository, with its effective URL, once known.
    """

    store_name: str
    publisher: str
    dry_run: bool = False
    history: list[PublishState] = dataclasses.field(
        default_factory=lambda: [PublishState.PREPARED]
    )
    result: ValidationResult | None = None
    target: RemoteRepository | None = None

    @property
    def state(self) -> PublishState:
        return self.history[-1]

    def transition(self, state: PublishState) -> None:
        logger.debug("%s: %s -> %s", self.store_name, self.state.name, state.name)
        self.history.append(state)

    def summary(self) -> str:
        target = self.target.url if self.target else "(unresolved)"
        prefix = "[dry-run] " if self.dry_run else ""
        return (
            f"{prefix}{self.store_name} via {self.publisher} -> {target}: "
            f"{self.state.value}"
        )


class ArtifactStorePublisher(abc.ABC):
    """Base for publishers.

    Subclasses provide the repositories and requirements and implement
    :meth:`_do_publish`; the validate-then-publish sequence lives here.
    """

    expect_auth: typ.ClassVar[bool] = True

    def __init__(
        self,
        config: SessionConfig,
        name: str,
        description: str,
        *,
        target_release_repository: RemoteRepository | None,
        target_snapshot_repository: RemoteRepository | None,
        service_release_repository: RemoteRepository | None = None,
        service_snapshot_repository: RemoteRepository | None = None,
        requirements: ArtifactStoreRequirements = NONE,
        max_workers: int = 1,
    ) -> None:
        self.config = config
        self.name = name
        self.description = description
        self.target_release_repository = target_release_repository
        self.target_snapshot_repository = target_snapshot_repository
        self.service_release_repository = (
            service_release_repository or target_release_repository
        )
        self.service_snapshot_repository = (
            service_snapshot_repository or target_snapshot_repository
        )
        self.requirements = requirements
        self.max_workers = max_workers

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    def service_repository(self, mode: RepositoryMode) -> RemoteRepository | None:
        if mode is RepositoryMode.RELEASE:
            return self.service_release_repository
        return self.service_snapshot_repository

    def validate(self, store: ArtifactStore) -> ValidationResult | None:
        """Validate ``store``; returns ``None`` when requirements are not enforced."""
        if not self.requirements.enforced:
            logger.info(
                "Publisher %s enforces no requirements; skipping validation", self.name
            )
            return None
        validator = self.requirements.store_validator(
            store.repository_mode, max_workers=self.max_workers
        )
        return validator.validate(store)

    def resolve_target(self, store: ArtifactStore) -> RemoteRepository:
        """Return the repository ``store`` goes to, with effective URL and auth.

        Raises
        ------
        ConfigError
            Raised when no repository is configured for the store's mode.
        """
        mode = store.repository_mode
        repository = self.service_repository(mode)
        if repository is None:
            message = (
                f"Publisher {self.name} has no {mode.value} repository configured"
            )
            raise ConfigError(message)
        url = repository_url(self.config, repository, mode)
        return publishing_repository(
            self.config,
            repository.with_changes(url=url),
            expect_auth=self.expect_auth,
        )

    def publish(
        self, store: ArtifactStore, *, dry_run: bool | None = None
    ) -> PublishReport:
        """Validate ``store`` and, when valid, publish it.

        Parameters
        ----------
        store:
            Store to publish; callers hold its exclusive lock.
        dry_run:
            Overrides the session dry-run flag when given.

        Returns
        -------
        PublishReport
            Report ending in ``PUBLISHED``.

        Raises
        ------
        ValidationFailedError
            Raised when the store is INVALID; nothing is transferred.
        StoreError
            Raised when resolving the target or the transfer fails; the store
            is left as is.

        Errors carry the report in ``report``, ending in ``INVALID`` or
        ``FAILED``.
        """
        dry = self.config.dry_run if dry_run is None else dry_run
        report = PublishReport(store.name, self.name, dry_run=dry)
        report.transition(PublishState.VALIDATING)
        report.result = self.validate(store)
        if report.result is not None and not report.result.is_valid():
            report.transition(PublishState.INVALID)
            error = ValidationFailedError(store.name, report.result)
            error.report = report
            raise error
        report.transition(PublishState.VALID)
        try:
            report.target = self.resolve_target(store)
            report.transition(PublishState.PUBLISHING)
            if dry:
                logger.info(
                    "Dry run; not publishing %s to %s (%s)",
                    store.name,
                    report.target.id,
                    report.target.url,
                )
            else:
                self._do_publish(store, report.target)
        except Exception as exc:
            report.transition(PublishState.FAILED)
            logger.error("Publishing %s failed: %s", store.name, exc)
            if isinstance(exc, StoreError):
                exc.report = report
            raise
        report.transition(PublishState.PUBLISHED)
        if not dry:
            logger.info("Published %s to %s", store.name, report.target.url)
        return report

    @abc.abstractmethod
    def _do_publish(self, store: ArtifactStore, repository: RemoteRepository) -> None:
        """Transfer ``store`` to ``repository``."""


def _configured_repository(
    config: SessionConfig, key: str, mode: RepositoryMode
) -> RemoteRepository | None:
    if value := config.get(key):
        try:
            return RemoteRepository.parse(value)
        except ValueError as exc:
            message = f"Property {key}: {exc}"
            raise ConfigError(message) from exc
    if config.current_project is not None:
        return config.current_project.distribution_repository(mode)
    return None


class DeployPublisher(ArtifactStorePublisher):
    """Deploy to the project's own repositories, as a plain deploy would.

    Repositories come from ``stagehold.deploy.releaseRepository`` and
    ``stagehold.deploy.snapshotRepository`` (``id::url``), falling back to the
    project's distribution repositories.
    """

    NAME = "deploy"

    def __init__(
        self,
        config: SessionConfig,
        transfer_factory: typ.Callable[[str], ArtifactTransfer] = select_transfer,
    ) -> None:
        super().__init__(
            config,
            self.NAME,
            "Deploys to the configured distribution repositories",
            target_release_repository=_configured_repository(
                config, DEPLOY_RELEASE_REPOSITORY, RepositoryMode.RELEASE
            ),
            target_snapshot_repository=_configured_repository(
                config, DEPLOY_SNAPSHOT_REPOSITORY, RepositoryMode.SNAPSHOT
            ),
            requirements=select_requirements(config.get(REQUIREMENTS, NONE.name)),
        )
        self.transfer_factory = transfer_factory

    def resolve_target(self, store: ArtifactStore) -> RemoteRepository:
        repository = super().resolve_target(store)
        if is_central_direct(repository, central_urls(self.config)):
            message = (
                f"Refusing to deploy {store.name} directly to {repository.url}; "
                "use a publisher for the Central publishing service instead"
            )
            raise ConfigError(message)
        return repository

    def _do_publish(self, store: ArtifactStore, repository: RemoteRepository) -> None:
        self.transfer_factory(repository.url).deploy(store, repository, self.config)


class InstallPublisher(ArtifactStorePublisher):
    """Copy the store into a local repository without any checks."""

    NAME = "install"
    expect_auth = False

    def __init__(self, config: SessionConfig) -> None:
        location = Path(
            config.get(INSTALL_REPOSITORY) or "~/.m2/repository"
        ).expanduser()
        local_repository = RemoteRepository("local", location.absolute().as_uri())
        super().__init__(
            config,
            self.NAME,
            "Installs into the local repository",
            target_release_repository=local_repository,
            target_snapshot_repository=local_repository,
            requirements=NONE,
        )

    def _do_publish(self, store: ArtifactStore, repository: RemoteRepository) -> None:
        DirectoryTransfer().deploy(store, repository, self.config)


PublisherFactory = typ.Callable[[SessionConfig], ArtifactStorePublisher]

PUBLISHERS: dict[str, PublisherFactory] = {
    DeployPublisher.NAME: DeployPublisher,
    InstallPublisher.NAME: InstallPublisher,
}


def register_publisher(name: str, factory: PublisherFactory) -> None:
    PUBLISHERS[name] = factory


def create_publisher(
    config: SessionConfig, name: str | None = None
) -> ArtifactStorePublisher:
    """Resolve the publisher name for ``config`` and instantiate it.

    Raises
    ------
    PublisherResolutionError
        Raised when no name resolves or the resolved name is not registered.
    """
    resolved = publisher_name(config, name, known=PUBLISHERS)
    factory = PUBLISHERS.get(resolved)
    if factory is None:
        raise PublisherResolutionError(
            resolved, f"Known publishers: {', '.join(sorted(PUBLISHERS))}."
        )
    return factory(config)
