"""Resolve publishing URLs, authentication sources and publisher names.

Every function takes the :class:`~stagehold.config.SessionConfig` snapshot
explicitly; nothing here keeps state between calls.
"""

from __future__ import annotations

import logging
import typing as typ

from .config import (
    AUTH_REDIRECT,
    CENTRAL_URLS,
    PUBLISHER,
    RELEASE_URL,
    SERVICE_REDIRECT,
    SNAPSHOT_URL,
    SessionConfig,
)
from .errors import PublisherResolutionError, RedirectCycleError
from .model import RemoteRepository, RepositoryMode

__all__ = [
    "CENTRAL_REPOSITORY_ID",
    "DEFAULT_CENTRAL_URLS",
    "STAGING_SCHEME",
    "auth_repository",
    "central_urls",
    "is_central_direct",
    "publisher_name",
    "publishing_repository",
    "repository_url",
    "service_configuration",
]

logger = logging.getLogger(__name__)

STAGING_SCHEME = "stagehold:"
CENTRAL_REPOSITORY_ID = "central"
DEFAULT_CENTRAL_URLS: tuple[str, ...] = (
    "https://repo.maven.apache.org/maven2",
    "https://repo1.maven.org/maven2",
    "https://maven-central.storage-download.googleapis.com/maven2",
)


def service_configuration(
    config: SessionConfig, repository_id: str, *, follow_auth: bool = False
) -> tuple[str, dict[str, str] | None]:
    """Follow redirects starting at ``repository_id``.

    Service redirects are always followed; auth redirects only when
    ``follow_auth`` is set. A service redirect on a node wins over its auth
    redirect.

    Returns
    -------
    tuple[str, dict[str, str] | None]
        The terminal repository id and its service configuration.

    Raises
    ------
    RedirectCycleError
        Raised when an id is visited twice; ``chain`` lists the visited ids
        in order.

    Examples
    --------
    >>> cfg = SessionConfig(Path("/tmp"), services={"a": {AUTH_REDIRECT: "b"}})
    >>> service_configuration(cfg, "a", follow_auth=True)
    ('b', None)
    """
    visited: list[str] = []
    current = repository_id
    while True:
        if current in visited:
            raise RedirectCycleError(current, visited)
        visited.append(current)
        service = config.service_configuration(current)
        if service is None:
            return current, None
        target = service.get(SERVICE_REDIRECT)
        if not target and follow_auth:
            target = service.get(AUTH_REDIRECT)
        if not target:
            return current, service
        logger.debug("Redirecting %s -> %s", current, target)
        current = target


def _url_key(mode: RepositoryMode) -> str:
    return RELEASE_URL if mode is RepositoryMode.RELEASE else SNAPSHOT_URL


def _project_targets_other(
    config: SessionConfig, repository: RemoteRepository, mode: RepositoryMode
) -> bool:
    project = config.current_project
    if project is None:
        return False
    distribution = project.distribution_repository(mode)
    return distribution is not None and distribution.id != repository.id


def repository_url(
    config: SessionConfig,
    repository: RemoteRepository,
    mode: RepositoryMode | None = None,
) -> str:
    """Return the URL artifacts for ``repository`` should be published to.

    Sources are consulted in order: the ``<key>.<id>`` property, the plain
    ``<key>`` property (ignored when the current project distributes this
    mode to another repository id), the service configuration, then the
    repository's own URL. ``<key>`` is ``stagehold.releaseUrl`` or
    ``stagehold.snapshotUrl`` depending on ``mode``. URLs already on the
    ``stagehold:`` scheme are returned untouched.
    """
    url = repository.url
    if url.startswith(STAGING_SCHEME):
        return url
    if mode is None:
        if config.current_project is None:
            return url
        mode = config.current_project.mode
    key = _url_key(mode)
    if value := config.get(f"{key}.{repository.id}"):
        return value
    if (value := config.get(key)) and not _project_targets_other(
        config, repository, mode
    ):
        return value
    _, service = service_configuration(config, repository.id)
    if service and (value := service.get(key)):
        return value
    return url


def auth_repository(
    config: SessionConfig, repository: RemoteRepository
) -> RemoteRepository:
    """Return the repository whose credentials authenticate ``repository``.

    URL and content type are carried over; id and credentials come from
    the end of the redirect chain.
    """
    terminal_id, _ = service_configuration(config, repository.id, follow_auth=True)
    if terminal_id != repository.id:
        logger.debug("Authentication for %s comes from %s", repository.id, terminal_id)
    return repository.with_changes(
        id=terminal_id, credentials=config.credentials_for(terminal_id)
    )


def publishing_repository(
    config: SessionConfig, repository: RemoteRepository, *, expect_auth: bool = True
) -> RemoteRepository:
    """Return ``repository`` carrying the credentials of its auth source."""
    auth = auth_repository(config, repository)
    if expect_auth and auth.credentials is None:
        logger.warning(
            "No credentials found for repository %s (authentication source %s)",
            repository.id,
            auth.id,
        )
    return repository.with_changes(credentials=auth.credentials)


def _explicit_publisher(
    config: SessionConfig, name: str, known: typ.Collection[str] | None
) -> str:
    if known is None or name in known:
        return name
    _, service = service_configuration(config, name)
    if service and (publisher := service.get(PUBLISHER)):
        return publisher
    raise PublisherResolutionError(
        name, f"'{name}' is neither a publisher nor a configured repository id."
    )


def publisher_name(
    config: SessionConfig,
    name: str | None = None,
    known: typ.Collection[str] | None = None,
) -> str:
    """Return the publisher to use for this session.

    Parameters
    ----------
    config:
        Session configuration.
    name:
        Explicitly requested publisher or repository id.
    known:
        Registered publisher names; when given, an explicit name outside it
        is treated as a repository id whose configuration names the
        publisher.

    Raises
    ------
    PublisherResolutionError
        Raised when nothing resolves; the message names the lookup key.
    """
    candidate = name or config.get(PUBLISHER)
    if candidate:
        return _explicit_publisher(config, candidate, known)
    project = config.current_project
    repository = project.distribution_repository() if project else None
    if repository is None:
        raise PublisherResolutionError(
            PUBLISHER, "No distribution repository is configured for the project."
        )
    _, service = service_configuration(config, repository.id)
    if service and (publisher := service.get(PUBLISHER)):
        return publisher
    return repository.id


def central_urls(config: SessionConfig) -> tuple[str, ...]:
    return config.list_property(CENTRAL_URLS, DEFAULT_CENTRAL_URLS)


def is_central_direct(
    repository: RemoteRepository, urls: typ.Iterable[str] = DEFAULT_CENTRAL_URLS
) -> bool:
    """Return ``True`` when ``repository`` is the public Central repository itself."""
    if repository.id != CENTRAL_REPOSITORY_ID:
        return False
    url = repository.url.lower().rstrip("/")
    return url.startswith("https:") and url in {u.lower().rstrip("/") for u in urls}
