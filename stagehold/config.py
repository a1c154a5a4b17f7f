"""Session configuration and the TOML settings loader.

This module provides the immutable configuration snapshot handed to the
redirector, publishers and the lifecycle, together with the loader that
reads it from a TOML settings file.

Usage
-----
Load settings stored beside the stores::

    from pathlib import Path
    from stagehold.config import load_config

    config = load_config(Path("~/.stagehold/settings.toml").expanduser())
    print(config.effective_properties())

A settings file looks like::

    [properties]
    "stagehold.publisher" = "deploy"

    [servers.staging]
    username = "deployer"
    password = "secret"

    [servers.staging.config]
    "stagehold.releaseUrl" = "https://repo.example.com/releases"

    [project]
    mode = "release"
    release_repository = "staging::https://repo.example.com/releases"
"""

from __future__ import annotations

import dataclasses
import typing as typ
from pathlib import Path

import tomllib

from .environment import resolve_basedir
from .errors import ConfigError
from .model import Credentials, RemoteRepository, RepositoryMode

__all__ = [
    "AUTH_REDIRECT",
    "CENTRAL_URLS",
    "CHECKSUM_ALGORITHMS",
    "DEPLOY_RELEASE_REPOSITORY",
    "DEPLOY_SNAPSHOT_REPOSITORY",
    "DRY_RUN",
    "INSTALL_REPOSITORY",
    "OMIT_CHECKSUMS_FOR_EXTENSIONS",
    "PUBLISHER",
    "RELEASE_URL",
    "REQUIREMENTS",
    "SERVICE_REDIRECT",
    "SETTINGS_FILE_NAME",
    "SNAPSHOT_URL",
    "CurrentProject",
    "SessionConfig",
    "load_config",
    "load_session",
]

PREFIX = "stagehold."
DRY_RUN = PREFIX + "dryRun"
PUBLISHER = PREFIX + "publisher"
RELEASE_URL = PREFIX + "releaseUrl"
SNAPSHOT_URL = PREFIX + "snapshotUrl"
SERVICE_REDIRECT = PREFIX + "serviceRedirect"
AUTH_REDIRECT = PREFIX + "authRedirect"
REQUIREMENTS = PREFIX + "requirements"
DEPLOY_RELEASE_REPOSITORY = PREFIX + "deploy.releaseRepository"
DEPLOY_SNAPSHOT_REPOSITORY = PREFIX + "deploy.snapshotRepository"
INSTALL_REPOSITORY = PREFIX + "install.repository"
CENTRAL_URLS = PREFIX + "centralUrls"
CHECKSUM_ALGORITHMS = PREFIX + "checksums.algorithms"
OMIT_CHECKSUMS_FOR_EXTENSIONS = PREFIX + "checksums.omitChecksumsForExtensions"

SETTINGS_FILE_NAME = "settings.toml"
TRUE_VALUES = frozenset({"true", "yes", "on", "1"})


def _is_true(value: str | None) -> bool:
    return value is not None and value.strip().lower() in TRUE_VALUES


@dataclasses.dataclass(frozen=True, slots=True)
class CurrentProject:
    """Build-side facts: the active mode and the distribution repositories."""

    mode: RepositoryMode = RepositoryMode.RELEASE
    release_repository: RemoteRepository | None = None
    snapshot_repository: RemoteRepository | None = None

    def distribution_repository(
        self, mode: RepositoryMode | None = None
    ) -> RemoteRepository | None:
        """Return the distribution repository configured for ``mode``."""
        if (mode or self.mode) is RepositoryMode.RELEASE:
            return self.release_repository
        return self.snapshot_repository


@dataclasses.dataclass(frozen=True, slots=True)
class SessionConfig:
    """Read-only configuration snapshot for one invocation.

    Parameters
    ----------
    basedir : Path
        Directory holding the stores.
    dry_run : bool, default=False
        When ``True`` nothing is uploaded or deleted.
    properties : Mapping[str, str]
        Effective user and system properties.
    services : Mapping[str, Mapping[str, str]]
        Per repository id service configuration.
    credentials : Mapping[str, Credentials]
        Per repository id credentials.
    current_project : CurrentProject | None
        Project context used for mode and publisher defaults.

    Examples
    --------
    >>> cfg = SessionConfig(Path("/tmp/stores"), properties={"a": "b"})
    >>> cfg.get("a")
    'b'
    """

    basedir: Path
    dry_run: bool = False
    properties: typ.Mapping[str, str] = dataclasses.field(default_factory=dict)
    services: typ.Mapping[str, typ.Mapping[str, str]] = dataclasses.field(
        default_factory=dict
    )
    credentials: typ.Mapping[str, Credentials] = dataclasses.field(
        default_factory=dict
    )
    current_project: CurrentProject | None = None

    def effective_properties(self) -> dict[str, str]:
        return dict(self.properties)

    def service_configuration(self, repository_id: str) -> dict[str, str] | None:
        """Return the service configuration of ``repository_id`` if any."""
        config = self.services.get(repository_id)
        return dict(config) if config is not None else None

    def credentials_for(self, repository_id: str) -> Credentials | None:
        return self.credentials.get(repository_id)

    def get(self, key: str, default: str | None = None) -> str | None:
        value = self.properties.get(key)
        return value if value else default

    def list_property(
        self, key: str, default: typ.Sequence[str] = ()
    ) -> tuple[str, ...]:
        """Return a comma separated property as a tuple of stripped items."""
        value = self.properties.get(key)
        if value is None:
            return tuple(default)
        return tuple(item.strip() for item in value.split(",") if item.strip())

    def with_overrides(self, overrides: typ.Mapping[str, str]) -> SessionConfig:
        """Return a copy with ``overrides`` layered over the properties.

        ``stagehold.dryRun`` keeps :attr:`dry_run` in step.
        """
        properties = {**self.properties, **overrides}
        dry_run = self.dry_run
        if DRY_RUN in overrides:
            dry_run = _is_true(overrides[DRY_RUN])
        return dataclasses.replace(self, properties=properties, dry_run=dry_run)


def _load_toml(path: Path) -> dict[str, typ.Any]:
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _stringify(value: object, key: str, config_path: Path) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str | int | float):
        return str(value)
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return ",".join(value)
    message = f"Unsupported value for {key!r} in {config_path}: {value!r}"
    raise ConfigError(message)


def _table(
    data: dict[str, typ.Any], key: str, label: str, config_path: Path
) -> dict[str, typ.Any]:
    value = data.get(key, {})
    if not isinstance(value, dict):
        message = f"[{label}] must be a table in {config_path}"
        raise ConfigError(message)
    return value


def _string_map(table: dict[str, typ.Any], config_path: Path) -> dict[str, str]:
    return {key: _stringify(value, key, config_path) for key, value in table.items()}


def _parse_servers(
    data: dict[str, typ.Any], config_path: Path
) -> tuple[dict[str, dict[str, str]], dict[str, Credentials]]:
    services: dict[str, dict[str, str]] = {}
    credentials: dict[str, Credentials] = {}
    for server_id, server in _table(data, "servers", "servers", config_path).items():
        if not isinstance(server, dict):
            message = f"[servers.{server_id}] must be a table in {config_path}"
            raise ConfigError(message)
        config = _table(server, "config", f"servers.{server_id}.config", config_path)
        if config:
            services[server_id] = _string_map(config, config_path)
        if "username" in server:
            credentials[server_id] = Credentials(
                username=str(server["username"]),
                password=str(server.get("password", "")),
            )
    return services, credentials


def _parse_repository(
    value: object, label: str, config_path: Path
) -> RemoteRepository | None:
    if value is None:
        return None
    if not isinstance(value, str):
        message = f"{label} must be an 'id::url' string in {config_path}"
        raise ConfigError(message)
    try:
        return RemoteRepository.parse(value)
    except ValueError as exc:
        message = f"{label} in {config_path}: {exc}"
        raise ConfigError(message) from exc


def _parse_project(
    data: dict[str, typ.Any], config_path: Path
) -> CurrentProject | None:
    if "project" not in data:
        return None
    project = _table(data, "project", "project", config_path)
    try:
        mode = RepositoryMode.parse(str(project.get("mode", "release")))
    except ValueError as exc:
        message = f"[project] in {config_path}: {exc}"
        raise ConfigError(message) from exc
    return CurrentProject(
        mode=mode,
        release_repository=_parse_repository(
            project.get("release_repository"), "release_repository", config_path
        ),
        snapshot_repository=_parse_repository(
            project.get("snapshot_repository"), "snapshot_repository", config_path
        ),
    )


def load_config(config_file: Path, basedir: Path | None = None) -> SessionConfig:
    """Load a :class:`SessionConfig` from the TOML ``config_file``.

    Parameters
    ----------
    config_file : Path
        Settings file to read.
    basedir : Path, optional
        Store directory; resolved through :func:`resolve_basedir` when
        omitted.

    Returns
    -------
    SessionConfig
        Snapshot holding properties, server configuration and credentials.

    Raises
    ------
    FileNotFoundError
        Raised when ``config_file`` does not exist.
    ConfigError
        Raised when the file is not valid TOML or a table is malformed.
    """
    config_file = Path(config_file)
    if not config_file.is_file():
        message = f"Configuration file not found at {config_file}"
        raise FileNotFoundError(message)
    try:
        data = _load_toml(config_file)
    except tomllib.TOMLDecodeError as exc:
        message = f"Invalid TOML in {config_file}: {exc}"
        raise ConfigError(message) from exc

    properties = _string_map(
        _table(data, "properties", "properties", config_file), config_file
    )
    services, credentials = _parse_servers(data, config_file)
    return SessionConfig(
        basedir=resolve_basedir(basedir),
        dry_run=_is_true(properties.get(DRY_RUN)),
        properties=properties,
        services=services,
        credentials=credentials,
        current_project=_parse_project(data, config_file),
    )


def load_session(
    basedir: Path | None = None, settings: Path | None = None
) -> SessionConfig:
    """Return the session for ``basedir``; an explicit ``settings`` file must exist.

    Without ``settings`` the default ``<basedir>/settings.toml`` is read when
    present and an empty configuration is used otherwise.
    """
    root = resolve_basedir(basedir)
    if settings is not None:
        return load_config(settings, root)
    default = root / SETTINGS_FILE_NAME
    if default.is_file():
        return load_config(default, root)
    return SessionConfig(basedir=root)
