"""Staging stores for build artifacts with validation and publishing.

Usage
-----
::

    from pathlib import Path
    from stagehold import RELEASE, Artifact, ArtifactStoreManager

    manager = ArtifactStoreManager(Path("stores"))
    with manager.create(RELEASE) as store:
        store.put({Artifact.parse("org.example:demo:1.0"): Path("demo.jar")})
"""

from __future__ import annotations

from .config import CurrentProject, SessionConfig, load_config, load_session
from .environment import resolve_basedir
from .errors import (
    CloseError,
    ConfigError,
    InvalidNameError,
    LockingError,
    PublisherResolutionError,
    RedirectCycleError,
    StoreError,
    StoreNotFoundError,
    StoreStateError,
    TransferError,
    ValidationFailedError,
)
from .lifecycle import perform, prepare
from .locking import DirectoryLocker
from .model import (
    RELEASE,
    RELEASE_REDEPLOY,
    SNAPSHOT,
    Artifact,
    ArtifactStoreTemplate,
    Credentials,
    RemoteRepository,
    RepositoryMode,
)
from .publisher import (
    ArtifactStorePublisher,
    DeployPublisher,
    InstallPublisher,
    PublishReport,
    PublishState,
    create_publisher,
)
from .requirements import NONE, ArtifactStoreRequirements, select_requirements
from .store import ArtifactStore, ArtifactStoreManager, validate_name
from .validation import ArtifactStoreValidator, ValidationResult, Verdict

__all__ = [
    "NONE",
    "RELEASE",
    "RELEASE_REDEPLOY",
    "SNAPSHOT",
    "Artifact",
    "ArtifactStore",
    "ArtifactStoreManager",
    "ArtifactStorePublisher",
    "ArtifactStoreRequirements",
    "ArtifactStoreTemplate",
    "ArtifactStoreValidator",
    "CloseError",
    "ConfigError",
    "Credentials",
    "CurrentProject",
    "DeployPublisher",
    "DirectoryLocker",
    "InstallPublisher",
    "InvalidNameError",
    "LockingError",
    "PublishReport",
    "PublishState",
    "PublisherResolutionError",
    "RedirectCycleError",
    "RemoteRepository",
    "RepositoryMode",
    "SessionConfig",
    "StoreError",
    "StoreNotFoundError",
    "StoreStateError",
    "TransferError",
    "ValidationFailedError",
    "ValidationResult",
    "Verdict",
    "create_publisher",
    "load_config",
    "load_session",
    "perform",
    "prepare",
    "resolve_basedir",
    "select_requirements",
    "validate_name",
]
