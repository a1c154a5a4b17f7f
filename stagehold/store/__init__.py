"""Artifact stores and the manager that owns them."""

from __future__ import annotations

from .artifact_store import ArtifactStore, StoreMetadata, StoreState
from .manager import (
    DEFAULT_CHECKSUM_ALGORITHMS,
    DEFAULT_OMIT_CHECKSUMS_FOR_EXTENSIONS,
    ArtifactStoreManager,
)
from .naming import (
    format_store_name,
    new_store_name,
    sequence_number,
    validate_name,
)

__all__ = [
    "DEFAULT_CHECKSUM_ALGORITHMS",
    "DEFAULT_OMIT_CHECKSUMS_FOR_EXTENSIONS",
    "ArtifactStore",
    "ArtifactStoreManager",
    "StoreMetadata",
    "StoreState",
    "format_store_name",
    "new_store_name",
    "sequence_number",
    "validate_name",
]
