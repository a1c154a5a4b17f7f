"""Shared fixtures for the stagehold test suite."""

from __future__ import annotations

import typing as typ
from pathlib import Path

import pytest
from store_test_helpers import FakeGpg

from stagehold.config import SessionConfig
from stagehold.environment import HOME_ENV
from stagehold.locking import DirectoryLocker
from stagehold.model import RELEASE
from stagehold.store import ArtifactStore, ArtifactStoreManager
from stagehold.validation import checks


@pytest.fixture
def basedir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create an isolated store directory and point ``STAGEHOLD_HOME`` at it."""
    root = tmp_path / "stores"
    root.mkdir()
    monkeypatch.setenv(HOME_ENV, str(root))
    return root


@pytest.fixture
def locker() -> DirectoryLocker:
    """Provide a locker private to the test."""
    return DirectoryLocker()


@pytest.fixture
def manager(basedir: Path, locker: DirectoryLocker) -> ArtifactStoreManager:
    """Provide a manager over the isolated store directory."""
    return ArtifactStoreManager(basedir, locker)


@pytest.fixture
def config(basedir: Path) -> SessionConfig:
    """Provide an empty session rooted at the isolated store directory."""
    return SessionConfig(basedir=basedir)


@pytest.fixture
def release_store(manager: ArtifactStoreManager) -> typ.Iterator[ArtifactStore]:
    """Create an exclusively locked release store, closed after the test."""
    store = manager.create(RELEASE)
    try:
        yield store
    finally:
        store.close()


@pytest.fixture
def fake_gpg(monkeypatch: pytest.MonkeyPatch) -> FakeGpg:
    """Replace the ``gpg`` executable with one accepting every signature."""
    gpg = FakeGpg(0)
    monkeypatch.setattr(checks, "_gpg_command", lambda executable: gpg)
    return gpg
