"""Shared fixtures: an isolated state directory, manifest directory and home."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeAlias

import pytest

from endstate.schemas import RestoreEntry
from endstate.services import JournalStore, RestoreService, RevertService

EntryFactory: TypeAlias = Callable[..., RestoreEntry]


@pytest.fixture
def home(tmp_path: Path) -> Path:
    path = tmp_path / 'home'
    path.mkdir()
    return path


@pytest.fixture
def manifest_dir(tmp_path: Path) -> Path:
    path = tmp_path / 'manifest'
    path.mkdir()
    return path


@pytest.fixture
def manifest_path(manifest_dir: Path) -> Path:
    path = manifest_dir / 'manifest.jsonc'
    path.write_text('{}\n', encoding='utf-8')
    return path


@pytest.fixture
def backup_root(tmp_path: Path) -> Path:
    return tmp_path / 'state' / 'backups'


@pytest.fixture
def journal_store(tmp_path: Path) -> JournalStore:
    return JournalStore(tmp_path / 'state' / 'journals')


@pytest.fixture
def restore_service(backup_root: Path, journal_store: JournalStore, home: Path) -> RestoreService:
    return RestoreService(backup_root=backup_root, journal_store=journal_store, env={}, home=home)


@pytest.fixture
def revert_service(backup_root: Path, journal_store: JournalStore) -> RevertService:
    return RevertService(backup_root=backup_root, journal_store=journal_store)


@pytest.fixture
def make_entry() -> EntryFactory:
    """Build a RestoreEntry from manifest-style keys (type, backup, onConflict, ...)."""

    def _make(**fields: Any) -> RestoreEntry:
        return RestoreEntry.model_validate(fields)

    return _make
