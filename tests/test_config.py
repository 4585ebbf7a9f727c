"""Tests for environment-driven settings."""

from __future__ import annotations

from pathlib import Path

import pydantic
import pytest

from endstate.config import EndstateSettings, get_settings, lazy_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        'LOAD_ENV_FILE',
        'ENDSTATE_STATE_DIR',
        'ENDSTATE_BACKUP_DIR',
        'ENDSTATE_JOURNAL_DIR',
        'ENDSTATE_MTIME_TOLERANCE_SECONDS',
        'ENDSTATE_INSTALL_WORKERS',
        'ENDSTATE_DRIVER',
    ):
        monkeypatch.delenv(name, raising=False)


def test_state_directories_default_under_state_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv('ENDSTATE_STATE_DIR', str(tmp_path))

    settings = get_settings()

    assert settings.backup_root == tmp_path / 'backups'
    assert settings.journal_dir == tmp_path / 'journals'
    assert settings.MTIME_TOLERANCE_SECONDS == 2.0


def test_explicit_directories_win(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv('ENDSTATE_STATE_DIR', str(tmp_path))
    monkeypatch.setenv('ENDSTATE_JOURNAL_DIR', str(tmp_path / 'elsewhere'))

    assert get_settings().journal_dir == tmp_path / 'elsewhere'


@pytest.mark.parametrize(
    ('name', 'value'),
    [('ENDSTATE_INSTALL_WORKERS', '0'), ('ENDSTATE_INSTALL_WORKERS', '64'), ('ENDSTATE_MTIME_TOLERANCE_SECONDS', '-1')],
)
def test_invalid_values_rejected(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(pydantic.ValidationError):
        EndstateSettings()


def test_env_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    env_file = tmp_path / 'test.env'
    env_file.write_text('ENDSTATE_DRIVER=brew\nENDSTATE_INSTALL_WORKERS=2\n')
    monkeypatch.setenv('LOAD_ENV_FILE', str(env_file))

    settings = get_settings()

    assert settings.DRIVER == 'brew'
    assert settings.INSTALL_WORKERS == 2


def test_missing_env_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv('LOAD_ENV_FILE', str(tmp_path / 'missing.env'))
    with pytest.raises(FileNotFoundError):
        get_settings()


def test_lazy_settings_defer_until_first_access(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    proxy = lazy_settings(EndstateSettings)
    monkeypatch.setenv('ENDSTATE_STATE_DIR', str(tmp_path))

    assert proxy.STATE_DIR == tmp_path
    assert proxy.backup_root == tmp_path / 'backups'
