"""
Base configuration for endstate.

Settings are read from ENDSTATE_* environment variables, optionally from a
.env file named by LOAD_ENV_FILE.
"""

from __future__ import annotations

import os
import pathlib
from typing import TypeVar

import lazy_object_proxy
import pydantic
import pydantic_settings

T = TypeVar('T', bound='EndstateSettings')


class EndstateSettings(pydantic_settings.BaseSettings):
    """Shared configuration for restore, revert and install services."""

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix='ENDSTATE_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,  # Fail fast on misconfiguration
        extra='forbid',  # Reject unknown environment variables
    )

    # Application metadata
    APP_NAME: str = 'endstate'
    VERSION: str = '0.1.0'

    # State directories (backups and journals default to subdirectories)
    STATE_DIR: pathlib.Path = pathlib.Path.home() / '.endstate'
    BACKUP_DIR: pathlib.Path | None = None
    JOURNAL_DIR: pathlib.Path | None = None

    # Copy strategy up-to-date heuristic (filesystem timestamp granularity)
    MTIME_TOLERANCE_SECONDS: float = 2.0

    # Install reconciliation
    INSTALL_WORKERS: int = 4
    DRIVER: str | None = None  # Force a driver by name instead of platform selection

    @pydantic.field_validator('MTIME_TOLERANCE_SECONDS')
    @classmethod
    def validate_mtime_tolerance(cls, v: float) -> float:
        """Validate tolerance is non-negative."""
        if v < 0:
            raise ValueError('MTIME_TOLERANCE_SECONDS must be >= 0')
        return v

    @pydantic.field_validator('INSTALL_WORKERS')
    @classmethod
    def validate_install_workers(cls, v: int) -> int:
        """Validate worker count is within pool bounds."""
        if not 1 <= v <= 32:
            raise ValueError('INSTALL_WORKERS must be between 1-32')
        return v

    @property
    def backup_root(self) -> pathlib.Path:
        """Directory holding run-scoped backups."""
        return self.BACKUP_DIR or self.STATE_DIR / 'backups'

    @property
    def journal_dir(self) -> pathlib.Path:
        """Directory holding restore journals."""
        return self.JOURNAL_DIR or self.STATE_DIR / 'journals'


def get_settings(settings_class: type[T] = EndstateSettings, env_file: str | None = None) -> T:
    """
    Factory for creating settings with dynamic .env file loading.

    LOAD_ENV_FILE environment variable specifies custom .env file path.
    When unset, loads from environment variables only.

    Args:
        settings_class: Settings class to instantiate
        env_file: Optional path to .env file (overrides LOAD_ENV_FILE)

    Returns:
        Settings instance

    Raises:
        FileNotFoundError: If specified .env file doesn't exist
    """
    env_file_path = env_file or os.getenv('LOAD_ENV_FILE')

    if not env_file_path:
        return settings_class()  # No .env file, load from environment only

    resolved_path = pathlib.Path(env_file_path).resolve()
    if not resolved_path.exists():
        raise FileNotFoundError(f'Environment file not found: {resolved_path}')

    return settings_class(_env_file=resolved_path)


def lazy_settings(settings_class: type[T]) -> T:
    """
    Lazy settings - defers instantiation until first access.

    Args:
        settings_class: Settings class to instantiate

    Returns:
        Proxy that instantiates settings on first access
    """
    return lazy_object_proxy.Proxy(lambda: get_settings(settings_class))


# Module-level singleton (lazy-loaded)
settings = lazy_settings(EndstateSettings)
