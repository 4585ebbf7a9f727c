"""Configuration for endstate services."""

from __future__ import annotations

from endstate.config.base import EndstateSettings, get_settings, lazy_settings, settings

__all__ = ['EndstateSettings', 'get_settings', 'lazy_settings', 'settings']
