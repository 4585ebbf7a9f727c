"""
Installer drivers.

A driver abstracts one package manager behind five operations; the registry
selects one active driver per process.
"""

from __future__ import annotations

from endstate.drivers.apt import AptDriver
from endstate.drivers.base import REQUIRED_OPERATIONS, CommandDriver, CommandResult, Driver, run_command
from endstate.drivers.brew import BrewDriver
from endstate.drivers.classification import classify_install_outcome
from endstate.drivers.registry import PLATFORM_DEFAULTS, DriverRegistry, build_default_registry, validate_driver
from endstate.drivers.winget import WingetDriver

__all__ = [
    'PLATFORM_DEFAULTS',
    'REQUIRED_OPERATIONS',
    'AptDriver',
    'BrewDriver',
    'CommandDriver',
    'CommandResult',
    'Driver',
    'DriverRegistry',
    'WingetDriver',
    'build_default_registry',
    'classify_install_outcome',
    'run_command',
    'validate_driver',
]
