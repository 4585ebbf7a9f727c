"""
Driver registry - name-keyed table of installer drivers with one active driver.

The registry is an explicit object, constructed once and passed to callers.
Registration validates the capability bundle up front, so a driver missing
an operation is rejected at registration rather than failing at call time.

The active driver is selected lazily on first access (explicit preference,
else the platform default) under a lock, so installer workers starting
concurrently all see the same driver. Later accesses are lock-free reads.
"""

from __future__ import annotations

import logging
import sys
import threading
from collections.abc import Iterable

from endstate.drivers.apt import AptDriver
from endstate.drivers.base import REQUIRED_OPERATIONS, Driver
from endstate.drivers.brew import BrewDriver
from endstate.drivers.winget import WingetDriver
from endstate.exceptions import DriverError, DriverNotFoundError, DriverValidationError

__all__ = [
    'PLATFORM_DEFAULTS',
    'DriverRegistry',
    'build_default_registry',
    'validate_driver',
]

logger = logging.getLogger(__name__)

PLATFORM_DEFAULTS = {
    'win32': 'winget',
    'linux': 'apt',
    'darwin': 'brew',
}


def validate_driver(driver: object) -> str:
    """
    Check that an object satisfies the driver contract.

    Returns:
        The driver's name

    Raises:
        DriverValidationError: If the name or any required operation is missing
    """
    name = getattr(driver, 'name', None)
    display_name = name if isinstance(name, str) and name else type(driver).__name__
    missing = [op for op in REQUIRED_OPERATIONS if not callable(getattr(driver, op, None))]
    if not isinstance(name, str) or not name:
        missing.insert(0, 'name')
    if missing:
        raise DriverValidationError(display_name, missing)
    return name


class DriverRegistry:
    """Registry of installer drivers with lazy, thread-safe active-driver selection."""

    def __init__(
        self,
        drivers: Iterable[Driver] = (),
        preferred: str | None = None,
        platform: str | None = None,
    ) -> None:
        """
        Initialize registry.

        Args:
            drivers: Drivers to register up front
            preferred: Driver name to activate instead of the platform default
            platform: Platform key for default selection (defaults to sys.platform)
        """
        self._drivers: dict[str, Driver] = {}
        self._active: Driver | None = None
        self._lock = threading.Lock()
        self.preferred = preferred
        self.platform = platform or sys.platform
        for driver in drivers:
            self.register(driver)

    def register(self, driver: Driver) -> None:
        """
        Add a driver to the table.

        Raises:
            DriverValidationError: If the bundle lacks a required operation
            DriverError: If another driver already uses the name
        """
        name = validate_driver(driver)
        with self._lock:
            existing = self._drivers.get(name)
            if existing is not None and existing is not driver:
                raise DriverError(f"A driver named '{name}' is already registered")
            self._drivers[name] = driver
        logger.debug('Registered driver %s', name)

    @property
    def names(self) -> list[str]:
        return sorted(self._drivers)

    def get(self, name: str) -> Driver:
        """Look up a registered driver by name."""
        try:
            return self._drivers[name]
        except KeyError:
            raise DriverNotFoundError(f"No driver named '{name}' (registered: {', '.join(self.names) or 'none'})") from None

    def initialize(self) -> Driver:
        """
        Select the active driver once. Calling again returns the same driver.

        Raises:
            DriverNotFoundError: If no driver matches the preference or platform
        """
        if self._active is not None:
            return self._active

        with self._lock:
            if self._active is None:
                name = self.preferred or PLATFORM_DEFAULTS.get(self.platform)
                if name is None:
                    raise DriverNotFoundError(f'No default driver for platform {self.platform!r}')
                driver = self._drivers.get(name)
                if driver is None:
                    raise DriverNotFoundError(f"Driver '{name}' is not registered")
                self._active = driver
                logger.info('Active driver: %s', name)
            return self._active

    @property
    def active(self) -> Driver:
        """The active driver (selected on first access)."""
        return self.initialize()


def build_default_registry(preferred: str | None = None, platform: str | None = None) -> DriverRegistry:
    """Registry with the built-in winget, apt and brew drivers."""
    return DriverRegistry([WingetDriver(), AptDriver(), BrewDriver()], preferred=preferred, platform=platform)
