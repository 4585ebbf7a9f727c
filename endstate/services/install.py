"""
Install service - reconciles package identifiers against the active driver.

Distinct package ids share no mutable target, so they install concurrently on
a bounded thread pool. The registry's active driver is resolved before the
pool starts; workers only read it.
"""

from __future__ import annotations

import logging
import subprocess
from collections import Counter
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor

from endstate.drivers.base import Driver
from endstate.drivers.registry import DriverRegistry
from endstate.exceptions import DriverNotFoundError, EndstateError
from endstate.protocols import LoggerProtocol, NullLogger
from endstate.schemas.install import InstallOptions, InstallResult, InstallSummary

__all__ = [
    'InstallService',
]

logger = logging.getLogger(__name__)


class InstallService:
    """Service for idempotent, concurrent package installation."""

    def __init__(self, registry: DriverRegistry, max_workers: int = 4) -> None:
        """
        Initialize install service.

        Args:
            registry: Driver registry (active driver selected on first use)
            max_workers: Upper bound on concurrent installs
        """
        self.registry = registry
        self.max_workers = max_workers

    def install_all(
        self,
        package_ids: Sequence[str],
        options: InstallOptions | None = None,
        dry_run: bool = False,
        logger: LoggerProtocol | None = None,
    ) -> InstallSummary:
        """
        Install every package that is not already installed.

        Args:
            package_ids: Package identifiers (duplicates are collapsed, order kept)
            options: Install options passed to the driver
            dry_run: Only check what is installed; never invoke the installer
            logger: Optional progress logger

        Returns:
            InstallSummary with one result per distinct id, in input order

        Raises:
            DriverNotFoundError: If the active driver's package manager is unavailable
        """
        log = logger or NullLogger()
        driver = self.registry.active
        if not driver.test_available():
            raise DriverNotFoundError(f"Driver '{driver.name}' is not available on this machine")

        unique_ids = list(dict.fromkeys(package_ids))
        log.info(f'Reconciling {len(unique_ids)} packages with {driver.name}')

        results: list[InstallResult] = []
        if unique_ids:
            workers = min(self.max_workers, len(unique_ids))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='endstate-install') as pool:
                futures = [pool.submit(self._reconcile, driver, pkg, options, dry_run) for pkg in unique_ids]
                results = [future.result() for future in futures]

        for result in results:
            if result.outcome == 'error':
                log.error(f'{result.package_id}: {result.message or "install failed"}')
            elif result.outcome == 'user_denied':
                log.warning(f'{result.package_id}: installation was denied')
            else:
                log.info(f'{result.package_id}: {result.outcome}')

        counts = Counter(result.outcome for result in results)
        return InstallSummary(
            driver=driver.name,
            results=results,
            succeeded=counts['success'],
            already_installed=counts['already_installed'],
            user_denied=counts['user_denied'],
            errors=counts['error'],
        )

    @staticmethod
    def _reconcile(driver: Driver, package_id: str, options: InstallOptions | None, dry_run: bool) -> InstallResult:
        """Reconcile one package; driver failures become 'error' results."""
        try:
            if dry_run:
                installed = driver.test_installed(package_id)
                return InstallResult(
                    package_id=package_id,
                    outcome='already_installed' if installed else 'success',
                    version=driver.get_version(package_id) if installed else None,
                    message=None if installed else 'Dry run: would install',
                )

            outcome = driver.install(package_id, options)
            version = driver.get_version(package_id) if outcome in ('success', 'already_installed') else None
        except (OSError, subprocess.SubprocessError, EndstateError) as e:
            logger.error('Driver %s failed for %s: %s', driver.name, package_id, e)
            return InstallResult(package_id=package_id, outcome='error', version=None, message=str(e))

        return InstallResult(package_id=package_id, outcome=outcome, version=version, message=None)
