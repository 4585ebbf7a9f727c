"""Tests for concurrent install reconciliation."""

from __future__ import annotations

import threading
from collections.abc import Sequence

import pytest

from endstate.drivers import DriverRegistry
from endstate.exceptions import DriverNotFoundError
from endstate.schemas import InstallOptions
from endstate.services import InstallService


class FakeDriver:
    """In-memory driver; 'broken' ids raise, 'denied' ids are declined."""

    name = 'fake'

    def __init__(self, installed: Sequence[str] = (), available: bool = True) -> None:
        self.installed = {package: '1.0' for package in installed}
        self.available = available
        self.install_calls: list[str] = []
        self._lock = threading.Lock()

    def test_available(self) -> bool:
        return self.available

    def test_installed(self, package_id: str) -> bool:
        return package_id in self.installed

    def install(self, package_id: str, options: InstallOptions | None = None) -> str:
        with self._lock:
            self.install_calls.append(package_id)
        if package_id == 'broken':
            raise OSError('installer crashed')
        if package_id == 'denied':
            return 'user_denied'
        if package_id in self.installed:
            return 'already_installed'
        self.installed[package_id] = options.version if options and options.version else '2.0'
        return 'success'

    def get_version(self, package_id: str) -> str | None:
        return self.installed.get(package_id)

    def list_installed(self) -> Sequence[str]:
        return sorted(self.installed)


def _service(driver: FakeDriver, workers: int = 4) -> InstallService:
    return InstallService(DriverRegistry([driver], preferred='fake'), max_workers=workers)


def test_install_all_outcomes_in_input_order() -> None:
    driver = FakeDriver(installed=['Git.Git'])

    summary = _service(driver).install_all(['Git.Git', 'Mozilla.Firefox', 'denied', 'broken'])

    assert summary.driver == 'fake'
    assert [result.package_id for result in summary.results] == ['Git.Git', 'Mozilla.Firefox', 'denied', 'broken']
    assert [result.outcome for result in summary.results] == ['already_installed', 'success', 'user_denied', 'error']
    assert summary.results[0].version == '1.0'
    assert summary.results[1].version == '2.0'
    assert summary.results[3].message == 'installer crashed'
    assert (summary.succeeded, summary.already_installed, summary.user_denied, summary.errors) == (1, 1, 1, 1)
    assert summary.ok is False


def test_install_all_collapses_duplicates() -> None:
    driver = FakeDriver()

    summary = _service(driver, workers=2).install_all(['a', 'b', 'a', 'c', 'b'])

    assert [result.package_id for result in summary.results] == ['a', 'b', 'c']
    assert sorted(driver.install_calls) == ['a', 'b', 'c']
    assert summary.ok is True


def test_install_all_passes_options() -> None:
    driver = FakeDriver()

    summary = _service(driver).install_all(['node'], options=InstallOptions(version='20'))

    assert summary.results[0].version == '20'


def test_dry_run_never_installs() -> None:
    driver = FakeDriver(installed=['Git.Git'])

    summary = _service(driver).install_all(['Git.Git', 'Mozilla.Firefox'], dry_run=True)

    assert driver.install_calls == []
    assert [result.outcome for result in summary.results] == ['already_installed', 'success']
    assert summary.results[1].message == 'Dry run: would install'


def test_unavailable_driver_raises() -> None:
    with pytest.raises(DriverNotFoundError, match='not available'):
        _service(FakeDriver(available=False)).install_all(['Git.Git'])


def test_empty_package_list() -> None:
    summary = _service(FakeDriver()).install_all([])
    assert summary.results == []
    assert summary.ok is True
