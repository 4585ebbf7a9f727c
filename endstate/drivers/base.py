"""
Installer driver contract and the shared subprocess-backed implementation.

A driver is a capability bundle with a name and five operations. The engine
depends on nothing beyond this contract.
"""

from __future__ import annotations

import abc
import logging
import shutil
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import ClassVar, Protocol, TypeAlias

from endstate.drivers.classification import classify_install_outcome
from endstate.schemas.install import InstallOptions
from endstate.types import InstallOutcome

__all__ = [
    'REQUIRED_OPERATIONS',
    'CommandDriver',
    'CommandResult',
    'CommandRunner',
    'Driver',
    'run_command',
]

logger = logging.getLogger(__name__)

REQUIRED_OPERATIONS = ('test_available', 'test_installed', 'install', 'get_version', 'list_installed')


class Driver(Protocol):
    """Capability bundle abstracting one package manager."""

    name: str

    def test_available(self) -> bool: ...
    def test_installed(self, package_id: str) -> bool: ...
    def install(self, package_id: str, options: InstallOptions | None = None) -> InstallOutcome: ...
    def get_version(self, package_id: str) -> str | None: ...
    def list_installed(self) -> Sequence[str]: ...


@dataclass(frozen=True)
class CommandResult:
    """Completed installer command."""

    exit_code: int | None  # None when the executable could not be started
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        return f'{self.stdout}\n{self.stderr}'.strip()


CommandRunner: TypeAlias = Callable[[Sequence[str]], CommandResult]


def run_command(args: Sequence[str]) -> CommandResult:
    """
    Run a package manager command and capture its output.

    No timeout is imposed; a hung installer is the package manager's concern.
    """
    logger.debug('Running: %s', ' '.join(args))
    try:
        result = subprocess.run(
            list(args),
            capture_output=True,
            text=True,
            encoding='utf-8',
            errors='replace',
        )
    except OSError as e:
        logger.warning('Failed to start %s: %s', args[0], e)
        return CommandResult(exit_code=None, stdout='', stderr=str(e))
    return CommandResult(exit_code=result.returncode, stdout=result.stdout, stderr=result.stderr)


class CommandDriver(abc.ABC):
    """
    Base for drivers that shell out to a package manager CLI.

    Subclasses provide command lines and output parsing; install
    reconciliation and outcome classification are shared.
    """

    name: ClassVar[str]
    executable: ClassVar[str]

    def __init__(self, runner: CommandRunner | None = None) -> None:
        """
        Initialize driver.

        Args:
            runner: Command runner (defaults to run_command; replaced in tests)
        """
        self._run = runner or run_command

    def test_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def install(self, package_id: str, options: InstallOptions | None = None) -> InstallOutcome:
        """Install unless already installed, then classify the installer's outcome."""
        if self.test_installed(package_id):
            return 'already_installed'

        result = self._run(self.install_command(package_id, options or InstallOptions()))
        outcome = classify_install_outcome(result.exit_code, result.output)
        if outcome == 'error':
            logger.warning('%s install %s failed (exit %s): %s', self.name, package_id, result.exit_code, result.output)
        return outcome

    @abc.abstractmethod
    def install_command(self, package_id: str, options: InstallOptions) -> list[str]:
        """Command line that installs one package non-interactively."""

    @abc.abstractmethod
    def test_installed(self, package_id: str) -> bool: ...

    @abc.abstractmethod
    def get_version(self, package_id: str) -> str | None: ...

    @abc.abstractmethod
    def list_installed(self) -> Sequence[str]: ...
