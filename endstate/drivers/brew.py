"""Homebrew driver."""

from __future__ import annotations

from collections.abc import Sequence

from endstate.drivers.base import CommandDriver
from endstate.schemas.install import InstallOptions

__all__ = ['BrewDriver']


class BrewDriver(CommandDriver):
    """Driver for Homebrew formulae and casks."""

    name = 'brew'
    executable = 'brew'

    def install_command(self, package_id: str, options: InstallOptions) -> list[str]:
        package = f'{package_id}@{options.version}' if options.version else package_id
        return ['brew', 'install', package, *options.extra_args]

    def _versions(self, package_id: str) -> list[str]:
        # `brew list --versions git` -> "git 2.44.0 2.43.0"
        result = self._run(['brew', 'list', '--versions', package_id])
        if result.exit_code != 0:
            return []
        parts = result.stdout.split()
        return parts[1:] if parts else []

    def test_installed(self, package_id: str) -> bool:
        return bool(self._versions(package_id))

    def get_version(self, package_id: str) -> str | None:
        versions = self._versions(package_id)
        return versions[0] if versions else None

    def list_installed(self) -> Sequence[str]:
        result = self._run(['brew', 'list', '-1'])
        if result.exit_code != 0:
            return []
        return sorted({line.strip() for line in result.stdout.splitlines() if line.strip()})
