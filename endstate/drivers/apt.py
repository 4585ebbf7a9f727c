"""Debian/Ubuntu apt driver (dpkg-query for inspection, apt-get for installs)."""

from __future__ import annotations

import os
import shutil
from collections.abc import Sequence

from endstate.drivers.base import CommandDriver
from endstate.schemas.install import InstallOptions

__all__ = ['AptDriver']


class AptDriver(CommandDriver):
    """Driver for apt. Package ids are Debian package names."""

    name = 'apt'
    executable = 'apt-get'

    def test_available(self) -> bool:
        return shutil.which('apt-get') is not None and shutil.which('dpkg-query') is not None

    def install_command(self, package_id: str, options: InstallOptions) -> list[str]:
        package = f'{package_id}={options.version}' if options.version else package_id
        args = ['apt-get', 'install', '--yes' if options.silent else '--quiet', package, *options.extra_args]
        # Non-interactive sudo: a password prompt is reported as a denial instead of hanging
        if hasattr(os, 'geteuid') and os.geteuid() != 0:
            args = ['sudo', '--non-interactive', *args]
        return args

    def test_installed(self, package_id: str) -> bool:
        result = self._run(['dpkg-query', '--show', '--showformat=${Status}', package_id])
        return result.exit_code == 0 and 'install ok installed' in result.stdout

    def get_version(self, package_id: str) -> str | None:
        if not self.test_installed(package_id):
            return None
        result = self._run(['dpkg-query', '--show', '--showformat=${Version}', package_id])
        version = result.stdout.strip()
        return version if result.exit_code == 0 and version else None

    def list_installed(self) -> Sequence[str]:
        result = self._run(['dpkg-query', '--show', '--showformat=${Package}\t${Status}\n'])
        if result.exit_code != 0:
            return []
        packages = []
        for line in result.stdout.splitlines():
            package, _, status = line.partition('\t')
            if package and 'install ok installed' in status:
                packages.append(package)
        return sorted(set(packages))
