"""Windows Package Manager (winget) driver."""

from __future__ import annotations

import json
import re
import tempfile
from collections.abc import Sequence
from pathlib import Path

from endstate.drivers.base import CommandDriver
from endstate.schemas.install import InstallOptions

__all__ = ['WingetDriver']

_AGREEMENTS = ('--accept-source-agreements',)


class WingetDriver(CommandDriver):
    """Driver for winget. Package ids are winget identifiers (e.g. Git.Git)."""

    name = 'winget'
    executable = 'winget'

    def install_command(self, package_id: str, options: InstallOptions) -> list[str]:
        args = ['winget', 'install', '--id', package_id, '--exact', '--accept-package-agreements', *_AGREEMENTS]
        if options.silent:
            args.append('--silent')
        if options.version:
            args.extend(['--version', options.version])
        if options.source:
            args.extend(['--source', options.source])
        args.extend(options.extra_args)
        return args

    def _list_row(self, package_id: str) -> list[str] | None:
        """Columns of the `winget list` row for an id, or None."""
        result = self._run(['winget', 'list', '--id', package_id, '--exact', *_AGREEMENTS])
        if result.exit_code != 0:
            return None
        for line in result.stdout.splitlines():
            columns = re.split(r'\s{2,}', line.strip())
            if package_id.lower() in (column.lower() for column in columns):
                return columns
        return None

    def test_installed(self, package_id: str) -> bool:
        return self._list_row(package_id) is not None

    def get_version(self, package_id: str) -> str | None:
        # Columns: Name, Id, Version[, Available], Source
        columns = self._list_row(package_id)
        if columns is None:
            return None
        lowered = [column.lower() for column in columns]
        index = lowered.index(package_id.lower())
        return columns[index + 1] if index + 1 < len(columns) else None

    def list_installed(self) -> Sequence[str]:
        with tempfile.TemporaryDirectory(prefix='endstate-winget-') as temp_dir:
            export_file = Path(temp_dir) / 'export.json'
            result = self._run(['winget', 'export', '--output', str(export_file), *_AGREEMENTS])
            if result.exit_code != 0 or not export_file.exists():
                return []
            data = json.loads(export_file.read_text(encoding='utf-8-sig'))

        ids: list[str] = []
        for source in data.get('Sources', []):
            for package in source.get('Packages', []):
                identifier = package.get('PackageIdentifier')
                if identifier:
                    ids.append(identifier)
        return sorted(set(ids), key=str.lower)
