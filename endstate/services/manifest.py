"""
Manifest loader.

Turns a JSON (or JSON-with-comments) manifest into validated restore entries
and an app id list. Validation happens here, at load time, so services never
see a malformed entry. Include resolution and profile composition are not
handled here.

Manifest shape:
    {
      "name": "workstation",
      "apps": ["Git.Git", {"id": "Microsoft.VisualStudioCode"}],
      "restore": [
        {"type": "copy", "source": "./configs/.gitconfig", "target": "~/.gitconfig"},
        {"type": "merge-json", "source": "./configs/settings.json",
         "target": "%APPDATA%/Code/User/settings.json", "onConflict": "backup-and-overwrite"}
      ]
    }
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pydantic

from endstate.base_model import StrictModel
from endstate.exceptions import ManifestError, ParseFailedError
from endstate.schemas.restore import RestoreEntry
from endstate.services.strategies.json_merge import loads_jsonc

__all__ = [
    'Manifest',
    'load_manifest',
]


class Manifest(StrictModel):
    """Normalized manifest content."""

    path: str
    name: str | None
    apps: Sequence[str]
    restore: Sequence[RestoreEntry]


def _app_ids(raw_apps: Any, path: Path) -> list[str]:
    if not isinstance(raw_apps, list):
        raise ManifestError(f"{path}: 'apps' must be a list")
    ids: list[str] = []
    for index, app in enumerate(raw_apps):
        if isinstance(app, str) and app.strip():
            ids.append(app.strip())
        elif isinstance(app, dict) and isinstance(app.get('id'), str) and app['id'].strip():
            ids.append(app['id'].strip())
        else:
            raise ManifestError(f'{path}: apps[{index}] must be a package id or an object with an "id"')
    return ids


def load_manifest(path: Path) -> Manifest:
    """
    Load and validate a manifest file.

    Raises:
        ManifestError: If the file is missing, unparseable, or any entry is invalid
    """
    if not path.is_file():
        raise ManifestError(f'Manifest not found: {path}')

    try:
        data = loads_jsonc(path.read_text(encoding='utf-8-sig'), str(path))
    except (OSError, ParseFailedError) as e:
        raise ManifestError(str(e)) from e
    except UnicodeDecodeError as e:
        raise ManifestError(f'{path}: not valid UTF-8 text (byte {e.start})') from e

    if not isinstance(data, dict):
        raise ManifestError(f'{path}: manifest must be a JSON object')

    entries: list[RestoreEntry] = []
    for index, raw_entry in enumerate(data.get('restore', [])):
        try:
            entries.append(RestoreEntry.model_validate(raw_entry))
        except pydantic.ValidationError as e:
            raise ManifestError(f'{path}: restore[{index}] is invalid:\n{e}') from e

    name = data.get('name')
    return Manifest(
        path=str(path.resolve()),
        name=name if isinstance(name, str) else None,
        apps=_app_ids(data.get('apps', []), path),
        restore=entries,
    )
