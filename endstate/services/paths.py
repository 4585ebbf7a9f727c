"""
Path resolution for restore entries.

Three independent steps:

1. Token expansion - %VAR%, $VAR, ${VAR} and a leading ~ are substituted.
   An unresolved token is an error, never a silent no-op.
2. Source resolution across two roots - the export root (portable snapshot)
   is tried first, then the manifest directory. The same manifest restores
   from either without edits.
3. Sensitive-path classification - credential-like paths produce warnings,
   never skips.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping, Sequence
from pathlib import Path, PurePosixPath, PureWindowsPath

from endstate.exceptions import PathResolutionError, UnresolvedTokenError

__all__ = [
    'SENSITIVE_PATH_SEGMENTS',
    'backup_location',
    'expand_tokens',
    'find_sensitive_segments',
    'resolve_source',
    'resolve_target',
    'sensitive_path_warnings',
]

# %APPDATA%, ${HOME}, $HOME
_TOKEN_PATTERN = re.compile(
    r'%(?P<win>[A-Za-z_][A-Za-z0-9_()]*)%'
    r'|\$\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)\}'
    r'|\$(?P<bare>[A-Za-z_][A-Za-z0-9_]*)'
)

# Matched case-insensitively as substrings of the forward-slash path
SENSITIVE_PATH_SEGMENTS: tuple[str, ...] = (
    '.ssh',
    '.gnupg',
    '.aws',
    '.azure',
    '.kube',
    '.docker/config.json',
    '.git-credentials',
    '.netrc',
    '.npmrc',
    '.pypirc',
    'id_rsa',
    'id_dsa',
    'id_ecdsa',
    'id_ed25519',
    '.pem',
    '.pfx',
    '.p12',
    '.key',
    'credentials',
    'secrets',
    'keychain',
    'keepass',
    '.kdbx',
    'microsoft/credentials',
    'microsoft/protect',
)


def expand_tokens(
    value: str,
    env: Mapping[str, str] | None = None,
    home: Path | None = None,
) -> str:
    """
    Substitute environment tokens and a leading home marker.

    Args:
        value: Path string with unexpanded tokens
        env: Environment mapping (defaults to os.environ)
        home: Home directory for ~ (defaults to Path.home())

    Returns:
        Expanded path string

    Raises:
        UnresolvedTokenError: If any token has no value in env

    Examples:
        >>> expand_tokens('%APPDATA%/Code/User', env={'APPDATA': 'C:/Users/me/AppData/Roaming'})
        'C:/Users/me/AppData/Roaming/Code/User'
    """
    environment = os.environ if env is None else env

    def _substitute(match: re.Match[str]) -> str:
        name = match.group('win') or match.group('braced') or match.group('bare')
        # Windows environment variables are case-insensitive
        if name in environment:
            return environment[name]
        if match.group('win') is not None:
            for key, val in environment.items():
                if key.upper() == name.upper():
                    return val
        raise UnresolvedTokenError(match.group(0), value)

    expanded = _TOKEN_PATTERN.sub(_substitute, value)

    if expanded == '~' or expanded.startswith(('~/', '~\\')):
        home_dir = home if home is not None else Path.home()
        expanded = str(home_dir) + expanded[1:]

    return expanded


def _is_absolute(value: str) -> bool:
    """Absolute under either platform convention (C:\\x, \\\\server\\share, /x)."""
    return PurePosixPath(value).is_absolute() or PureWindowsPath(value).is_absolute()


def resolve_target(
    target: str,
    env: Mapping[str, str] | None = None,
    home: Path | None = None,
) -> Path:
    """
    Expand a target path and require it to be absolute.

    Raises:
        UnresolvedTokenError: If a token has no value
        PathResolutionError: If the expanded target is relative
    """
    expanded = expand_tokens(target, env=env, home=home)
    if not _is_absolute(expanded):
        raise PathResolutionError(f'Target must be an absolute path after expansion: {target} -> {expanded}')
    return Path(expanded)


def resolve_source(
    source: str,
    manifest_dir: Path,
    export_root: Path | None = None,
    env: Mapping[str, str] | None = None,
    home: Path | None = None,
) -> tuple[Path | None, list[Path]]:
    """
    Find the source file for a restore entry.

    With an export root, <export_root>/<source> is tried first and
    <manifest_dir>/<source> is the fallback. Without one, only the manifest
    directory is used. A source beginning with the home marker is expanded
    and used as-is.

    Args:
        source: Portable source path from the manifest
        manifest_dir: Directory containing the manifest
        export_root: Optional portable snapshot root

    Returns:
        (resolved path or None when not found, candidates searched in order)
    """
    if source.startswith('~'):
        candidate = Path(expand_tokens(source, env=env, home=home))
        return (candidate.resolve() if candidate.exists() else None), [candidate]

    relative = source.replace('\\', '/').removeprefix('./')
    candidates: list[Path] = []
    if export_root is not None:
        candidates.append(export_root / relative)
    candidates.append(manifest_dir / relative)

    for candidate in candidates:
        if candidate.exists():
            return candidate.resolve(), candidates

    return None, candidates


def find_sensitive_segments(path: Path | str) -> list[str]:
    """
    Return the sensitive segments contained in a path (case-insensitive).

    Examples:
        >>> find_sensitive_segments('/home/me/.ssh/config')
        ['.ssh']
        >>> find_sensitive_segments('/home/me/.gitconfig')
        []
    """
    normalized = str(path).replace('\\', '/').lower()
    return [segment for segment in SENSITIVE_PATH_SEGMENTS if segment in normalized]


def sensitive_path_warnings(paths: Sequence[Path | str | None]) -> list[str]:
    """Build one warning per sensitive path."""
    warnings: list[str] = []
    for path in paths:
        if path is None:
            continue
        matches = find_sensitive_segments(path)
        if matches:
            warnings.append(f'Sensitive path ({", ".join(matches)}): {path}')
    return warnings


def backup_location(target: Path, backup_root: Path, run_id: str) -> Path:
    """
    Compute the run-scoped backup path for a target.

    The full absolute target path is preserved beneath <backup_root>/<run_id>
    so backups from one run never collide and the original location stays
    readable. The anchor becomes a plain segment:

        /home/me/.gitconfig        -> <root>/<run>/home/me/.gitconfig
        C:\\Users\\me\\.gitconfig -> <root>/<run>/C/Users/me/.gitconfig
    """
    target_str = str(target)
    pure: PurePosixPath | PureWindowsPath = PureWindowsPath(target_str)
    if not pure.drive:
        pure = PurePosixPath(target_str.replace('\\', '/'))
    parts = list(pure.parts)
    if parts and pure.anchor:
        drive = pure.drive.rstrip(':').strip('\\/').replace('\\', '_').replace('/', '_')
        parts = ([drive] if drive else []) + parts[1:]
    return backup_root / run_id / Path(*parts)
