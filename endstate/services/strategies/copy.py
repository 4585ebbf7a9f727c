"""
Copy strategy - whole-file or recursive directory copy.

Up-to-date detection is shallow by design (no content hashing):
- files: equal size and modification times within the tolerance
- directories: equal file count and newest modification time within the tolerance

A file that cannot be copied because another process holds it open or
locked is skipped with a warning; any other copy error fails the entry.
"""

from __future__ import annotations

import errno
import fnmatch
import logging
import os
import shutil
from collections.abc import Sequence
from pathlib import Path, PurePosixPath

from endstate.exceptions import WriteFailedError
from endstate.schemas.restore import RestoreEntry
from endstate.services.strategies.base import (
    PreparedWrite,
    RestoreStrategy,
    StrategyContext,
    WriteReport,
    remove_path,
)

__all__ = [
    'CopyStrategy',
    'is_excluded',
    'is_lock_violation',
]

logger = logging.getLogger(__name__)

# ERROR_SHARING_VIOLATION, ERROR_LOCK_VIOLATION
_LOCK_WINERRORS = frozenset({32, 33})
_LOCK_ERRNOS = frozenset(code for code in (errno.EBUSY, getattr(errno, 'ETXTBSY', None)) if code is not None)
# HRESULT_FROM_WIN32 forms of the above, as surfaced in error text by some tools
_LOCK_MESSAGE_MARKERS = (
    '0x80070020',
    '0x80070021',
    'being used by another process',
    'locked a portion of the file',
)


def is_lock_violation(exc: OSError) -> bool:
    """
    Classify a copy error as a sharing/lock violation.

    Heuristic: Windows error codes, busy errnos, and known message text.
    """
    if getattr(exc, 'winerror', None) in _LOCK_WINERRORS:
        return True
    if exc.errno in _LOCK_ERRNOS:
        return True
    message = str(exc).lower()
    return any(marker in message for marker in _LOCK_MESSAGE_MARKERS)


def is_excluded(relative_path: str, patterns: Sequence[str]) -> bool:
    """
    Check a path relative to the copy root against exclude patterns.

    Patterns are fnmatch-style and case sensitive, matched against the
    forward-slash relative path and each of its parent directories, so
    'cache' or 'cache/*' both exclude everything under cache/. A leading
    '**/' also matches at the root.

    Examples:
        >>> is_excluded('Cache/data_0', ['Cache'])
        True
        >>> is_excluded('sub/Cache/data_0', ['**/Cache/**'])
        True
        >>> is_excluded('settings.json', ['*.log'])
        False
    """
    if not patterns:
        return False
    path = PurePosixPath(relative_path)
    candidates = [str(path)] + [str(parent) for parent in path.parents if str(parent) != '.']
    for pattern in patterns:
        normalized = pattern.replace('\\', '/').rstrip('/')
        variants = [normalized]
        if normalized.startswith('**/'):
            variants.append(normalized[3:])
        for candidate in candidates:
            if any(fnmatch.fnmatchcase(candidate, variant) for variant in variants):
                return True
    return False


def _reraise(error: OSError) -> None:
    raise error


def _iter_files(root: Path, patterns: Sequence[str]) -> list[tuple[str, Path]]:
    """
    List (relative posix path, absolute path) for non-excluded files.

    Raises:
        OSError: If any directory under root cannot be listed
    """
    files: list[tuple[str, Path]] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_reraise):
        current = Path(dirpath)
        rel_dir = current.relative_to(root).as_posix()
        prefix = '' if rel_dir == '.' else f'{rel_dir}/'
        dirnames[:] = sorted(d for d in dirnames if not is_excluded(f'{prefix}{d}', patterns))
        for name in sorted(filenames):
            rel = f'{prefix}{name}'
            if not is_excluded(rel, patterns):
                files.append((rel, current / name))
    return files


class CopyStrategy(RestoreStrategy):
    """Whole-file or directory copy."""

    kind = 'copy'

    def prepare(self, entry: RestoreEntry, source: Path, target: Path, ctx: StrategyContext) -> PreparedWrite:
        if source.is_dir():
            up_to_date = self._directory_up_to_date(source, target, entry.exclude_patterns, ctx.mtime_tolerance)
            return PreparedWrite(
                up_to_date=up_to_date,
                write=lambda: self._copy_directory(source, target, entry.exclude_patterns),
            )

        up_to_date = self._file_up_to_date(source, target, ctx.mtime_tolerance)
        return PreparedWrite(up_to_date=up_to_date, write=lambda: self._copy_file(source, target))

    # --------------------------------------------------------------------------
    # Up-to-date checks
    # --------------------------------------------------------------------------

    @staticmethod
    def _file_up_to_date(source: Path, target: Path, tolerance: float) -> bool:
        if not target.is_file():
            return False
        src_stat = source.stat()
        dst_stat = target.stat()
        return src_stat.st_size == dst_stat.st_size and abs(src_stat.st_mtime - dst_stat.st_mtime) <= tolerance

    @staticmethod
    def _directory_up_to_date(source: Path, target: Path, patterns: Sequence[str], tolerance: float) -> bool:
        if not target.is_dir():
            return False
        source_files = _iter_files(source, patterns)
        target_files = _iter_files(target, patterns)
        if len(source_files) != len(target_files):
            return False
        if not source_files:
            return True
        newest_source = max(path.stat().st_mtime for _, path in source_files)
        newest_target = max(path.stat().st_mtime for _, path in target_files)
        return abs(newest_source - newest_target) <= tolerance

    # --------------------------------------------------------------------------
    # Writes
    # --------------------------------------------------------------------------

    def _copy_file(self, source: Path, target: Path) -> WriteReport:
        report = WriteReport()
        try:
            if target.is_dir() and not target.is_symlink():
                remove_path(target)  # Replacing a directory with a file
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
        except OSError as e:
            if not is_lock_violation(e):
                raise WriteFailedError(f'Failed to copy {source} to {target}: {e}') from e
            logger.warning('Skipped locked file %s: %s', target, e)
            report.skipped_files.append(target.name)
            report.warnings.append(f'Skipped locked file: {target} ({e})')
        return report

    def _copy_directory(self, source: Path, target: Path, patterns: Sequence[str]) -> WriteReport:
        report = WriteReport()
        try:
            if target.exists() and not target.is_dir():
                remove_path(target)  # Replacing a file with a directory
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WriteFailedError(f'Failed to create directory {target}: {e}') from e

        def _on_walk_error(e: OSError) -> None:
            rel = Path(e.filename).relative_to(source).as_posix() if e.filename else '.'
            if not is_lock_violation(e):
                raise WriteFailedError(f'Failed to read directory {rel} in {source}: {e}') from e
            logger.warning('Skipped locked directory %s: %s', rel, e)
            report.skipped_files.append(rel)
            report.warnings.append(f'Skipped locked directory: {rel} ({e})')

        for dirpath, dirnames, filenames in os.walk(source, onerror=_on_walk_error):
            current = Path(dirpath)
            rel_dir = current.relative_to(source).as_posix()
            prefix = '' if rel_dir == '.' else f'{rel_dir}/'
            dirnames[:] = sorted(d for d in dirnames if not is_excluded(f'{prefix}{d}', patterns))

            destination_dir = target / rel_dir if prefix else target
            try:
                destination_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise WriteFailedError(f'Failed to create directory {destination_dir}: {e}') from e

            for name in sorted(filenames):
                rel = f'{prefix}{name}'
                if is_excluded(rel, patterns):
                    continue
                try:
                    shutil.copy2(current / name, destination_dir / name)
                except OSError as e:
                    if not is_lock_violation(e):
                        raise WriteFailedError(f'Failed to copy {rel} to {destination_dir}: {e}') from e
                    logger.warning('Skipped locked file %s: %s', rel, e)
                    report.skipped_files.append(rel)
                    report.warnings.append(f'Skipped locked file: {rel} ({e})')

        return report
