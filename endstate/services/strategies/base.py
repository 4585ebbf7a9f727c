"""
Shared three-phase template for restore strategies.

Every strategy runs the same sequence against one entry:

1. prepare   - read and parse source/target, compute the result (no mutation)
2. check     - up-to-date? conflict policy allows writing?
3. backup    - snapshot the existing target under the run-scoped backup root
4. write     - apply the prepared result

Strategies differ only in prepare() (what "up-to-date" and "write" mean).
A BackupFailedError aborts the entry before any write is attempted.
"""

from __future__ import annotations

import abc
import logging
import os
import shutil
import tempfile
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar

from endstate.exceptions import BackupFailedError, EntryError, ParseFailedError, WriteFailedError
from endstate.schemas.restore import JournalEntry, RestoreEntry
from endstate.services.paths import backup_location
from endstate.types import RestoreAction, RestoreKind

__all__ = [
    'PreparedWrite',
    'RestoreStrategy',
    'StrategyContext',
    'WriteReport',
    'create_backup',
    'detect_newline',
    'read_text',
    'remove_path',
    'write_text_atomic',
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StrategyContext:
    """Run-scoped parameters threaded through every strategy call."""

    run_id: str
    backup_root: Path
    dry_run: bool = False
    mtime_tolerance: float = 2.0


@dataclass
class WriteReport:
    """What a write produced besides the changed target."""

    warnings: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)


@dataclass
class PreparedWrite:
    """Result of the read-only prepare phase."""

    up_to_date: bool
    write: Callable[[], WriteReport]


# ==============================================================================
# File helpers
# ==============================================================================


def read_text(path: Path) -> str:
    """
    Read UTF-8 text without newline translation (BOM tolerated).

    Raises:
        ParseFailedError: If the file is not valid UTF-8
    """
    try:
        with open(path, encoding='utf-8-sig', newline='') as f:
            return f.read()
    except UnicodeDecodeError as e:
        raise ParseFailedError(str(path), f'not valid UTF-8 text (byte {e.start})') from e


def write_text_atomic(path: Path, text: str) -> None:
    """Write text via temp file + rename in the target directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f'.{path.name}.', suffix='.tmp', dir=path.parent)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def detect_newline(text: str) -> str:
    """
    Detect the dominant newline style of existing content.

    Counts CRLF against bare LF; ties and empty content use LF.
    """
    crlf = text.count('\r\n')
    lf = text.count('\n') - crlf
    return '\r\n' if crlf > lf else '\n'


def create_backup(target: Path, backup_root: Path, run_id: str) -> Path:
    """
    Snapshot a file or directory before it is overwritten.

    The backup path mirrors the target's absolute path beneath
    <backup_root>/<run_id>. If the same target is backed up twice in one run,
    later snapshots get a numeric suffix so the first (original) state is
    never overwritten.

    Raises:
        BackupFailedError: If the snapshot cannot be written
    """
    destination = backup_location(target, backup_root, run_id)
    counter = 1
    while destination.exists():
        destination = destination.with_name(f'{backup_location(target, backup_root, run_id).name}~{counter}')
        counter += 1

    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        if target.is_dir() and not target.is_symlink():
            shutil.copytree(target, destination, symlinks=True)
        else:
            shutil.copy2(target, destination, follow_symlinks=False)
    except OSError as e:
        raise BackupFailedError(f'Failed to back up {target} to {destination}: {e}') from e

    logger.debug('Backed up %s -> %s', target, destination)
    return destination


def remove_path(path: Path) -> None:
    """Delete a file, symlink or directory tree."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


# ==============================================================================
# Strategy template
# ==============================================================================


class RestoreStrategy(abc.ABC):
    """Base class for the four restore kinds."""

    kind: ClassVar[RestoreKind]

    @abc.abstractmethod
    def prepare(self, entry: RestoreEntry, source: Path, target: Path, ctx: StrategyContext) -> PreparedWrite:
        """
        Read inputs and compute the write without touching the target.

        Raises:
            ParseFailedError: If source or target content is malformed
            OSError: If the source cannot be read
        """

    def apply(
        self,
        entry: RestoreEntry,
        source: Path,
        target: Path,
        ctx: StrategyContext,
        warnings: Sequence[str] = (),
    ) -> JournalEntry:
        """
        Run the full check/backup/write sequence for one entry.

        Never raises for per-entry failures; they are recorded as action=failed.
        """
        entry_warnings = list(warnings)
        target_existed = target.exists() or target.is_symlink()

        def _record(
            action: RestoreAction,
            *,
            error: str | None = None,
            backup_path: Path | None = None,
            skipped_files: Sequence[str] = (),
        ) -> JournalEntry:
            return JournalEntry(
                kind=entry.kind,
                source=entry.source,
                target=entry.target,
                resolved_source_path=str(source),
                target_path=str(target),
                backup_requested=entry.backup_requested,
                target_existed_before=target_existed,
                backup_created=backup_path is not None,
                backup_path=str(backup_path) if backup_path is not None else None,
                action=action,
                error=error,
                warnings=entry_warnings,
                skipped_files=list(skipped_files),
            )

        # Phase 1: prepare + up-to-date check (read-only)
        try:
            prepared = self.prepare(entry, source, target, ctx)
        except EntryError as e:
            return _record('failed', error=str(e))
        except OSError as e:
            return _record('failed', error=f'Cannot read source or target: {e}')
        except (ValueError, RecursionError) as e:
            return _record('failed', error=f'Cannot parse source or target: {e}')

        if prepared.up_to_date:
            return _record('skipped_up_to_date')

        # Existence alone triggers skip under the default policy
        if target_existed and entry.on_conflict == 'skip':
            return _record('skipped_exists')

        take_backup = target_existed and (entry.backup_requested or entry.on_conflict == 'backup-and-overwrite')

        if ctx.dry_run:
            if take_backup:
                entry_warnings.append(f'Dry run: existing target would be backed up: {target}')
            return _record('restored')

        # Phase 2: backup
        backup_path: Path | None = None
        if take_backup:
            try:
                backup_path = create_backup(target, ctx.backup_root, ctx.run_id)
            except BackupFailedError as e:
                return _record('failed', error=str(e))
        elif target_existed:
            entry_warnings.append(f'Overwriting existing target without backup; revert will leave it untouched: {target}')

        # Phase 3: write
        try:
            report = prepared.write()
        except WriteFailedError as e:
            return _record('failed', error=str(e), backup_path=backup_path)
        except OSError as e:
            return _record('failed', error=f'Failed to write {target}: {e}', backup_path=backup_path)

        entry_warnings.extend(report.warnings)
        return _record('restored', backup_path=backup_path, skipped_files=report.skipped_files)
