"""
Restore service - applies restore entries onto the live filesystem.

Entries are processed strictly sequentially, in manifest order, on a single
thread. That order is recorded in the run journal and is the only input to
revert, so it is never changed.

Per entry:
    resolve paths -> (missing source | strategy check/backup/write) -> JournalEntry

Per-entry failures are recorded and processing continues. The journal is
written once at the end of every non-dry-run restore, even when every entry
failed; a journal write failure fails the whole restore.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Literal

import uuid6

from endstate.exceptions import PathResolutionError, RestoreNotEnabledError, SourceNotFoundError
from endstate.protocols import LoggerProtocol, NullLogger
from endstate.schemas.restore import JournalEntry, RestoreEntry, RestoreResult, RunJournal
from endstate.services.journal import JournalStore
from endstate.services.paths import resolve_source, resolve_target, sensitive_path_warnings
from endstate.services.strategies import StrategyContext, get_strategy
from endstate.types import RestoreAction

__all__ = [
    'RestoreService',
    'summarize_status',
]

logger = logging.getLogger(__name__)


def summarize_status(
    entries: Sequence[JournalEntry],
    optional_flags: Sequence[bool],
) -> Literal['success', 'partial', 'failed']:
    """
    Classify a run as success, partial or failed.

    Failed entries and missing non-optional sources are problems. A run where
    every entry is a problem is 'failed'; some problems make it 'partial'.
    """
    problems = sum(
        1
        for entry, optional in zip(entries, optional_flags, strict=True)
        if entry.action == 'failed' or (entry.action == 'skipped_missing_source' and not optional)
    )
    if problems == 0:
        return 'success'
    if problems == len(entries):
        return 'failed'
    return 'partial'


class RestoreService:
    """
    Service for restoring configuration entries with a replayable journal.

    Backup root and journal directory are explicit so tests and callers can
    point them anywhere.
    """

    def __init__(
        self,
        backup_root: Path,
        journal_store: JournalStore,
        mtime_tolerance: float = 2.0,
        env: Mapping[str, str] | None = None,
        home: Path | None = None,
    ) -> None:
        """
        Initialize restore service.

        Args:
            backup_root: Directory for run-scoped backups
            journal_store: Where run journals are written
            mtime_tolerance: Copy up-to-date tolerance in seconds
            env: Environment for token expansion (defaults to os.environ)
            home: Home directory for ~ expansion (defaults to Path.home())
        """
        self.backup_root = backup_root
        self.journal_store = journal_store
        self.mtime_tolerance = mtime_tolerance
        self.env = env
        self.home = home

    def restore(
        self,
        entries: Sequence[RestoreEntry],
        manifest_path: Path,
        export_root: Path | None = None,
        dry_run: bool = False,
        enabled: bool = False,
        logger: LoggerProtocol | None = None,
    ) -> RestoreResult:
        """
        Apply restore entries in order and journal the outcome.

        Args:
            entries: Restore entries in manifest declaration order
            manifest_path: Manifest the entries came from
            export_root: Optional portable snapshot root (tried before the manifest dir)
            dry_run: Decide everything, mutate nothing, write no journal
            enabled: Explicit opt-in; restore refuses to run without it
            logger: Optional progress logger

        Returns:
            RestoreResult with the journal and per-action counts

        Raises:
            RestoreNotEnabledError: If enabled is False
            JournalWriteError: If the journal cannot be written (run-wide failure)
        """
        if not enabled:
            raise RestoreNotEnabledError()

        log = logger or NullLogger()
        start_time = datetime.now(UTC)
        run_id = str(uuid6.uuid7())
        manifest_path = manifest_path.resolve()
        manifest_dir = manifest_path.parent
        export_root = export_root.resolve() if export_root is not None else None

        ctx = StrategyContext(
            run_id=run_id,
            backup_root=self.backup_root,
            dry_run=dry_run,
            mtime_tolerance=self.mtime_tolerance,
        )

        log.info(f'Restore run {run_id}: {len(entries)} entries{" (dry run)" if dry_run else ""}')
        if export_root is not None:
            log.info(f'Export root: {export_root} (fallback: {manifest_dir})')

        journal_entries: list[JournalEntry] = []
        for index, entry in enumerate(entries, start=1):
            record = self._process_entry(entry, manifest_dir, export_root, ctx)
            journal_entries.append(record)
            self._log_entry(log, index, len(entries), record)

        journal = RunJournal(
            run_id=run_id,
            timestamp_utc=start_time,
            manifest_path=str(manifest_path),
            manifest_dir=str(manifest_dir),
            export_root=str(export_root) if export_root is not None else None,
            entries=journal_entries,
        )

        journal_path: Path | None = None
        if not dry_run and journal_entries:
            journal_path = self.journal_store.write(journal)
            log.info(f'Journal: {journal_path}')

        counts = Counter(record.action for record in journal_entries)
        missing_required = sum(
            1
            for entry, record in zip(entries, journal_entries, strict=True)
            if record.action == 'skipped_missing_source' and not entry.optional
        )

        status = summarize_status(journal_entries, [entry.optional for entry in entries])
        return RestoreResult(
            run_id=run_id,
            dry_run=dry_run,
            status=status,
            journal=journal,
            journal_path=str(journal_path) if journal_path is not None else None,
            restored=counts['restored'],
            skipped_up_to_date=counts['skipped_up_to_date'],
            skipped_missing_source=counts['skipped_missing_source'],
            skipped_exists=counts['skipped_exists'],
            failed=counts['failed'],
            missing_required=missing_required,
            warnings=sum(len(record.warnings) for record in journal_entries),
            duration_ms=(datetime.now(UTC) - start_time).total_seconds() * 1000,
        )

    def _process_entry(
        self,
        entry: RestoreEntry,
        manifest_dir: Path,
        export_root: Path | None,
        ctx: StrategyContext,
    ) -> JournalEntry:
        """Resolve paths and run the entry's strategy. Never raises for per-entry failures."""

        def _unprocessed(
            action: RestoreAction,
            error: str | None,
            source: Path | None = None,
            target: Path | None = None,
            warnings: Sequence[str] = (),
        ) -> JournalEntry:
            return JournalEntry(
                kind=entry.kind,
                source=entry.source,
                target=entry.target,
                resolved_source_path=str(source) if source is not None else None,
                target_path=str(target) if target is not None else None,
                backup_requested=entry.backup_requested,
                target_existed_before=target is not None and target.exists(),
                backup_created=False,
                backup_path=None,
                action=action,
                error=error,
                warnings=list(warnings),
            )

        try:
            target = resolve_target(entry.target, env=self.env, home=self.home)
        except PathResolutionError as e:
            logger.warning('Target resolution failed for %s: %s', entry.target, e)
            return _unprocessed('failed', str(e))

        try:
            source, searched = resolve_source(entry.source, manifest_dir, export_root, env=self.env, home=self.home)
        except PathResolutionError as e:
            logger.warning('Source resolution failed for %s: %s', entry.source, e)
            return _unprocessed('failed', str(e), target=target)

        warnings = sensitive_path_warnings([source, target])

        if source is None:
            missing = SourceNotFoundError(entry.source, [str(p) for p in searched])
            if entry.optional:
                return _unprocessed('skipped_missing_source', None, target=target, warnings=warnings)
            return _unprocessed('skipped_missing_source', str(missing), target=target, warnings=warnings)

        if entry.kind != 'copy' and source.is_dir():
            return _unprocessed(
                'failed',
                f"Source is a directory; '{entry.kind}' requires a file: {source}",
                source=source,
                target=target,
                warnings=warnings,
            )

        return get_strategy(entry.kind).apply(entry, source, target, ctx, warnings=warnings)

    @staticmethod
    def _log_entry(log: LoggerProtocol, index: int, total: int, record: JournalEntry) -> None:
        prefix = f'[{index}/{total}] {record.kind} {record.target}'
        if record.action == 'failed':
            log.error(f'{prefix}: failed - {record.error}')
        elif record.action == 'skipped_missing_source' and record.error:
            log.warning(f'{prefix}: {record.error}')
        else:
            log.info(f'{prefix}: {record.action}')
        for warning in record.warnings:
            log.warning(f'{prefix}: {warning}')
