"""
Revert service - undoes the most recent restore from its journal.

Entries are walked in reverse journal order. Per entry:

1. backup_created       -> snapshot the current target, then copy the backup back
2. restored, new target -> delete the target (the restore created it)
3. anything else        -> no-op (nothing was mutated, or nothing was recorded)

Revert never infers state that wasn't recorded: a pre-existing target with
no backup is left untouched.
"""

from __future__ import annotations

import logging
import shutil
from collections import Counter
from pathlib import Path
from typing import Literal

import uuid6

from endstate.exceptions import BackupFailedError
from endstate.protocols import LoggerProtocol, NullLogger
from endstate.schemas.restore import JournalEntry, RevertEntryResult, RevertResult, RunJournal
from endstate.services.journal import JournalStore
from endstate.services.strategies import create_backup, remove_path

__all__ = [
    'RevertService',
]

logger = logging.getLogger(__name__)

RevertAction = Literal['restored_from_backup', 'deleted', 'no_op', 'failed']


class RevertService:
    """Service for reverting restore runs using only their journals."""

    def __init__(self, backup_root: Path, journal_store: JournalStore) -> None:
        """
        Initialize revert service.

        Args:
            backup_root: Directory for revert-scoped safety backups
            journal_store: Where run journals are read from
        """
        self.backup_root = backup_root
        self.journal_store = journal_store

    def revert(
        self,
        journal: RunJournal | None = None,
        journal_path: Path | None = None,
        dry_run: bool = False,
        logger: LoggerProtocol | None = None,
    ) -> RevertResult:
        """
        Revert a restore run.

        Args:
            journal: Journal to revert (defaults to the latest on disk)
            journal_path: Path of the journal, for reporting
            dry_run: Report the plan without changing anything
            logger: Optional progress logger

        Returns:
            RevertResult; status 'nothing_to_revert' when no journal exists
        """
        log = logger or NullLogger()
        revert_id = str(uuid6.uuid7())

        if journal is None:
            journal_path = self.journal_store.latest()
            if journal_path is None:
                log.info('No restore journal found - nothing to revert')
                return RevertResult(
                    status='nothing_to_revert',
                    dry_run=dry_run,
                    revert_id=revert_id,
                    run_id=None,
                    journal_path=None,
                    entries=[],
                    reverted=0,
                    deleted=0,
                    no_op=0,
                    failed=0,
                )
            journal = self.journal_store.load(journal_path)

        log.info(f'Reverting run {journal.run_id} ({len(journal.entries)} entries){" (dry run)" if dry_run else ""}')

        results = [self._revert_entry(entry, revert_id, dry_run, log) for entry in reversed(journal.entries)]

        counts = Counter(result.action for result in results)
        if counts['failed'] == 0:
            status = 'success'
        elif counts['failed'] == len(results):
            status = 'failed'
        else:
            status = 'partial'

        return RevertResult(
            status=status,
            dry_run=dry_run,
            revert_id=revert_id,
            run_id=journal.run_id,
            journal_path=str(journal_path) if journal_path is not None else None,
            entries=results,
            reverted=counts['restored_from_backup'],
            deleted=counts['deleted'],
            no_op=counts['no_op'],
            failed=counts['failed'],
        )

    def _revert_entry(
        self,
        entry: JournalEntry,
        revert_id: str,
        dry_run: bool,
        log: LoggerProtocol,
    ) -> RevertEntryResult:
        """Apply the 3-case undo rule to one journal entry."""
        target = Path(entry.target_path) if entry.target_path is not None else None

        def _result(
            action: RevertAction,
            safety_backup: Path | None = None,
            error: str | None = None,
        ) -> RevertEntryResult:
            return RevertEntryResult(
                kind=entry.kind,
                target_path=entry.target_path,
                action=action,
                backup_path=entry.backup_path,
                safety_backup_path=str(safety_backup) if safety_backup is not None else None,
                error=error,
            )

        # Case 1: restore the recorded backup
        if entry.backup_created and entry.backup_path is not None and target is not None:
            backup = Path(entry.backup_path)
            if dry_run:
                log.info(f'Would restore {target} from {backup}')
                return _result('restored_from_backup')
            if not backup.exists():
                log.error(f'Backup missing for {target}: {backup}')
                return _result('failed', error=f'Backup not found: {backup}')
            try:
                safety_backup = None
                if target.exists() or target.is_symlink():
                    safety_backup = create_backup(target, self.backup_root, revert_id)
                    remove_path(target)
                target.parent.mkdir(parents=True, exist_ok=True)
                if backup.is_dir():
                    shutil.copytree(backup, target, symlinks=True)
                else:
                    shutil.copy2(backup, target, follow_symlinks=False)
            except (BackupFailedError, OSError) as e:
                logger.error('Failed to restore %s from %s: %s', target, backup, e)
                log.error(f'Failed to restore {target}: {e}')
                return _result('failed', error=str(e))
            log.info(f'Restored {target} from backup')
            return _result('restored_from_backup', safety_backup=safety_backup)

        # Case 2: remove a target the restore created
        if entry.action == 'restored' and not entry.target_existed_before and target is not None:
            if dry_run:
                log.info(f'Would delete {target}')
                return _result('deleted')
            try:
                if target.exists() or target.is_symlink():
                    remove_path(target)
            except OSError as e:
                logger.error('Failed to delete %s: %s', target, e)
                log.error(f'Failed to delete {target}: {e}')
                return _result('failed', error=str(e))
            log.info(f'Deleted {target}')
            return _result('deleted')

        # Case 3: nothing recorded to undo
        return _result('no_op')
