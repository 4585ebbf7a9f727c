"""
Restore journal persistence.

One JSON file per restore run: <journal_dir>/restore-<run_id>.json.
Journals are written once and never modified. They are the sole input to
revert, so the on-disk schema must stay loadable across versions.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import pydantic
from filelock import FileLock

from endstate.exceptions import JournalCorruptError, JournalNotFoundError, JournalWriteError
from endstate.schemas.restore import RunJournal

__all__ = [
    'JOURNAL_PREFIX',
    'JournalStore',
]

logger = logging.getLogger(__name__)

JOURNAL_PREFIX = 'restore-'


class JournalStore:
    """Reads and writes run journals in a single directory.

    Uses filelock so concurrent runs never interleave writes.
    """

    def __init__(self, journal_dir: Path) -> None:
        """Initialize with the directory holding journal files."""
        self.journal_dir = journal_dir
        self.lock_file = journal_dir / '.journal.lock'

    def path_for(self, run_id: str) -> Path:
        """Journal file path for a run."""
        return self.journal_dir / f'{JOURNAL_PREFIX}{run_id}.json'

    def write(self, journal: RunJournal) -> Path:
        """
        Write a run journal atomically (temp file + rename).

        Returns:
            Path of the written journal

        Raises:
            JournalWriteError: If the journal cannot be written
        """
        path = self.path_for(journal.run_id)
        tmp_file = path.with_suffix('.tmp')

        try:
            self.journal_dir.mkdir(parents=True, exist_ok=True)
            with FileLock(self.lock_file):
                if path.exists():
                    raise JournalWriteError(str(path), 'journal already exists for this run')
                data = journal.model_dump(mode='json', by_alias=True)
                with tmp_file.open('w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2)
                    f.write('\n')
                os.replace(tmp_file, path)
        except JournalWriteError:
            raise
        except OSError as e:
            if tmp_file.exists():
                tmp_file.unlink()
            raise JournalWriteError(str(path), str(e)) from e

        logger.info('Wrote restore journal %s (%d entries)', path, len(journal.entries))
        return path

    def list_journals(self) -> list[Path]:
        """Journal files, newest first (modification time, then name)."""
        if not self.journal_dir.is_dir():
            return []
        paths = [p for p in self.journal_dir.glob(f'{JOURNAL_PREFIX}*.json') if p.is_file()]
        return sorted(paths, key=lambda p: (p.stat().st_mtime, p.name), reverse=True)

    def latest(self) -> Path | None:
        """Most recent journal file, or None if no journal exists."""
        journals = self.list_journals()
        return journals[0] if journals else None

    def load(self, path: Path) -> RunJournal:
        """
        Load and validate a journal file.

        Raises:
            JournalNotFoundError: If the file doesn't exist
            JournalCorruptError: If the file is not a valid journal
        """
        if not path.is_file():
            raise JournalNotFoundError(f'Journal not found: {path}')
        try:
            return RunJournal.model_validate_json(path.read_bytes())
        except pydantic.ValidationError as e:
            raise JournalCorruptError(str(path), f'{e.error_count()} validation error(s)') from e

    def load_run(self, run_id: str) -> RunJournal:
        """Load the journal of a specific run (full id or unique prefix)."""
        exact = self.path_for(run_id)
        if exact.is_file():
            return self.load(exact)

        matches = [p for p in self.list_journals() if p.stem.removeprefix(JOURNAL_PREFIX).startswith(run_id)]
        if len(matches) == 1:
            return self.load(matches[0])
        if not matches:
            raise JournalNotFoundError(f'No journal for run: {run_id}')
        raise JournalNotFoundError(f"Run id prefix '{run_id}' is ambiguous ({len(matches)} journals)")
