"""
Restore operation schemas.

Models for restore entries (manifest input), per-entry journal records,
the per-run journal file, and restore/revert results.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Literal

import pydantic

from endstate.base_model import JournalModel, StrictModel
from endstate.types import (
    ArrayStrategy,
    ConflictPolicy,
    JsonDatetime,
    NewlineStyle,
    PathStr,
    RestoreAction,
    RestoreKind,
)

JOURNAL_SCHEMA_VERSION = '1.0'


class RestoreEntry(JournalModel):
    """Declared mapping from a portable source path to a system target.

    Manifest keys: {type, source, target, backup?, onConflict?, exclude?,
    optional?, arrayStrategy?, dedupe?, newline?}.
    """

    kind: RestoreKind = pydantic.Field(alias='type')
    source: str
    target: str
    backup_requested: bool = pydantic.Field(default=True, alias='backup')
    on_conflict: ConflictPolicy = 'skip'
    exclude_patterns: Sequence[str] = pydantic.Field(default=(), alias='exclude')
    optional: bool = False

    # Strategy options
    array_strategy: ArrayStrategy = 'replace'  # merge-json
    dedupe: bool = True  # append
    newline: NewlineStyle = 'auto'  # append

    @pydantic.field_validator('source', 'target')
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject empty paths at load time rather than at use time."""
        if not v.strip():
            raise ValueError('path must not be empty')
        return v

    @pydantic.model_validator(mode='after')
    def validate_exclude_kind(self) -> RestoreEntry:
        """Exclude patterns only apply to directory copies."""
        if self.exclude_patterns and self.kind != 'copy':
            raise ValueError(f"'exclude' is only supported for type 'copy', not '{self.kind}'")
        return self


class JournalEntry(JournalModel):
    """Record of one processed restore entry. Sole input to revert."""

    # Declared entry
    kind: RestoreKind
    source: str
    target: str

    # Resolved paths (None when resolution itself failed)
    resolved_source_path: PathStr | None
    target_path: PathStr | None

    # Backup bookkeeping
    backup_requested: bool
    target_existed_before: bool
    backup_created: bool
    backup_path: PathStr | None

    # Outcome
    action: RestoreAction
    error: str | None = None
    warnings: Sequence[str] = ()
    skipped_files: Sequence[str] = ()  # Locked files skipped during a directory copy

    @pydantic.model_validator(mode='after')
    def validate_backup_invariant(self) -> JournalEntry:
        """A backup can only exist for a target that existed."""
        if self.backup_created and not self.target_existed_before:
            raise ValueError('backup_created requires target_existed_before')
        if self.backup_created and self.backup_path is None:
            raise ValueError('backup_created requires backup_path')
        return self


class RunJournal(JournalModel):
    """Journal file written once per non-dry-run restore.

    The entries order equals manifest declaration order; revert walks it
    in reverse.
    """

    schema_version: str = JOURNAL_SCHEMA_VERSION
    run_id: str
    timestamp_utc: JsonDatetime
    manifest_path: PathStr
    manifest_dir: PathStr
    export_root: PathStr | None
    entries: Sequence[JournalEntry]


class RestoreResult(StrictModel):
    """Result of a restore invocation (dry-run or real)."""

    run_id: str
    dry_run: bool
    status: Literal['success', 'partial', 'failed']
    journal: RunJournal
    journal_path: PathStr | None  # None for dry-runs

    # Per-action counts
    restored: int
    skipped_up_to_date: int
    skipped_missing_source: int
    skipped_exists: int
    failed: int
    missing_required: int  # Missing sources on non-optional entries
    warnings: int
    duration_ms: float


class RevertEntryResult(StrictModel):
    """Outcome of undoing one journal entry."""

    kind: RestoreKind
    target_path: PathStr | None
    action: Literal['restored_from_backup', 'deleted', 'no_op', 'failed']
    backup_path: PathStr | None
    safety_backup_path: PathStr | None  # Snapshot of the target taken before restoring the backup
    error: str | None


class RevertResult(StrictModel):
    """Result of reverting the most recent restore run."""

    status: Literal['success', 'partial', 'failed', 'nothing_to_revert']
    dry_run: bool
    revert_id: str
    run_id: str | None  # Run being reverted (None when nothing to revert)
    journal_path: PathStr | None
    entries: Sequence[RevertEntryResult]
    reverted: int
    deleted: int
    no_op: int
    failed: int
