"""
Pydantic schemas for restore entries, run journals and install results.

Journal and manifest records serialize with camelCase keys; everything else
uses the attribute names directly.
"""

from __future__ import annotations

from endstate.schemas.install import InstallOptions, InstallResult, InstallSummary
from endstate.schemas.restore import (
    JOURNAL_SCHEMA_VERSION,
    JournalEntry,
    RestoreEntry,
    RestoreResult,
    RevertEntryResult,
    RevertResult,
    RunJournal,
)

__all__ = [
    'JOURNAL_SCHEMA_VERSION',
    'InstallOptions',
    'InstallResult',
    'InstallSummary',
    'JournalEntry',
    'RestoreEntry',
    'RestoreResult',
    'RevertEntryResult',
    'RevertResult',
    'RunJournal',
]
