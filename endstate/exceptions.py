"""
Shared exceptions for endstate.

Domain-specific exceptions used across services.

Exception Hierarchy:
    EndstateError (base)
    ├── ManifestError (manifest file unreadable or invalid)
    ├── RestoreNotEnabledError (restore invoked without explicit opt-in)
    ├── EntryError (per-entry failures, recorded in the journal entry)
    │   ├── SourceNotFoundError (source missing from both roots)
    │   ├── PathResolutionError (target/source path cannot be resolved)
    │   │   └── UnresolvedTokenError (environment token has no value)
    │   ├── BackupFailedError (snapshot before overwrite failed)
    │   ├── WriteFailedError (write to target failed)
    │   └── ParseFailedError (malformed JSON/INI in source or target)
    ├── JournalError
    │   ├── JournalWriteError (run-wide failure - journal could not be written)
    │   ├── JournalNotFoundError (explicit run id/path does not exist)
    │   └── JournalCorruptError (journal file is not a valid journal)
    └── DriverError
        ├── DriverValidationError (bundle missing required operations)
        └── DriverNotFoundError (no driver registered/available)
"""

from __future__ import annotations

from collections.abc import Sequence


class EndstateError(Exception):
    """Base exception for all endstate errors."""


class ManifestError(EndstateError):
    """Raised when a manifest file cannot be read or fails validation."""


class RestoreNotEnabledError(EndstateError):
    """Raised when restore is invoked without the explicit opt-in flag."""

    def __init__(self) -> None:
        super().__init__('Restore modifies files on this machine. Pass --enable-restore to allow it.')


# ==============================================================================
# Per-entry errors
# ==============================================================================


class EntryError(EndstateError):
    """Base exception for failures scoped to a single restore entry.

    The orchestrator records these in the entry's journal record and moves
    on to the next entry.
    """


class SourceNotFoundError(EntryError):
    """Raised when a restore source exists in neither candidate root."""

    def __init__(self, source: str, searched: Sequence[str]) -> None:
        self.source = source
        self.searched = list(searched)
        super().__init__(f'Source not found: {source} (searched: {", ".join(self.searched)})')


class PathResolutionError(EntryError):
    """Raised when a path cannot be turned into a usable absolute path."""


class UnresolvedTokenError(PathResolutionError):
    """Raised when a path references an environment variable that is not set."""

    def __init__(self, token: str, value: str) -> None:
        self.token = token
        self.value = value
        super().__init__(f"Unresolved token '{token}' in path: {value}")


class BackupFailedError(EntryError):
    """Raised when the pre-overwrite snapshot of a target cannot be created."""


class WriteFailedError(EntryError):
    """Raised when writing to a target fails."""


class ParseFailedError(EntryError):
    """Raised when a JSON or INI source/target cannot be parsed."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f'Failed to parse {path}: {reason}')


# ==============================================================================
# Journal errors
# ==============================================================================


class JournalError(EndstateError):
    """Base exception for journal persistence failures."""


class JournalWriteError(JournalError):
    """Raised when the run journal cannot be written.

    This is the one failure with run-wide blast radius: mutations may have
    happened, and without the journal they cannot be reverted.
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f'Failed to write restore journal {path}: {reason}')


class JournalNotFoundError(JournalError):
    """Raised when a specific journal is requested but does not exist."""


class JournalCorruptError(JournalError):
    """Raised when a journal file exists but cannot be parsed or validated."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f'Corrupt restore journal {path}: {reason}')


# ==============================================================================
# Driver errors
# ==============================================================================


class DriverError(EndstateError):
    """Base exception for installer driver failures."""


class DriverValidationError(DriverError):
    """Raised at registration when a driver bundle lacks required operations."""

    def __init__(self, name: str, missing: Sequence[str]) -> None:
        self.name = name
        self.missing = list(missing)
        super().__init__(f"Driver '{name}' is missing required operations: {', '.join(self.missing)}")


class DriverNotFoundError(DriverError):
    """Raised when no registered driver matches the request or platform."""
