"""Shared type aliases."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

import pydantic

JsonDatetime = Annotated[datetime, pydantic.Field(strict=False)]
"""Pydantic-enhanced datetime for JSON serialization (allows string->datetime conversion)."""

PathStr = str
"""A filesystem path (file or directory) as a string."""

# Restore entry enumerations
RestoreKind = Literal['copy', 'merge-json', 'merge-ini', 'append']
ConflictPolicy = Literal['skip', 'backup-and-overwrite', 'overwrite']
ArrayStrategy = Literal['replace', 'union']
NewlineStyle = Literal['auto', 'lf', 'crlf']

RestoreAction = Literal[
    'restored',
    'skipped_up_to_date',
    'skipped_missing_source',
    'skipped_exists',
    'failed',
]

# Installer outcome (closed set - see drivers.classification)
InstallOutcome = Literal['success', 'already_installed', 'user_denied', 'error']
