"""
Append strategy - line-wise union of source lines into a target file.

Both files are read as lines with trailing whitespace trimmed and trailing
blank lines dropped. Every target line is kept (optionally de-duplicated),
then source lines not already present are appended in source order. Blank
lines are never appended and never de-duplicated.

Newline style follows the existing target unless overridden, so files from
either platform convention do not churn.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from endstate.schemas.restore import RestoreEntry
from endstate.services.strategies.base import (
    PreparedWrite,
    RestoreStrategy,
    StrategyContext,
    WriteReport,
    detect_newline,
    read_text,
    write_text_atomic,
)
from endstate.types import NewlineStyle

__all__ = [
    'AppendStrategy',
    'append_lines',
    'normalize_lines',
    'resolve_newline',
]


def normalize_lines(text: str) -> list[str]:
    """Split into lines, trim trailing whitespace, drop trailing blank lines."""
    lines = [line.rstrip() for line in text.splitlines()]
    while lines and not lines[-1]:
        lines.pop()
    return lines


def append_lines(target: Sequence[str], source: Sequence[str], dedupe: bool = True) -> list[str]:
    """
    Append novel source lines to target lines.

    Blank source lines are never appended; they carry no content to restore.

    Examples:
        >>> append_lines(['a', 'b'], ['b', 'c'])
        ['a', 'b', 'c']
        >>> append_lines(['a', 'a'], ['b'], dedupe=False)
        ['a', 'a', 'b']
    """
    merged: list[str] = []
    seen: set[str] = set()
    for line in target:
        if line and dedupe and line in seen:
            continue
        seen.add(line)
        merged.append(line)

    for line in source:
        if not line or line in seen:
            continue
        seen.add(line)
        merged.append(line)

    return merged


def resolve_newline(style: NewlineStyle, existing_text: str | None) -> str:
    """Pick the newline sequence: explicit override, else detected from the target."""
    if style == 'lf':
        return '\n'
    if style == 'crlf':
        return '\r\n'
    return detect_newline(existing_text) if existing_text else '\n'


class AppendStrategy(RestoreStrategy):
    """Line-wise append with exact-match de-duplication."""

    kind = 'append'

    def prepare(self, entry: RestoreEntry, source: Path, target: Path, ctx: StrategyContext) -> PreparedWrite:
        source_lines = normalize_lines(read_text(source))

        current_text: str | None = None
        target_lines: list[str] = []
        if target.exists():
            current_text = read_text(target)
            target_lines = normalize_lines(current_text)

        merged = append_lines(target_lines, source_lines, dedupe=entry.dedupe)
        newline = resolve_newline(entry.newline, current_text)

        def _write() -> WriteReport:
            text = newline.join(merged) + newline if merged else ''
            write_text_atomic(target, text)
            return WriteReport()

        return PreparedWrite(up_to_date=current_text is not None and merged == target_lines, write=_write)
