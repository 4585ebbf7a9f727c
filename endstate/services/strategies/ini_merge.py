"""
Merge-INI strategy - section-wise key merge.

Files parse into an ordered mapping of section -> key -> value. Keys that
appear before the first header belong to the global section (empty name).
Comments (';' or '#') and blank lines are discarded on rewrite; this is an
accepted limitation.

Every source key overwrites or adds into the matching target section; keys
only present in the target are preserved. Output sorts sections and keys,
emits the global section first without a header, and keeps the target's
newline style.
"""

from __future__ import annotations

from pathlib import Path
from typing import TypeAlias

from endstate.exceptions import ParseFailedError
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

__all__ = [
    'IniMergeStrategy',
    'IniSections',
    'merge_ini',
    'parse_ini',
    'serialize_ini',
]

IniSections: TypeAlias = dict[str, dict[str, str]]


def parse_ini(text: str, origin: str) -> IniSections:
    """
    Parse INI text into section -> key -> value.

    Raises:
        ParseFailedError: On a line that is neither a comment, a header, nor key=value
    """
    sections: IniSections = {'': {}}
    current = ''

    for line_number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith((';', '#')):
            continue

        if line.startswith('['):
            if not line.endswith(']') or len(line) < 3:
                raise ParseFailedError(origin, f'line {line_number}: malformed section header: {raw_line!r}')
            current = line[1:-1].strip()
            sections.setdefault(current, {})
            continue

        if '=' not in line:
            raise ParseFailedError(origin, f'line {line_number}: expected key=value: {raw_line!r}')

        key, _, value = line.partition('=')
        key = key.strip()
        if not key:
            raise ParseFailedError(origin, f'line {line_number}: empty key: {raw_line!r}')
        sections[current][key] = value.strip()

    return sections


def merge_ini(target: IniSections, source: IniSections) -> IniSections:
    """
    Merge source keys into target sections (inputs are not mutated).

    Examples:
        >>> merge_ini({'core': {'foo': '1', 'bar': '2'}}, {'core': {'bar': '3', 'baz': '4'}})
        {'core': {'foo': '1', 'bar': '3', 'baz': '4'}}
    """
    merged = {name: dict(keys) for name, keys in target.items()}
    for name, keys in source.items():
        merged.setdefault(name, {}).update(keys)
    return merged


def serialize_ini(sections: IniSections, newline: str = '\n') -> str:
    """Deterministic INI text: global section first, then sorted sections and keys."""
    blocks: list[list[str]] = []

    global_keys = sections.get('', {})
    if global_keys:
        blocks.append([f'{key}={global_keys[key]}' for key in sorted(global_keys)])

    for name in sorted(n for n in sections if n):
        keys = sections[name]
        blocks.append([f'[{name}]'] + [f'{key}={keys[key]}' for key in sorted(keys)])

    if not blocks:
        return ''
    return (newline * 2).join(newline.join(block) for block in blocks) + newline


class IniMergeStrategy(RestoreStrategy):
    """Section-wise INI merge with sorted output."""

    kind = 'merge-ini'

    def prepare(self, entry: RestoreEntry, source: Path, target: Path, ctx: StrategyContext) -> PreparedWrite:
        source_sections = parse_ini(read_text(source), str(source))

        current_text: str | None = None
        target_sections: IniSections = {}
        newline = '\n'
        if target.exists():
            current_text = read_text(target)
            target_sections = parse_ini(current_text, str(target))
            newline = detect_newline(current_text)

        merged_text = serialize_ini(merge_ini(target_sections, source_sections), newline)

        def _write() -> WriteReport:
            write_text_atomic(target, merged_text)
            return WriteReport()

        return PreparedWrite(up_to_date=current_text == merged_text, write=_write)
