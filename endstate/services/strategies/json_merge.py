"""
Merge-JSON strategy - recursive merge of JSON-with-comments files.

Merge rules:
- objects merge key by key, recursively
- source wins on conflicting scalars
- arrays are replaced by the source array ('replace', default) or unioned
  ('union': target elements first, then novel source elements, de-duplicated
  by structural equality)

Output is canonical: keys sorted at every level, 2-space indent, trailing
newline. Two semantically identical merges always produce identical text,
so up-to-date is a plain string comparison against the target.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from endstate.exceptions import ParseFailedError
from endstate.schemas.restore import RestoreEntry
from endstate.services.strategies.base import (
    PreparedWrite,
    RestoreStrategy,
    StrategyContext,
    WriteReport,
    read_text,
    write_text_atomic,
)
from endstate.types import ArrayStrategy

__all__ = [
    'JsonMergeStrategy',
    'canonical_json',
    'deep_merge',
    'loads_jsonc',
    'strip_jsonc',
]


def strip_jsonc(text: str) -> str:
    """
    Remove // and /* */ comments and trailing commas outside of strings.

    Examples:
        >>> strip_jsonc('{"a": 1, // note\\n}')
        '{"a": 1 \\n}'
    """
    out: list[str] = []
    i = 0
    length = len(text)
    in_string = False

    while i < length:
        char = text[i]

        if in_string:
            out.append(char)
            if char == '\\' and i + 1 < length:
                out.append(text[i + 1])
                i += 2
                continue
            if char == '"':
                in_string = False
            i += 1
            continue

        if char == '"':
            in_string = True
            out.append(char)
            i += 1
        elif text.startswith('//', i):
            newline = text.find('\n', i)
            i = length if newline == -1 else newline
        elif text.startswith('/*', i):
            end = text.find('*/', i + 2)
            i = length if end == -1 else end + 2
        elif char == ',':
            # Trailing comma: next significant character closes the container
            j = i + 1
            while j < length:
                if text[j].isspace():
                    j += 1
                elif text.startswith('//', j):
                    newline = text.find('\n', j)
                    j = length if newline == -1 else newline
                elif text.startswith('/*', j):
                    end = text.find('*/', j + 2)
                    j = length if end == -1 else end + 2
                else:
                    break
            if j < length and text[j] in '}]':
                i += 1
                continue
            out.append(char)
            i += 1
        else:
            out.append(char)
            i += 1

    return ''.join(out)


def loads_jsonc(text: str, origin: str) -> Any:
    """
    Parse JSON-with-comments. Empty or whitespace-only content is {}.

    Raises:
        ParseFailedError: If the content is not valid JSON after stripping
    """
    stripped = strip_jsonc(text)
    if not stripped.strip():
        return {}
    try:
        return json.loads(stripped)
    except json.JSONDecodeError as e:
        raise ParseFailedError(origin, str(e)) from e
    except RecursionError as e:
        raise ParseFailedError(origin, 'nesting too deep') from e


def _identity(value: Any) -> str:
    """Structural identity for de-duplication (distinguishes 1 from true)."""
    return json.dumps(value, sort_keys=True, separators=(',', ':'))


def deep_merge(target: Any, source: Any, array_strategy: ArrayStrategy = 'replace') -> Any:
    """
    Merge source into target and return the result (inputs are not mutated).

    Examples:
        >>> deep_merge({'a': 1, 'b': {'x': 1}}, {'b': {'y': 2}, 'c': 3})
        {'a': 1, 'b': {'x': 1, 'y': 2}, 'c': 3}
        >>> deep_merge([1, 2], [2, 3], 'union')
        [1, 2, 3]
    """
    if isinstance(target, dict) and isinstance(source, dict):
        merged = dict(target)
        for key, value in source.items():
            merged[key] = deep_merge(target[key], value, array_strategy) if key in target else value
        return merged

    if isinstance(target, list) and isinstance(source, list) and array_strategy == 'union':
        result = list(target)
        seen = {_identity(item) for item in result}
        for item in source:
            identity = _identity(item)
            if identity not in seen:
                seen.add(identity)
                result.append(item)
        return result

    return source


def canonical_json(value: Any) -> str:
    """Serialize with sorted keys at every level and a fixed 2-space indent."""
    return json.dumps(value, sort_keys=True, indent=2, ensure_ascii=False) + '\n'


class JsonMergeStrategy(RestoreStrategy):
    """Recursive JSON merge with canonical output."""

    kind = 'merge-json'

    def prepare(self, entry: RestoreEntry, source: Path, target: Path, ctx: StrategyContext) -> PreparedWrite:
        source_data = loads_jsonc(read_text(source), str(source))

        current_text: str | None = None
        target_data: Any = {}
        if target.exists():
            current_text = read_text(target)
            target_data = loads_jsonc(current_text, str(target))

        merged_text = canonical_json(deep_merge(target_data, source_data, entry.array_strategy))

        def _write() -> WriteReport:
            write_text_atomic(target, merged_text)
            return WriteReport()

        return PreparedWrite(up_to_date=current_text == merged_text, write=_write)
