"""
Restore strategies - one per restore kind.

Each strategy is stateless; STRATEGIES maps a restore kind to its instance.
"""

from __future__ import annotations

from collections.abc import Mapping

from endstate.services.strategies.append import AppendStrategy
from endstate.services.strategies.base import (
    PreparedWrite,
    RestoreStrategy,
    StrategyContext,
    WriteReport,
    create_backup,
    remove_path,
)
from endstate.services.strategies.copy import CopyStrategy, is_excluded, is_lock_violation
from endstate.services.strategies.ini_merge import IniMergeStrategy
from endstate.services.strategies.json_merge import JsonMergeStrategy
from endstate.types import RestoreKind

STRATEGIES: Mapping[RestoreKind, RestoreStrategy] = {
    'copy': CopyStrategy(),
    'merge-json': JsonMergeStrategy(),
    'merge-ini': IniMergeStrategy(),
    'append': AppendStrategy(),
}


def get_strategy(kind: RestoreKind) -> RestoreStrategy:
    """Look up the strategy for a restore kind."""
    return STRATEGIES[kind]


__all__ = [
    'STRATEGIES',
    'AppendStrategy',
    'CopyStrategy',
    'IniMergeStrategy',
    'JsonMergeStrategy',
    'PreparedWrite',
    'RestoreStrategy',
    'StrategyContext',
    'WriteReport',
    'create_backup',
    'get_strategy',
    'is_excluded',
    'is_lock_violation',
    'remove_path',
]
