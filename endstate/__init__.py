"""
endstate - reversible restore of configuration files and install reconciliation.

Copies and merges configuration files onto a machine, journals every change,
and reverts the most recent run from its journal.
"""

from __future__ import annotations

__version__ = '0.1.0'
