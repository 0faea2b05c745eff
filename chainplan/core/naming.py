# chainplan/core/naming.py
"""Deterministic, collision-safe auto-naming.

Auto-names have the form ``"{base} {n}"``. The next name fills the smallest
gap in the numbers already taken, so deleting "Result 2" out of
"Result 1..3" makes "Result 2" available again. Result *numbers* are a
separate sequence that never reuses values (see ``NumberingPolicy``).
"""
from __future__ import annotations

import re
from typing import Iterable

from chainplan.contracts.entities import NumberingPolicy, ToolType

_MODULE_PREFIXES: dict[ToolType, str] = {
    ToolType.gfa: "GFA",
    ToolType.forecasting: "DF",  # demand forecasting
    ToolType.network: "Network",
    ToolType.inventory: "IO",  # inventory optimization
    ToolType.transportation: "Transport",
}

SCENARIO_BASE = "Scenario"
RESULT_BASE = "Result"


def module_prefix(tool_type: ToolType | str) -> str:
    """Auto-name base for projects of ``tool_type``."""
    try:
        return _MODULE_PREFIXES[ToolType(tool_type)]
    except ValueError:
        return "Project"


def next_number(used: Iterable[int], policy: NumberingPolicy) -> int:
    """Pick the next positive integer given the ones already ``used``."""
    taken = {n for n in used if n > 0}
    if policy is NumberingPolicy.monotonic:
        return max(taken, default=0) + 1

    i = 1
    while i in taken:
        i += 1
    return i


def used_numbers(existing_names: Iterable[str], base: str) -> set[int]:
    # ASCII only: other Unicode digits do not reserve a number
    pattern = re.compile(rf"^{re.escape(base)}\s+(\d+)$", re.IGNORECASE | re.ASCII)
    used: set[int] = set()
    for name in existing_names:
        m = pattern.match(name)
        if m:
            used.add(int(m.group(1)))
    return used


def next_auto_name(existing_names: Iterable[str], base: str) -> str:
    """
    Next free ``"{base} N"`` name.

    Only names that are exactly ``base`` (case-insensitive), whitespace and an
    integer count as taken; everything else is ignored.

    >>> next_auto_name({"Result 1", "Result 3"}, "Result")
    'Result 2'
    """
    n = next_number(used_numbers(existing_names, base), NumberingPolicy.gap_filling)
    return f"{base} {n}"


def generate_name_suggestions(base_name: str, count: int = 3) -> list[str]:
    """Alternatives shown after a name conflict. Not checked against the store."""
    return [f"{base_name} ({i})" for i in range(2, count + 2)]
