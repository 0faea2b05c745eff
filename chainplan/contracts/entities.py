# chainplan/contracts/entities.py
"""
Entity contracts for the planning lifecycle.

A Project belongs to one user and one tool. Scenarios live inside a project and
are scoped to a planning module. Each scenario run appends a Result, numbered
monotonically within its scenario.

These are plain dataclasses: stores hand back copies, never live rows.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from chainplan.core.utils import utc_now


class ToolType(str, Enum):
    gfa = "gfa"
    forecasting = "forecasting"
    network = "network"
    inventory = "inventory"
    transportation = "transportation"


class ModuleType(str, Enum):
    forecasting = "forecasting"
    gfa = "gfa"
    inventory = "inventory"
    network = "network"


class ScenarioStatus(str, Enum):
    pending = "pending"
    running = "running"
    completed = "completed"
    failed = "failed"


# pending is only ever an initial state
SCENARIO_TRANSITIONS: dict[ScenarioStatus, frozenset[ScenarioStatus]] = {
    ScenarioStatus.pending: frozenset(
        {ScenarioStatus.running, ScenarioStatus.completed, ScenarioStatus.failed}
    ),
    ScenarioStatus.running: frozenset({ScenarioStatus.completed, ScenarioStatus.failed}),
    ScenarioStatus.completed: frozenset({ScenarioStatus.running}),
    ScenarioStatus.failed: frozenset({ScenarioStatus.running, ScenarioStatus.completed}),
}


class ReusePolicy(str, Enum):
    """Which existing entity an ensure call hands back when several exist."""

    first_created = "first_created"
    most_recent = "most_recent"

    def ordering(self) -> tuple[tuple[str, ...], bool]:
        """Return ``(order_by, descending)`` for the store query."""
        if self is ReusePolicy.most_recent:
            return ("updated_at",), True
        return ("created_at",), False


class NumberingPolicy(str, Enum):
    """How the next integer in a sequence is chosen.

    - gap_filling: smallest positive integer not yet used (auto-names)
    - monotonic: highest used + 1, never reusing deleted numbers (result numbers)
    """

    gap_filling = "gap_filling"
    monotonic = "monotonic"


@dataclass
class Project:
    id: str
    user_id: str
    name: str
    tool_type: ToolType
    description: str | None = None
    input_data: dict[str, Any] = field(default_factory=dict)
    results_data: dict[str, Any] = field(default_factory=dict)
    size_mb: float = 0.0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass
class Scenario:
    id: str
    project_id: str
    user_id: str
    module_type: ModuleType
    name: str
    description: str | None = None
    status: ScenarioStatus = ScenarioStatus.pending
    # highest result number ever issued; deleted results keep it raised
    last_result_number: int = 0
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass
class ScenarioInput:
    id: str
    scenario_id: str
    input_data: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)


@dataclass
class Result:
    """One persisted scenario run (``scenario_output`` table)."""

    id: str
    scenario_id: str
    project_id: str
    module_type: ModuleType
    name: str
    result_number: int
    metrics: dict[str, Any] = field(default_factory=dict)
    output_data: dict[str, Any] = field(default_factory=dict)
    # Reserved for in-place revisions; always 1 today
    version: int = 1
    created_at: datetime = field(default_factory=utc_now)
