from chainplan.contracts.entities import (
    ModuleType,
    NumberingPolicy,
    Project,
    Result,
    ReusePolicy,
    Scenario,
    ScenarioInput,
    ScenarioStatus,
    ToolType,
)
from chainplan.contracts.store import (
    ConflictError,
    EntityCollection,
    EntityStore,
    Scope,
    StoreError,
)

__all__ = [
    "ConflictError",
    "EntityCollection",
    "EntityStore",
    "ModuleType",
    "NumberingPolicy",
    "Project",
    "Result",
    "ReusePolicy",
    "Scenario",
    "ScenarioInput",
    "ScenarioStatus",
    "Scope",
    "StoreError",
    "ToolType",
]
