from __future__ import annotations

import logging
from typing import Any

from chainplan.api.exceptions import InvalidTransition, NotFound, RaceExhausted, StoreUnavailable
from chainplan.api.lifecycle import (
    check_page,
    coerce_enum,
    create_entity,
    ensure_entity,
    rename_with_outcome,
    require_user,
    store_guard,
)
from chainplan.api.projects import get_project
from chainplan.api.schemas import DeleteResponse, RenameResponse
from chainplan.contracts.entities import (
    SCENARIO_TRANSITIONS,
    ModuleType,
    ReusePolicy,
    Scenario,
    ScenarioInput,
    ScenarioStatus,
)
from chainplan.contracts.store import ConflictError, EntityStore
from chainplan.core.config import settings
from chainplan.core.naming import SCENARIO_BASE

logger = logging.getLogger(__name__)

_IN_MODULE = " in this module"


async def ensure_scenario(
    *,
    store: EntityStore,
    user_id: str | None,
    project_id: str,
    module_type: ModuleType | str,
    policy: ReusePolicy | None = None,
) -> Scenario:
    """Return the scenario for ``(project, module)``, creating "Scenario N" if none exists."""
    project = await get_project(store=store, user_id=user_id, project_id=project_id)
    module = coerce_enum(ModuleType, module_type)
    return await ensure_entity(
        store.scenarios,
        kind="scenario",
        scope={"project_id": project.id, "module_type": module},
        base=SCENARIO_BASE,
        defaults={
            "user_id": project.user_id,
            "description": None,
            "status": ScenarioStatus.pending,
            "last_result_number": 0,
        },
        policy=policy or settings.scenario_reuse_policy,
    )


async def create_scenario(
    *,
    store: EntityStore,
    user_id: str | None,
    project_id: str,
    module_type: ModuleType | str,
    name: str | None = None,
    description: str | None = None,
) -> Scenario:
    project = await get_project(store=store, user_id=user_id, project_id=project_id)
    module = coerce_enum(ModuleType, module_type)
    scope = {"project_id": project.id, "module_type": module}
    scenario = await create_entity(
        store.scenarios,
        kind="scenario",
        fields={
            **scope,
            "user_id": project.user_id,
            "description": description,
            "status": ScenarioStatus.pending,
            "last_result_number": 0,
        },
        name=name,
        base=SCENARIO_BASE,
        name_scope=scope,
        where=_IN_MODULE,
    )
    logger.info("Created scenario %s (%s) in project %s", scenario.id, scenario.name, project.id)
    return scenario


async def get_scenario(*, store: EntityStore, user_id: str | None, scenario_id: str) -> Scenario:
    user = require_user(user_id)
    with store_guard("load scenario", scenario_id=scenario_id):
        scenario = await store.scenarios.get(scenario_id)
    if scenario is None or scenario.user_id != user:
        raise NotFound("Scenario not found")
    return scenario


async def list_scenarios(
    *,
    store: EntityStore,
    user_id: str | None,
    project_id: str,
    module_type: ModuleType | str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[Scenario]:
    project = await get_project(store=store, user_id=user_id, project_id=project_id)
    check_page(limit, offset)
    scope: dict[str, Any] = {"project_id": project.id}
    if module_type is not None:
        scope["module_type"] = coerce_enum(ModuleType, module_type)
    with store_guard("list scenarios", project_id=project.id):
        return await store.scenarios.find_many(
            scope,
            order_by=("updated_at",),
            descending=True,
            limit=limit,
            offset=offset,
        )


async def rename_scenario(
    *,
    store: EntityStore,
    user_id: str | None,
    scenario_id: str,
    new_name: str,
) -> RenameResponse:
    scenario = await get_scenario(store=store, user_id=user_id, scenario_id=scenario_id)
    return await rename_with_outcome(
        store.scenarios,
        scenario.id,
        new_name,
        kind="scenario",
        scope={"project_id": scenario.project_id, "module_type": scenario.module_type},
        where=_IN_MODULE,
    )


async def update_scenario_status(
    *,
    store: EntityStore,
    user_id: str | None,
    scenario_id: str,
    status: ScenarioStatus | str,
) -> Scenario:
    """Move a scenario through pending -> running -> completed|failed."""
    scenario = await get_scenario(store=store, user_id=user_id, scenario_id=scenario_id)
    target = coerce_enum(ScenarioStatus, status)
    current = ScenarioStatus(scenario.status)
    if target == current:
        return scenario
    if target not in SCENARIO_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Scenario cannot move from '{current.value}' to '{target.value}'"
        )

    with store_guard("update scenario status", scenario_id=scenario.id):
        updated = await store.scenarios.update(scenario.id, {"status": target})
    if updated is None:
        raise NotFound("Scenario not found")
    logger.info("Scenario %s: %s -> %s", scenario.id, current.value, target.value)
    return updated


async def delete_scenario(
    *,
    store: EntityStore,
    user_id: str | None,
    scenario_id: str,
) -> DeleteResponse:
    """Delete a scenario together with its inputs and results."""
    scenario = await get_scenario(store=store, user_id=user_id, scenario_id=scenario_id)
    try:
        with store_guard("delete scenario", scenario_id=scenario.id):
            await store.results.delete_many({"scenario_id": scenario.id})
            await store.scenario_inputs.delete_many({"scenario_id": scenario.id})
            await store.scenarios.delete(scenario.id)
    except StoreUnavailable:
        return DeleteResponse(success=False, error="Failed to delete scenario")
    return DeleteResponse(success=True)


async def save_scenario_input(
    *,
    store: EntityStore,
    user_id: str | None,
    scenario_id: str,
    input_data: dict[str, Any],
) -> ScenarioInput:
    """Store the form input of a scenario, replacing the previous one."""
    scenario = await get_scenario(store=store, user_id=user_id, scenario_id=scenario_id)
    scope = {"scenario_id": scenario.id}
    with store_guard("save scenario input", scenario_id=scenario.id):
        existing = await store.scenario_inputs.find_one(scope)
        if existing is not None:
            updated = await store.scenario_inputs.update(existing.id, {"input_data": input_data})
            if updated is not None:
                return updated
        try:
            return await store.scenario_inputs.insert({**scope, "input_data": input_data})
        except ConflictError:
            logger.warning(
                "Concurrent input save, updating the winner", extra={"scenario_id": scenario.id}
            )
        winner = await store.scenario_inputs.find_one(scope)
        updated = None
        if winner is not None:
            updated = await store.scenario_inputs.update(winner.id, {"input_data": input_data})
        if updated is None:
            raise RaceExhausted(
                "Could not save the scenario input because of a concurrent change. Please retry."
            )
        return updated


async def load_scenario_input(
    *,
    store: EntityStore,
    user_id: str | None,
    scenario_id: str,
) -> ScenarioInput | None:
    scenario = await get_scenario(store=store, user_id=user_id, scenario_id=scenario_id)
    with store_guard("load scenario input", scenario_id=scenario.id):
        return await store.scenario_inputs.find_one(
            {"scenario_id": scenario.id}, order_by=("created_at",), descending=True
        )
