# chainplan/api/results.py
"""Persistent, versioned scenario results.

Every run of a scenario appends one Result. Two sequences are assigned:

- ``result_number``: one above both the highest existing number and the
  scenario's ``last_result_number`` mark. Never reused, so deleting result 2
  or result 3 of 1..3 makes the next one 4.
- ``name``: "Result N" with the smallest free N, so the same deletion
  frees the name "Result 2" again.

Both are backed by unique constraints in the store. A collision with a
concurrent writer is retried once with freshly computed values; a second
collision is reported as ``RaceExhausted``.
"""
from __future__ import annotations

import logging
from typing import Any

from chainplan.api.exceptions import NotFound, RaceExhausted, StoreUnavailable
from chainplan.api.lifecycle import (
    check_page,
    coerce_enum,
    rename_with_outcome,
    store_guard,
)
from chainplan.api.scenarios import get_scenario
from chainplan.api.schemas import DeleteResponse, RenameResponse, ResultHandle
from chainplan.contracts.entities import ModuleType, NumberingPolicy, Result, ScenarioStatus
from chainplan.contracts.store import ConflictError, EntityStore, StoreError
from chainplan.core.naming import RESULT_BASE, next_auto_name, next_number

logger = logging.getLogger(__name__)

# created_at alone can tie when results are written in quick succession
_NEWEST_FIRST = ("created_at", "result_number")


async def _insert_next_result(store: EntityStore, fields: dict[str, Any]) -> Result:
    scope = {"scenario_id": fields["scenario_id"]}
    scenario = await store.scenarios.get(fields["scenario_id"])
    highest = await store.results.max_value("result_number", scope)
    issued = [n for n in (highest, scenario.last_result_number if scenario else None) if n]
    number = next_number(issued, NumberingPolicy.monotonic)
    name = next_auto_name(await store.results.list_names(scope), RESULT_BASE)
    return await store.results.insert({**fields, "result_number": number, "name": name})


async def _record_on_scenario(
    store: EntityStore, scenario_id: str, result_number: int, mark_completed: bool
) -> None:
    # re-read so a concurrent writer's higher mark is never lowered
    current = await store.scenarios.get(scenario_id)
    if current is None:
        return
    patch: dict[str, Any] = {}
    if result_number > current.last_result_number:
        patch["last_result_number"] = result_number
    if mark_completed and current.status != ScenarioStatus.completed:
        patch["status"] = ScenarioStatus.completed
    if patch:
        await store.scenarios.update(scenario_id, patch)


async def create_result(
    *,
    store: EntityStore,
    user_id: str | None,
    scenario_id: str,
    metrics: dict[str, Any] | None = None,
    payload: dict[str, Any] | None = None,
    module_type: ModuleType | str | None = None,
    mark_completed: bool = True,
) -> ResultHandle:
    """
    Persist one scenario run as the next numbered Result.

    Args:
        store: entity store
        user_id: owning user
        scenario_id: scenario the run belongs to
        metrics: numeric summary shown in result lists
        payload: full output, stored as ``output_data``
        module_type: defaults to the scenario's module
        mark_completed: also move the scenario to ``completed``

    Returns:
        Handle with id, name, number and creation time (not the payload)

    Raises:
        NotFound: unknown scenario
        RaceExhausted: two consecutive unique-constraint collisions
        StoreUnavailable: any other store failure
    """
    scenario = await get_scenario(store=store, user_id=user_id, scenario_id=scenario_id)
    module = coerce_enum(ModuleType, module_type) if module_type else scenario.module_type

    fields = {
        "scenario_id": scenario.id,
        "project_id": scenario.project_id,
        "module_type": module,
        "metrics": dict(metrics or {}),
        "output_data": payload if payload is not None else {},
        "version": 1,
    }

    with store_guard("create result", scenario_id=scenario.id):
        try:
            result = await _insert_next_result(store, fields)
        except ConflictError:
            logger.warning(
                "Result numbering collided with a concurrent run, retrying once",
                extra={"scenario_id": scenario.id},
            )
            try:
                result = await _insert_next_result(store, fields)
            except ConflictError as e:
                raise RaceExhausted(
                    "Could not save the result because of concurrent runs. Please retry."
                ) from e

    logger.info(
        "Created result %s (%s, #%d) for scenario %s",
        result.id,
        result.name,
        result.result_number,
        scenario.id,
    )

    try:
        await _record_on_scenario(store, scenario.id, result.result_number, mark_completed)
    except StoreError:
        logger.exception(
            "Result saved but scenario not updated",
            extra={"scenario_id": scenario.id, "result_id": result.id},
        )

    return ResultHandle(
        id=result.id,
        name=result.name,
        result_number=result.result_number,
        created_at=result.created_at,
    )


async def list_results(
    *,
    store: EntityStore,
    user_id: str | None,
    scenario_id: str,
    limit: int = 10,
    offset: int = 0,
) -> list[Result]:
    """Most recent first; offset pagination."""
    scenario = await get_scenario(store=store, user_id=user_id, scenario_id=scenario_id)
    check_page(limit, offset)
    with store_guard("list results", scenario_id=scenario.id):
        return await store.results.find_many(
            {"scenario_id": scenario.id},
            order_by=_NEWEST_FIRST,
            descending=True,
            limit=limit,
            offset=offset,
        )


async def list_all_results(
    *,
    store: EntityStore,
    user_id: str | None,
    scenario_id: str,
) -> list[Result]:
    """Every result of a scenario in creation order (ascending number)."""
    scenario = await get_scenario(store=store, user_id=user_id, scenario_id=scenario_id)
    with store_guard("list results", scenario_id=scenario.id):
        return await store.results.find_many(
            {"scenario_id": scenario.id}, order_by=("result_number",)
        )


async def get_result(*, store: EntityStore, user_id: str | None, result_id: str) -> Result:
    with store_guard("load result", result_id=result_id):
        result = await store.results.get(result_id)
    if result is None:
        raise NotFound("Result not found")
    # ownership is checked through the scenario
    await get_scenario(store=store, user_id=user_id, scenario_id=result.scenario_id)
    return result


async def load_latest_result(
    *,
    store: EntityStore,
    user_id: str | None,
    scenario_id: str,
) -> Result | None:
    scenario = await get_scenario(store=store, user_id=user_id, scenario_id=scenario_id)
    with store_guard("load latest result", scenario_id=scenario.id):
        return await store.results.find_one(
            {"scenario_id": scenario.id}, order_by=("result_number",), descending=True
        )


async def load_result_by_number(
    *,
    store: EntityStore,
    user_id: str | None,
    scenario_id: str,
    result_number: int,
) -> Result:
    scenario = await get_scenario(store=store, user_id=user_id, scenario_id=scenario_id)
    with store_guard("load result", scenario_id=scenario.id):
        result = await store.results.find_one(
            {"scenario_id": scenario.id, "result_number": result_number}
        )
    if result is None:
        raise NotFound(f"Result #{result_number} not found")
    return result


async def rename_result(
    *,
    store: EntityStore,
    user_id: str | None,
    result_id: str,
    new_name: str,
) -> RenameResponse:
    result = await get_result(store=store, user_id=user_id, result_id=result_id)
    return await rename_with_outcome(
        store.results,
        result.id,
        new_name,
        kind="result",
        scope={"scenario_id": result.scenario_id},
        where=" in this scenario",
    )


async def delete_result(
    *,
    store: EntityStore,
    user_id: str | None,
    result_id: str,
) -> DeleteResponse:
    result = await get_result(store=store, user_id=user_id, result_id=result_id)
    try:
        with store_guard("delete result", result_id=result.id):
            deleted = await store.results.delete(result.id)
    except StoreUnavailable:
        return DeleteResponse(success=False, error="Failed to delete result")
    if not deleted:
        return DeleteResponse(success=False, error="Result not found")
    logger.info("Deleted result %s (#%d)", result.id, result.result_number)
    return DeleteResponse(success=True)
