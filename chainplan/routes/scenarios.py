from __future__ import annotations

import logging
from fastapi import APIRouter, Depends, Query

from chainplan.api import scenarios as svc
from chainplan.api.exceptions import NotFound, PlanningError
from chainplan.api.schemas import (
    DeleteResponse,
    EnsureScenarioRequest,
    RenameRequest,
    RenameResponse,
    ScenarioCreateRequest,
    ScenarioInputOut,
    ScenarioInputRequest,
    ScenarioOut,
    ScenarioStatusRequest,
)
from chainplan.contracts.entities import ModuleType
from chainplan.contracts.store import EntityStore
from chainplan.routes.deps import delete_reply, get_store, get_user_id, map_domain_error, rename_reply

logger = logging.getLogger(__name__)
router = APIRouter(prefix="", tags=["scenarios"])


@router.post("/projects/{project_id}/scenarios/ensure", response_model=ScenarioOut)
async def ensure_scenario_route(
    project_id: str,
    req: EnsureScenarioRequest,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> ScenarioOut:
    try:
        scenario = await svc.ensure_scenario(
            store=store, user_id=user_id, project_id=project_id, module_type=req.module_type
        )
    except PlanningError as e:
        raise map_domain_error(e) from e
    return ScenarioOut.model_validate(scenario)


@router.get("/projects/{project_id}/scenarios", response_model=list[ScenarioOut])
async def list_scenarios_route(
    project_id: str,
    module_type: ModuleType | None = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> list[ScenarioOut]:
    try:
        scenarios = await svc.list_scenarios(
            store=store,
            user_id=user_id,
            project_id=project_id,
            module_type=module_type,
            limit=limit,
            offset=offset,
        )
    except PlanningError as e:
        raise map_domain_error(e) from e
    return [ScenarioOut.model_validate(s) for s in scenarios]


@router.post("/projects/{project_id}/scenarios", response_model=ScenarioOut, status_code=201)
async def create_scenario_route(
    project_id: str,
    req: ScenarioCreateRequest,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> ScenarioOut:
    try:
        scenario = await svc.create_scenario(
            store=store,
            user_id=user_id,
            project_id=project_id,
            module_type=req.module_type,
            name=req.name,
            description=req.description,
        )
    except PlanningError as e:
        raise map_domain_error(e) from e
    return ScenarioOut.model_validate(scenario)


@router.get("/scenarios/{scenario_id}", response_model=ScenarioOut)
async def get_scenario_route(
    scenario_id: str,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> ScenarioOut:
    try:
        scenario = await svc.get_scenario(store=store, user_id=user_id, scenario_id=scenario_id)
    except PlanningError as e:
        raise map_domain_error(e) from e
    return ScenarioOut.model_validate(scenario)


@router.post("/scenarios/{scenario_id}/rename", response_model=RenameResponse)
async def rename_scenario_route(
    scenario_id: str,
    req: RenameRequest,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> RenameResponse:
    try:
        res = await svc.rename_scenario(
            store=store, user_id=user_id, scenario_id=scenario_id, new_name=req.name
        )
    except PlanningError as e:
        raise map_domain_error(e) from e
    return rename_reply(res)


@router.put("/scenarios/{scenario_id}/status", response_model=ScenarioOut)
async def update_scenario_status_route(
    scenario_id: str,
    req: ScenarioStatusRequest,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> ScenarioOut:
    try:
        scenario = await svc.update_scenario_status(
            store=store, user_id=user_id, scenario_id=scenario_id, status=req.status
        )
    except PlanningError as e:
        raise map_domain_error(e) from e
    return ScenarioOut.model_validate(scenario)


@router.delete("/scenarios/{scenario_id}", response_model=DeleteResponse)
async def delete_scenario_route(
    scenario_id: str,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> DeleteResponse:
    try:
        res = await svc.delete_scenario(store=store, user_id=user_id, scenario_id=scenario_id)
    except PlanningError as e:
        raise map_domain_error(e) from e
    return delete_reply(res)


@router.put("/scenarios/{scenario_id}/input", response_model=ScenarioInputOut)
async def save_scenario_input_route(
    scenario_id: str,
    req: ScenarioInputRequest,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> ScenarioInputOut:
    try:
        saved = await svc.save_scenario_input(
            store=store, user_id=user_id, scenario_id=scenario_id, input_data=req.input_data
        )
    except PlanningError as e:
        raise map_domain_error(e) from e
    return ScenarioInputOut.model_validate(saved)


@router.get("/scenarios/{scenario_id}/input", response_model=ScenarioInputOut)
async def load_scenario_input_route(
    scenario_id: str,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> ScenarioInputOut:
    try:
        saved = await svc.load_scenario_input(
            store=store, user_id=user_id, scenario_id=scenario_id
        )
        if saved is None:
            raise NotFound("No input saved for this scenario")
    except PlanningError as e:
        raise map_domain_error(e) from e
    return ScenarioInputOut.model_validate(saved)
