from __future__ import annotations

import logging
from fastapi import APIRouter, Depends, Query

from chainplan.api import results as svc
from chainplan.api.exceptions import NotFound, PlanningError
from chainplan.api.schemas import (
    DeleteResponse,
    RenameRequest,
    RenameResponse,
    ResultCreateRequest,
    ResultHandle,
    ResultOut,
)
from chainplan.contracts.store import EntityStore
from chainplan.routes.deps import delete_reply, get_store, get_user_id, map_domain_error, rename_reply

logger = logging.getLogger(__name__)
router = APIRouter(prefix="", tags=["results"])


@router.post("/scenarios/{scenario_id}/results", response_model=ResultHandle, status_code=201)
async def create_result_route(
    scenario_id: str,
    req: ResultCreateRequest,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> ResultHandle:
    try:
        return await svc.create_result(
            store=store,
            user_id=user_id,
            scenario_id=scenario_id,
            metrics=req.metrics,
            payload=req.payload,
            module_type=req.module_type,
        )
    except PlanningError as e:
        raise map_domain_error(e) from e


@router.get("/scenarios/{scenario_id}/results", response_model=list[ResultOut])
async def list_results_route(
    scenario_id: str,
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> list[ResultOut]:
    try:
        results = await svc.list_results(
            store=store, user_id=user_id, scenario_id=scenario_id, limit=limit, offset=offset
        )
    except PlanningError as e:
        raise map_domain_error(e) from e
    return [ResultOut.model_validate(r) for r in results]


@router.get("/scenarios/{scenario_id}/results/all", response_model=list[ResultOut])
async def all_results_route(
    scenario_id: str,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> list[ResultOut]:
    try:
        results = await svc.list_all_results(
            store=store, user_id=user_id, scenario_id=scenario_id
        )
    except PlanningError as e:
        raise map_domain_error(e) from e
    return [ResultOut.model_validate(r) for r in results]


@router.get("/scenarios/{scenario_id}/results/latest", response_model=ResultOut)
async def latest_result_route(
    scenario_id: str,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> ResultOut:
    try:
        result = await svc.load_latest_result(
            store=store, user_id=user_id, scenario_id=scenario_id
        )
        if result is None:
            raise NotFound("Scenario has no results yet")
    except PlanningError as e:
        raise map_domain_error(e) from e
    return ResultOut.model_validate(result)


@router.get("/scenarios/{scenario_id}/results/by-number/{result_number}", response_model=ResultOut)
async def result_by_number_route(
    scenario_id: str,
    result_number: int,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> ResultOut:
    try:
        result = await svc.load_result_by_number(
            store=store, user_id=user_id, scenario_id=scenario_id, result_number=result_number
        )
    except PlanningError as e:
        raise map_domain_error(e) from e
    return ResultOut.model_validate(result)


@router.get("/results/{result_id}", response_model=ResultOut)
async def get_result_route(
    result_id: str,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> ResultOut:
    try:
        result = await svc.get_result(store=store, user_id=user_id, result_id=result_id)
    except PlanningError as e:
        raise map_domain_error(e) from e
    return ResultOut.model_validate(result)


@router.post("/results/{result_id}/rename", response_model=RenameResponse)
async def rename_result_route(
    result_id: str,
    req: RenameRequest,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> RenameResponse:
    try:
        res = await svc.rename_result(
            store=store, user_id=user_id, result_id=result_id, new_name=req.name
        )
    except PlanningError as e:
        raise map_domain_error(e) from e
    return rename_reply(res)


@router.delete("/results/{result_id}", response_model=DeleteResponse)
async def delete_result_route(
    result_id: str,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> DeleteResponse:
    try:
        res = await svc.delete_result(store=store, user_id=user_id, result_id=result_id)
    except PlanningError as e:
        raise map_domain_error(e) from e
    return delete_reply(res)
