from __future__ import annotations

import logging
from fastapi import APIRouter, Depends, HTTPException, Response

from chainplan.api.schemas import HistoryAddRequest, HistoryAddResponse, VersionedResultOut
from chainplan.core.history import ResultHistory, VersionedResult
from chainplan.routes.deps import get_result_history

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/history/scenarios/{scenario_id}/results", tags=["history"])


def _out(r: VersionedResult) -> VersionedResultOut:
    return VersionedResultOut(result_number=r.result_number, timestamp=r.timestamp, data=r.data)


@router.get("", response_model=list[VersionedResultOut])
async def get_scenario_results(
    scenario_id: str,
    history: ResultHistory = Depends(get_result_history),
) -> list[VersionedResultOut]:
    return [_out(r) for r in await history.get_results(scenario_id)]


@router.post("", response_model=HistoryAddResponse, status_code=201)
async def add_scenario_result(
    scenario_id: str,
    req: HistoryAddRequest,
    history: ResultHistory = Depends(get_result_history),
) -> HistoryAddResponse:
    number = await history.add_result(scenario_id, req.data)
    logger.info("Stored local result #%d for scenario %s", number, scenario_id)
    return HistoryAddResponse(scenario_id=scenario_id, result_number=number)


@router.get("/latest", response_model=VersionedResultOut)
async def get_latest_result(
    scenario_id: str,
    history: ResultHistory = Depends(get_result_history),
) -> VersionedResultOut:
    latest = await history.get_latest(scenario_id)
    if latest is None:
        raise HTTPException(status_code=404, detail="No local results for this scenario")
    return _out(latest)


@router.delete("", status_code=204, response_class=Response)
async def clear_scenario_results(
    scenario_id: str,
    history: ResultHistory = Depends(get_result_history),
) -> None:
    await history.clear_results(scenario_id)
