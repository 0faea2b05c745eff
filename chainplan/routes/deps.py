from __future__ import annotations
from typing import AsyncGenerator

from fastapi import Header, HTTPException, Request

from chainplan.api.exceptions import (
    BadRequest,
    NameConflict,
    NotAuthenticated,
    NotFound,
    PlanningError,
    RaceExhausted,
    StoreUnavailable,
)
from chainplan.api.schemas import DeleteResponse, RenameResponse
from chainplan.contracts.store import EntityStore
from chainplan.core.db import get_sessionmaker
from chainplan.core.history import ResultHistory
from chainplan.db.store import SqlEntityStore


async def get_store() -> AsyncGenerator[EntityStore, None]:
    SessionLocal = get_sessionmaker()
    async with SessionLocal() as session:
        yield SqlEntityStore(session)


def get_result_history(request: Request) -> ResultHistory:
    return request.app.state.result_history


async def get_user_id(x_user_id: str | None = Header(default=None)) -> str | None:
    """Caller identity; validated by the services, not here."""
    return x_user_id.strip() if x_user_id else None


def map_domain_error(e: PlanningError) -> HTTPException:
    if isinstance(e, NotAuthenticated):
        return HTTPException(status_code=401, detail=str(e))
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, BadRequest):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, NameConflict):
        return HTTPException(
            status_code=409,
            detail={"error": str(e), "name": e.name, "suggestions": e.suggestions},
        )
    if isinstance(e, RaceExhausted):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, StoreUnavailable):
        return HTTPException(status_code=503, detail=f"{e}. Please try again.")
    return HTTPException(status_code=500, detail=str(e))


def rename_reply(res: RenameResponse) -> RenameResponse:
    """Pass a successful rename through; turn a failed one into 409/503."""
    if res.success:
        return res
    raise HTTPException(status_code=409 if res.conflict else 503, detail=res.model_dump())


def delete_reply(res: DeleteResponse) -> DeleteResponse:
    if res.success:
        return res
    raise HTTPException(status_code=503, detail=res.error)
