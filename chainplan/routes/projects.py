from __future__ import annotations

import logging
from fastapi import APIRouter, Depends, Query

from chainplan.api import projects as svc
from chainplan.api.exceptions import PlanningError
from chainplan.api.schemas import (
    DeleteResponse,
    EnsureProjectRequest,
    ProjectCreateRequest,
    ProjectOut,
    ProjectUpdateRequest,
    RenameRequest,
    RenameResponse,
)
from chainplan.contracts.store import EntityStore
from chainplan.routes.deps import delete_reply, get_store, get_user_id, map_domain_error, rename_reply

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("/ensure", response_model=ProjectOut)
async def ensure_project_route(
    req: EnsureProjectRequest,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> ProjectOut:
    try:
        project = await svc.ensure_project(store=store, user_id=user_id, tool_type=req.tool_type)
    except PlanningError as e:
        raise map_domain_error(e) from e
    return ProjectOut.model_validate(project)


@router.get("", response_model=list[ProjectOut])
async def list_projects_route(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> list[ProjectOut]:
    try:
        projects = await svc.list_projects(
            store=store, user_id=user_id, limit=limit, offset=offset
        )
    except PlanningError as e:
        raise map_domain_error(e) from e
    return [ProjectOut.model_validate(p) for p in projects]


@router.post("", response_model=ProjectOut, status_code=201)
async def create_project_route(
    req: ProjectCreateRequest,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> ProjectOut:
    try:
        project = await svc.create_project(
            store=store,
            user_id=user_id,
            tool_type=req.tool_type,
            name=req.name,
            description=req.description,
        )
    except PlanningError as e:
        raise map_domain_error(e) from e
    return ProjectOut.model_validate(project)


@router.get("/{project_id}", response_model=ProjectOut)
async def get_project_route(
    project_id: str,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> ProjectOut:
    try:
        project = await svc.get_project(store=store, user_id=user_id, project_id=project_id)
    except PlanningError as e:
        raise map_domain_error(e) from e
    return ProjectOut.model_validate(project)


@router.patch("/{project_id}", response_model=ProjectOut)
async def update_project_route(
    project_id: str,
    req: ProjectUpdateRequest,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> ProjectOut:
    try:
        project = await svc.update_project(
            store=store,
            user_id=user_id,
            project_id=project_id,
            changes=req.model_dump(exclude_unset=True),
        )
    except PlanningError as e:
        raise map_domain_error(e) from e
    return ProjectOut.model_validate(project)


@router.post("/{project_id}/rename", response_model=RenameResponse)
async def rename_project_route(
    project_id: str,
    req: RenameRequest,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> RenameResponse:
    try:
        res = await svc.rename_project(
            store=store, user_id=user_id, project_id=project_id, new_name=req.name
        )
    except PlanningError as e:
        raise map_domain_error(e) from e
    return rename_reply(res)


@router.delete("/{project_id}", response_model=DeleteResponse)
async def delete_project_route(
    project_id: str,
    store: EntityStore = Depends(get_store),
    user_id: str | None = Depends(get_user_id),
) -> DeleteResponse:
    try:
        res = await svc.delete_project(store=store, user_id=user_id, project_id=project_id)
    except PlanningError as e:
        raise map_domain_error(e) from e
    return delete_reply(res)
