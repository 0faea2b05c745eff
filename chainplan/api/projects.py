from __future__ import annotations

import logging
from typing import Any, Mapping

from chainplan.api.exceptions import BadRequest, NotFound, StoreUnavailable
from chainplan.api.lifecycle import (
    check_page,
    coerce_enum,
    create_entity,
    ensure_entity,
    rename_with_outcome,
    require_user,
    store_guard,
)
from chainplan.api.schemas import DeleteResponse, RenameResponse
from chainplan.contracts.entities import Project, ReusePolicy, ToolType
from chainplan.contracts.store import EntityStore
from chainplan.core.config import settings
from chainplan.core.naming import module_prefix

logger = logging.getLogger(__name__)

# Fields callers may change through update_project; the name goes through rename
UPDATABLE_FIELDS = frozenset({"description", "input_data", "results_data", "size_mb"})


def _new_project_defaults(description: str | None = None) -> dict[str, Any]:
    return {
        "description": description,
        "input_data": {},
        "results_data": {},
        "size_mb": 0.0,
    }


async def ensure_project(
    *,
    store: EntityStore,
    user_id: str | None,
    tool_type: ToolType | str,
    policy: ReusePolicy | None = None,
) -> Project:
    """Return the user's project for ``tool_type``, creating "GFA 1" etc. on first use."""
    user = require_user(user_id)
    tool = coerce_enum(ToolType, tool_type)
    return await ensure_entity(
        store.projects,
        kind="project",
        scope={"user_id": user, "tool_type": tool},
        name_scope={"user_id": user},
        base=module_prefix(tool),
        defaults=_new_project_defaults(),
        policy=policy or settings.project_reuse_policy,
    )


async def create_project(
    *,
    store: EntityStore,
    user_id: str | None,
    tool_type: ToolType | str,
    name: str | None = None,
    description: str | None = None,
) -> Project:
    user = require_user(user_id)
    tool = coerce_enum(ToolType, tool_type)
    project = await create_entity(
        store.projects,
        kind="project",
        fields={"user_id": user, "tool_type": tool, **_new_project_defaults(description)},
        name=name,
        base=module_prefix(tool),
        name_scope={"user_id": user},
    )
    logger.info("Created project %s (%s)", project.id, project.name)
    return project


async def get_project(*, store: EntityStore, user_id: str | None, project_id: str) -> Project:
    user = require_user(user_id)
    with store_guard("load project", project_id=project_id):
        project = await store.projects.get(project_id)
    if project is None or project.user_id != user:
        raise NotFound("Project not found")
    return project


async def list_projects(
    *,
    store: EntityStore,
    user_id: str | None,
    limit: int = 20,
    offset: int = 0,
) -> list[Project]:
    user = require_user(user_id)
    check_page(limit, offset)
    with store_guard("list projects"):
        return await store.projects.find_many(
            {"user_id": user},
            order_by=("updated_at",),
            descending=True,
            limit=limit,
            offset=offset,
        )


async def update_project(
    *,
    store: EntityStore,
    user_id: str | None,
    project_id: str,
    changes: Mapping[str, Any],
) -> Project:
    user = require_user(user_id)
    invalid = set(changes) - UPDATABLE_FIELDS
    if invalid:
        raise BadRequest(f"Cannot update project field(s): {', '.join(sorted(invalid))}")
    if not changes:
        return await get_project(store=store, user_id=user, project_id=project_id)

    with store_guard("update project", project_id=project_id):
        project = await store.projects.update(project_id, dict(changes), scope={"user_id": user})
    if project is None:
        raise NotFound("Project not found")
    return project


async def rename_project(
    *,
    store: EntityStore,
    user_id: str | None,
    project_id: str,
    new_name: str,
) -> RenameResponse:
    user = require_user(user_id)
    return await rename_with_outcome(
        store.projects,
        project_id,
        new_name,
        kind="project",
        scope={"user_id": user},
    )


async def delete_project(
    *,
    store: EntityStore,
    user_id: str | None,
    project_id: str,
) -> DeleteResponse:
    """Delete a project together with its scenarios, inputs and results."""
    project = await get_project(store=store, user_id=user_id, project_id=project_id)
    try:
        with store_guard("delete project", project_id=project.id):
            scenarios = await store.scenarios.find_many({"project_id": project.id})
            for scenario in scenarios:
                await store.scenario_inputs.delete_many({"scenario_id": scenario.id})
            await store.results.delete_many({"project_id": project.id})
            await store.scenarios.delete_many({"project_id": project.id})
            await store.projects.delete(project.id)
    except StoreUnavailable:
        return DeleteResponse(success=False, error="Failed to delete project")

    logger.info("Deleted project %s with %d scenario(s)", project.id, len(scenarios))
    return DeleteResponse(success=True)
