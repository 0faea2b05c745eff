from __future__ import annotations

import pytest

from chainplan.api import projects as svc
from chainplan.api.exceptions import BadRequest, NameConflict, NotAuthenticated, NotFound
from chainplan.api.lifecycle import rename_entity
from chainplan.contracts.entities import ReusePolicy, ToolType
from chainplan.contracts.store import ConflictError
from chainplan.core.memory_store import MemoryEntityStore


@pytest.mark.asyncio
async def test_ensure_project_is_idempotent(store: MemoryEntityStore, user: str) -> None:
    first = await svc.ensure_project(store=store, user_id=user, tool_type="gfa")
    second = await svc.ensure_project(store=store, user_id=user, tool_type=ToolType.gfa)

    assert first.id == second.id
    assert first.name == "GFA 1"
    assert await store.projects.list_names({"user_id": user}) == ["GFA 1"]


@pytest.mark.asyncio
async def test_ensure_project_per_tool(store: MemoryEntityStore, user: str) -> None:
    gfa = await svc.ensure_project(store=store, user_id=user, tool_type="gfa")
    df = await svc.ensure_project(store=store, user_id=user, tool_type="forecasting")

    assert gfa.id != df.id
    assert df.name == "DF 1"


@pytest.mark.asyncio
async def test_ensure_project_auto_name_skips_names_used_by_other_tools(
    store: MemoryEntityStore, user: str
) -> None:
    # a user-chosen name on another tool still occupies the user-wide name
    await svc.create_project(store=store, user_id=user, tool_type="network", name="GFA 1")

    project = await svc.ensure_project(store=store, user_id=user, tool_type="gfa")
    assert project.name == "GFA 2"


@pytest.mark.asyncio
async def test_ensure_project_reuse_policy(store: MemoryEntityStore, user: str) -> None:
    oldest = await svc.create_project(store=store, user_id=user, tool_type="gfa")
    newer = await svc.create_project(store=store, user_id=user, tool_type="gfa")
    await svc.update_project(
        store=store, user_id=user, project_id=newer.id, changes={"size_mb": 1.5}
    )

    reused = await svc.ensure_project(store=store, user_id=user, tool_type="gfa")
    assert reused.id == oldest.id

    recent = await svc.ensure_project(
        store=store, user_id=user, tool_type="gfa", policy=ReusePolicy.most_recent
    )
    assert recent.id == newer.id


@pytest.mark.asyncio
async def test_missing_user_fails_before_store_access() -> None:
    class ExplodingStore:
        def __getattr__(self, name):
            raise AssertionError(f"store.{name} touched without a user")

    with pytest.raises(NotAuthenticated):
        await svc.ensure_project(store=ExplodingStore(), user_id=None, tool_type="gfa")
    with pytest.raises(NotAuthenticated):
        await svc.list_projects(store=ExplodingStore(), user_id="")


@pytest.mark.asyncio
async def test_invalid_tool_type(store: MemoryEntityStore, user: str) -> None:
    with pytest.raises(BadRequest):
        await svc.ensure_project(store=store, user_id=user, tool_type="spaceship")


@pytest.mark.asyncio
async def test_create_project_with_taken_name(store: MemoryEntityStore, user: str) -> None:
    await svc.create_project(store=store, user_id=user, tool_type="gfa", name="Plant A")

    with pytest.raises(NameConflict) as exc:
        await svc.create_project(store=store, user_id=user, tool_type="gfa", name="Plant A")

    assert "Plant A" in str(exc.value)
    assert exc.value.suggestions == ["Plant A (2)", "Plant A (3)", "Plant A (4)"]


@pytest.mark.asyncio
async def test_create_project_blank_name(store: MemoryEntityStore, user: str) -> None:
    with pytest.raises(BadRequest):
        await svc.create_project(store=store, user_id=user, tool_type="gfa", name="   ")


@pytest.mark.asyncio
async def test_get_project_of_another_user_is_not_found(
    store: MemoryEntityStore, user: str
) -> None:
    project = await svc.ensure_project(store=store, user_id=user, tool_type="gfa")

    with pytest.raises(NotFound):
        await svc.get_project(store=store, user_id="someone-else", project_id=project.id)


@pytest.mark.asyncio
async def test_list_projects_most_recently_updated_first(
    store: MemoryEntityStore, user: str
) -> None:
    a = await svc.create_project(store=store, user_id=user, tool_type="gfa")
    b = await svc.create_project(store=store, user_id=user, tool_type="gfa")
    await svc.update_project(
        store=store, user_id=user, project_id=a.id, changes={"description": "touched"}
    )

    listed = await svc.list_projects(store=store, user_id=user)
    assert [p.id for p in listed] == [a.id, b.id]

    with pytest.raises(BadRequest):
        await svc.list_projects(store=store, user_id=user, limit=0)


@pytest.mark.asyncio
async def test_update_project_rejects_name_and_unknown_fields(
    store: MemoryEntityStore, user: str
) -> None:
    p = await svc.ensure_project(store=store, user_id=user, tool_type="gfa")

    with pytest.raises(BadRequest):
        await svc.update_project(store=store, user_id=user, project_id=p.id, changes={"name": "x"})

    updated = await svc.update_project(
        store=store,
        user_id=user,
        project_id=p.id,
        changes={"input_data": {"sites": 3}, "size_mb": 0.25},
    )
    assert updated.input_data == {"sites": 3}
    assert updated.size_mb == 0.25


class TestRenameProject:
    @pytest.mark.asyncio
    async def test_rename_to_name_of_other_project_conflicts(
        self, store: MemoryEntityStore, user: str
    ) -> None:
        a = await svc.create_project(store=store, user_id=user, tool_type="gfa", name="Alpha")
        await svc.create_project(store=store, user_id=user, tool_type="gfa", name="Beta")

        res = await svc.rename_project(
            store=store, user_id=user, project_id=a.id, new_name="Beta"
        )

        assert res.success is False
        assert res.conflict is True
        assert "Beta" in (res.error or "")
        assert res.suggestions == ["Beta (2)", "Beta (3)", "Beta (4)"]
        unchanged = await svc.get_project(store=store, user_id=user, project_id=a.id)
        assert unchanged.name == "Alpha"

    @pytest.mark.asyncio
    async def test_rename_entity_raises_name_conflict(
        self, store: MemoryEntityStore, user: str
    ) -> None:
        a = await svc.create_project(store=store, user_id=user, tool_type="gfa", name="Alpha")
        await svc.create_project(store=store, user_id=user, tool_type="gfa", name="Beta")

        with pytest.raises(NameConflict):
            await rename_entity(
                store.projects, a.id, "Beta", kind="project", scope={"user_id": user}
            )

    @pytest.mark.asyncio
    async def test_conflict_at_update_is_reported_as_name_conflict(
        self, store: MemoryEntityStore, user: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        a = await svc.create_project(store=store, user_id=user, tool_type="gfa", name="Alpha")

        # another writer takes the name between the pre-check and the update
        async def taken(*args, **kwargs):
            raise ConflictError("duplicate key", constraint="uq_project_user_id_name")

        monkeypatch.setattr(store.projects, "update", taken)

        with pytest.raises(NameConflict) as exc:
            await rename_entity(
                store.projects, a.id, "Beta", kind="project", scope={"user_id": user}
            )
        assert exc.value.name == "Beta"

        res = await svc.rename_project(
            store=store, user_id=user, project_id=a.id, new_name="Beta"
        )
        assert res.success is False
        assert res.conflict is True
        assert res.suggestions == ["Beta (2)", "Beta (3)", "Beta (4)"]

    @pytest.mark.asyncio
    async def test_rename_to_own_name_succeeds(self, store: MemoryEntityStore, user: str) -> None:
        a = await svc.create_project(store=store, user_id=user, tool_type="gfa", name="Alpha")

        res = await svc.rename_project(
            store=store, user_id=user, project_id=a.id, new_name="Alpha"
        )
        assert res.success is True
        assert res.name == "Alpha"

    @pytest.mark.asyncio
    async def test_rename_trims_and_applies(self, store: MemoryEntityStore, user: str) -> None:
        a = await svc.ensure_project(store=store, user_id=user, tool_type="gfa")

        res = await svc.rename_project(
            store=store, user_id=user, project_id=a.id, new_name="  Main plan "
        )
        assert res.success is True
        assert (await svc.get_project(store=store, user_id=user, project_id=a.id)).name == "Main plan"

    @pytest.mark.asyncio
    async def test_rename_blank_and_missing(self, store: MemoryEntityStore, user: str) -> None:
        a = await svc.ensure_project(store=store, user_id=user, tool_type="gfa")

        with pytest.raises(BadRequest):
            await svc.rename_project(store=store, user_id=user, project_id=a.id, new_name=" ")
        with pytest.raises(NotFound):
            await svc.rename_project(
                store=store, user_id=user, project_id="prj-missing", new_name="X"
            )

    @pytest.mark.asyncio
    async def test_rename_project_of_other_user_is_not_found(
        self, store: MemoryEntityStore, user: str
    ) -> None:
        a = await svc.ensure_project(store=store, user_id=user, tool_type="gfa")

        with pytest.raises(NotFound):
            await svc.rename_project(
                store=store, user_id="intruder", project_id=a.id, new_name="Mine"
            )


@pytest.mark.asyncio
async def test_delete_project_cascades(store: MemoryEntityStore, user: str) -> None:
    from chainplan.api import results, scenarios

    project = await svc.ensure_project(store=store, user_id=user, tool_type="gfa")
    scenario = await scenarios.ensure_scenario(
        store=store, user_id=user, project_id=project.id, module_type="gfa"
    )
    await scenarios.save_scenario_input(
        store=store, user_id=user, scenario_id=scenario.id, input_data={"a": 1}
    )
    await results.create_result(store=store, user_id=user, scenario_id=scenario.id)

    res = await svc.delete_project(store=store, user_id=user, project_id=project.id)

    assert res.success is True
    assert await store.projects.get(project.id) is None
    assert await store.scenarios.find_many({"project_id": project.id}) == []
    assert await store.scenario_inputs.find_many({"scenario_id": scenario.id}) == []
    assert await store.results.find_many({"project_id": project.id}) == []
