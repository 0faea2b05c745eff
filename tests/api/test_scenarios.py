from __future__ import annotations

import pytest
import pytest_asyncio

from chainplan.api import projects, scenarios as svc
from chainplan.api.exceptions import BadRequest, InvalidTransition, NameConflict, NotFound
from chainplan.contracts.entities import ModuleType, ScenarioStatus
from chainplan.core.memory_store import MemoryEntityStore


@pytest_asyncio.fixture
async def project(store: MemoryEntityStore, user: str):
    return await projects.ensure_project(store=store, user_id=user, tool_type="gfa")


@pytest.mark.asyncio
async def test_ensure_scenario_creates_then_reuses(store, user, project) -> None:
    first = await svc.ensure_scenario(
        store=store, user_id=user, project_id=project.id, module_type="gfa"
    )
    again = await svc.ensure_scenario(
        store=store, user_id=user, project_id=project.id, module_type=ModuleType.gfa
    )

    assert first.id == again.id
    assert first.name == "Scenario 1"
    assert first.status == ScenarioStatus.pending
    assert first.user_id == user


@pytest.mark.asyncio
async def test_scenario_names_are_scoped_per_module(store, user, project) -> None:
    gfa = await svc.ensure_scenario(
        store=store, user_id=user, project_id=project.id, module_type="gfa"
    )
    net = await svc.ensure_scenario(
        store=store, user_id=user, project_id=project.id, module_type="network"
    )

    assert gfa.id != net.id
    assert gfa.name == net.name == "Scenario 1"


@pytest.mark.asyncio
async def test_ensure_scenario_requires_owned_project(store, user, project) -> None:
    with pytest.raises(NotFound):
        await svc.ensure_scenario(
            store=store, user_id="intruder", project_id=project.id, module_type="gfa"
        )
    with pytest.raises(NotFound):
        await svc.ensure_scenario(
            store=store, user_id=user, project_id="prj-missing", module_type="gfa"
        )


@pytest.mark.asyncio
async def test_create_scenario_auto_names_fill_gaps(store, user, project) -> None:
    created = [
        await svc.create_scenario(
            store=store, user_id=user, project_id=project.id, module_type="gfa"
        )
        for _ in range(3)
    ]
    assert [s.name for s in created] == ["Scenario 1", "Scenario 2", "Scenario 3"]

    await svc.delete_scenario(store=store, user_id=user, scenario_id=created[1].id)
    refill = await svc.create_scenario(
        store=store, user_id=user, project_id=project.id, module_type="gfa"
    )
    assert refill.name == "Scenario 2"


@pytest.mark.asyncio
async def test_create_scenario_name_conflict_mentions_module(store, user, project) -> None:
    await svc.create_scenario(
        store=store, user_id=user, project_id=project.id, module_type="gfa", name="Base"
    )

    with pytest.raises(NameConflict) as exc:
        await svc.create_scenario(
            store=store, user_id=user, project_id=project.id, module_type="gfa", name="Base"
        )
    assert "in this module" in str(exc.value)


@pytest.mark.asyncio
async def test_list_scenarios_with_module_filter(store, user, project) -> None:
    for module in ("gfa", "gfa", "network"):
        await svc.create_scenario(
            store=store, user_id=user, project_id=project.id, module_type=module
        )

    everything = await svc.list_scenarios(store=store, user_id=user, project_id=project.id)
    only_gfa = await svc.list_scenarios(
        store=store, user_id=user, project_id=project.id, module_type="gfa"
    )

    assert len(everything) == 3
    assert {s.module_type for s in only_gfa} == {ModuleType.gfa}
    assert len(only_gfa) == 2


@pytest.mark.asyncio
async def test_rename_scenario(store, user, project) -> None:
    a = await svc.create_scenario(
        store=store, user_id=user, project_id=project.id, module_type="gfa", name="A"
    )
    await svc.create_scenario(
        store=store, user_id=user, project_id=project.id, module_type="gfa", name="B"
    )
    other_module = await svc.create_scenario(
        store=store, user_id=user, project_id=project.id, module_type="network", name="C"
    )

    clash = await svc.rename_scenario(store=store, user_id=user, scenario_id=a.id, new_name="B")
    assert clash.success is False
    assert clash.conflict is True

    # names only clash within the same module
    ok = await svc.rename_scenario(
        store=store, user_id=user, scenario_id=other_module.id, new_name="B"
    )
    assert ok.success is True


class TestStatus:
    @pytest.mark.asyncio
    async def test_lifecycle(self, store, user, project) -> None:
        s = await svc.ensure_scenario(
            store=store, user_id=user, project_id=project.id, module_type="gfa"
        )
        for status in ("running", "failed", "running", "completed"):
            s = await svc.update_scenario_status(
                store=store, user_id=user, scenario_id=s.id, status=status
            )
            assert s.status == ScenarioStatus(status)

    @pytest.mark.asyncio
    async def test_back_to_pending_is_rejected(self, store, user, project) -> None:
        s = await svc.ensure_scenario(
            store=store, user_id=user, project_id=project.id, module_type="gfa"
        )
        await svc.update_scenario_status(
            store=store, user_id=user, scenario_id=s.id, status=ScenarioStatus.running
        )

        with pytest.raises(InvalidTransition):
            await svc.update_scenario_status(
                store=store, user_id=user, scenario_id=s.id, status=ScenarioStatus.pending
            )

    @pytest.mark.asyncio
    async def test_same_status_is_noop(self, store, user, project) -> None:
        s = await svc.ensure_scenario(
            store=store, user_id=user, project_id=project.id, module_type="gfa"
        )
        same = await svc.update_scenario_status(
            store=store, user_id=user, scenario_id=s.id, status="pending"
        )
        assert same.updated_at == s.updated_at

    @pytest.mark.asyncio
    async def test_unknown_status(self, store, user, project) -> None:
        s = await svc.ensure_scenario(
            store=store, user_id=user, project_id=project.id, module_type="gfa"
        )
        with pytest.raises(BadRequest):
            await svc.update_scenario_status(
                store=store, user_id=user, scenario_id=s.id, status="paused"
            )


@pytest.mark.asyncio
async def test_scenario_input_upsert(store, user, project) -> None:
    s = await svc.ensure_scenario(
        store=store, user_id=user, project_id=project.id, module_type="gfa"
    )
    assert await svc.load_scenario_input(store=store, user_id=user, scenario_id=s.id) is None

    first = await svc.save_scenario_input(
        store=store, user_id=user, scenario_id=s.id, input_data={"demand": [1, 2]}
    )
    second = await svc.save_scenario_input(
        store=store, user_id=user, scenario_id=s.id, input_data={"demand": [3]}
    )

    assert first.id == second.id
    loaded = await svc.load_scenario_input(store=store, user_id=user, scenario_id=s.id)
    assert loaded is not None and loaded.input_data == {"demand": [3]}
    assert len(await store.scenario_inputs.find_many({"scenario_id": s.id})) == 1


@pytest.mark.asyncio
async def test_delete_scenario(store, user, project) -> None:
    s = await svc.ensure_scenario(
        store=store, user_id=user, project_id=project.id, module_type="gfa"
    )

    res = await svc.delete_scenario(store=store, user_id=user, scenario_id=s.id)
    assert res.success is True

    with pytest.raises(NotFound):
        await svc.get_scenario(store=store, user_id=user, scenario_id=s.id)
