from __future__ import annotations

from typing import AsyncIterator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from chainplan.api import projects, results, scenarios
from chainplan.contracts.entities import ModuleType, ScenarioStatus, ToolType
from chainplan.contracts.store import ConflictError, EntityStore
from chainplan.core.db import init_db, make_sessionmaker
from chainplan.db import SqlEntityStore


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def sql_store(engine: AsyncEngine) -> AsyncIterator[SqlEntityStore]:
    Session = make_sessionmaker(engine)
    async with Session() as session:
        yield SqlEntityStore(session)


@pytest.mark.asyncio
async def test_sql_store_satisfies_contract(sql_store: SqlEntityStore) -> None:
    assert isinstance(sql_store, EntityStore)


@pytest.mark.asyncio
async def test_insert_get_and_unique_conflict(sql_store: SqlEntityStore) -> None:
    p = await sql_store.projects.insert(
        {"user_id": "u", "name": "GFA 1", "tool_type": ToolType.gfa}
    )
    assert p.id.startswith("prj-")

    loaded = await sql_store.projects.get(p.id)
    assert loaded is not None
    assert loaded.tool_type == ToolType.gfa
    assert loaded.input_data == {}

    with pytest.raises(ConflictError):
        await sql_store.projects.insert(
            {"user_id": "u", "name": "GFA 1", "tool_type": ToolType.network}
        )

    # the session stays usable after a conflict
    assert await sql_store.projects.list_names({"user_id": "u"}) == ["GFA 1"]


@pytest.mark.asyncio
async def test_update_with_scope_and_conflict(sql_store: SqlEntityStore) -> None:
    a = await sql_store.projects.insert({"user_id": "u", "name": "A", "tool_type": "gfa"})
    await sql_store.projects.insert({"user_id": "u", "name": "B", "tool_type": "gfa"})

    assert await sql_store.projects.update(a.id, {"name": "Z"}, scope={"user_id": "v"}) is None

    with pytest.raises(ConflictError):
        await sql_store.projects.update(a.id, {"name": "B"})

    renamed = await sql_store.projects.update(a.id, {"name": "A2"})
    assert renamed is not None and renamed.name == "A2"


@pytest.mark.asyncio
async def test_find_many_order_and_page(sql_store: SqlEntityStore) -> None:
    for i in range(1, 6):
        await sql_store.projects.insert({"user_id": "u", "name": f"P {i}", "tool_type": "gfa"})

    newest = await sql_store.projects.find_many(
        {"user_id": "u"}, descending=True, limit=2, offset=1
    )
    assert [p.name for p in newest] == ["P 4", "P 3"]

    oldest = await sql_store.projects.find_one({"user_id": "u", "tool_type": "gfa"})
    assert oldest is not None and oldest.name == "P 1"


@pytest.mark.asyncio
async def test_delete_many_and_max_value(sql_store: SqlEntityStore) -> None:
    scope = {"scenario_id": "scn-1"}
    assert await sql_store.results.max_value("result_number", scope) is None

    for n in (1, 2, 5):
        await sql_store.results.insert(
            {
                "scenario_id": "scn-1",
                "project_id": "prj-1",
                "module_type": ModuleType.network,
                "name": f"Result {n}",
                "result_number": n,
            }
        )

    assert await sql_store.results.max_value("result_number", scope) == 5
    assert await sql_store.results.delete_many(scope) == 3
    assert await sql_store.results.delete("res-missing") is False


@pytest.mark.asyncio
async def test_result_lifecycle_over_sql(sql_store: SqlEntityStore) -> None:
    project = await projects.ensure_project(store=sql_store, user_id="u", tool_type="gfa")
    scenario = await scenarios.ensure_scenario(
        store=sql_store, user_id="u", project_id=project.id, module_type="gfa"
    )

    handles = [
        await results.create_result(store=sql_store, user_id="u", scenario_id=scenario.id)
        for _ in range(3)
    ]
    assert [h.result_number for h in handles] == [1, 2, 3]

    await results.delete_result(store=sql_store, user_id="u", result_id=handles[1].id)
    fresh = await results.create_result(store=sql_store, user_id="u", scenario_id=scenario.id)
    assert (fresh.result_number, fresh.name) == (4, "Result 2")

    listed = await results.list_results(store=sql_store, user_id="u", scenario_id=scenario.id)
    assert [r.result_number for r in listed] == [4, 3, 1]

    await results.delete_result(store=sql_store, user_id="u", result_id=fresh.id)
    after_latest = await results.create_result(
        store=sql_store, user_id="u", scenario_id=scenario.id
    )
    assert after_latest.result_number == 5

    reloaded = await scenarios.get_scenario(store=sql_store, user_id="u", scenario_id=scenario.id)
    assert reloaded.status == ScenarioStatus.completed


@pytest.mark.asyncio
async def test_ensure_over_sql_is_idempotent(sql_store: SqlEntityStore) -> None:
    first = await projects.ensure_project(store=sql_store, user_id="u", tool_type="network")
    second = await projects.ensure_project(store=sql_store, user_id="u", tool_type="network")

    assert first.id == second.id
    assert first.name == "Network 1"
