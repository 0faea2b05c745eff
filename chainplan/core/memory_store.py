# chainplan/core/memory_store.py
"""In-process EntityStore.

Enforces the same unique constraints as the SQL schema, so race handling can
be exercised without a database. Every operation yields to the event loop
once before touching state, which lets concurrent coroutines interleave the
way two HTTP requests would.
"""
from __future__ import annotations

import asyncio
import copy
import dataclasses
import itertools
import uuid
from typing import Any, Generic, Mapping, Sequence, TypeVar

from chainplan.contracts.entities import Project, Result, Scenario, ScenarioInput
from chainplan.contracts.store import ConflictError, Scope
from chainplan.core.utils import utc_now

E = TypeVar("E")


class MemoryCollection(Generic[E]):
    def __init__(
        self,
        entity_type: type[E],
        *,
        id_prefix: str,
        unique: Sequence[tuple[str, ...]] = (),
        latency: float = 0.0,
    ) -> None:
        self._entity_type = entity_type
        self._id_prefix = id_prefix
        self._unique = tuple(unique)
        self._latency = latency
        self._fields = {f.name for f in dataclasses.fields(entity_type)}
        self._rows: dict[str, E] = {}
        # insertion sequence, used as a stable tie-break when ordering
        self._seq: dict[str, int] = {}
        self._counter = itertools.count()

    async def _io(self) -> None:
        await asyncio.sleep(self._latency)

    def _matches(self, row: E, scope: Scope) -> bool:
        return all(getattr(row, k) == v for k, v in scope.items())

    def _check_scope(self, scope: Scope) -> None:
        unknown = set(scope) - self._fields
        if unknown:
            raise ValueError(
                f"Unknown field(s) {sorted(unknown)} for {self._entity_type.__name__}"
            )

    def _check_unique(self, candidate: E, exclude_id: str | None = None) -> None:
        for columns in self._unique:
            key = tuple(getattr(candidate, c) for c in columns)
            for row_id, row in self._rows.items():
                if row_id == exclude_id:
                    continue
                if tuple(getattr(row, c) for c in columns) == key:
                    raise ConflictError(
                        f"duplicate key value for ({', '.join(columns)})",
                        constraint=f"uq_{self._id_prefix}_{'_'.join(columns)}",
                    )

    def _select(
        self,
        scope: Scope,
        order_by: Sequence[str],
        descending: bool,
    ) -> list[E]:
        self._check_scope(scope)
        rows = [(row_id, r) for row_id, r in self._rows.items() if self._matches(r, scope)]
        rows.sort(
            key=lambda item: (
                tuple(getattr(item[1], f) for f in order_by),
                self._seq[item[0]],
            ),
            reverse=descending,
        )
        return [copy.deepcopy(r) for _, r in rows]

    async def list_names(self, scope: Scope) -> list[str]:
        await self._io()
        return [r.name for r in self._select(scope, ("created_at",), False)]

    async def find_one(
        self,
        scope: Scope,
        *,
        order_by: Sequence[str] = ("created_at",),
        descending: bool = False,
    ) -> E | None:
        await self._io()
        rows = self._select(scope, order_by, descending)
        return rows[0] if rows else None

    async def find_many(
        self,
        scope: Scope,
        *,
        order_by: Sequence[str] = ("created_at",),
        descending: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[E]:
        await self._io()
        rows = self._select(scope, order_by, descending)
        end = None if limit is None else offset + limit
        return rows[offset:end]

    async def get(self, entity_id: str) -> E | None:
        await self._io()
        row = self._rows.get(entity_id)
        return copy.deepcopy(row) if row is not None else None

    async def insert(self, fields: Mapping[str, Any]) -> E:
        await self._io()
        values = dict(fields)
        values.setdefault("id", f"{self._id_prefix}-{uuid.uuid4().hex}")
        now = utc_now()
        for ts in ("created_at", "updated_at"):
            if ts in self._fields:
                values.setdefault(ts, now)

        row = self._entity_type(**values)
        if row.id in self._rows:
            raise ConflictError(f"duplicate primary key {row.id}", constraint="pk")
        self._check_unique(row)

        self._rows[row.id] = row
        self._seq[row.id] = next(self._counter)
        return copy.deepcopy(row)

    async def update(
        self,
        entity_id: str,
        fields: Mapping[str, Any],
        *,
        scope: Scope | None = None,
    ) -> E | None:
        await self._io()
        row = self._rows.get(entity_id)
        if row is None or (scope and not self._matches(row, scope)):
            return None

        patch = dict(fields)
        unknown = set(patch) - self._fields
        if unknown:
            raise ValueError(
                f"Invalid field(s) {sorted(unknown)} for {self._entity_type.__name__}"
            )
        if "updated_at" in self._fields:
            patch.setdefault("updated_at", utc_now())

        updated = dataclasses.replace(row, **patch)
        self._check_unique(updated, exclude_id=entity_id)
        self._rows[entity_id] = updated
        return copy.deepcopy(updated)

    async def delete(self, entity_id: str) -> bool:
        await self._io()
        self._seq.pop(entity_id, None)
        return self._rows.pop(entity_id, None) is not None

    async def delete_many(self, scope: Scope) -> int:
        await self._io()
        self._check_scope(scope)
        doomed = [row_id for row_id, r in self._rows.items() if self._matches(r, scope)]
        for row_id in doomed:
            del self._rows[row_id]
            self._seq.pop(row_id, None)
        return len(doomed)

    async def max_value(self, field: str, scope: Scope) -> Any | None:
        await self._io()
        values = [getattr(r, field) for r in self._select(scope, ("created_at",), False)]
        return max(values, default=None)


class MemoryEntityStore:
    """EntityStore kept in process memory (tests and single-process dev)."""

    def __init__(self, latency: float = 0.0) -> None:
        self.projects: MemoryCollection[Project] = MemoryCollection(
            Project, id_prefix="prj", unique=[("user_id", "name")], latency=latency
        )
        self.scenarios: MemoryCollection[Scenario] = MemoryCollection(
            Scenario,
            id_prefix="scn",
            unique=[("project_id", "module_type", "name")],
            latency=latency,
        )
        self.scenario_inputs: MemoryCollection[ScenarioInput] = MemoryCollection(
            ScenarioInput, id_prefix="inp", unique=[("scenario_id",)], latency=latency
        )
        self.results: MemoryCollection[Result] = MemoryCollection(
            Result,
            id_prefix="res",
            unique=[("scenario_id", "name"), ("scenario_id", "result_number")],
            latency=latency,
        )
