# chainplan/db/store.py
"""SQLAlchemy-backed EntityStore.

One ``SqlEntityStore`` wraps one ``AsyncSession`` (one request). Every write
commits immediately so unique-constraint violations surface at the call
site, where they are translated into ``ConflictError``.
"""
from __future__ import annotations

import dataclasses
import logging
import uuid
from typing import Any, Generic, Mapping, Sequence, TypeVar

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chainplan.contracts.entities import Project, Result, Scenario, ScenarioInput
from chainplan.contracts.store import ConflictError, Scope, StoreError
from chainplan.core.utils import utc_now
from chainplan.db.models import ProjectRow, ResultRow, ScenarioInputRow, ScenarioRow

logger = logging.getLogger(__name__)

E = TypeVar("E")


class SqlCollection(Generic[E]):
    def __init__(
        self,
        session: AsyncSession,
        model: type,
        entity_type: type[E],
        *,
        id_prefix: str,
    ) -> None:
        self._session = session
        self._model = model
        self._entity_type = entity_type
        self._id_prefix = id_prefix
        self._fields = [f.name for f in dataclasses.fields(entity_type)]

    def _to_entity(self, row: Any) -> E:
        return self._entity_type(**{name: getattr(row, name) for name in self._fields})

    def _where(self, scope: Scope) -> list[Any]:
        return [getattr(self._model, key) == value for key, value in scope.items()]

    def _columns(self, order_by: Sequence[str], descending: bool) -> list[Any]:
        cols = [getattr(self._model, name) for name in order_by]
        # primary key as final tie-break keeps pagination stable
        cols.append(self._model.id)
        return [c.desc() if descending else c.asc() for c in cols]

    async def _execute(self, stmt: Any) -> Any:
        try:
            return await self._session.execute(stmt)
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StoreError(f"{self._model.__tablename__}: query failed") from e

    async def _commit(self) -> None:
        try:
            await self._session.commit()
        except IntegrityError as e:
            await self._session.rollback()
            raise ConflictError(
                f"{self._model.__tablename__}: unique constraint violated",
                constraint=getattr(getattr(e.orig, "diag", None), "constraint_name", None),
            ) from e
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise StoreError(f"{self._model.__tablename__}: write failed") from e

    async def list_names(self, scope: Scope) -> list[str]:
        res = await self._execute(select(self._model.name).where(*self._where(scope)))
        return list(res.scalars().all())

    async def find_one(
        self,
        scope: Scope,
        *,
        order_by: Sequence[str] = ("created_at",),
        descending: bool = False,
    ) -> E | None:
        rows = await self.find_many(scope, order_by=order_by, descending=descending, limit=1)
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
        stmt = (
            select(self._model)
            .where(*self._where(scope))
            .order_by(*self._columns(order_by, descending))
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        res = await self._execute(stmt)
        return [self._to_entity(row) for row in res.scalars().all()]

    async def get(self, entity_id: str) -> E | None:
        res = await self._execute(select(self._model).where(self._model.id == entity_id))
        row = res.scalars().one_or_none()
        return self._to_entity(row) if row is not None else None

    async def insert(self, fields: Mapping[str, Any]) -> E:
        values = dict(fields)
        values.setdefault("id", f"{self._id_prefix}-{uuid.uuid4().hex}")
        now = utc_now()
        for ts in ("created_at", "updated_at"):
            if ts in self._fields:
                values.setdefault(ts, now)

        row = self._model(**values)
        self._session.add(row)
        await self._commit()
        return self._to_entity(row)

    async def update(
        self,
        entity_id: str,
        fields: Mapping[str, Any],
        *,
        scope: Scope | None = None,
    ) -> E | None:
        res = await self._execute(
            select(self._model).where(
                self._model.id == entity_id, *self._where(scope or {})
            )
        )
        row = res.scalars().one_or_none()
        if row is None:
            return None

        for key, value in fields.items():
            if key not in self._fields:
                raise ValueError(f"Invalid field '{key}' for {self._entity_type.__name__}")
            setattr(row, key, value)
        await self._commit()
        return self._to_entity(row)

    async def delete(self, entity_id: str) -> bool:
        res = await self._execute(delete(self._model).where(self._model.id == entity_id))
        await self._commit()
        return bool(res.rowcount)

    async def delete_many(self, scope: Scope) -> int:
        res = await self._execute(delete(self._model).where(*self._where(scope)))
        await self._commit()
        return res.rowcount or 0

    async def max_value(self, field: str, scope: Scope) -> Any | None:
        res = await self._execute(
            select(func.max(getattr(self._model, field))).where(*self._where(scope))
        )
        return res.scalar_one_or_none()


class SqlEntityStore:
    """EntityStore over a single AsyncSession."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.projects: SqlCollection[Project] = SqlCollection(
            session, ProjectRow, Project, id_prefix="prj"
        )
        self.scenarios: SqlCollection[Scenario] = SqlCollection(
            session, ScenarioRow, Scenario, id_prefix="scn"
        )
        self.scenario_inputs: SqlCollection[ScenarioInput] = SqlCollection(
            session, ScenarioInputRow, ScenarioInput, id_prefix="inp"
        )
        self.results: SqlCollection[Result] = SqlCollection(
            session, ResultRow, Result, id_prefix="res"
        )
