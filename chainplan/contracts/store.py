# chainplan/contracts/store.py
"""
Persistence contract for the lifecycle workflows.

The workflows never talk to a database directly. They receive an
``EntityStore`` holding one ``EntityCollection`` per entity kind and rely on:

- exact-match equality scopes (``{"user_id": ..., "tool_type": ...}``)
- unique constraints enforced by the store itself
- ``ConflictError`` being raised, and only raised, for unique-constraint
  violations so callers can branch on it
"""
from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence, TypeVar, runtime_checkable

from chainplan.contracts.entities import Project, Result, Scenario, ScenarioInput

E = TypeVar("E")

Scope = Mapping[str, Any]


class StoreError(Exception):
    """Any store failure that is not a uniqueness violation."""


class ConflictError(StoreError):
    """A write violated a unique constraint (another writer got there first)."""

    def __init__(self, message: str, *, constraint: str | None = None) -> None:
        super().__init__(message)
        self.constraint = constraint


@runtime_checkable
class EntityCollection(Protocol[E]):
    """
    Protocol for one entity collection (projects, scenarios, ...).

    Implementations may keep entities in memory or in a database.
    """

    async def list_names(self, scope: Scope) -> list[str]:
        """Return the ``name`` of every entity matching ``scope``."""
        ...

    async def find_one(
        self,
        scope: Scope,
        *,
        order_by: Sequence[str] = ("created_at",),
        descending: bool = False,
    ) -> E | None:
        """Return the first entity matching ``scope`` under the given ordering."""
        ...

    async def find_many(
        self,
        scope: Scope,
        *,
        order_by: Sequence[str] = ("created_at",),
        descending: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[E]:
        """Return matching entities, ordered and sliced (offset pagination)."""
        ...

    async def get(self, entity_id: str) -> E | None: ...

    async def insert(self, fields: Mapping[str, Any]) -> E:
        """
        Insert a new entity.

        ``id`` and timestamps are filled in when absent.

        Raises:
            ConflictError: a unique constraint was violated
            StoreError: any other failure
        """
        ...

    async def update(
        self,
        entity_id: str,
        fields: Mapping[str, Any],
        *,
        scope: Scope | None = None,
    ) -> E | None:
        """
        Update fields of one entity.

        Returns the updated entity, or None when no entity with ``entity_id``
        (and matching ``scope``, if given) exists.

        Raises:
            ConflictError: a unique constraint was violated
            StoreError: any other failure
        """
        ...

    async def delete(self, entity_id: str) -> bool:
        """Delete one entity. Returns False if it did not exist."""
        ...

    async def delete_many(self, scope: Scope) -> int:
        """Delete every entity matching ``scope``. Returns the count removed."""
        ...

    async def max_value(self, field: str, scope: Scope) -> Any | None:
        """Highest value of ``field`` among matching entities, None if none match."""
        ...


@runtime_checkable
class EntityStore(Protocol):
    """The set of collections the lifecycle services operate on."""

    projects: EntityCollection[Project]
    scenarios: EntityCollection[Scenario]
    scenario_inputs: EntityCollection[ScenarioInput]
    results: EntityCollection[Result]
