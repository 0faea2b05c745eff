# chainplan/api/lifecycle.py
"""
Generic entity lifecycle workflows shared by projects, scenarios and results.

- ensure: hand back the one reusable entity for a scope, creating it with an
  auto-name if needed. A lost insert race is recovered by re-reading, never by
  inserting again.
- create: insert a new entity, auto-named or with a caller-chosen name.
- rename: uniqueness-checked rename; a lost update race is reported exactly
  like a pre-checked clash.

Store-level errors never leave this module: ``ConflictError`` becomes
``NameConflict``/``RaceExhausted`` and any other ``StoreError`` becomes
``StoreUnavailable``.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, Mapping, TypeVar

from chainplan.api.exceptions import (
    BadRequest,
    NameConflict,
    NotAuthenticated,
    NotFound,
    RaceExhausted,
    StoreUnavailable,
)
from chainplan.api.schemas import RenameResponse
from chainplan.contracts.entities import ReusePolicy
from chainplan.contracts.store import ConflictError, EntityCollection, Scope, StoreError
from chainplan.core.naming import generate_name_suggestions, next_auto_name

logger = logging.getLogger(__name__)

E = TypeVar("E")
EnumT = TypeVar("EnumT", bound=Enum)


def require_user(user_id: str | None) -> str:
    """Fail fast, before any store call, when there is no owning user."""
    if not user_id:
        raise NotAuthenticated()
    return user_id


def coerce_enum(enum_type: type[EnumT], value: Any) -> EnumT:
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_type)
        raise BadRequest(f"Invalid {enum_type.__name__} '{value}' (expected one of: {allowed})") from None


def check_page(limit: int, offset: int) -> None:
    if limit < 1:
        raise BadRequest("limit must be at least 1")
    if offset < 0:
        raise BadRequest("offset must not be negative")


@contextmanager
def store_guard(action: str, **context: Any) -> Iterator[None]:
    """Translate store failures inside the block into ``StoreUnavailable``."""
    try:
        yield
    except StoreError as e:
        logger.exception("Failed to %s", action, extra=context)
        raise StoreUnavailable(f"Failed to {action}") from e


def name_conflict(kind: str, name: str, where: str = "") -> NameConflict:
    return NameConflict(
        f"A {kind} named '{name}' already exists{where}. Please choose a different name.",
        name=name,
        suggestions=generate_name_suggestions(name),
    )


async def ensure_entity(
    collection: EntityCollection[E],
    *,
    kind: str,
    scope: Scope,
    base: str,
    defaults: Mapping[str, Any],
    policy: ReusePolicy,
    name_scope: Scope | None = None,
) -> E:
    """
    Return the reusable entity for ``scope``, creating one if none exists.

    Args:
        collection: store collection holding the entities
        kind: human label used in logs and errors ("project", "scenario")
        scope: reuse scope; also copied into the new entity
        base: auto-name base ("GFA", "Scenario", ...)
        defaults: remaining field values for a new entity
        policy: which entity to reuse when several exist
        name_scope: scope of the name uniqueness constraint, when wider than
            ``scope`` (projects are unique per user, reused per tool type)

    Raises:
        RaceExhausted: the insert conflicted but no entity is visible in scope
        StoreUnavailable: any other store failure
    """
    order_by, descending = policy.ordering()
    try:
        existing = await collection.find_one(scope, order_by=order_by, descending=descending)
        if existing is not None:
            return existing

        name = next_auto_name(await collection.list_names(name_scope or scope), base)
        try:
            created = await collection.insert({**scope, **defaults, "name": name})
        except ConflictError:
            logger.warning(
                "Concurrent %s creation detected, reusing the winner",
                kind,
                extra={"scope": dict(scope), "entity_name": name},
            )
            winner = await collection.find_one(scope, order_by=order_by, descending=descending)
            if winner is None:
                raise RaceExhausted(
                    f"Could not create {kind} '{name}' because of a concurrent change. Please retry."
                )
            return winner
    except StoreError as e:
        logger.exception("Ensuring %s failed", kind, extra={"scope": dict(scope)})
        raise StoreUnavailable(f"Could not load or create {kind}") from e

    logger.info("Created %s %s (%s)", kind, getattr(created, "id", "?"), name)
    return created


async def create_entity(
    collection: EntityCollection[E],
    *,
    kind: str,
    fields: Mapping[str, Any],
    name: str | None,
    base: str,
    name_scope: Scope,
    where: str = "",
) -> E:
    """
    Insert a new entity regardless of what already exists in its scope.

    With ``name=None`` the entity is auto-named; a race on the auto-name is
    retried once with a fresh name. A caller-supplied name that is taken
    raises ``NameConflict`` straight away.
    """
    if name is not None:
        name = name.strip()
        if not name:
            raise BadRequest(f"{kind.capitalize()} name must not be empty")
        try:
            return await collection.insert({**fields, "name": name})
        except ConflictError as e:
            raise name_conflict(kind, name, where) from e
        except StoreError as e:
            logger.exception("Creating %s failed", kind)
            raise StoreUnavailable(f"Could not create {kind}") from e

    try:
        try:
            return await _insert_auto_named(collection, fields, base=base, name_scope=name_scope)
        except ConflictError:
            logger.warning("Auto-name for new %s was taken concurrently, retrying", kind)
        try:
            return await _insert_auto_named(collection, fields, base=base, name_scope=name_scope)
        except ConflictError as e:
            raise RaceExhausted(
                f"Could not create {kind} because of concurrent changes. Please retry."
            ) from e
    except StoreError as e:
        logger.exception("Creating %s failed", kind)
        raise StoreUnavailable(f"Could not create {kind}") from e


async def _insert_auto_named(
    collection: EntityCollection[E],
    fields: Mapping[str, Any],
    *,
    base: str,
    name_scope: Scope,
) -> E:
    name = next_auto_name(await collection.list_names(name_scope), base)
    return await collection.insert({**fields, "name": name})


async def rename_entity(
    collection: EntityCollection[E],
    entity_id: str,
    new_name: str,
    *,
    kind: str,
    scope: Scope,
    where: str = "",
) -> E:
    """
    Rename one entity within ``scope``.

    The pre-check excludes the entity itself, so renaming to the current name
    succeeds. The store's unique constraint remains the real guard.

    Raises:
        BadRequest: blank name
        NameConflict: the name is taken (pre-check or lost race)
        NotFound: no entity ``entity_id`` in ``scope``
        StoreUnavailable: any other store failure
    """
    name = (new_name or "").strip()
    if not name:
        raise BadRequest(f"{kind.capitalize()} name must not be empty")

    try:
        clashes = await collection.find_many({**scope, "name": name}, limit=2)
        if any(getattr(c, "id") != entity_id for c in clashes):
            raise name_conflict(kind, name, where)
        try:
            updated = await collection.update(entity_id, {"name": name}, scope=scope)
        except ConflictError as e:
            logger.warning("Concurrent rename of %s %s to %r", kind, entity_id, name)
            raise name_conflict(kind, name, where) from e
    except StoreError as e:
        logger.exception("Renaming %s failed", kind, extra={"entity_id": entity_id})
        raise StoreUnavailable(f"Failed to rename {kind}") from e

    if updated is None:
        raise NotFound(f"{kind.capitalize()} not found")
    return updated


async def rename_with_outcome(
    collection: EntityCollection[Any],
    entity_id: str,
    new_name: str,
    *,
    kind: str,
    scope: Scope,
    where: str = "",
) -> RenameResponse:
    """``rename_entity`` reported as ``{success, error?}`` for UI callers."""
    try:
        entity = await rename_entity(
            collection, entity_id, new_name, kind=kind, scope=scope, where=where
        )
    except NameConflict as e:
        return RenameResponse(
            success=False, error=str(e), conflict=True, suggestions=e.suggestions
        )
    except StoreUnavailable:
        return RenameResponse(success=False, error=f"Failed to rename {kind}")
    return RenameResponse(success=True, name=entity.name)
