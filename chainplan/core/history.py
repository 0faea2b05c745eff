# chainplan/core/history.py
"""Local, best-effort result history keyed by scenario id.

Fallback for when results cannot be persisted in the entity store (offline or
single-session use). Each scenario holds an append-only list; numbers are
count-based and only ever reset by clearing the whole history.

There are no uniqueness checks and no concurrency protection: assume a
single writer per scenario.

File layout: {root}/scenario_results_{scenario_id}.json
"""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from chainplan.contracts.entities import NumberingPolicy
from chainplan.core.naming import next_number
from chainplan.core.utils import utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VersionedResult:
    result_number: int
    timestamp: datetime
    data: Any


class ResultHistory(ABC):

    @abstractmethod
    async def get_results(self, scenario_id: str) -> list[VersionedResult]: ...

    @abstractmethod
    async def _write(self, scenario_id: str, results: list[VersionedResult]) -> None: ...

    @abstractmethod
    async def clear_results(self, scenario_id: str) -> None: ...

    async def add_result(self, scenario_id: str, data: Any) -> int:
        """Append ``data`` and return its result number (count + 1)."""
        existing = await self.get_results(scenario_id)
        number = next_number(
            (r.result_number for r in existing), NumberingPolicy.monotonic
        )
        entry = VersionedResult(result_number=number, timestamp=utc_now(), data=data)
        await self._write(scenario_id, [*existing, entry])
        return number

    async def get_latest(self, scenario_id: str) -> VersionedResult | None:
        results = await self.get_results(scenario_id)
        return results[-1] if results else None


class MemoryResultHistory(ResultHistory):
    def __init__(self) -> None:
        self._results: dict[str, list[VersionedResult]] = {}

    async def get_results(self, scenario_id: str) -> list[VersionedResult]:
        return list(self._results.get(scenario_id, []))

    async def _write(self, scenario_id: str, results: list[VersionedResult]) -> None:
        self._results[scenario_id] = list(results)

    async def clear_results(self, scenario_id: str) -> None:
        self._results.pop(scenario_id, None)


class FileResultHistory(ResultHistory):
    def __init__(self, root: Path | str) -> None:
        self._root = Path(root)

    def _path(self, scenario_id: str) -> Path:
        return self._root / f"scenario_results_{scenario_id}.json"

    async def get_results(self, scenario_id: str) -> list[VersionedResult]:
        path = self._path(scenario_id)
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return [_from_json(item) for item in data.get("results") or []]
        except (OSError, ValueError, KeyError, TypeError, AttributeError):
            # Unreadable history is treated as empty, like a cleared one
            logger.warning("Ignoring unreadable result history %s", path, exc_info=True)
            return []

    async def _write(self, scenario_id: str, results: list[VersionedResult]) -> None:
        path = self._path(scenario_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        doc = {"scenario_id": scenario_id, "results": [_to_json(r) for r in results]}
        path.write_text(json.dumps(doc, indent=2, default=str), encoding="utf-8")

    async def clear_results(self, scenario_id: str) -> None:
        self._path(scenario_id).unlink(missing_ok=True)


def _to_json(r: VersionedResult) -> dict[str, Any]:
    return {
        "result_number": r.result_number,
        "timestamp": r.timestamp.isoformat(),
        "data": r.data,
    }


def _from_json(d: dict[str, Any]) -> VersionedResult:
    return VersionedResult(
        result_number=int(d["result_number"]),
        timestamp=datetime.fromisoformat(d["timestamp"]),
        data=d.get("data"),
    )


def get_result_history(kind: str = "memory", root: Path | str | None = None) -> ResultHistory:
    if kind == "memory":
        return MemoryResultHistory()
    if kind == "file":
        if root is None:
            raise ValueError("file result history requires a root directory")
        return FileResultHistory(root)
    raise ValueError(f"result history store {kind} not supported")
