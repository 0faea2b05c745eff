# tests/conftest.py
import pytest

from chainplan.core.memory_store import MemoryEntityStore


@pytest.fixture
def store() -> MemoryEntityStore:
    return MemoryEntityStore()


@pytest.fixture
def user() -> str:
    return "user-1"
