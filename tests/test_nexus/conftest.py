"""Shared fixtures: every engine test runs against both store backends."""

from __future__ import annotations

from typing import Iterator

import pytest

from nexus.engine import LinkEngine
from nexus.store.duckdb_store import DuckDBStore
from nexus.store.memory import MemoryStore


@pytest.fixture(params=["memory", "duckdb"])
def store(request) -> Iterator[MemoryStore | DuckDBStore]:
    if request.param == "memory":
        yield MemoryStore()
    else:
        db = DuckDBStore(":memory:")
        yield db
        db.close()


@pytest.fixture()
def engine(store) -> LinkEngine:
    return LinkEngine(store, store)


@pytest.fixture()
def scenario(engine: LinkEngine) -> LinkEngine:
    """A -> B, A -> C (aliased), B -> A; C is empty."""
    engine.create_note("A", "See [[B]] and [[C|See C]]")
    engine.create_note("B", "Back to [[A]]")
    engine.create_note("C", "")
    return engine
