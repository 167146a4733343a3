"""Storage backends for notes and links."""

from nexus.store.base import LinkStore, NoteStore
from nexus.store.duckdb_store import DuckDBStore
from nexus.store.memory import MemoryStore

__all__ = ["LinkStore", "NoteStore", "DuckDBStore", "MemoryStore"]
