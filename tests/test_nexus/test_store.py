"""Contract tests shared by MemoryStore and DuckDBStore."""

from __future__ import annotations

from pathlib import Path

import pytest

from nexus.errors import Conflict, NotFound, StorageError
from nexus.note import Link, Note
from nexus.store import DuckDBStore, LinkStore, MemoryStore, NoteStore


class TestProtocols:
    def test_backends_satisfy_protocols(self, store):
        assert isinstance(store, NoteStore)
        assert isinstance(store, LinkStore)


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


class TestNoteStore:
    def test_insert_and_get(self, store):
        store.insert(Note("A", "body", tags=["t"]))
        note = store.get_by_title("A")
        assert note is not None
        assert (note.title, note.content, note.tags) == ("A", "body", ["t"])

    def test_get_missing_is_none(self, store):
        assert store.get_by_title("nope") is None

    def test_insert_conflict(self, store):
        store.insert(Note("A"))
        with pytest.raises(Conflict):
            store.insert(Note("A"))

    def test_update_content_bumps_updated_at(self, store):
        created = store.insert(Note("A", "old"))
        store.update_content("A", "new")
        note = store.get_by_title("A")
        assert note.content == "new"
        assert note.updated_at >= created.updated_at

    def test_update_title(self, store):
        store.insert(Note("A", "x"))
        store.update_title("A", "B")
        assert store.get_by_title("A") is None
        assert store.get_by_title("B").content == "x"

    def test_update_title_conflict(self, store):
        store.insert(Note("A"))
        store.insert(Note("B"))
        with pytest.raises(Conflict):
            store.update_title("A", "B")
        assert store.get_by_title("A") is not None

    def test_update_fields(self, store):
        store.insert(Note("A"))
        store.update_fields("A", tags=["x"], section="S", order=4)
        note = store.get_by_title("A")
        assert (note.tags, note.section, note.order) == (["x"], "S", 4)

    def test_update_fields_rejects_unknown(self, store):
        store.insert(Note("A"))
        with pytest.raises(ValueError):
            store.update_fields("A", content="sneaky")

    @pytest.mark.parametrize("op", ["update_content", "delete", "update_title"])
    def test_missing_title_raises(self, store, op):
        args = {"update_content": ("ghost", "x"), "delete": ("ghost",), "update_title": ("ghost", "g2")}[op]
        with pytest.raises(NotFound):
            getattr(store, op)(*args)

    def test_list_all_in_creation_order(self, store):
        for title in ("c", "a", "b"):
            store.insert(Note(title))
        store.update_title("a", "z")
        assert [n.title for n in store.list_all()] == ["c", "z", "b"]

    def test_returned_notes_are_detached(self, store):
        store.insert(Note("A", "x", tags=["t"]))
        note = store.get_by_title("A")
        note.tags.append("mutated")
        assert store.get_by_title("A").tags == ["t"]


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------


class TestLinkStore:
    def test_insert_and_find(self, store):
        store.insert_many([Link("A", "B"), Link("A", "C"), Link("D", "B")])
        assert sorted(store.find_by_source("A")) == ["B", "C"]
        assert sorted(store.find_by_target("B")) == ["A", "D"]

    def test_pairs_are_unique(self, store):
        store.insert_many([Link("A", "B"), Link("A", "B")])
        store.insert_many([Link("A", "B")])
        assert store.list_all_links() == [Link("A", "B")]

    def test_delete_by_source_and_target(self, store):
        store.insert_many([Link("A", "B"), Link("A", "C"), Link("D", "B")])
        store.delete_by_source("A")
        assert store.list_all_links() == [Link("D", "B")]
        store.delete_by_target("B")
        assert store.list_all_links() == []

    def test_rename_source_and_target(self, store):
        store.insert_many([Link("A", "B"), Link("B", "A"), Link("C", "A")])
        store.rename_source("A", "A2")
        store.rename_target("A", "A2")
        assert set(store.list_all_links()) == {Link("A2", "B"), Link("B", "A2"), Link("C", "A2")}

    def test_rename_merges_duplicate_pairs(self, store):
        store.insert_many([Link("X", "old"), Link("X", "new")])
        store.rename_target("old", "new")
        assert store.list_all_links() == [Link("X", "new")]


# ---------------------------------------------------------------------------
# atomic()
# ---------------------------------------------------------------------------


class TestAtomic:
    def test_rollback_on_error(self, store):
        store.insert(Note("A", "before"))
        store.insert_many([Link("A", "B")])
        with pytest.raises(RuntimeError):
            with store.atomic():
                store.update_content("A", "after")
                store.delete_by_source("A")
                raise RuntimeError("boom")
        assert store.get_by_title("A").content == "before"
        assert store.list_all_links() == [Link("A", "B")]

    def test_nested_blocks_join_outer(self, store):
        store.insert(Note("A", "before"))
        with pytest.raises(RuntimeError):
            with store.atomic():
                with store.atomic():
                    store.update_content("A", "inner")
                raise RuntimeError("outer fails")
        assert store.get_by_title("A").content == "before"

    def test_commit(self, store):
        store.insert(Note("A", "before"))
        with store.atomic():
            store.update_content("A", "after")
        assert store.get_by_title("A").content == "after"


# ---------------------------------------------------------------------------
# Backend specifics
# ---------------------------------------------------------------------------


class TestDuckDBStore:
    def test_persists_across_connections(self, tmp_path: Path):
        path = tmp_path / "nexus.duckdb"
        with DuckDBStore(path) as db:
            db.insert(Note("A", "[[B]]", tags=["t"], section="S", order=1))
            db.insert_many([Link("A", "B")])
        with DuckDBStore(path) as db:
            note = db.get_by_title("A")
            assert (note.content, note.tags, note.section, note.order) == ("[[B]]", ["t"], "S", 1)
            assert note.created_at.tzinfo is not None
            assert db.list_all_links() == [Link("A", "B")]

    def test_backend_errors_become_storage_errors(self):
        db = DuckDBStore()
        db.close()
        with pytest.raises(StorageError):
            db.get_by_title("A")

    def test_order_column_is_quoted(self):
        with DuckDBStore() as db:
            db.insert(Note("A", order=7))
            db.update_fields("A", order=8)
            assert db.get_by_title("A").order == 8


class TestMemoryStore:
    def test_rename_keeps_position(self):
        store = MemoryStore()
        store.insert(Note("a"))
        store.insert(Note("b"))
        store.update_title("a", "a2")
        assert [n.title for n in store.list_all()] == ["a2", "b"]
