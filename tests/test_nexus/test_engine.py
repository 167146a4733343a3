"""Unit tests for nexus.engine: link sync and note lifecycle."""

import pytest

from nexus.engine import LinkEngine, clean_title
from nexus.errors import Conflict, NotFound, StorageError
from nexus.note import Link


def link_set(engine: LinkEngine) -> set[tuple[str, str]]:
    return {(l.source_title, l.target_title) for l in engine.links.list_all_links()}


class FailingLinkStore:
    """Delegates to a store but fails one link-table method."""

    def __init__(self, inner, fail_on: str) -> None:
        self._inner = inner
        self.fail_on = fail_on

    def __getattr__(self, name):
        if name == self.fail_on:
            def _fail(*args, **kwargs):
                raise StorageError(f"{name} failed")

            return _fail
        return getattr(self._inner, name)


# ---------------------------------------------------------------------------
# sync_links
# ---------------------------------------------------------------------------


class TestSyncLinks:
    def test_creates_one_row_per_unique_target(self, engine: LinkEngine):
        engine.sync_links("A", "[[B]] [[C|see]] [[B|again]]")
        assert link_set(engine) == {("A", "B"), ("A", "C")}

    def test_idempotent(self, engine: LinkEngine):
        engine.sync_links("A", "[[B]] and [[C]]")
        first = link_set(engine)
        engine.sync_links("A", "[[B]] and [[C]]")
        assert link_set(engine) == first
        assert len(engine.links.list_all_links()) == 2

    def test_replaces_previous_rows(self, engine: LinkEngine):
        engine.sync_links("A", "[[B]] [[C]]")
        engine.sync_links("A", "[[D]]")
        assert link_set(engine) == {("A", "D")}

    def test_empty_content_clears_rows(self, engine: LinkEngine):
        engine.sync_links("A", "[[B]]")
        engine.sync_links("A", "no links any more")
        assert link_set(engine) == set()

    def test_other_sources_untouched(self, engine: LinkEngine):
        engine.sync_links("A", "[[B]]")
        engine.sync_links("X", "[[B]]")
        engine.sync_links("A", "")
        assert link_set(engine) == {("X", "B")}

    def test_dangling_target_preserved(self, engine: LinkEngine):
        engine.create_note("A", "Points at [[Not Yet Written]]")
        assert link_set(engine) == {("A", "Not Yet Written")}
        assert engine.dangling_links() == [Link("A", "Not Yet Written")]

    @pytest.mark.parametrize("step", ["delete_by_source", "insert_many"])
    def test_failed_step_raises_and_keeps_previous_rows(self, store, step: str):
        LinkEngine(store, store).create_note("A", "[[B]] [[C]]")
        failing = LinkEngine(store, FailingLinkStore(store, step))
        with pytest.raises(StorageError, match=f"{step} failed"):
            failing.sync_links("A", "[[D]]")
        assert {(l.source_title, l.target_title) for l in store.list_all_links()} == {("A", "B"), ("A", "C")}


# ---------------------------------------------------------------------------
# create / get / update
# ---------------------------------------------------------------------------


class TestCreateNote:
    def test_create_syncs_links(self, scenario: LinkEngine):
        assert link_set(scenario) == {("A", "B"), ("A", "C"), ("B", "A")}

    def test_duplicate_title_conflicts(self, scenario: LinkEngine):
        with pytest.raises(Conflict):
            scenario.create_note("A", "again")

    def test_title_is_stripped(self, engine: LinkEngine):
        note = engine.create_note("  Padded  ", "")
        assert note.title == "Padded"
        assert engine.get_note("Padded").title == "Padded"

    @pytest.mark.parametrize("bad", ["", "   ", "a|b", "a]]b"])
    def test_invalid_titles_rejected(self, engine: LinkEngine, bad: str):
        with pytest.raises(ValueError):
            engine.create_note(bad, "")

    def test_metadata_round_trips(self, engine: LinkEngine):
        engine.create_note("Doc", "body", tags=["x", "y"], section="Guide", order=3)
        note = engine.get_note("Doc")
        assert note.tags == ["x", "y"]
        assert note.section == "Guide"
        assert note.order == 3
        assert note.created_at.tzinfo is not None

    def test_get_missing_raises(self, engine: LinkEngine):
        with pytest.raises(NotFound):
            engine.get_note("Nope")


class TestUpdateNote:
    def test_content_update_resyncs(self, scenario: LinkEngine):
        result = scenario.update_note("B", content="Now to [[C]]")
        assert result.note.content == "Now to [[C]]"
        assert result.cascade is None
        assert link_set(scenario) == {("A", "B"), ("A", "C"), ("B", "C")}

    def test_metadata_only_leaves_links(self, scenario: LinkEngine):
        before = link_set(scenario)
        result = scenario.update_note("A", tags=["t"], section="S", order=1)
        assert result.note.tags == ["t"]
        assert result.note.section == "S"
        assert result.note.order == 1
        assert link_set(scenario) == before

    def test_section_can_be_cleared(self, engine: LinkEngine):
        engine.create_note("Doc", "", section="Guide", order=2)
        note = engine.update_note("Doc", section=None).note
        assert note.section is None
        assert note.order == 2

    def test_title_change_runs_rename_cascade(self, scenario: LinkEngine):
        result = scenario.update_note("B", new_title="B2", content="Back home to [[A]] and [[C]]")
        assert result.note.title == "B2"
        assert result.cascade is not None and result.cascade.rewritten == ["A"]
        assert scenario.get_note("A").content == "See [[B2]] and [[C|See C]]"
        assert link_set(scenario) == {("A", "B2"), ("A", "C"), ("B2", "A"), ("B2", "C")}

    def test_same_title_is_not_a_rename(self, scenario: LinkEngine):
        result = scenario.update_note("A", new_title="A")
        assert result.cascade is None

    def test_missing_note(self, engine: LinkEngine):
        with pytest.raises(NotFound):
            engine.update_note("ghost", content="x")


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueries:
    def test_outlinks(self, scenario: LinkEngine):
        assert set(scenario.outlinks("A")) == {"B", "C"}

    def test_outlinks_missing_note(self, scenario: LinkEngine):
        with pytest.raises(NotFound):
            scenario.outlinks("Z")

    def test_backlinks(self, scenario: LinkEngine):
        assert scenario.backlinks("A") == ["B"]
        assert scenario.backlinks("C") == ["A"]

    def test_backlinks_of_unwritten_target(self, engine: LinkEngine):
        engine.create_note("A", "[[Later]]")
        engine.create_note("B", "[[Later|soon]]")
        assert sorted(engine.backlinks("Later")) == ["A", "B"]

    def test_list_notes_creation_order(self, scenario: LinkEngine):
        assert [n.title for n in scenario.list_notes()] == ["A", "B", "C"]


class TestReindex:
    def test_heals_missing_rows(self, scenario: LinkEngine):
        # Simulate a crash between delete and insert
        scenario.links.delete_by_source("A")
        assert ("A", "B") not in link_set(scenario)
        assert scenario.reindex() == 3
        assert link_set(scenario) == {("A", "B"), ("A", "C"), ("B", "A")}

    def test_drops_rows_from_missing_sources(self, scenario: LinkEngine):
        scenario.links.insert_many([Link("Gone", "A")])
        scenario.reindex()
        assert ("Gone", "A") not in link_set(scenario)


class TestCleanTitle:
    def test_strips(self):
        assert clean_title("  x ") == "x"

    def test_rejects_pipe(self):
        with pytest.raises(ValueError, match="cannot contain"):
            clean_title("a|b")
