"""In-memory note and link store.

Holds everything in plain dicts, so it is what tests and throwaway
sessions use. ``atomic()`` snapshots both tables and restores them if the
enclosed block raises.
"""

from __future__ import annotations

import copy
from contextlib import contextmanager
from typing import Any, Iterable, Iterator

from nexus.errors import Conflict, NotFound
from nexus.note import Link, Note, utcnow

_UPDATABLE = {"tags", "section", "order"}


class MemoryStore:
    """Implements both :class:`NoteStore` and :class:`LinkStore`."""

    def __init__(self) -> None:
        self._notes: dict[str, Note] = {}
        self._links: list[Link] = []
        self._depth = 0

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def atomic(self) -> Iterator[None]:
        if self._depth:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        notes = copy.deepcopy(self._notes)
        links = list(self._links)
        self._depth = 1
        try:
            yield
        except BaseException:
            self._notes, self._links = notes, links
            raise
        finally:
            self._depth = 0

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def _require(self, title: str) -> Note:
        note = self._notes.get(title)
        if note is None:
            raise NotFound(title)
        return note

    def get_by_title(self, title: str) -> Note | None:
        note = self._notes.get(title)
        # Callers get a copy so they cannot mutate stored state in place
        return copy.deepcopy(note) if note is not None else None

    def insert(self, note: Note) -> Note:
        if note.title in self._notes:
            raise Conflict(note.title)
        self._notes[note.title] = copy.deepcopy(note)
        return copy.deepcopy(note)

    def update_content(self, title: str, content: str) -> None:
        note = self._require(title)
        note.content = content
        note.updated_at = utcnow()

    def update_title(self, old_title: str, new_title: str) -> None:
        note = self._require(old_title)
        if new_title != old_title and new_title in self._notes:
            raise Conflict(new_title)
        # Rebuild the dict so iteration order (creation order) is kept
        self._notes = {
            (new_title if t == old_title else t): n for t, n in self._notes.items()
        }
        note.title = new_title
        note.updated_at = utcnow()

    def update_fields(self, title: str, **fields: Any) -> None:
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        note = self._require(title)
        for key, value in fields.items():
            setattr(note, key, list(value) if key == "tags" else value)
        note.updated_at = utcnow()

    def delete(self, title: str) -> None:
        self._require(title)
        del self._notes[title]

    def list_all(self) -> list[Note]:
        return [copy.deepcopy(n) for n in self._notes.values()]

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def delete_by_source(self, title: str) -> None:
        self._links = [l for l in self._links if l.source_title != title]

    def insert_many(self, rows: Iterable[Link]) -> None:
        existing = set(self._links)
        for row in rows:
            if row not in existing:
                existing.add(row)
                self._links.append(row)

    def find_by_source(self, title: str) -> list[str]:
        return [l.target_title for l in self._links if l.source_title == title]

    def find_by_target(self, title: str) -> list[str]:
        return [l.source_title for l in self._links if l.target_title == title]

    def _relabel(self, rows: list[Link]) -> None:
        # Renames can collapse two rows into one ordered pair
        self._links = list(dict.fromkeys(rows))

    def rename_source(self, old_title: str, new_title: str) -> None:
        self._relabel(
            [Link(new_title, l.target_title) if l.source_title == old_title else l for l in self._links]
        )

    def rename_target(self, old_title: str, new_title: str) -> None:
        self._relabel(
            [Link(l.source_title, new_title) if l.target_title == old_title else l for l in self._links]
        )

    def delete_by_target(self, title: str) -> None:
        self._links = [l for l in self._links if l.target_title != title]

    def list_all_links(self) -> list[Link]:
        return list(self._links)
