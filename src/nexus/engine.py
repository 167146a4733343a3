"""LinkEngine: keeps the link table consistent with note content.

A note's title is both its identity and the literal text other notes embed
in ``[[...]]`` references, so renaming or deleting a note means rewriting
every note that references it. The engine does that in two phases: patch
the link table (keyed by title), then rewrite each backlinking note's
content and re-sync its links.

Backlinking notes are processed one at a time. A failure on one of them is
logged and recorded in the returned :class:`CascadeReport`; the remaining
notes are still processed and the triggering rename/delete still happens.

Usage::

    store = MemoryStore()
    engine = LinkEngine(store, store)
    engine.create_note("A", "See [[B]] and [[C|See C]].")
    report = engine.rename_note("B", "B2")
"""

from __future__ import annotations

import logging
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from nexus.errors import Conflict, NexusError, NotFound
from nexus.graph import build_graph, local_graph
from nexus.note import GraphView, Link, Note
from nexus.parser import extract_targets, rewrite_references, unlink_references
from nexus.store.base import LinkStore, NoteStore

logger = logging.getLogger(__name__)

# Characters that would break the [[target|display]] syntax
_FORBIDDEN_TITLE_CHARS = ("]", "|")

_UNSET: Any = object()


def clean_title(title: str) -> str:
    """Strip *title* and reject values that cannot appear in a reference."""
    title = (title or "").strip()
    if not title:
        raise ValueError("Title is required")
    bad = [c for c in _FORBIDDEN_TITLE_CHARS if c in title]
    if bad:
        raise ValueError(f"Title cannot contain {' or '.join(repr(c) for c in bad)}: {title!r}")
    return title


@dataclass
class CascadeReport:
    """Outcome of a rename or delete across the backlinking notes."""

    title: str
    new_title: str | None = None
    #: Backlinking notes whose content was rewritten
    rewritten: list[str] = field(default_factory=list)
    #: Backlinking note title -> error message
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "new_title": self.new_title,
            "rewritten": list(self.rewritten),
            "failures": dict(self.failures),
        }


@dataclass
class UpdateResult:
    note: Note
    #: Set when the update renamed the note
    cascade: CascadeReport | None = None


class LinkEngine:
    """Note lifecycle operations over an injected note store and link store."""

    def __init__(self, notes: NoteStore, links: LinkStore, *, cascade_content: bool = True) -> None:
        self.notes = notes
        self.links = links
        #: Default for the cascade_content argument of rename/delete
        self.cascade_content = cascade_content

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        with ExitStack() as stack:
            stack.enter_context(self.notes.atomic())
            if self.links is not self.notes:
                stack.enter_context(self.links.atomic())
            yield

    # ------------------------------------------------------------------
    # Synchronizer
    # ------------------------------------------------------------------

    def sync_links(self, title: str, content: str) -> None:
        """Replace every link row from *title* with the targets in *content*.

        Targets need not exist as notes. Safe to call repeatedly.
        """
        targets = extract_targets(content)
        with self.links.atomic():
            self.links.delete_by_source(title)
            if targets:
                self.links.insert_many(Link(title, t) for t in targets)
        logger.debug("Synced %d link(s) from %r", len(targets), title)

    def reindex(self) -> int:
        """Re-sync every note from its content and drop rows from missing notes.

        Returns the number of notes synced.
        """
        notes = self.notes.list_all()
        titles = {n.title for n in notes}
        for note in notes:
            self.sync_links(note.title, note.content)
        stale = dict.fromkeys(l.source_title for l in self.links.list_all_links() if l.source_title not in titles)
        for source in stale:
            self.links.delete_by_source(source)
        if stale:
            logger.info("Dropped links from %d missing note(s)", len(stale))
        return len(notes)

    # ------------------------------------------------------------------
    # Note lifecycle
    # ------------------------------------------------------------------

    def get_note(self, title: str) -> Note:
        note = self.notes.get_by_title(title)
        if note is None:
            raise NotFound(title)
        return note

    def list_notes(self) -> list[Note]:
        return self.notes.list_all()

    def create_note(
        self,
        title: str,
        content: str = "",
        *,
        tags: list[str] | None = None,
        section: str | None = None,
        order: int | None = None,
    ) -> Note:
        title = clean_title(title)
        if self.notes.get_by_title(title) is not None:
            raise Conflict(title)
        note = self.notes.insert(
            Note(title=title, content=content or "", tags=list(tags or []), section=section, order=order)
        )
        self.sync_links(title, note.content)
        logger.info("Created note %r", title)
        return note

    def update_note(
        self,
        title: str,
        *,
        content: str | None = None,
        tags: list[str] | None = None,
        section: str | None = _UNSET,
        order: int | None = _UNSET,
        new_title: str | None = None,
        cascade_content: bool | None = None,
    ) -> UpdateResult:
        """Update any subset of a note's fields.

        A title change runs :meth:`rename_note` first; the other fields are
        then written under the new title. ``section=None`` / ``order=None``
        clear those fields; leaving them out keeps the stored values.
        """
        title = clean_title(title)
        self.get_note(title)

        cascade: CascadeReport | None = None
        current = title
        if new_title is not None and clean_title(new_title) != title:
            cascade = self.rename_note(title, new_title, cascade_content=cascade_content)
            current = cascade.new_title or title

        fields: dict[str, Any] = {}
        if tags is not None:
            fields["tags"] = list(tags)
        if section is not _UNSET:
            fields["section"] = section
        if order is not _UNSET:
            fields["order"] = order
        if fields:
            self.notes.update_fields(current, **fields)

        if content is not None:
            self.notes.update_content(current, content)
            self.sync_links(current, content)

        return UpdateResult(note=self.get_note(current), cascade=cascade)

    # ------------------------------------------------------------------
    # Identity-change cascades
    # ------------------------------------------------------------------

    def _cascade_one(
        self,
        report: CascadeReport,
        stored_title: str,
        indexed_title: str,
        rewrite: Callable[[str], str],
    ) -> None:
        """Rewrite one backlinking note and re-sync its links.

        *stored_title* is the key the note store holds it under;
        *indexed_title* is the source title its link rows must carry. They
        differ only when a renamed note references itself.
        """
        try:
            with self._atomic():
                note = self.notes.get_by_title(stored_title)
                if note is None:
                    # Leftover rows from a note that no longer exists
                    logger.info("Dropping stale links from missing note %r", indexed_title)
                    self.links.delete_by_source(indexed_title)
                    return
                updated = rewrite(note.content)
                changed = updated != note.content
                if changed:
                    self.notes.update_content(stored_title, updated)
                self.sync_links(indexed_title, updated)
        except NexusError as exc:
            logger.warning(
                "Cascade for %r failed on backlinking note %r: %s",
                report.title,
                indexed_title,
                exc,
            )
            report.failures[indexed_title] = str(exc)
            return
        if changed:
            report.rewritten.append(indexed_title)

    def rename_note(
        self, old_title: str, new_title: str, cascade_content: bool | None = None
    ) -> CascadeReport:
        """Rename a note and point every reference to it at the new title.

        Both titles are stripped the way stored titles are. Raises
        :class:`NotFound` if *old_title* does not exist and
        :class:`Conflict` if *new_title* names a different existing note.
        With ``cascade_content=False`` only the link table and the note's
        own title change; other notes keep their text.
        """
        old_title = clean_title(old_title)
        new_title = clean_title(new_title)
        if cascade_content is None:
            cascade_content = self.cascade_content
        self.get_note(old_title)
        report = CascadeReport(title=old_title, new_title=new_title)
        if new_title == old_title:
            return report
        if self.notes.get_by_title(new_title) is not None:
            raise Conflict(new_title)

        backlinks = list(dict.fromkeys(self.links.find_by_target(old_title)))

        with self.links.atomic():
            self.links.rename_source(old_title, new_title)
            self.links.rename_target(old_title, new_title)

        if cascade_content:
            for source in backlinks:
                self._cascade_one(
                    report,
                    stored_title=source,
                    indexed_title=new_title if source == old_title else source,
                    rewrite=lambda text: rewrite_references(text, old_title, new_title),
                )

        self.notes.update_title(old_title, new_title)
        logger.info(
            "Renamed %r -> %r (%d rewritten, %d failed)",
            old_title,
            new_title,
            len(report.rewritten),
            len(report.failures),
        )
        return report

    def delete_note(self, title: str, cascade_content: bool | None = None) -> CascadeReport:
        """Delete a note, turning references to it into plain text.

        ``[[title|alias]]`` becomes ``alias`` and ``[[title]]`` becomes
        ``title``. Backlinks that fail to rewrite keep their reference (now
        dangling) and are listed in the report; the note is deleted anyway.
        """
        title = clean_title(title)
        self.get_note(title)
        if cascade_content is None:
            cascade_content = self.cascade_content
        report = CascadeReport(title=title)

        if cascade_content:
            for source in dict.fromkeys(self.links.find_by_target(title)):
                if source == title:
                    continue
                self._cascade_one(
                    report,
                    stored_title=source,
                    indexed_title=source,
                    rewrite=lambda text: unlink_references(text, title),
                )

        with self._atomic():
            self.notes.delete(title)
            self.links.delete_by_source(title)
            if cascade_content and report.ok:
                self.links.delete_by_target(title)

        logger.info(
            "Deleted %r (%d rewritten, %d failed)",
            title,
            len(report.rewritten),
            len(report.failures),
        )
        return report

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def outlinks(self, title: str) -> list[str]:
        """Targets *title* references according to the link table."""
        self.get_note(title)
        return self.links.find_by_source(title)

    def backlinks(self, title: str) -> list[str]:
        """Notes referencing *title*; *title* itself need not exist."""
        return list(dict.fromkeys(self.links.find_by_target(title)))

    def dangling_links(self) -> list[Link]:
        """Link rows whose target is not an existing note."""
        titles = {n.title for n in self.notes.list_all()}
        return [l for l in self.links.list_all_links() if l.target_title not in titles]

    def graph(self) -> GraphView:
        return build_graph(self.notes.list_all())

    def local_graph(self, title: str) -> GraphView:
        self.get_note(title)
        return local_graph(title, self.notes.list_all())
