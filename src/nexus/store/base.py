"""Storage protocols consumed by the link engine."""

from __future__ import annotations

from contextlib import AbstractContextManager
from typing import Any, Iterable, Protocol, runtime_checkable

from nexus.note import Link, Note


@runtime_checkable
class NoteStore(Protocol):
    """Title-addressed note persistence.

    Implementations raise :class:`~nexus.errors.StorageError` for backend
    failures and :class:`~nexus.errors.NotFound` when a mutating call names
    a title that does not exist.
    """

    def get_by_title(self, title: str) -> Note | None:
        """Return the note called *title*, or ``None``."""
        ...

    def insert(self, note: Note) -> Note:
        """Persist a new note; raises ``Conflict`` if the title is taken."""
        ...

    def update_content(self, title: str, content: str) -> None: ...

    def update_title(self, old_title: str, new_title: str) -> None: ...

    def update_fields(self, title: str, **fields: Any) -> None:
        """Update any of ``tags``, ``section``, ``order``."""
        ...

    def delete(self, title: str) -> None: ...

    def list_all(self) -> list[Note]:
        """Every note, oldest first."""
        ...

    def atomic(self) -> AbstractContextManager[None]:
        """Group the enclosed calls into one unit where the backend allows it."""
        ...


@runtime_checkable
class LinkStore(Protocol):
    """Directed ``(source_title, target_title)`` edge table."""

    def delete_by_source(self, title: str) -> None: ...

    def insert_many(self, rows: Iterable[Link]) -> None: ...

    def find_by_source(self, title: str) -> list[str]:
        """Targets referenced by *title*."""
        ...

    def find_by_target(self, title: str) -> list[str]:
        """Sources referencing *title* (its backlinks)."""
        ...

    def rename_source(self, old_title: str, new_title: str) -> None: ...

    def rename_target(self, old_title: str, new_title: str) -> None: ...

    def delete_by_target(self, title: str) -> None: ...

    def list_all_links(self) -> list[Link]: ...

    def atomic(self) -> AbstractContextManager[None]: ...
