"""Exception hierarchy for the link engine.

Malformed reference syntax is never an error: the parser simply does not
match it.
"""

from __future__ import annotations


class NexusError(Exception):
    """Base class for every error raised by :mod:`nexus`."""


class NotFound(NexusError):
    """No note exists with the requested title."""

    def __init__(self, title: str) -> None:
        super().__init__(f"Note '{title}' not found")
        self.title = title


class Conflict(NexusError):
    """The requested title already identifies a different note."""

    def __init__(self, title: str) -> None:
        super().__init__(f"A note with title '{title}' already exists")
        self.title = title


class StorageError(NexusError):
    """An underlying read or write against a store failed."""
