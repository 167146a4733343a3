"""Core Note, Link, and graph-view dataclasses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Note:
    """A single note, addressed by its title."""

    title: str
    content: str = ""
    tags: list[str] = field(default_factory=list)
    #: Optional placement used by linear (prev/next) navigation
    section: str | None = None
    order: int | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "content": self.content,
            "tags": self.tags,
            "section": self.section,
            "order": self.order,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True)
class Link:
    """Directed edge: *source_title*'s content references *target_title*."""

    source_title: str
    target_title: str

    def to_dict(self) -> dict[str, str]:
        return {"source_title": self.source_title, "target_title": self.target_title}


@dataclass
class GraphNode:
    id: str
    title: str
    connections: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "connections": self.connections}


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str

    def to_dict(self) -> dict[str, str]:
        return {"source": self.source, "target": self.target}


@dataclass
class GraphView:
    """Node/edge view derived from note content (never persisted)."""

    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)

    def node(self, title: str) -> GraphNode | None:
        for n in self.nodes:
            if n.id == title:
                return n
        return None

    def neighbours(self, title: str) -> set[str]:
        """Titles directly connected to *title* (either direction)."""
        result: set[str] = set()
        for edge in self.edges:
            if edge.source == title:
                result.add(edge.target)
            elif edge.target == title:
                result.add(edge.source)
        return result

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
        }
