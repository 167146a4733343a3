"""Tool interface for programmatic clients (agents, RPC handlers).

Every tool takes a dict of arguments and returns a JSON-serialisable dict.
:data:`MANIFEST` describes the tools; :meth:`NexusTools.call` dispatches
by name.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from nexus.engine import LinkEngine
from nexus.parser import extract_targets

logger = logging.getLogger(__name__)

_EXCERPT_BEFORE = 50
_EXCERPT_AFTER = 100
_EXCERPT_HEAD = 150


def _title_param(description: str = "The title of the page") -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {"title": {"type": "string", "description": description}},
        "required": ["title"],
    }


MANIFEST: dict[str, Any] = {
    "name": "nexus",
    "tools": [
        {
            "name": "list_pages",
            "description": "List the titles of every page, newest first",
            "inputSchema": {"type": "object", "properties": {}},
        },
        {
            "name": "get_page",
            "description": "Get a page's content with its outlinks and backlinks",
            "inputSchema": _title_param(),
        },
        {
            "name": "search",
            "description": "Search page titles and content (case-insensitive)",
            "inputSchema": {
                "type": "object",
                "properties": {"query": {"type": "string", "description": "Text to look for"}},
                "required": ["query"],
            },
        },
        {
            "name": "get_connections",
            "description": "Get the outlinks, backlinks and local graph for a page",
            "inputSchema": _title_param(),
        },
    ],
}


def make_excerpt(content: str, query: str) -> str:
    """Return the text around the first match of *query* in *content*."""
    index = content.lower().find(query.lower())
    if index < 0:
        return content[:_EXCERPT_HEAD] + ("..." if len(content) > _EXCERPT_HEAD else "")
    start = max(0, index - _EXCERPT_BEFORE)
    end = min(len(content), index + len(query) + _EXCERPT_AFTER)
    return ("..." if start > 0 else "") + content[start:end] + ("..." if end < len(content) else "")


class NexusTools:
    def __init__(self, engine: LinkEngine, *, search_limit: int = 20) -> None:
        self.engine = engine
        self.search_limit = search_limit
        self._handlers: dict[str, Callable[[dict[str, Any]], dict[str, Any]]] = {
            "list_pages": lambda args: self.list_pages(),
            "get_page": lambda args: self.get_page(_require_str(args, "title")),
            "search": lambda args: self.search(_require_str(args, "query")),
            "get_connections": lambda args: self.get_connections(_require_str(args, "title")),
        }

    def call(self, tool: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run *tool* with *arguments*.

        Raises ``ValueError`` for an unknown tool or a missing parameter and
        :class:`~nexus.errors.NotFound` when a page does not exist.
        """
        handler = self._handlers.get(tool)
        if handler is None:
            raise ValueError(f"Unknown tool: {tool}")
        logger.debug("Tool call %s(%r)", tool, arguments)
        return handler(arguments or {})

    def list_pages(self) -> dict[str, Any]:
        notes = self.engine.list_notes()
        return {"pages": [{"title": n.title} for n in reversed(notes)]}

    def get_page(self, title: str) -> dict[str, Any]:
        note = self.engine.get_note(title)
        return {
            "title": note.title,
            "content": note.content,
            "outlinks": extract_targets(note.content),
            "backlinks": self.engine.backlinks(title),
        }

    def search(self, query: str) -> dict[str, Any]:
        query = query.strip()
        needle = query.lower()
        results = []
        for note in self.engine.list_notes():
            if needle in note.title.lower() or needle in note.content.lower():
                results.append({"title": note.title, "excerpt": make_excerpt(note.content, query)})
                if len(results) >= self.search_limit:
                    break
        return {"results": results}

    def get_connections(self, title: str) -> dict[str, Any]:
        note = self.engine.get_note(title)
        return {
            "title": note.title,
            "outlinks": extract_targets(note.content),
            "backlinks": self.engine.backlinks(title),
            "localGraph": self.engine.local_graph(title).to_dict(),
        }


def _require_str(arguments: dict[str, Any], name: str) -> str:
    value = arguments.get(name)
    if not value or not isinstance(value, str):
        raise ValueError(f"Missing required parameter: {name}")
    return value
