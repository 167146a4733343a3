"""Nexus: wikilink graph engine for a title-addressed note store."""

from nexus.engine import CascadeReport, LinkEngine, UpdateResult
from nexus.errors import Conflict, NexusError, NotFound, StorageError
from nexus.graph import build_graph, local_graph
from nexus.note import GraphEdge, GraphNode, GraphView, Link, Note
from nexus.parser import Reference, extract_targets, parse_references
from nexus.store import DuckDBStore, MemoryStore

__all__ = [
    "Note",
    "Link",
    "Reference",
    "GraphNode",
    "GraphEdge",
    "GraphView",
    "LinkEngine",
    "CascadeReport",
    "UpdateResult",
    "parse_references",
    "extract_targets",
    "build_graph",
    "local_graph",
    "MemoryStore",
    "DuckDBStore",
    "NexusError",
    "NotFound",
    "Conflict",
    "StorageError",
]
