"""Graph builder: node/edge views derived from note content.

:func:`build_graph` re-parses every note instead of reading the link
table, so the view always matches the current text even when a sync
lagged. :func:`build_graph_chart` renders a view as an Altair
force-directed chart using a :mod:`networkx` spring layout.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable

from nexus.note import GraphEdge, GraphNode, GraphView, Note
from nexus.parser import extract_targets

if TYPE_CHECKING:
    import altair as alt
    import networkx as nx


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


def build_graph(notes: Iterable[Note]) -> GraphView:
    """Build the full graph over *notes*.

    Only references whose target is another existing note become edges.
    ``(a, b)`` and ``(b, a)`` collapse into the first one seen; each kept
    edge adds one connection to both endpoints.
    """
    notes = list(notes)
    titles = {n.title for n in notes}
    connections: dict[str, int] = dict.fromkeys(titles, 0)

    edges: list[GraphEdge] = []
    seen: set[frozenset[str]] = set()
    for note in notes:
        for target in extract_targets(note.content):
            if target == note.title or target not in titles:
                continue
            key = frozenset((note.title, target))
            if key in seen:
                continue
            seen.add(key)
            edges.append(GraphEdge(source=note.title, target=target))
            connections[note.title] += 1
            connections[target] += 1

    nodes: list[GraphNode] = []
    emitted: set[str] = set()
    for note in notes:
        if note.title in emitted:
            continue
        emitted.add(note.title)
        nodes.append(GraphNode(id=note.title, title=note.title, connections=connections[note.title]))
    return GraphView(nodes=nodes, edges=edges)


def local_graph(title: str, notes: Iterable[Note]) -> GraphView:
    """Restrict the full graph to *title* and its direct neighbours."""
    full = build_graph(notes)
    if full.node(title) is None:
        return GraphView()
    members = full.neighbours(title) | {title}
    return GraphView(
        nodes=[n for n in full.nodes if n.id in members],
        edges=[e for e in full.edges if e.source in members and e.target in members],
    )


def to_networkx(view: GraphView) -> "nx.Graph":
    """Return *view* as an undirected :class:`networkx.Graph`."""
    import networkx as nx

    G: nx.Graph = nx.Graph()
    for node in view.nodes:
        G.add_node(node.id, title=node.title, connections=node.connections)
    for edge in view.edges:
        G.add_edge(edge.source, edge.target)
    return G


# ---------------------------------------------------------------------------
# Chart
# ---------------------------------------------------------------------------


def build_graph_chart(
    view: GraphView,
    *,
    highlight: str | None = None,
    width: int = 640,
    height: int = 480,
    seed: int = 42,
) -> "alt.LayerChart":
    """Return an Altair chart of *view*: one circle per note, sized by
    ``connections``, with *highlight* drawn in an accent colour.

    Positions come from ``networkx.spring_layout`` with *seed*, so the same
    view always renders the same way.
    """
    import altair as alt
    import networkx as nx

    G = to_networkx(view)
    pos: dict[str, Any] = nx.spring_layout(G, seed=seed) if len(G) else {}

    node_rows = [
        {
            "title": n.title,
            "x": float(pos[n.id][0]),
            "y": float(pos[n.id][1]),
            "connections": n.connections,
            "highlighted": n.id == highlight,
        }
        for n in view.nodes
    ]
    edge_rows = [
        {
            "x": float(pos[e.source][0]),
            "y": float(pos[e.source][1]),
            "x2": float(pos[e.target][0]),
            "y2": float(pos[e.target][1]),
        }
        for e in view.edges
    ]

    x = alt.X("x:Q", axis=None)
    y = alt.Y("y:Q", axis=None)
    edges = alt.Chart(alt.Data(values=edge_rows)).mark_rule(color="#9CA3AF").encode(
        x=x, y=y, x2="x2:Q", y2="y2:Q"
    )
    notes = alt.Chart(alt.Data(values=node_rows)).encode(x=x, y=y)
    circles = notes.mark_circle().encode(
        size=alt.Size("connections:Q", legend=None),
        color=alt.condition("datum.highlighted", alt.value("#DC2626"), alt.value("#2563EB")),
        tooltip=["title:N", "connections:Q"],
    )
    labels = notes.mark_text(dy=-10, fontSize=10).encode(text="title:N")

    return alt.layer(edges, circles, labels).properties(width=width, height=height)
