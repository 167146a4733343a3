"""LinkDB: SQL view over a snapshot of notes and the link table.

Loads the engine's notes and link rows into an in-memory DuckDB database
and returns :mod:`polars` DataFrames, so the link index can be queried
ad hoc without touching the live store.

Usage::

    with LinkDB(engine) as db:
        db.query("SELECT target_title, COUNT(*) FROM links GROUP BY 1")
        db.dangling_links()   # references to notes that do not exist yet
        db.orphans()          # notes nothing links to and that link nowhere
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import duckdb
import polars as pl

if TYPE_CHECKING:
    from nexus.engine import LinkEngine


class LinkDB:
    """In-memory DuckDB database over a snapshot of notes and links."""

    def __init__(self, engine: "LinkEngine") -> None:
        self.conn: duckdb.DuckDBPyConnection = duckdb.connect(":memory:")
        self.refresh(engine)

    # ------------------------------------------------------------------
    # Build / refresh
    # ------------------------------------------------------------------

    def refresh(self, engine: "LinkEngine") -> None:
        """(Re-)load the snapshot from *engine*."""
        self._engine = engine
        self._create_schema()
        self._load()

    def _create_schema(self) -> None:
        self.conn.execute("""
            CREATE OR REPLACE TABLE notes (
                title       VARCHAR PRIMARY KEY,
                content     TEXT,
                tags        VARCHAR[],
                section     VARCHAR,
                "order"     INTEGER,
                created_at  TIMESTAMP,
                updated_at  TIMESTAMP
            )
        """)
        self.conn.execute("""
            CREATE OR REPLACE TABLE links (
                source_title VARCHAR,
                target_title VARCHAR
            )
        """)

    def _load(self) -> None:
        note_rows = [
            (
                n.title,
                n.content,
                n.tags,
                n.section,
                n.order,
                n.created_at.replace(tzinfo=None),
                n.updated_at.replace(tzinfo=None),
            )
            for n in self._engine.notes.list_all()
        ]
        if note_rows:
            self.conn.executemany("INSERT INTO notes VALUES (?,?,?,?,?,?,?)", note_rows)
        link_rows = [(l.source_title, l.target_title) for l in self._engine.links.list_all_links()]
        if link_rows:
            self.conn.executemany("INSERT INTO links VALUES (?,?)", link_rows)

    # ------------------------------------------------------------------
    # Query
    # ------------------------------------------------------------------

    def query(self, sql: str) -> pl.DataFrame:
        """Run a raw SQL query and return a Polars DataFrame."""
        return self.conn.execute(sql).pl()

    def table_view(
        self,
        *,
        filter_tag: str | None = None,
        search: str | None = None,
        section: str | None = None,
        columns: list[str] | None = None,
        order_by: str = "title",
    ) -> pl.DataFrame:
        """Return notes as a Polars DataFrame, optionally filtered.

        Parameters
        ----------
        filter_tag:
            Only include notes that have this tag.
        search:
            Case-insensitive substring filter on title or content.
        section:
            Only include notes in this section.
        columns:
            Which columns to include.  Defaults to ``title, tags, section``.
        order_by:
            Column name to sort by.
        """
        cols = ", ".join(columns) if columns else "title, tags, section"
        where_clauses: list[str] = []
        params: list[str] = []

        if filter_tag:
            where_clauses.append("list_contains(tags, ?)")
            params.append(filter_tag)
        if search:
            where_clauses.append("(title ILIKE ? OR content ILIKE ?)")
            params.extend([f"%{search}%", f"%{search}%"])
        if section:
            where_clauses.append("section = ?")
            params.append(section)

        where = f"WHERE {' AND '.join(where_clauses)}" if where_clauses else ""
        safe_order = order_by.replace(";", "").replace("'", "")
        sql = f"SELECT {cols} FROM notes {where} ORDER BY {safe_order}"
        return self.conn.execute(sql, params).pl()

    def link_table(self) -> pl.DataFrame:
        """Every link row, flagged with whether its target exists."""
        return self.conn.execute("""
            SELECT l.source_title, l.target_title, n.title IS NOT NULL AS resolved
            FROM links l
            LEFT JOIN notes n ON n.title = l.target_title
            ORDER BY l.source_title, l.target_title
        """).pl()

    def dangling_links(self) -> pl.DataFrame:
        """Link rows whose target is not an existing note."""
        return self.conn.execute("""
            SELECT l.source_title, l.target_title
            FROM links l
            ANTI JOIN notes n ON n.title = l.target_title
            ORDER BY l.target_title, l.source_title
        """).pl()

    def orphans(self) -> pl.DataFrame:
        """Notes with no resolved incoming or outgoing links."""
        return self.conn.execute("""
            SELECT title FROM notes
            WHERE title NOT IN (
                SELECT source_title FROM links WHERE target_title IN (SELECT title FROM notes)
            )
            AND title NOT IN (SELECT target_title FROM links)
            ORDER BY title
        """).pl()

    def link_counts(self) -> pl.DataFrame:
        """Outgoing and incoming link counts per note."""
        return self.conn.execute("""
            SELECT
                n.title,
                (SELECT COUNT(*) FROM links l WHERE l.source_title = n.title) AS outgoing,
                (SELECT COUNT(*) FROM links l WHERE l.target_title = n.title) AS incoming
            FROM notes n
            ORDER BY incoming DESC, n.title
        """).pl()

    def tag_counts(self) -> pl.DataFrame:
        """Return a tag → count table sorted by frequency."""
        return self.conn.execute(
            """
            SELECT tag, COUNT(*) AS note_count
            FROM (SELECT unnest(tags) AS tag FROM notes)
            GROUP BY tag
            ORDER BY note_count DESC, tag
            """
        ).pl()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "LinkDB":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
