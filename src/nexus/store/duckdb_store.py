"""DuckDB-backed note and link store.

Both tables live on one DuckDB connection, so ``atomic()`` can wrap note
and link writes in a single ``BEGIN`` / ``COMMIT``. Nested ``atomic()``
blocks join the outermost transaction.

Usage::

    with DuckDBStore("nexus.duckdb") as store:
        engine = LinkEngine(store, store)
        engine.create_note("Home", "See [[Projects]].")

Title uniqueness and link-pair uniqueness are enforced here rather than
with table constraints: DuckDB checks unique indexes eagerly inside a
transaction, which rejects some legal delete-then-reinsert sequences.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator

import duckdb

from nexus.errors import Conflict, NotFound, StorageError
from nexus.note import Link, Note, utcnow

logger = logging.getLogger(__name__)

_UPDATABLE = {"tags": "tags", "section": "section", "order": '"order"'}
_NOTE_COLUMNS = 'title, content, tags, section, "order", created_at, updated_at'


def _to_db(ts: datetime) -> datetime:
    """Store timestamps as naive UTC (plain ``TIMESTAMP`` columns)."""
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc).replace(tzinfo=None)
    return ts


def _from_db(ts: datetime) -> datetime:
    return ts.replace(tzinfo=timezone.utc)


def _row_to_note(row: tuple[Any, ...]) -> Note:
    title, content, tags, section, order, created_at, updated_at = row
    return Note(
        title=title,
        content=content or "",
        tags=list(tags or []),
        section=section,
        order=order,
        created_at=_from_db(created_at),
        updated_at=_from_db(updated_at),
    )


class DuckDBStore:
    """Implements both :class:`NoteStore` and :class:`LinkStore` on DuckDB."""

    def __init__(self, db_path: Path | str = ":memory:") -> None:
        self._db_path = str(db_path)
        try:
            self.conn: duckdb.DuckDBPyConnection = duckdb.connect(self._db_path)
        except duckdb.Error as exc:
            raise StorageError(f"Cannot open database {self._db_path}: {exc}") from exc
        self._depth = 0
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_schema(self) -> None:
        self._execute("CREATE SEQUENCE IF NOT EXISTS note_seq START 1")
        self._execute("""
            CREATE TABLE IF NOT EXISTS notes (
                seq         BIGINT DEFAULT nextval('note_seq'),
                title       VARCHAR NOT NULL,
                content     TEXT    NOT NULL DEFAULT '',
                tags        VARCHAR[],
                section     VARCHAR,
                "order"     INTEGER,
                created_at  TIMESTAMP NOT NULL,
                updated_at  TIMESTAMP NOT NULL
            )
        """)
        self._execute("""
            CREATE TABLE IF NOT EXISTS links (
                source_title VARCHAR NOT NULL,
                target_title VARCHAR NOT NULL
            )
        """)
        self._execute("CREATE INDEX IF NOT EXISTS idx_links_source ON links(source_title)")
        self._execute("CREATE INDEX IF NOT EXISTS idx_links_target ON links(target_title)")

    def _execute(self, sql: str, params: list[Any] | None = None) -> duckdb.DuckDBPyConnection:
        try:
            if params is None:
                return self.conn.execute(sql)
            return self.conn.execute(sql, params)
        except duckdb.Error as exc:
            raise StorageError(str(exc)) from exc

    def _exists(self, title: str) -> bool:
        row = self._execute("SELECT 1 FROM notes WHERE title = ? LIMIT 1", [title]).fetchone()
        return row is not None

    def _require(self, title: str) -> None:
        if not self._exists(title):
            raise NotFound(title)

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

        self._execute("BEGIN TRANSACTION")
        self._depth = 1
        try:
            yield
        except BaseException:
            self._depth = 0
            try:
                self.conn.execute("ROLLBACK")
            except duckdb.Error:
                logger.exception("Rollback failed on %s", self._db_path)
            raise
        self._depth = 0
        self._execute("COMMIT")

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def get_by_title(self, title: str) -> Note | None:
        row = self._execute(f"SELECT {_NOTE_COLUMNS} FROM notes WHERE title = ?", [title]).fetchone()
        return _row_to_note(row) if row is not None else None

    def insert(self, note: Note) -> Note:
        with self.atomic():
            if self._exists(note.title):
                raise Conflict(note.title)
            self._execute(
                f"INSERT INTO notes ({_NOTE_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                [
                    note.title,
                    note.content,
                    list(note.tags),
                    note.section,
                    note.order,
                    _to_db(note.created_at),
                    _to_db(note.updated_at),
                ],
            )
        return note

    def update_content(self, title: str, content: str) -> None:
        self._require(title)
        self._execute(
            "UPDATE notes SET content = ?, updated_at = ? WHERE title = ?",
            [content, _to_db(utcnow()), title],
        )

    def update_title(self, old_title: str, new_title: str) -> None:
        with self.atomic():
            self._require(old_title)
            if new_title != old_title and self._exists(new_title):
                raise Conflict(new_title)
            self._execute(
                "UPDATE notes SET title = ?, updated_at = ? WHERE title = ?",
                [new_title, _to_db(utcnow()), old_title],
            )

    def update_fields(self, title: str, **fields: Any) -> None:
        unknown = set(fields) - set(_UPDATABLE)
        if unknown:
            raise ValueError(f"Cannot update field(s): {', '.join(sorted(unknown))}")
        if not fields:
            return
        self._require(title)
        assignments = ", ".join(f"{_UPDATABLE[k]} = ?" for k in fields)
        params = [list(v) if k == "tags" else v for k, v in fields.items()]
        self._execute(
            f"UPDATE notes SET {assignments}, updated_at = ? WHERE title = ?",
            params + [_to_db(utcnow()), title],
        )

    def delete(self, title: str) -> None:
        self._require(title)
        self._execute("DELETE FROM notes WHERE title = ?", [title])

    def list_all(self) -> list[Note]:
        rows = self._execute(f"SELECT {_NOTE_COLUMNS} FROM notes ORDER BY seq").fetchall()
        return [_row_to_note(r) for r in rows]

    # ------------------------------------------------------------------
    # Links
    # ------------------------------------------------------------------

    def delete_by_source(self, title: str) -> None:
        self._execute("DELETE FROM links WHERE source_title = ?", [title])

    def insert_many(self, rows: Iterable[Link]) -> None:
        params = [
            [r.source_title, r.target_title, r.source_title, r.target_title]
            for r in dict.fromkeys(rows)
        ]
        if not params:
            return
        try:
            self.conn.executemany(
                """
                INSERT INTO links (source_title, target_title)
                SELECT ?, ?
                WHERE NOT EXISTS (
                    SELECT 1 FROM links WHERE source_title = ? AND target_title = ?
                )
                """,
                params,
            )
        except duckdb.Error as exc:
            raise StorageError(str(exc)) from exc

    def find_by_source(self, title: str) -> list[str]:
        rows = self._execute(
            "SELECT target_title FROM links WHERE source_title = ? ORDER BY rowid", [title]
        ).fetchall()
        return [r[0] for r in rows]

    def find_by_target(self, title: str) -> list[str]:
        rows = self._execute(
            "SELECT source_title FROM links WHERE target_title = ? ORDER BY rowid", [title]
        ).fetchall()
        return [r[0] for r in rows]

    def rename_source(self, old_title: str, new_title: str) -> None:
        with self.atomic():
            # Drop rows that would duplicate an existing (new_title, target) pair
            self._execute(
                """
                DELETE FROM links
                WHERE source_title = ?
                  AND target_title IN (SELECT target_title FROM links WHERE source_title = ?)
                """,
                [old_title, new_title],
            )
            self._execute(
                "UPDATE links SET source_title = ? WHERE source_title = ?", [new_title, old_title]
            )

    def rename_target(self, old_title: str, new_title: str) -> None:
        with self.atomic():
            self._execute(
                """
                DELETE FROM links
                WHERE target_title = ?
                  AND source_title IN (SELECT source_title FROM links WHERE target_title = ?)
                """,
                [old_title, new_title],
            )
            self._execute(
                "UPDATE links SET target_title = ? WHERE target_title = ?", [new_title, old_title]
            )

    def delete_by_target(self, title: str) -> None:
        self._execute("DELETE FROM links WHERE target_title = ?", [title])

    def list_all_links(self) -> list[Link]:
        rows = self._execute("SELECT source_title, target_title FROM links ORDER BY rowid").fetchall()
        return [Link(s, t) for s, t in rows]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "DuckDBStore":
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
