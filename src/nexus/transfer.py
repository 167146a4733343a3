"""Markdown import and export.

Import reads ``.md`` files with optional YAML front-matter (``title``,
``tags``, ``section``, ``order``); the title falls back to the filename
stem. Export writes one ``<title>.md`` per note with a front-matter block,
optionally listing each note's backlinks.
"""

from __future__ import annotations

import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import yaml

from nexus.engine import LinkEngine
from nexus.errors import NexusError
from nexus.note import Note
from nexus.parser import parse_frontmatter, parse_tags

logger = logging.getLogger(__name__)


@dataclass
class ImportFailure:
    filename: str
    error: str


@dataclass
class ImportResult:
    imported: list[str] = field(default_factory=list)
    errors: list[ImportFailure] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "imported": len(self.imported),
            "errors": [{"filename": e.filename, "error": e.error} for e in self.errors],
        }


def _tags_from(frontmatter: dict[str, Any], body: str) -> list[str]:
    fm_tags = frontmatter.get("tags") or []
    if isinstance(fm_tags, str):
        fm_tags = [t.strip() for t in fm_tags.split(",") if t.strip()]
    return list(dict.fromkeys([str(t) for t in fm_tags] + parse_tags(body)))


def import_markdown(engine: LinkEngine, files: Iterable[Path | str]) -> ImportResult:
    """Create a note for each markdown file in *files*.

    Files that are not ``.md``, whose title already exists, or that fail to
    read are reported in :attr:`ImportResult.errors`; the rest are imported.
    """
    result = ImportResult()
    for raw in files:
        path = Path(raw)
        if path.suffix.lower() != ".md":
            result.errors.append(ImportFailure(path.name, "Not a markdown file"))
            continue
        try:
            frontmatter, body = parse_frontmatter(path.read_text(encoding="utf-8"))
            if frontmatter and body.startswith("\n"):
                # Blank separator line written by render_markdown_file
                body = body[1:]
            title = str(frontmatter.get("title") or path.stem)
            order = frontmatter.get("order")
            engine.create_note(
                title,
                body,
                tags=_tags_from(frontmatter, body),
                section=frontmatter.get("section"),
                order=int(order) if order is not None else None,
            )
        except (OSError, UnicodeDecodeError, TypeError, ValueError, NexusError) as exc:
            logger.warning("Import of %s failed: %s", path.name, exc)
            result.errors.append(ImportFailure(path.name, str(exc)))
            continue
        result.imported.append(title)
    logger.info("Imported %d note(s), %d error(s)", len(result.imported), len(result.errors))
    return result


def import_directory(engine: LinkEngine, directory: Path | str) -> ImportResult:
    """Import every ``*.md`` file under *directory* (sorted by path)."""
    return import_markdown(engine, sorted(Path(directory).glob("**/*.md")))


def render_markdown_file(note: Note, backlinks: list[str] | None = None) -> str:
    """Return *note* as a markdown document with YAML front-matter."""
    meta: dict[str, Any] = {"title": note.title}
    if note.tags:
        meta["tags"] = list(note.tags)
    if note.section is not None:
        meta["section"] = note.section
    if note.order is not None:
        meta["order"] = note.order
    meta["created_at"] = note.created_at.isoformat()
    meta["updated_at"] = note.updated_at.isoformat()
    if backlinks:
        meta["backlinks"] = list(backlinks)
    header = yaml.safe_dump(meta, sort_keys=False, allow_unicode=True)
    return f"---\n{header}---\n\n{note.content}"


def _filename(title: str) -> str:
    return title.replace("/", "_").replace("\\", "_") + ".md"


def export_markdown(engine: LinkEngine, *, include_backlinks: bool = False) -> dict[str, str]:
    """Return ``{filename: markdown}`` for every note, newest first."""
    files: dict[str, str] = {}
    for note in reversed(engine.list_notes()):
        backlinks = engine.backlinks(note.title) if include_backlinks else None
        files[_filename(note.title)] = render_markdown_file(note, backlinks)
    return files


def export_zip(engine: LinkEngine, path: Path | str, *, include_backlinks: bool = False) -> Path:
    """Write every note into a zip archive at *path*."""
    path = Path(path)
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, text in export_markdown(engine, include_backlinks=include_backlinks).items():
            zf.writestr(name, text)
    return path
