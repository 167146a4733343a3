"""Wikilink reference parser, reference rewriting, and front-matter parsing."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable

import yaml

# [[Target]] or [[Target|Display]]; a target can never contain "]" or "|"
_REFERENCE_RE = re.compile(r"\[\[([^\]|]+)(?:\|([^\]]*))?\]\]")
# Inline #tags (not inside code-spans or URLs)
_TAG_RE = re.compile(r"(?<![`\w/#])#([\w/-]+)")
# YAML front-matter block
_FRONTMATTER_RE = re.compile(r"^---[ \t]*\n(?:(.*?)\n)?---[ \t]*(?:\n|$)", re.DOTALL)


@dataclass(frozen=True)
class Reference:
    """One ``[[target]]`` / ``[[target|display]]`` token found in text."""

    target: str
    display_text: str


def parse_references(text: str) -> list[Reference]:
    """Return every reference in *text*, in order of appearance.

    Duplicates are kept. Targets and display text are trimmed; a reference
    whose target is blank is dropped, and a blank display falls back to the
    target.
    """
    if not text:
        return []
    result: list[Reference] = []
    for m in _REFERENCE_RE.finditer(text):
        target = m.group(1).strip()
        if not target:
            continue
        display = (m.group(2) or "").strip()
        result.append(Reference(target=target, display_text=display or target))
    return result


def extract_targets(text: str) -> list[str]:
    """Return the distinct reference targets in *text* (first-appearance order)."""
    return list(dict.fromkeys(ref.target for ref in parse_references(text)))


def _replace_references(text: str, title: str, replace: Callable[[re.Match[str]], str]) -> str:
    # Scan with the parser's own pattern so only tokens it reads as *title*
    # are touched; "[[[Old]]" targets "[Old", not "Old".
    def _sub(m: re.Match[str]) -> str:
        return replace(m) if m.group(1).strip() == title else m.group(0)

    return _REFERENCE_RE.sub(_sub, text)


def rewrite_references(text: str, old_title: str, new_title: str) -> str:
    """Point every reference to *old_title* at *new_title*, keeping aliases verbatim."""
    if not text:
        return text

    def _renamed(m: re.Match[str]) -> str:
        alias = m.group(2)
        return f"[[{new_title}|{alias}]]" if alias is not None else f"[[{new_title}]]"

    return _replace_references(text, old_title, _renamed)


def unlink_references(text: str, title: str) -> str:
    """Replace every reference to *title* with plain text.

    ``[[title|alias]]`` becomes ``alias``; ``[[title]]`` becomes ``title``.
    """
    if not text:
        return text
    return _replace_references(text, title, lambda m: (m.group(2) or "").strip() or title)


def parse_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Split YAML front-matter from body text.

    Returns ``(metadata_dict, body)``; ``metadata_dict`` is empty when there
    is no front-matter block or it is not a YAML mapping.
    """
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return {}, content
    try:
        meta = yaml.safe_load(match.group(1) or "") or {}
    except yaml.YAMLError:
        meta = {}
    if not isinstance(meta, dict):
        meta = {}
    return meta, content[match.end() :]


def parse_tags(text: str) -> list[str]:
    """Return all ``#tag`` values found in *text* (de-duped, ordered)."""
    return list(dict.fromkeys(m.group(1) for m in _TAG_RE.finditer(text)))
