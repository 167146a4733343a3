"""Settings loading and engine bootstrap.

Settings come from, in increasing precedence: built-in defaults, the
``[nexus]`` table of a TOML file, ``NEXUS_*`` environment variables, and
keyword overrides::

    # nexus.toml
    [nexus]
    db_path         = "data/nexus.duckdb"
    log_level       = "INFO"
    cascade_content = true
    search_limit    = 20

Environment variables:
    NEXUS_DB_PATH          – DuckDB file, or ``:memory:`` for a throwaway store
    NEXUS_LOG_LEVEL        – logging level name (default: ``WARNING``)
    NEXUS_CASCADE_CONTENT  – ``true``/``false``; rewrite backlinking notes on rename/delete
    NEXUS_SEARCH_LIMIT     – maximum results returned by the search tool (see open_tools)
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from nexus.engine import LinkEngine
from nexus.store.duckdb_store import DuckDBStore
from nexus.store.memory import MemoryStore
from nexus.tools import NexusTools

_ENV_PREFIX = "NEXUS_"
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    db_path: str = ":memory:"
    log_level: str = "WARNING"
    cascade_content: bool = True
    search_limit: int = 20


def _coerce(name: str, value: Any) -> Any:
    if name == "cascade_content":
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValueError(f"Invalid boolean for {name}: {value!r}")
    if name == "search_limit":
        limit = int(value)
        if limit < 1:
            raise ValueError(f"{name} must be positive, got {limit}")
        return limit
    if name == "log_level":
        return str(value).upper()
    return str(value)


def load_settings(path: Path | str | None = None, **overrides: Any) -> Settings:
    """Build :class:`Settings` from *path* (optional TOML), environment and *overrides*."""
    names = {f.name for f in fields(Settings)}
    values: dict[str, Any] = {}

    if path is not None:
        with open(path, "rb") as fh:
            data = tomllib.load(fh)
        table = data.get("nexus", data)
        values.update({k: v for k, v in table.items() if k in names})

    for name in names:
        env = os.getenv(_ENV_PREFIX + name.upper())
        if env is not None:
            values[name] = env

    values.update({k: v for k, v in overrides.items() if v is not None})
    unknown = set(values) - names
    if unknown:
        raise TypeError(f"Unknown setting(s): {', '.join(sorted(unknown))}")

    return replace(Settings(), **{k: _coerce(k, v) for k, v in values.items()})


def configure_logging(level: str | int = "WARNING") -> None:
    """Attach a stderr handler to the ``nexus`` logger hierarchy."""
    logger = logging.getLogger("nexus")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)


def open_engine(settings: Settings | None = None) -> LinkEngine:
    """Return a :class:`LinkEngine` over the store named by *settings*."""
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    if settings.db_path == ":memory:":
        store: DuckDBStore | MemoryStore = MemoryStore()
    else:
        Path(settings.db_path).parent.mkdir(parents=True, exist_ok=True)
        store = DuckDBStore(settings.db_path)
    return LinkEngine(store, store, cascade_content=settings.cascade_content)


def open_tools(settings: Settings | None = None) -> NexusTools:
    """Return :class:`NexusTools` over :func:`open_engine`, capped at ``search_limit``."""
    settings = settings or load_settings()
    return NexusTools(open_engine(settings), search_limit=settings.search_limit)
