# db_schema/registry.py
"""Applies schema modules in order.

A schema module exposes:
- ddl(*, now, schema_version) -> str   (idempotent CREATE ... IF NOT EXISTS script)
- migrate(cur, *, ensure_columns)      (optional; column back-fills for older DBs)

The applied module names are recorded in meta('schema_modules').
"""

from __future__ import annotations

import logging
import sqlite3
from types import ModuleType
from typing import Callable, Iterable, List, Mapping

logger = logging.getLogger(__name__)

# Same shape as RaceRepo._ensure_table_columns(cur, table, columns)
EnsureColumnsFn = Callable[[sqlite3.Cursor, str, Mapping[str, str]], None]


def _module_name(m: ModuleType) -> str:
    return str(getattr(m, "__name__", m)).rsplit(".", 1)[-1]


def apply_all(
    cur: sqlite3.Cursor,
    *,
    modules: Iterable[ModuleType],
    now: str,
    schema_version: str,
    ensure_columns: EnsureColumnsFn,
) -> List[str]:
    """Run every module's DDL as one script, then each module's migrate().

    Returns the applied module names, in order.
    """
    mods = list(modules)
    for m in mods:
        if not callable(getattr(m, "ddl", None)):
            raise TypeError(f"schema module {_module_name(m)!r} has no ddl()")

    script = "\n\n".join(m.ddl(now=now, schema_version=schema_version) for m in mods)
    cur.executescript(script)

    for m in mods:
        migrate = getattr(m, "migrate", None)
        if callable(migrate):
            migrate(cur, ensure_columns=ensure_columns)

    names = [_module_name(m) for m in mods]
    cur.execute(
        """
        INSERT INTO meta(key, value) VALUES ('schema_modules', ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value;
        """,
        (",".join(names),),
    )
    logger.debug("schema applied (version %s): %s", schema_version, names)
    return names
