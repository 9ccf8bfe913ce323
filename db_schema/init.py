# db_schema/init.py
"""Public entrypoint for applying the SQLite schema."""

from __future__ import annotations

import sqlite3
from typing import Iterable, List

from . import core, ledger, reflections
from .registry import EnsureColumnsFn, apply_all


# Order matters:
# - core must come first (sessions/cyclists are referenced by other modules)
# - ledger and reflections reference core.sessions and core.cyclists
DEFAULT_MODULES = (
    core,
    ledger,
    reflections,
)


def apply_schema(
    cur: sqlite3.Cursor,
    *,
    now: str,
    schema_version: str,
    ensure_columns: EnsureColumnsFn,
    modules: Iterable[object] = DEFAULT_MODULES,
) -> List[str]:
    """Apply the schema and migrations; returns the applied module names."""
    return apply_all(
        cur,
        modules=modules,  # type: ignore[arg-type]
        now=now,
        schema_version=schema_version,
        ensure_columns=ensure_columns,
    )
