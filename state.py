from __future__ import annotations

"""Process-wide runtime state for the HTTP server.

Holds only the configured DB path and startup bookkeeping. All game data
lives in SQLite (RaceRepo); nothing here is authoritative.
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

_STATE: Dict[str, Any] = {
    "db_path": None,
    "_migrations": {},
}


def set_db_path(db_path: str) -> None:
    s = str(db_path or "").strip()
    if not s:
        raise ValueError("db_path is required")
    _STATE["db_path"] = s


def get_db_path() -> str:
    """Return the configured db_path or raise (no implicit defaults)."""
    db_path: Optional[str] = _STATE.get("db_path")
    if not db_path:
        raise ValueError("db_path is not configured (set RACE_DB_PATH)")
    return str(db_path)


def startup_init_state() -> None:
    """Initialize the DB schema and validate integrity once per db_path."""
    db_path = get_db_path()
    migrations = _STATE["_migrations"]
    if migrations.get("db_initialized") is True and migrations.get("db_initialized_db_path") == db_path:
        return

    from race_repo import RaceRepo

    with RaceRepo(db_path) as repo:
        repo.init_db()
        repo.validate_integrity()

    migrations["db_initialized"] = True
    migrations["db_initialized_db_path"] = db_path
    logger.info("race DB ready: %s", db_path)


def reset_state_for_tests() -> None:
    _STATE["db_path"] = None
    _STATE["_migrations"] = {}
