# db_schema/core.py
"""SQLite SSOT schema: core race tables.

Tables
------
- meta: schema version bookkeeping
- sessions: one game instance (stage pointer, lifecycle status, lock flag,
  multiplier cache, reflection flag)
- teams: one row per faction per session (synergy + cumulative points)
- cyclists: home-team riders (stamina + cumulative points)

This module contains *only* DDL and schema migrations.
It must not import RaceRepo (to avoid circular imports).
"""

from __future__ import annotations

import sqlite3
from typing import Callable, Mapping


# Signature compatible with RaceRepo._ensure_table_columns(cur, table, columns)
EnsureColumnsFn = Callable[[sqlite3.Cursor, str, Mapping[str, str]], None]


def ddl(*, now: str, schema_version: str) -> str:
    """Return DDL SQL for core tables (as a single executescript string)."""
    return f"""
                CREATE TABLE IF NOT EXISTS meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );

                INSERT INTO meta(key, value) VALUES ('schema_version', '{schema_version}')
                ON CONFLICT(key) DO UPDATE SET value=excluded.value;
                INSERT OR IGNORE INTO meta(key, value) VALUES ('created_at', '{now}');

                CREATE TABLE IF NOT EXISTS sessions (
                    session_id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    trainer_id TEXT NOT NULL,
                    cyclists_count INTEGER NOT NULL DEFAULT 4 CHECK (cyclists_count >= 1 AND cyclists_count <= 4),
                    current_stage INTEGER NOT NULL DEFAULT 1 CHECK (current_stage >= 1 AND current_stage <= 10),
                    status TEXT NOT NULL DEFAULT 'not_started'
                        CHECK (status IN ('not_started', 'active', 'reflection', 'ended')),
                    stage_locked INTEGER NOT NULL DEFAULT 1,
                    multiplier_active INTEGER NOT NULL DEFAULT 0,
                    current_multiplier REAL NOT NULL DEFAULT 1.0,
                    reflection_active INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS teams (
                    team_id TEXT PRIMARY KEY,
                    session_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    type TEXT NOT NULL CHECK (type IN ('rubicon', 'solaris', 'corex', 'vortex')),
                    synergy_score INTEGER NOT NULL DEFAULT 100 CHECK (synergy_score >= 0 AND synergy_score <= 100),
                    total_points INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (session_id, type),
                    FOREIGN KEY(session_id) REFERENCES sessions(session_id) ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_teams_session ON teams(session_id);

                CREATE TABLE IF NOT EXISTS cyclists (
                    cyclist_id TEXT PRIMARY KEY,
                    team_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    character_role TEXT NOT NULL,
                    stamina INTEGER NOT NULL DEFAULT 5 CHECK (stamina >= 0 AND stamina <= 5),
                    current_points INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (team_id, character_role),
                    FOREIGN KEY(team_id) REFERENCES teams(team_id) ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_cyclists_team ON cyclists(team_id);
"""


def migrate(cur: sqlite3.Cursor, *, ensure_columns: EnsureColumnsFn) -> None:
    """Post-DDL migrations for databases created by earlier builds."""
    ensure_columns(
        cur,
        "sessions",
        {
            "reflection_active": "INTEGER NOT NULL DEFAULT 0",
            "cyclists_count": "INTEGER NOT NULL DEFAULT 4",
        },
    )
