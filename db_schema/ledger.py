# db_schema/ledger.py
"""SQLite SSOT schema: decision ledger + stage resolution markers.

- decisions_log: one immutable decision per (cyclist, session, stage).
  The UNIQUE constraint is the idempotence boundary for submissions; only
  `points_earned` is written after insert (by stage resolution).
- stage_resolutions: at most one row per (session, stage). The row is claimed
  before any score mutation, so a duplicate or concurrent resolution of the
  same stage fails the claim instead of double-applying effects.

Notes
-----
* References sessions/cyclists via foreign key, so apply after db_schema.core.
"""

from __future__ import annotations


def ddl(*, now: str, schema_version: str) -> str:  # noqa: ARG001
    """Return DDL SQL for ledger tables (as a single executescript string)."""

    return f"""
                CREATE TABLE IF NOT EXISTS decisions_log (
                    decision_id TEXT PRIMARY KEY,
                    cyclist_id TEXT NOT NULL,
                    session_id TEXT NOT NULL,
                    stage_number INTEGER NOT NULL CHECK (stage_number >= 1 AND stage_number <= 10),
                    decision TEXT NOT NULL CHECK (decision IN ('sprint', 'cruise')),
                    points_earned INTEGER NOT NULL DEFAULT 0,
                    timestamp TEXT NOT NULL,
                    UNIQUE (cyclist_id, session_id, stage_number),
                    FOREIGN KEY(cyclist_id) REFERENCES cyclists(cyclist_id) ON DELETE CASCADE,
                    FOREIGN KEY(session_id) REFERENCES sessions(session_id) ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_decisions_session_stage
                    ON decisions_log(session_id, stage_number);

                CREATE TABLE IF NOT EXISTS stage_resolutions (
                    session_id TEXT NOT NULL,
                    stage_number INTEGER NOT NULL CHECK (stage_number >= 1 AND stage_number <= 10),
                    outcome TEXT NOT NULL DEFAULT 'claimed'
                        CHECK (outcome IN ('claimed', 'applied', 'partial')),
                    summary_json TEXT,
                    claimed_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (session_id, stage_number),
                    FOREIGN KEY(session_id) REFERENCES sessions(session_id) ON DELETE CASCADE
                );
"""
