# db_schema/reflections.py
"""SQLite SSOT schema: post-stage player reflections."""

from __future__ import annotations


def ddl(*, now: str, schema_version: str) -> str:  # noqa: ARG001
    """Return DDL SQL for the reflections table."""

    return f"""
                CREATE TABLE IF NOT EXISTS reflections (
                    reflection_id TEXT PRIMARY KEY,
                    cyclist_id TEXT NOT NULL,
                    session_id TEXT NOT NULL,
                    stage_number INTEGER NOT NULL CHECK (stage_number >= 1 AND stage_number <= 10),
                    decision_reasoning TEXT NOT NULL DEFAULT '',
                    emotional_response TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL,
                    UNIQUE (cyclist_id, session_id, stage_number),
                    FOREIGN KEY(cyclist_id) REFERENCES cyclists(cyclist_id) ON DELETE CASCADE,
                    FOREIGN KEY(session_id) REFERENCES sessions(session_id) ON DELETE CASCADE
                );

                CREATE INDEX IF NOT EXISTS idx_reflections_session
                    ON reflections(session_id, stage_number);
"""
