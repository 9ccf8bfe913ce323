from __future__ import annotations

"""DB access layer for session setup and reflections.

Pure DB I/O on a cursor from RaceRepo.transaction(). Score fields are only
ever *initialized* here; stage_resolution owns every later write to them.
"""

import sqlite3
from typing import Any, Dict, List


def insert_session(
    cur: sqlite3.Cursor,
    *,
    session_id: str,
    title: str,
    trainer_id: str,
    cyclists_count: int,
    now: str,
) -> None:
    cur.execute(
        """
        INSERT INTO sessions(
            session_id, title, trainer_id, cyclists_count, current_stage, status,
            stage_locked, multiplier_active, current_multiplier, reflection_active,
            created_at, updated_at
        )
        VALUES (?, ?, ?, ?, 1, 'not_started', 1, 0, 1.0, 0, ?, ?);
        """,
        (str(session_id), str(title), str(trainer_id), int(cyclists_count), now, now),
    )


def insert_team(
    cur: sqlite3.Cursor,
    *,
    team_id: str,
    session_id: str,
    name: str,
    team_type: str,
    synergy: int,
    now: str,
) -> None:
    cur.execute(
        """
        INSERT INTO teams(team_id, session_id, name, type, synergy_score, total_points, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, 0, ?, ?);
        """,
        (str(team_id), str(session_id), str(name), str(team_type), int(synergy), now, now),
    )


def insert_cyclist(
    cur: sqlite3.Cursor,
    *,
    cyclist_id: str,
    team_id: str,
    name: str,
    character_role: str,
    stamina: int,
    now: str,
) -> None:
    cur.execute(
        """
        INSERT INTO cyclists(cyclist_id, team_id, name, character_role, stamina, current_points, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, 0, ?, ?);
        """,
        (str(cyclist_id), str(team_id), str(name), str(character_role), int(stamina), now, now),
    )


def insert_reflection_if_absent(
    cur: sqlite3.Cursor,
    *,
    reflection_id: str,
    cyclist_id: str,
    session_id: str,
    stage_number: int,
    decision_reasoning: str,
    emotional_response: str,
    now: str,
) -> bool:
    """Returns False when the rider already reflected on this stage."""
    cur.execute(
        """
        INSERT INTO reflections(
            reflection_id, cyclist_id, session_id, stage_number,
            decision_reasoning, emotional_response, created_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(cyclist_id, session_id, stage_number) DO NOTHING;
        """,
        (
            str(reflection_id),
            str(cyclist_id),
            str(session_id),
            int(stage_number),
            str(decision_reasoning),
            str(emotional_response),
            now,
        ),
    )
    return cur.rowcount > 0


def list_reflections(cur: sqlite3.Cursor, *, session_id: str) -> List[Dict[str, Any]]:
    rows = cur.execute(
        """
        SELECT reflection_id, cyclist_id, session_id, stage_number,
               decision_reasoning, emotional_response, created_at
        FROM reflections
        WHERE session_id=?
        ORDER BY stage_number ASC, created_at ASC, rowid ASC;
        """,
        (str(session_id),),
    ).fetchall()
    return [
        {
            "reflection_id": str(r[0]),
            "cyclist_id": str(r[1]),
            "session_id": str(r[2]),
            "stage_number": int(r[3]),
            "decision_reasoning": str(r[4]),
            "emotional_response": str(r[5]),
            "created_at": str(r[6]),
        }
        for r in rows
    ]
