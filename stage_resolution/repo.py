from __future__ import annotations

"""DB access layer for stage resolution markers.

One row per (session, stage) in `stage_resolutions`. Claiming is an
insert-if-absent on the primary key, so exactly one caller wins even across
connections; callers run the claim inside RaceRepo.transaction(immediate=True).
"""

import sqlite3
from typing import Any, Dict, Optional


def claim_stage(cur: sqlite3.Cursor, *, session_id: str, stage_number: int, now: str) -> bool:
    """Claim a stage for resolution. Returns False if it was already claimed."""
    cur.execute(
        """
        INSERT INTO stage_resolutions(session_id, stage_number, outcome, summary_json, claimed_at, updated_at)
        VALUES (?, ?, 'claimed', NULL, ?, ?)
        ON CONFLICT(session_id, stage_number) DO NOTHING;
        """,
        (str(session_id), int(stage_number), str(now), str(now)),
    )
    return cur.rowcount > 0


def finish_stage(
    cur: sqlite3.Cursor,
    *,
    session_id: str,
    stage_number: int,
    outcome: str,
    summary_json: str,
    now: str,
) -> None:
    cur.execute(
        """
        UPDATE stage_resolutions
        SET outcome=?, summary_json=?, updated_at=?
        WHERE session_id=? AND stage_number=?;
        """,
        (str(outcome), str(summary_json), str(now), str(session_id), int(stage_number)),
    )


def release_stage(cur: sqlite3.Cursor, *, session_id: str, stage_number: int) -> bool:
    """Delete a claim so the stage can be resolved again. Returns True if a row was removed."""
    cur.execute(
        "DELETE FROM stage_resolutions WHERE session_id=? AND stage_number=?;",
        (str(session_id), int(stage_number)),
    )
    return cur.rowcount > 0


def get_stage_marker(cur: sqlite3.Cursor, *, session_id: str, stage_number: int) -> Optional[Dict[str, Any]]:
    row = cur.execute(
        """
        SELECT session_id, stage_number, outcome, summary_json, claimed_at, updated_at
        FROM stage_resolutions
        WHERE session_id=? AND stage_number=?;
        """,
        (str(session_id), int(stage_number)),
    ).fetchone()
    if not row:
        return None
    return {
        "session_id": str(row[0]),
        "stage_number": int(row[1]),
        "outcome": str(row[2]),
        "summary_json": row[3],
        "claimed_at": str(row[4]),
        "updated_at": str(row[5]),
    }


def list_resolved_stages(cur: sqlite3.Cursor, *, session_id: str) -> list[int]:
    rows = cur.execute(
        "SELECT stage_number FROM stage_resolutions WHERE session_id=? ORDER BY stage_number ASC;",
        (str(session_id),),
    ).fetchall()
    return [int(r[0]) for r in rows]
