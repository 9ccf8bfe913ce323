from __future__ import annotations

"""DB access layer for the decision ledger.

This module is intentionally *pure DB I/O*:
- takes a sqlite3.Cursor from RaceRepo.transaction()
- no business logic besides the insert-if-absent contract

Uniqueness of (cyclist_id, session_id, stage_number) is enforced by the table,
not here; a second insert for the same key is a no-op.
"""

import sqlite3
import uuid
from typing import List, Optional

from .types import DecisionRecord


def insert_decision_if_absent(
    cur: sqlite3.Cursor,
    *,
    cyclist_id: str,
    session_id: str,
    stage_number: int,
    decision: str,
    timestamp: str,
) -> bool:
    """Insert one decision. Returns False when the key already exists."""
    cur.execute(
        """
        INSERT INTO decisions_log(decision_id, cyclist_id, session_id, stage_number, decision, points_earned, timestamp)
        VALUES (?, ?, ?, ?, ?, 0, ?)
        ON CONFLICT(cyclist_id, session_id, stage_number) DO NOTHING;
        """,
        (uuid.uuid4().hex, str(cyclist_id), str(session_id), int(stage_number), str(decision), str(timestamp)),
    )
    return cur.rowcount > 0


def get_decision(
    cur: sqlite3.Cursor,
    *,
    cyclist_id: str,
    session_id: str,
    stage_number: int,
) -> Optional[DecisionRecord]:
    row = cur.execute(
        """
        SELECT decision_id, cyclist_id, session_id, stage_number, decision, points_earned, timestamp
        FROM decisions_log
        WHERE cyclist_id=? AND session_id=? AND stage_number=?;
        """,
        (str(cyclist_id), str(session_id), int(stage_number)),
    ).fetchone()
    if not row:
        return None
    return DecisionRecord.from_row(row)


def list_stage_decisions(
    cur: sqlite3.Cursor,
    *,
    session_id: str,
    stage_number: int,
) -> List[DecisionRecord]:
    """All decisions for one stage, in submission order."""
    rows = cur.execute(
        """
        SELECT decision_id, cyclist_id, session_id, stage_number, decision, points_earned, timestamp
        FROM decisions_log
        WHERE session_id=? AND stage_number=?
        ORDER BY timestamp ASC, rowid ASC;
        """,
        (str(session_id), int(stage_number)),
    ).fetchall()
    return [DecisionRecord.from_row(r) for r in rows]


def list_cyclist_decisions(cur: sqlite3.Cursor, *, cyclist_id: str, session_id: str) -> List[DecisionRecord]:
    rows = cur.execute(
        """
        SELECT decision_id, cyclist_id, session_id, stage_number, decision, points_earned, timestamp
        FROM decisions_log
        WHERE cyclist_id=? AND session_id=?
        ORDER BY stage_number ASC;
        """,
        (str(cyclist_id), str(session_id)),
    ).fetchall()
    return [DecisionRecord.from_row(r) for r in rows]


def set_points_earned(
    cur: sqlite3.Cursor,
    *,
    cyclist_id: str,
    session_id: str,
    stage_number: int,
    points: int,
) -> int:
    """Write the resolved points for one decision. Returns rows updated (0 or 1)."""
    cur.execute(
        """
        UPDATE decisions_log
        SET points_earned=?
        WHERE cyclist_id=? AND session_id=? AND stage_number=?;
        """,
        (int(points), str(cyclist_id), str(session_id), int(stage_number)),
    )
    return int(cur.rowcount)
