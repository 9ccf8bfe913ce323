from __future__ import annotations

"""Player-facing decision submission (the only writer of decisions_log rows).

Submission rules:
- the session must be `active` with its current stage unlocked
- the decision must target the session's current stage
- the rider must belong to the session's home team
- a rider with 0 stamina may not Sprint

The ledger itself guarantees one decision per (cyclist, session, stage);
a repeated submission is a no-op that returns the existing entry.
"""

import logging
from typing import Any, Optional

import config
import game_time
from race_repo import RaceRepo
from schema import (
    CHOICE_SPRINT,
    STATUS_ACTIVE,
    normalize_choice,
    normalize_cyclist_id,
    normalize_session_id,
    normalize_stage_number,
)

from . import repo as ledger_repo
from .errors import (
    DECISION_BAD_PAYLOAD,
    DECISION_CYCLIST_NOT_FOUND,
    DECISION_NO_STAMINA,
    DECISION_SESSION_NOT_ACTIVE,
    DECISION_SESSION_NOT_FOUND,
    DECISION_STAGE_LOCKED,
    DECISION_WRONG_STAGE,
    DecisionLedgerError,
)
from .types import StageDecisionStatus, SubmissionResult

logger = logging.getLogger(__name__)


def submit_decision(
    repo: RaceRepo,
    *,
    session_id: Any,
    cyclist_id: Any,
    stage_number: Any,
    choice: Any,
    timestamp: Optional[str] = None,
) -> SubmissionResult:
    """Record one rider's choice for the current stage (insert-if-absent)."""
    try:
        sid = normalize_session_id(session_id)
        cid = normalize_cyclist_id(cyclist_id)
        stage = normalize_stage_number(stage_number)
        decision = normalize_choice(choice)
        ts = game_time.require_timestamp_iso(timestamp) if timestamp is not None else game_time.now_utc_iso()
    except ValueError as exc:
        raise DecisionLedgerError(DECISION_BAD_PAYLOAD, str(exc)) from exc

    try:
        session = repo.get_session(sid)
    except KeyError as exc:
        raise DecisionLedgerError(DECISION_SESSION_NOT_FOUND, f"session not found: {sid}") from exc

    if session.status != STATUS_ACTIVE:
        raise DecisionLedgerError(
            DECISION_SESSION_NOT_ACTIVE,
            f"session is not accepting decisions (status={session.status})",
            details={"status": session.status},
        )
    if int(stage) != int(session.current_stage):
        raise DecisionLedgerError(
            DECISION_WRONG_STAGE,
            f"stage {stage} is not the current stage ({session.current_stage})",
            details={"current_stage": int(session.current_stage)},
        )
    if session.stage_locked:
        raise DecisionLedgerError(DECISION_STAGE_LOCKED, f"stage {stage} is locked")

    home, cyclists = repo.read_home_team_and_cyclists(sid)
    cyclist = next((c for c in cyclists if c.cyclist_id == cid), None)
    if cyclist is None:
        raise DecisionLedgerError(
            DECISION_CYCLIST_NOT_FOUND,
            f"cyclist {cid} is not a rider of {home.name} in session {sid}",
        )
    if decision == CHOICE_SPRINT and cyclist.stamina <= config.MIN_STAMINA:
        raise DecisionLedgerError(
            DECISION_NO_STAMINA,
            f"{cyclist.name} has no stamina left and must Cruise",
            details={"stamina": int(cyclist.stamina)},
        )

    with repo.transaction() as cur:
        created = ledger_repo.insert_decision_if_absent(
            cur,
            cyclist_id=str(cid),
            session_id=str(sid),
            stage_number=int(stage),
            decision=decision,
            timestamp=ts,
        )
        record = ledger_repo.get_decision(cur, cyclist_id=str(cid), session_id=str(sid), stage_number=int(stage))

    if record is None:  # pragma: no cover - row was just inserted or already present
        raise RuntimeError(f"decision vanished after insert: {cid}/{sid}/{stage}")
    if not created:
        logger.info("duplicate decision ignored: cyclist=%s session=%s stage=%s", cid, sid, stage)
    return SubmissionResult(created=bool(created), record=record)


def stage_decision_status(repo: RaceRepo, *, session_id: Any, stage_number: Any) -> StageDecisionStatus:
    """How many home riders have decided for a stage, and who is still missing."""
    sid = normalize_session_id(session_id)
    stage = normalize_stage_number(stage_number)
    _home, cyclists = repo.read_home_team_and_cyclists(sid)
    decided = {d.cyclist_id for d in repo.read_decisions(sid, stage)}
    missing = tuple(c.cyclist_id for c in cyclists if c.cyclist_id not in decided)
    return StageDecisionStatus(
        session_id=str(sid),
        stage_number=int(stage),
        expected=len(cyclists),
        submitted=len([c for c in cyclists if c.cyclist_id in decided]),
        missing_cyclist_ids=missing,
    )
