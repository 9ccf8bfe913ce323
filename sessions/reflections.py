from __future__ import annotations

"""Post-stage player reflections.

One reflection per (cyclist, session, stage); a repeated submission keeps the
first one. Reflections are accepted while the session is active or in its
reflection phase, for stages that have already been played.
"""

import logging
import uuid
from typing import Any, Dict, List

import game_time
from race_repo import RaceRepo
from schema import (
    STATUS_ACTIVE,
    STATUS_REFLECTION,
    normalize_cyclist_id,
    normalize_session_id,
    normalize_stage_number,
)

from . import repo as sessions_repo
from .errors import (
    SESSION_BAD_PAYLOAD,
    SESSION_CYCLIST_NOT_FOUND,
    SESSION_INVALID_TRANSITION,
    SESSION_NOT_FOUND,
    SessionFlowError,
)

logger = logging.getLogger(__name__)

MAX_REFLECTION_CHARS = 4000


def _clean_text(value: Any, *, field: str) -> str:
    s = str(value or "").strip()
    if len(s) > MAX_REFLECTION_CHARS:
        raise SessionFlowError(SESSION_BAD_PAYLOAD, f"{field} exceeds {MAX_REFLECTION_CHARS} characters")
    return s


def submit_reflection(
    repo: RaceRepo,
    *,
    session_id: Any,
    cyclist_id: Any,
    stage_number: Any,
    decision_reasoning: Any,
    emotional_response: Any = "",
) -> Dict[str, Any]:
    try:
        sid = normalize_session_id(session_id)
        cid = normalize_cyclist_id(cyclist_id)
        stage = normalize_stage_number(stage_number)
    except ValueError as exc:
        raise SessionFlowError(SESSION_BAD_PAYLOAD, str(exc)) from exc
    reasoning = _clean_text(decision_reasoning, field="decision_reasoning")
    emotion = _clean_text(emotional_response, field="emotional_response")
    if not reasoning and not emotion:
        raise SessionFlowError(SESSION_BAD_PAYLOAD, "reflection is empty")

    try:
        session = repo.get_session(sid)
    except KeyError as exc:
        raise SessionFlowError(SESSION_NOT_FOUND, f"session not found: {sid}") from exc
    if session.status not in (STATUS_ACTIVE, STATUS_REFLECTION):
        raise SessionFlowError(
            SESSION_INVALID_TRANSITION,
            f"reflections are closed (status={session.status})",
            details={"status": session.status},
        )
    if stage > session.current_stage:
        raise SessionFlowError(
            SESSION_BAD_PAYLOAD,
            f"stage {stage} has not been played yet (current stage {session.current_stage})",
        )

    _home, cyclists = repo.read_home_team_and_cyclists(sid)
    if cid not in {c.cyclist_id for c in cyclists}:
        raise SessionFlowError(SESSION_CYCLIST_NOT_FOUND, f"cyclist {cid} is not a rider in session {sid}")

    with repo.transaction() as cur:
        created = sessions_repo.insert_reflection_if_absent(
            cur,
            reflection_id=uuid.uuid4().hex,
            cyclist_id=str(cid),
            session_id=str(sid),
            stage_number=int(stage),
            decision_reasoning=reasoning,
            emotional_response=emotion,
            now=game_time.now_utc_iso(),
        )
    if not created:
        logger.info("duplicate reflection ignored: cyclist=%s session=%s stage=%s", cid, sid, stage)
    return {"created": bool(created), "cyclist_id": str(cid), "session_id": str(sid), "stage_number": int(stage)}


def list_reflections(repo: RaceRepo, *, session_id: Any) -> List[Dict[str, Any]]:
    try:
        sid = normalize_session_id(session_id)
    except ValueError as exc:
        raise SessionFlowError(SESSION_BAD_PAYLOAD, str(exc)) from exc
    with repo.transaction() as cur:
        return sessions_repo.list_reflections(cur, session_id=str(sid))
