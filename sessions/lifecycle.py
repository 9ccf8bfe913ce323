from __future__ import annotations

"""Trainer-driven session lifecycle.

State machine
-------------
    not_started --start_stage--> active --start_reflection--> reflection --end_reflection--> ended
    active --close_stage(10)--> ended

Within `active`:
- start_stage   unlocks the current stage (players may submit decisions)
- close_stage   locks it and runs stage resolution
- advance_stage moves to the next stage (monotonic, never past the last)
- reopen_stage  corrective action after a partial resolution: unlocks the stage
                and drops its marker so close_stage can run again (refused once
                the stage was applied cleanly)

Nothing leaves `ended`.
"""

import logging
from typing import Any, Dict, Iterable, Optional

import config
from race_repo import RaceRepo, SessionRow
from schema import (
    STATUS_ACTIVE,
    STATUS_ENDED,
    STATUS_NOT_STARTED,
    STATUS_REFLECTION,
    normalize_session_id,
)
from scoring import stage_multiplier
from stage_resolution import StageResolution, release_stage_claim, resolve_stage
from stage_resolution.service import RngFactory

from .errors import (
    SESSION_BAD_PAYLOAD,
    SESSION_INVALID_TRANSITION,
    SESSION_LAST_STAGE,
    SESSION_NOT_FOUND,
    SessionFlowError,
)

logger = logging.getLogger(__name__)


def _load_session(repo: RaceRepo, session_id: Any) -> SessionRow:
    try:
        sid = normalize_session_id(session_id)
    except ValueError as exc:
        raise SessionFlowError(SESSION_BAD_PAYLOAD, str(exc)) from exc
    try:
        return repo.get_session(sid)
    except KeyError as exc:
        raise SessionFlowError(SESSION_NOT_FOUND, f"session not found: {sid}") from exc


def _require_status(session: SessionRow, allowed: Iterable[str], *, action: str) -> None:
    allowed = tuple(allowed)
    if session.status not in allowed:
        raise SessionFlowError(
            SESSION_INVALID_TRANSITION,
            f"cannot {action} while session is {session.status}",
            details={"status": session.status, "allowed": list(allowed)},
        )


def start_stage(repo: RaceRepo, *, session_id: Any) -> SessionRow:
    """Open the current stage for decisions (also starts a not_started game)."""
    session = _load_session(repo, session_id)
    _require_status(session, (STATUS_NOT_STARTED, STATUS_ACTIVE), action="start a stage")
    repo.update_session(session.session_id, status=STATUS_ACTIVE, stage_locked=False)
    logger.info("session %s: stage %s opened", session.session_id, session.current_stage)
    return repo.get_session(session.session_id)


def close_stage(
    repo: RaceRepo,
    *,
    session_id: Any,
    rng_factory: Optional[RngFactory] = None,
) -> StageResolution:
    """Lock the current stage and resolve it.

    StageResolutionError from the engine propagates unchanged.
    """
    session = _load_session(repo, session_id)
    _require_status(session, (STATUS_ACTIVE,), action="close a stage")
    if not session.stage_locked:
        repo.update_session(session.session_id, stage_locked=True)
    logger.info("session %s: stage %s closed", session.session_id, session.current_stage)
    return resolve_stage(
        repo,
        session_id=session.session_id,
        stage_number=session.current_stage,
        rng_factory=rng_factory,
    )


def advance_stage(repo: RaceRepo, *, session_id: Any) -> SessionRow:
    session = _load_session(repo, session_id)
    _require_status(session, (STATUS_ACTIVE,), action="advance the stage")
    if config.is_final_stage(session.current_stage):
        raise SessionFlowError(
            SESSION_LAST_STAGE,
            f"stage {session.current_stage} is the last stage",
            details={"current_stage": int(session.current_stage)},
        )
    nxt = int(session.current_stage) + 1
    negotiation = config.is_negotiation_stage(nxt)
    repo.update_session(
        session.session_id,
        current_stage=nxt,
        stage_locked=False,
        multiplier_active=negotiation,
        current_multiplier=stage_multiplier(nxt) if negotiation else 1.0,
    )
    logger.info(
        "session %s: advanced to stage %s (%s)%s",
        session.session_id,
        nxt,
        config.stage_info(nxt)["name"],
        " [negotiation]" if negotiation else "",
    )
    return repo.get_session(session.session_id)


def reopen_stage(repo: RaceRepo, *, session_id: Any) -> SessionRow:
    """Unlock the current stage and drop its `partial` (or stale `claimed`) marker.

    Effects already applied by the partial resolution are kept. A stage that
    resolved cleanly raises StageResolutionError(STAGE_ALREADY_RESOLVED) and
    stays locked.
    """
    session = _load_session(repo, session_id)
    _require_status(session, (STATUS_ACTIVE,), action="reopen a stage")
    released = release_stage_claim(repo, session_id=session.session_id, stage_number=session.current_stage)
    repo.update_session(session.session_id, stage_locked=False)
    if released:
        logger.warning(
            "session %s: stage %s reopened after resolution; applied effects are not reverted",
            session.session_id,
            session.current_stage,
        )
    return repo.get_session(session.session_id)


def start_reflection(repo: RaceRepo, *, session_id: Any) -> SessionRow:
    session = _load_session(repo, session_id)
    _require_status(session, (STATUS_ACTIVE,), action="start reflection")
    repo.update_session(session.session_id, status=STATUS_REFLECTION, reflection_active=True, stage_locked=True)
    logger.info("session %s: reflection phase started", session.session_id)
    return repo.get_session(session.session_id)


def end_reflection(repo: RaceRepo, *, session_id: Any) -> SessionRow:
    session = _load_session(repo, session_id)
    _require_status(session, (STATUS_REFLECTION,), action="end reflection")
    repo.update_session(session.session_id, status=STATUS_ENDED, reflection_active=False)
    logger.info("session %s: reflection phase ended; session closed", session.session_id)
    return repo.get_session(session.session_id)


def session_overview(repo: RaceRepo, *, session_id: Any) -> Dict[str, Any]:
    """Session row plus the current stage's catalogue entry."""
    session = _load_session(repo, session_id)
    return {
        **session.to_dict(),
        "stage": config.stage_info(session.current_stage),
    }
