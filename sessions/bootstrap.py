from __future__ import annotations

"""New game session setup.

A session starts with:
- status `not_started`, stage 1, stage locked, no multiplier
- the home team plus one team per AI faction, synergy 100, 0 points
- up to four home riders (seating order from config.CYCLIST_ROLES), stamina 5
"""

import logging
import uuid
from typing import Any, Dict

import config
import game_time
from race_repo import RaceRepo

from . import repo as sessions_repo
from .errors import SESSION_BAD_PAYLOAD, SessionFlowError

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


def create_game_session(
    repo: RaceRepo,
    *,
    title: Any,
    trainer_id: Any,
    cyclists_count: Any = config.TEAM_SIZE,
) -> Dict[str, Any]:
    """Create a session with its four teams and the home riders.

    Returns:
        {"session": {...}, "teams": [...], "cyclists": [...]} as stored.
    """
    title_s = str(title or "").strip()
    trainer_s = str(trainer_id or "").strip()
    if not title_s:
        raise SessionFlowError(SESSION_BAD_PAYLOAD, "title is required")
    if not trainer_s:
        raise SessionFlowError(SESSION_BAD_PAYLOAD, "trainer_id is required")
    try:
        requested = int(cyclists_count)
    except (TypeError, ValueError) as exc:
        raise SessionFlowError(SESSION_BAD_PAYLOAD, f"invalid cyclists_count: {cyclists_count!r}") from exc
    if isinstance(cyclists_count, bool) or requested < 1:
        raise SessionFlowError(SESSION_BAD_PAYLOAD, f"cyclists_count must be >= 1: {cyclists_count!r}")
    n_riders = min(requested, config.TEAM_SIZE)

    session_id = _new_id()
    now = game_time.now_utc_iso()
    with repo.transaction() as cur:
        sessions_repo.insert_session(
            cur,
            session_id=session_id,
            title=title_s,
            trainer_id=trainer_s,
            cyclists_count=n_riders,
            now=now,
        )
        home_team_id = None
        for team_type in config.ALL_TEAM_TYPES:
            team_id = _new_id()
            if team_type == config.HOME_TEAM_TYPE:
                home_team_id = team_id
            sessions_repo.insert_team(
                cur,
                team_id=team_id,
                session_id=session_id,
                name=config.TEAM_NAMES[team_type],
                team_type=team_type,
                synergy=config.INITIAL_SYNERGY,
                now=now,
            )
        for role in config.CYCLIST_ROLES[:n_riders]:
            sessions_repo.insert_cyclist(
                cur,
                cyclist_id=_new_id(),
                team_id=str(home_team_id),
                name=config.CYCLIST_NAMES[role],
                character_role=role,
                stamina=config.INITIAL_STAMINA,
                now=now,
            )

    logger.info("created session %s (%r) with %s home riders", session_id, title_s, n_riders)
    home, cyclists = repo.read_home_team_and_cyclists(session_id)
    return {
        "session": repo.get_session(session_id).to_dict(),
        "teams": [t.to_dict() for t in repo.list_teams(session_id)],
        "home_team_id": home.team_id,
        "cyclists": [c.to_dict() for c in cyclists],
    }
