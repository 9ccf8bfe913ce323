from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, HTTPException

import state
from race_repo import RaceRepo
from sessions.bootstrap import create_game_session
from sessions.errors import SessionFlowError
from sessions.lifecycle import (
    advance_stage,
    end_reflection,
    reopen_stage,
    session_overview,
    start_reflection,
    start_stage,
)
from sessions.reflections import list_reflections, submit_reflection
from sessions.standings import rank_teams
from stage_resolution import StageResolutionError
from app.schemas.common import CreateSessionRequest, SubmitReflectionRequest
from app.services.error_facade import _error_response

router = APIRouter()


@router.post("/api/sessions")
async def api_create_session(req: CreateSessionRequest):
    try:
        with RaceRepo(state.get_db_path()) as repo:
            created = create_game_session(
                repo,
                title=req.title,
                trainer_id=req.trainer_id,
                cyclists_count=req.cyclists_count,
            )
        return {"ok": True, **created}
    except SessionFlowError as exc:
        return _error_response(exc)


@router.get("/api/sessions")
async def api_list_sessions():
    with RaceRepo(state.get_db_path()) as repo:
        return {"sessions": [s.to_dict() for s in repo.list_sessions()]}


@router.get("/api/sessions/{session_id}")
async def api_session_detail(session_id: str):
    """Session state, current stage, teams and home riders in one payload."""
    try:
        with RaceRepo(state.get_db_path()) as repo:
            overview = session_overview(repo, session_id=session_id)
            home, cyclists = repo.read_home_team_and_cyclists(session_id)
            teams = repo.list_teams(session_id)
    except SessionFlowError as exc:
        return _error_response(exc)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return {
        "session": overview,
        "home_team": home.to_dict(),
        "cyclists": [c.to_dict() for c in cyclists],
        "teams": [t.to_dict() for t in teams],
    }


@router.get("/api/sessions/{session_id}/standings")
async def api_session_standings(session_id: str):
    with RaceRepo(state.get_db_path()) as repo:
        try:
            repo.get_session(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        teams = repo.list_teams(session_id)
    return {"session_id": session_id, "standings": rank_teams(teams)}


def _lifecycle_action(fn, session_id: str) -> Dict[str, Any]:
    with RaceRepo(state.get_db_path()) as repo:
        session = fn(repo, session_id=session_id)
    return {"ok": True, "session": session.to_dict()}


@router.post("/api/sessions/{session_id}/start-stage")
async def api_start_stage(session_id: str):
    try:
        return _lifecycle_action(start_stage, session_id)
    except SessionFlowError as exc:
        return _error_response(exc)


@router.post("/api/sessions/{session_id}/advance-stage")
async def api_advance_stage(session_id: str):
    try:
        return _lifecycle_action(advance_stage, session_id)
    except SessionFlowError as exc:
        return _error_response(exc)


@router.post("/api/sessions/{session_id}/reopen-stage")
async def api_reopen_stage(session_id: str):
    try:
        return _lifecycle_action(reopen_stage, session_id)
    except (SessionFlowError, StageResolutionError) as exc:
        return _error_response(exc)


@router.post("/api/sessions/{session_id}/reflection/start")
async def api_start_reflection(session_id: str):
    try:
        return _lifecycle_action(start_reflection, session_id)
    except SessionFlowError as exc:
        return _error_response(exc)


@router.post("/api/sessions/{session_id}/reflection/end")
async def api_end_reflection(session_id: str):
    try:
        return _lifecycle_action(end_reflection, session_id)
    except SessionFlowError as exc:
        return _error_response(exc)


@router.post("/api/sessions/{session_id}/reflections")
async def api_submit_reflection(session_id: str, req: SubmitReflectionRequest):
    try:
        with RaceRepo(state.get_db_path()) as repo:
            result = submit_reflection(
                repo,
                session_id=session_id,
                cyclist_id=req.cyclist_id,
                stage_number=req.stage_number,
                decision_reasoning=req.decision_reasoning,
                emotional_response=req.emotional_response,
            )
        return {"ok": True, **result}
    except SessionFlowError as exc:
        return _error_response(exc)


@router.get("/api/sessions/{session_id}/reflections")
async def api_list_reflections(session_id: str):
    try:
        with RaceRepo(state.get_db_path()) as repo:
            return {"session_id": session_id, "reflections": list_reflections(repo, session_id=session_id)}
    except SessionFlowError as exc:
        return _error_response(exc)
