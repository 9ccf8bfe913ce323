from __future__ import annotations

from fastapi import APIRouter, HTTPException

import config
import state
from race_repo import RaceRepo
from sessions.errors import SessionFlowError
from sessions.lifecycle import close_stage
from stage_resolution import StageResolutionError, get_stage_resolution, resolve_stage
from app.schemas.common import ResolveStageRequest
from app.services.error_facade import _error_response

router = APIRouter()


@router.get("/api/stages")
async def api_stage_catalogue():
    return {"stages": [config.stage_info(n) for n in range(config.FIRST_STAGE, config.TOTAL_STAGES + 1)]}


@router.get("/api/stages/{stage_number}")
async def api_stage_info(stage_number: int):
    try:
        return config.stage_info(stage_number)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.post("/api/sessions/{session_id}/close-stage")
async def api_close_stage(session_id: str):
    """Trainer "End Stage": lock the current stage and resolve it."""
    try:
        with RaceRepo(state.get_db_path()) as repo:
            result = close_stage(repo, session_id=session_id)
        return {"ok": True, "resolution": result.to_dict()}
    except (SessionFlowError, StageResolutionError) as exc:
        return _error_response(exc)


@router.post("/api/stages/resolve")
async def api_resolve_stage(req: ResolveStageRequest):
    try:
        with RaceRepo(state.get_db_path()) as repo:
            result = resolve_stage(repo, session_id=req.session_id, stage_number=req.stage_number)
        return {"ok": True, "resolution": result.to_dict()}
    except StageResolutionError as exc:
        return _error_response(exc)


@router.get("/api/sessions/{session_id}/stages/{stage_number}/resolution")
async def api_stage_resolution(session_id: str, stage_number: int):
    try:
        with RaceRepo(state.get_db_path()) as repo:
            marker = get_stage_resolution(repo, session_id=session_id, stage_number=stage_number)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if marker is None:
        raise HTTPException(status_code=404, detail=f"stage {stage_number} of session {session_id} is not resolved")
    return marker
