from __future__ import annotations

from fastapi import APIRouter, HTTPException

import state
from ledger.errors import DecisionLedgerError
from ledger.service import stage_decision_status, submit_decision
from race_repo import RaceRepo
from app.schemas.common import SubmitDecisionRequest
from app.services.error_facade import _error_response

router = APIRouter()


@router.post("/api/decisions")
async def api_submit_decision(req: SubmitDecisionRequest):
    try:
        with RaceRepo(state.get_db_path()) as repo:
            result = submit_decision(
                repo,
                session_id=req.session_id,
                cyclist_id=req.cyclist_id,
                stage_number=req.stage_number,
                choice=req.choice,
                timestamp=req.timestamp,
            )
        return {"ok": True, **result.to_dict()}
    except DecisionLedgerError as exc:
        return _error_response(exc)


@router.get("/api/sessions/{session_id}/stages/{stage_number}/decisions")
async def api_stage_decisions(session_id: str, stage_number: int):
    """Decisions recorded for a stage plus who is still missing."""
    try:
        with RaceRepo(state.get_db_path()) as repo:
            status = stage_decision_status(repo, session_id=session_id, stage_number=stage_number)
            decisions = repo.read_decisions(session_id, stage_number)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return {
        **status.to_dict(),
        "decisions": [d.to_dict() for d in decisions],
    }
