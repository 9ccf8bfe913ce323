from __future__ import annotations

import logging
from typing import Any, Dict, Union

from fastapi.responses import JSONResponse

from ledger.errors import DECISION_CYCLIST_NOT_FOUND, DECISION_SESSION_NOT_FOUND, DecisionLedgerError
from sessions.errors import SESSION_CYCLIST_NOT_FOUND, SESSION_NOT_FOUND, SessionFlowError
from stage_resolution.errors import (
    STAGE_HOME_TEAM_NOT_FOUND,
    STAGE_LOCK_TIMEOUT,
    STAGE_SESSION_NOT_FOUND,
    STAGE_STORE_UNAVAILABLE,
    StageResolutionError,
)

logger = logging.getLogger(__name__)

FlowError = Union[DecisionLedgerError, SessionFlowError, StageResolutionError]

_NOT_FOUND = {
    DECISION_SESSION_NOT_FOUND,
    DECISION_CYCLIST_NOT_FOUND,
    SESSION_NOT_FOUND,
    SESSION_CYCLIST_NOT_FOUND,
    STAGE_SESSION_NOT_FOUND,
    STAGE_HOME_TEAM_NOT_FOUND,
}
_UNAVAILABLE = {STAGE_STORE_UNAVAILABLE, STAGE_LOCK_TIMEOUT}


def status_for_code(code: str) -> int:
    """HTTP status for a structured error code.

    404 unknown entity, 400 malformed payload, 503 store unavailable (retry),
    409 for every state conflict (already resolved, wrong stage, locked, ...).
    """
    if code in _NOT_FOUND:
        return 404
    if code in _UNAVAILABLE:
        return 503
    if code.endswith("_BAD_PAYLOAD"):
        return 400
    return 409


def _error_response(error: FlowError) -> JSONResponse:
    status = status_for_code(error.code)
    if status >= 500:
        logger.warning("%s: %s", error.code, error.message)
    payload: Dict[str, Any] = {
        "ok": False,
        "error": {
            "code": error.code,
            "message": error.message,
            "details": error.details,
        },
    }
    return JSONResponse(status_code=status, content=payload)
