"""Stage resolution engine.

Public API
----------
- resolve_stage
- release_stage_claim
- get_stage_resolution
"""

from .errors import (
    STAGE_ALREADY_RESOLVED,
    STAGE_BAD_PAYLOAD,
    STAGE_HOME_TEAM_NOT_FOUND,
    STAGE_LOCK_TIMEOUT,
    STAGE_SESSION_ENDED,
    STAGE_SESSION_NOT_FOUND,
    STAGE_STORE_UNAVAILABLE,
    StageResolutionError,
)
from .service import compute_home_stage, get_stage_resolution, release_stage_claim, resolve_stage
from .types import CyclistStageResult, StageResolution, TeamStageResult

__all__ = [
    "CyclistStageResult",
    "STAGE_ALREADY_RESOLVED",
    "STAGE_BAD_PAYLOAD",
    "STAGE_HOME_TEAM_NOT_FOUND",
    "STAGE_LOCK_TIMEOUT",
    "STAGE_SESSION_ENDED",
    "STAGE_SESSION_NOT_FOUND",
    "STAGE_STORE_UNAVAILABLE",
    "StageResolution",
    "StageResolutionError",
    "TeamStageResult",
    "compute_home_stage",
    "get_stage_resolution",
    "release_stage_claim",
    "resolve_stage",
]
