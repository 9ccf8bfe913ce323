from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class StageResolutionError(Exception):
    """Structured error for stage resolution.

    Raised only for conditions the caller must act on (duplicate resolution,
    missing/ended session, unreachable store). Expected conditions such as
    "no decisions" or a failed write are reported in the StageResolution result.
    """

    code: str
    message: str
    details: Optional[Any] = None

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code}: {self.message}"

    @property
    def retryable(self) -> bool:
        return self.code == STAGE_STORE_UNAVAILABLE


# Error codes (stable API surface)
STAGE_BAD_PAYLOAD = "STAGE_BAD_PAYLOAD"
STAGE_SESSION_NOT_FOUND = "STAGE_SESSION_NOT_FOUND"
STAGE_HOME_TEAM_NOT_FOUND = "STAGE_HOME_TEAM_NOT_FOUND"
STAGE_SESSION_ENDED = "STAGE_SESSION_ENDED"
STAGE_ALREADY_RESOLVED = "STAGE_ALREADY_RESOLVED"
STAGE_STORE_UNAVAILABLE = "STAGE_STORE_UNAVAILABLE"
STAGE_LOCK_TIMEOUT = "STAGE_LOCK_TIMEOUT"
