from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class DecisionLedgerError(Exception):
    """Structured error for decision submission.

    The server layer maps these to HTTP 4xx while keeping a stable
    machine-readable code for client/UI.
    """

    code: str
    message: str
    details: Optional[Any] = None

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code}: {self.message}"


# Error codes (stable API surface)
DECISION_BAD_PAYLOAD = "DECISION_BAD_PAYLOAD"
DECISION_SESSION_NOT_FOUND = "DECISION_SESSION_NOT_FOUND"
DECISION_CYCLIST_NOT_FOUND = "DECISION_CYCLIST_NOT_FOUND"
DECISION_SESSION_NOT_ACTIVE = "DECISION_SESSION_NOT_ACTIVE"
DECISION_STAGE_LOCKED = "DECISION_STAGE_LOCKED"
DECISION_WRONG_STAGE = "DECISION_WRONG_STAGE"
DECISION_NO_STAMINA = "DECISION_NO_STAMINA"
