from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class SessionFlowError(Exception):
    """Structured error for session setup and trainer lifecycle actions.

    The server layer maps these to HTTP 4xx while keeping a stable
    machine-readable code for client/UI.
    """

    code: str
    message: str
    details: Optional[Any] = None

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code}: {self.message}"


# Error codes (stable API surface)
SESSION_BAD_PAYLOAD = "SESSION_BAD_PAYLOAD"
SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
SESSION_CYCLIST_NOT_FOUND = "SESSION_CYCLIST_NOT_FOUND"
SESSION_INVALID_TRANSITION = "SESSION_INVALID_TRANSITION"
SESSION_LAST_STAGE = "SESSION_LAST_STAGE"
