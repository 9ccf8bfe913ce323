from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class CreateSessionRequest(BaseModel):
    title: str
    trainer_id: str  # trainer email
    cyclists_count: int = Field(4, ge=1)


class SubmitDecisionRequest(BaseModel):
    session_id: str
    cyclist_id: str
    stage_number: int
    choice: str  # "sprint" | "cruise"
    timestamp: Optional[str] = None  # ISO-8601 UTC; server time when omitted


class ResolveStageRequest(BaseModel):
    session_id: str
    stage_number: int


class SubmitReflectionRequest(BaseModel):
    cyclist_id: str
    stage_number: int
    decision_reasoning: str = ""
    emotional_response: str = ""
