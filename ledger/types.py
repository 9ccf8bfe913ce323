from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

from schema import Choice


@dataclass(frozen=True, slots=True)
class DecisionRecord:
    """One immutable ledger entry: a rider's choice for one stage.

    `points_earned` is 0 until the stage is resolved.
    """

    decision_id: str
    cyclist_id: str
    session_id: str
    stage_number: int
    decision: Choice
    points_earned: int
    timestamp: str

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "DecisionRecord":
        return cls(
            decision_id=str(row["decision_id"]),
            cyclist_id=str(row["cyclist_id"]),
            session_id=str(row["session_id"]),
            stage_number=int(row["stage_number"]),
            decision=str(row["decision"]),  # type: ignore[arg-type]
            points_earned=int(row["points_earned"] or 0),
            timestamp=str(row["timestamp"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision_id": self.decision_id,
            "cyclist_id": self.cyclist_id,
            "session_id": self.session_id,
            "stage_number": int(self.stage_number),
            "decision": self.decision,
            "points_earned": int(self.points_earned),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class SubmissionResult:
    """Outcome of a decision submission.

    created=False means a decision already existed for the (cyclist, session,
    stage) key; `record` is then the existing entry, unchanged.
    """

    created: bool
    record: DecisionRecord

    def to_dict(self) -> Dict[str, Any]:
        return {"created": bool(self.created), "decision": self.record.to_dict()}


@dataclass(frozen=True, slots=True)
class StageDecisionStatus:
    session_id: str
    stage_number: int
    expected: int
    submitted: int
    missing_cyclist_ids: Tuple[str, ...]

    @property
    def complete(self) -> bool:
        return self.submitted >= self.expected and not self.missing_cyclist_ids

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "stage_number": int(self.stage_number),
            "expected": int(self.expected),
            "submitted": int(self.submitted),
            "missing_cyclist_ids": list(self.missing_cyclist_ids),
            "complete": bool(self.complete),
        }
