from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from opponents.types import OpponentStageOutcome
from scoring.types import MultiplierBreakdown, Tally


@dataclass(frozen=True, slots=True)
class CyclistStageResult:
    """One home rider's stage outcome.

    Fields:
        base_points: matrix points before multipliers.
        points: final points (base x total multiplier, truncated toward zero).
        total_points: cumulative points after this stage.
    """

    cyclist_id: str
    decision: str
    base_points: int
    points: int
    stamina_before: int
    stamina_after: int
    total_points: int

    @property
    def stamina_delta(self) -> int:
        return int(self.stamina_after - self.stamina_before)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cyclist_id": self.cyclist_id,
            "decision": self.decision,
            "base_points": int(self.base_points),
            "points": int(self.points),
            "stamina_before": int(self.stamina_before),
            "stamina_after": int(self.stamina_after),
            "stamina_delta": int(self.stamina_delta),
            "total_points": int(self.total_points),
        }


@dataclass(frozen=True, slots=True)
class TeamStageResult:
    """The home team's StageResult: per-rider deltas plus team aggregates."""

    team_id: str
    tally: Tally
    multipliers: MultiplierBreakdown
    cyclists: Tuple[CyclistStageResult, ...]
    synergy_before: int
    synergy_delta: int
    synergy_after: int
    points_delta: int
    total_points: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "team_id": self.team_id,
            "tally": self.tally.to_dict(),
            **self.multipliers.to_dict(),
            "cyclists": [c.to_dict() for c in self.cyclists],
            "synergy_before": int(self.synergy_before),
            "synergy_delta": int(self.synergy_delta),
            "synergy_after": int(self.synergy_after),
            "points_delta": int(self.points_delta),
            "total_points": int(self.total_points),
        }


@dataclass(frozen=True, slots=True)
class StageResolution:
    """Result of one resolve_stage call.

    processed=False: nothing was applied (no decisions); the stage stays
    unclaimed so a later call can still resolve it.
    success=False: at least one write failed; see write_failures.
    """

    session_id: str
    stage_number: int
    processed: bool
    success: bool
    message: str
    home: Optional[TeamStageResult] = None
    opponents: Tuple[OpponentStageOutcome, ...] = ()
    game_ended: bool = False
    write_failures: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def stage_multiplier(self) -> float:
        return float(self.home.multipliers.stage_multiplier) if self.home else 1.0

    @property
    def alignment_multiplier(self) -> float:
        return float(self.home.multipliers.alignment_multiplier) if self.home else 1.0

    @property
    def total_multiplier(self) -> float:
        return float(self.home.multipliers.total) if self.home else 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "stage_number": int(self.stage_number),
            "processed": bool(self.processed),
            "success": bool(self.success),
            "message": self.message,
            "stage_multiplier": self.stage_multiplier,
            "alignment_multiplier": self.alignment_multiplier,
            "total_multiplier": self.total_multiplier,
            "home": self.home.to_dict() if self.home else None,
            "opponents": [o.to_dict() for o in self.opponents],
            "game_ended": bool(self.game_ended),
            "write_failures": list(self.write_failures),
        }
