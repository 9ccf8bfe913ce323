from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from scoring.types import MultiplierBreakdown, Tally


@dataclass(frozen=True, slots=True)
class OpponentStageOutcome:
    """One AI team's simulated stage, before persistence.

    Fields:
        choices: the simulated riders' decisions, in draw order.
        points_by_rider: final (multiplied, truncated) points per simulated rider.
        points_delta: sum of points_by_rider, added to the team total.
        synergy_delta: raw matrix delta (not multiplied).
    """

    team_id: str
    team_type: str
    cruise_probability: float
    choices: Tuple[str, ...]
    tally: Tally
    multipliers: MultiplierBreakdown
    points_by_rider: Tuple[int, ...]
    points_delta: int
    synergy_before: int
    synergy_delta: int
    synergy_after: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "team_id": self.team_id,
            "team_type": self.team_type,
            "cruise_probability": float(self.cruise_probability),
            "choices": list(self.choices),
            "tally": self.tally.to_dict(),
            **self.multipliers.to_dict(),
            "points_by_rider": list(self.points_by_rider),
            "points_delta": int(self.points_delta),
            "synergy_before": int(self.synergy_before),
            "synergy_delta": int(self.synergy_delta),
            "synergy_after": int(self.synergy_after),
        }
