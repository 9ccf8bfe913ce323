from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from schema import CHOICE_SPRINT, normalize_choice


@dataclass(frozen=True, slots=True)
class Tally:
    """Sprint/Cruise counts for one team in one stage."""

    sprint_count: int
    cruise_count: int

    def __post_init__(self) -> None:
        if self.sprint_count < 0 or self.cruise_count < 0:
            raise ValueError(f"Tally counts must be non-negative: {self.sprint_count}/{self.cruise_count}")

    @property
    def size(self) -> int:
        return int(self.sprint_count + self.cruise_count)

    @property
    def majority_count(self) -> int:
        return int(max(self.sprint_count, self.cruise_count))

    @classmethod
    def from_choices(cls, choices: Iterable[str]) -> "Tally":
        sprint = 0
        cruise = 0
        for c in choices:
            if normalize_choice(c) == CHOICE_SPRINT:
                sprint += 1
            else:
                cruise += 1
        return cls(sprint_count=sprint, cruise_count=cruise)

    def to_dict(self) -> Dict[str, int]:
        return {"sprint": int(self.sprint_count), "cruise": int(self.cruise_count)}


@dataclass(frozen=True, slots=True)
class MatrixOutcome:
    """Scoring-matrix row selected for a tally.

    Fields:
        row: canonical sprint count (0..4) the tally was mapped onto.
        sprint_points / cruise_points: base (pre-multiplier) points per rider,
            None when the row has no rider making that choice.
        synergy_delta: applied once to the team, never multiplied.
    """

    row: int
    sprint_points: Optional[int]
    cruise_points: Optional[int]
    synergy_delta: int

    def base_points_for(self, choice: str) -> int:
        c = normalize_choice(choice)
        pts = self.sprint_points if c == CHOICE_SPRINT else self.cruise_points
        if pts is None:
            # The tally said nobody made this choice; a caller passed an inconsistent choice.
            raise ValueError(f"matrix row {self.row} has no {c} riders")
        return int(pts)


@dataclass(frozen=True, slots=True)
class MultiplierBreakdown:
    stage_multiplier: float
    alignment_multiplier: float
    alignment: Optional[str]  # None on non-negotiation stages

    @property
    def total(self) -> float:
        return float(self.stage_multiplier) * float(self.alignment_multiplier)

    def to_dict(self) -> Dict[str, object]:
        return {
            "stage_multiplier": float(self.stage_multiplier),
            "alignment_multiplier": float(self.alignment_multiplier),
            "alignment": self.alignment,
            "total_multiplier": float(self.total),
        }
