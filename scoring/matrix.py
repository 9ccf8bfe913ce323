from __future__ import annotations

"""Scoring matrix: decision tally -> base points per choice + synergy delta.

Pure and deterministic. The table is defined for four riders; teams of one to
three riders are mapped onto the 4-rider row with the nearest sprint share, so
a unanimous team always lands on row 0 or row 4.
"""

import math
from typing import Dict, Mapping, Tuple

from . import config as sc_cfg
from .types import MatrixOutcome, Tally


def canonical_sprint_count(tally: Tally) -> int:
    """Map a tally of N riders (1..4) onto a 4-rider matrix row (0..4).

    - N == 4: the sprint count itself
    - N < 4: round(sprint_count * 4 / N), half rounding up
    """
    n = tally.size
    size = int(sc_cfg.MATRIX_TEAM_SIZE)
    if n <= 0:
        raise ValueError("cannot score an empty tally")
    if n > size:
        raise ValueError(f"tally has {n} decisions; at most {size} riders per team")
    if n == size:
        return int(tally.sprint_count)
    return int(math.floor(tally.sprint_count * size / n + 0.5))


def score_tally(tally: Tally) -> MatrixOutcome:
    row = canonical_sprint_count(tally)
    sprint_pts, cruise_pts, synergy_delta = sc_cfg.SCORE_MATRIX[row]
    # Row mapping keeps unanimous teams on rows 0/4 and mixed teams on 1..3,
    # so every choice present in the tally has points in the row.
    return MatrixOutcome(
        row=row,
        sprint_points=sprint_pts,
        cruise_points=cruise_pts,
        synergy_delta=int(synergy_delta),
    )


def score_decisions(choices_by_cyclist: Mapping[str, str]) -> Tuple[Dict[str, int], int]:
    """Base points per rider and the team synergy delta for one stage.

    Args:
        choices_by_cyclist: mapping[cyclist_id] -> "sprint" | "cruise"

    Returns:
        (base_points_by_cyclist, synergy_delta)
    """
    tally = Tally.from_choices(choices_by_cyclist.values())
    outcome = score_tally(tally)
    points = {str(cid): outcome.base_points_for(choice) for cid, choice in choices_by_cyclist.items()}
    return points, int(outcome.synergy_delta)


def team_base_points(tally: Tally) -> int:
    """Sum of base points across the team (used for AI teams with no rider records)."""
    outcome = score_tally(tally)
    total = 0
    if tally.sprint_count:
        total += int(outcome.sprint_points or 0) * tally.sprint_count
    if tally.cruise_count:
        total += int(outcome.cruise_points or 0) * tally.cruise_count
    return int(total)
