from __future__ import annotations

"""Stage multiplier resolution.

total = stage multiplier (by stage number) x alignment multiplier (by tally).
Both are 1.0 outside negotiation stages. Final points are truncated toward
zero per rider: trunc(-4.5) == -4, not -5.
"""

import math

import config

from . import config as sc_cfg
from .types import MultiplierBreakdown, Tally


def stage_multiplier(stage_number: int) -> float:
    if not config.is_negotiation_stage(stage_number):
        return float(sc_cfg.DEFAULT_STAGE_MULTIPLIER)
    return float(sc_cfg.STAGE_MULTIPLIERS.get(int(stage_number), sc_cfg.DEFAULT_STAGE_MULTIPLIER))


def alignment_of(tally: Tally) -> str:
    """Classify how concentrated a team's decisions were.

    Uses the majority share so smaller teams classify consistently with the
    4-rider matrix: unanimous -> perfect, >= 3/4 -> good, otherwise poor.
    """
    n = tally.size
    if n <= 0:
        raise ValueError("cannot classify alignment of an empty tally")
    majority = tally.majority_count
    if majority == n:
        return sc_cfg.ALIGNMENT_PERFECT
    if majority * 4 >= n * 3:
        return sc_cfg.ALIGNMENT_GOOD
    return sc_cfg.ALIGNMENT_POOR


def alignment_multiplier(tally: Tally) -> float:
    return float(sc_cfg.ALIGNMENT_MULTIPLIERS[alignment_of(tally)])


def resolve_multipliers(stage_number: int, tally: Tally) -> MultiplierBreakdown:
    if not config.is_negotiation_stage(stage_number):
        return MultiplierBreakdown(
            stage_multiplier=float(sc_cfg.DEFAULT_STAGE_MULTIPLIER),
            alignment_multiplier=1.0,
            alignment=None,
        )
    label = alignment_of(tally)
    return MultiplierBreakdown(
        stage_multiplier=stage_multiplier(stage_number),
        alignment_multiplier=float(sc_cfg.ALIGNMENT_MULTIPLIERS[label]),
        alignment=label,
    )


def apply_multiplier(base_points: int, total_multiplier: float) -> int:
    """Scale base points and truncate toward zero."""
    return int(math.trunc(float(base_points) * float(total_multiplier)))
