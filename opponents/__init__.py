"""Simulated rival teams.

Public API
----------
- simulate_opponent_stage
- score_opponent_stage
- rng_for_team
"""

from .rng import compute_seed, rng_for_team
from .simulator import cruise_probability_for, draw_choices, score_opponent_stage, simulate_opponent_stage
from .types import OpponentStageOutcome

__all__ = [
    "OpponentStageOutcome",
    "compute_seed",
    "cruise_probability_for",
    "draw_choices",
    "rng_for_team",
    "score_opponent_stage",
    "simulate_opponent_stage",
]
