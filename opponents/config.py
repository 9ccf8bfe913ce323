from __future__ import annotations

"""Tuning for simulated rival teams.

Each AI faction draws one Bernoulli trial per simulated rider per stage with
its own cruise probability:

- solaris: steady, leans Cruise
- corex: coin-flip
- vortex: aggressive, leans Sprint
"""

from typing import Dict

AI_CRUISE_PROBABILITY: Dict[str, float] = {
    "solaris": 0.60,
    "corex": 0.50,
    "vortex": 0.15,
}

# Used when a team row carries a faction with no profile.
DEFAULT_CRUISE_PROBABILITY: float = 0.50

# Simulated riders per AI team (AI teams have no rider rows).
AI_TEAM_SIZE: int = 4

# Salt for deterministic per-(session, stage, team) RNG seeds.
DETERMINISTIC_SEED_SALT: str = "grand-tour-ai-v1"
