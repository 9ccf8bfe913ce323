from __future__ import annotations

"""Game-wide constants for the Grand Tour race.

These are fixed rules of the game (not runtime settings). Subsystem tuning
that only one package needs lives in that package's config module
(scoring.config, opponents.config).
"""

import os
from typing import Any, Dict, Tuple

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# ---------------------------------------------------------------------------
# Stage schedule
# ---------------------------------------------------------------------------

TOTAL_STAGES: int = 10
FIRST_STAGE: int = 1

# Stages with a pre-decision negotiation phase and an active score multiplier.
NEGOTIATION_STAGES: Tuple[int, ...] = (4, 7, 10)

STAGE_NAMES: Tuple[str, ...] = (
    "The Dawn Sprint",
    "Valley Crossroads",
    "Cobblestone Challenge",
    "Mountain Pass",
    "Desert Winds",
    "River Crossing",
    "Forest Trail",
    "Hill Climb",
    "Final Valley",
    "Grand Finale",
)

# ---------------------------------------------------------------------------
# Entity bounds
# ---------------------------------------------------------------------------

MIN_STAMINA: int = 0
MAX_STAMINA: int = 5
INITIAL_STAMINA: int = 5

MIN_SYNERGY: int = 0
MAX_SYNERGY: int = 100
INITIAL_SYNERGY: int = 100

# Riders per team in the reference game mode.
TEAM_SIZE: int = 4

# ---------------------------------------------------------------------------
# Factions
# ---------------------------------------------------------------------------

HOME_TEAM_TYPE: str = "rubicon"
AI_TEAM_TYPES: Tuple[str, ...] = ("solaris", "corex", "vortex")
ALL_TEAM_TYPES: Tuple[str, ...] = (HOME_TEAM_TYPE,) + AI_TEAM_TYPES

TEAM_NAMES: Dict[str, str] = {
    "rubicon": "Team Rubicon",
    "solaris": "Team Solaris",
    "corex": "Team Corex",
    "vortex": "Team Vortex",
}

# Home roster, in seating order. A session with fewer riders takes a prefix.
CYCLIST_ROLES: Tuple[str, ...] = ("luca", "jonas", "mateo", "kenji")
CYCLIST_NAMES: Dict[str, str] = {
    "luca": "Luca Moretti",
    "jonas": "Jonas Dahl",
    "mateo": "Mateo Silva",
    "kenji": "Kenji Nakamura",
}


def is_negotiation_stage(stage_number: int) -> bool:
    return int(stage_number) in NEGOTIATION_STAGES


def is_final_stage(stage_number: int) -> bool:
    return int(stage_number) == TOTAL_STAGES


def stage_info(stage_number: int) -> Dict[str, Any]:
    """Describe one stage of the schedule (1-based)."""
    n = int(stage_number)
    if n < FIRST_STAGE or n > TOTAL_STAGES:
        raise ValueError(f"stage_number out of range 1..{TOTAL_STAGES}: {stage_number!r}")
    return {
        "number": n,
        "name": STAGE_NAMES[n - 1],
        "is_negotiation_stage": is_negotiation_stage(n),
        "is_final_stage": is_final_stage(n),
    }
