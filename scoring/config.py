from __future__ import annotations

"""Scoring rules for one stage.

Philosophy
----------
The matrix is a social dilemma for a team of four:
- everyone Cruising is mildly positive and builds synergy
- a lone Sprinter free-rides on three Cruisers (largest single payoff)
- everyone Sprinting is mildly negative and destroys synergy

Model summary
-------------
Per stage, per team:
1) Tally sprint/cruise decisions
2) Look up base points per choice + synergy delta in SCORE_MATRIX
3) On negotiation stages, multiply base points by
   STAGE_MULTIPLIERS[stage] * ALIGNMENT_MULTIPLIERS[alignment]
   and truncate toward zero, per rider
4) Synergy delta is never multiplied
"""

from typing import Dict, Optional, Tuple

# ---------------------------------------------------------------------------
# Scoring matrix (canonical 4-rider table)
# ---------------------------------------------------------------------------

# sprint_count -> (sprint points each, cruise points each, synergy delta)
# None marks a choice nobody made in that row.
SCORE_MATRIX: Dict[int, Tuple[Optional[int], Optional[int], int]] = {
    0: (None, 1, 20),
    1: (3, -1, 10),
    2: (2, -2, 0),
    3: (1, -3, -10),
    4: (-1, None, -20),
}

# Team size the matrix rows are defined for. Smaller teams are mapped onto
# these rows by their sprint share (see scoring.matrix.canonical_sprint_count).
MATRIX_TEAM_SIZE: int = 4

# ---------------------------------------------------------------------------
# Multipliers (negotiation stages only)
# ---------------------------------------------------------------------------

# Escalates so the finale is decisive.
STAGE_MULTIPLIERS: Dict[int, float] = {
    4: 3.0,
    7: 5.0,
    10: 10.0,
}
DEFAULT_STAGE_MULTIPLIER: float = 1.0

ALIGNMENT_PERFECT = "perfect"  # all riders made the same choice
ALIGNMENT_GOOD = "good"  # 3 of 4 made the same choice
ALIGNMENT_POOR = "poor"  # 2/2 split

ALIGNMENT_MULTIPLIERS: Dict[str, float] = {
    ALIGNMENT_PERFECT: 2.0,
    ALIGNMENT_GOOD: 1.5,
    ALIGNMENT_POOR: 1.0,
}

# ---------------------------------------------------------------------------
# Stamina
# ---------------------------------------------------------------------------

SPRINT_STAMINA_COST: int = 1
CRUISE_STAMINA_RECOVERY: int = 1

# Cruise only recovers stamina when the team's synergy (before this stage's
# update) is at least this value.
STAMINA_RECOVERY_SYNERGY_THRESHOLD: int = 50

# Synergy assumed when a team row carries no synergy value.
DEFAULT_SYNERGY: int = 50
