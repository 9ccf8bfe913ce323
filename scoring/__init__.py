"""Stage scoring rules (pure, deterministic).

Public API
----------
- Tally, MatrixOutcome, MultiplierBreakdown
- score_tally / score_decisions / team_base_points
- resolve_multipliers / apply_multiplier
- next_stamina
- apply_synergy_delta
"""

from .matrix import canonical_sprint_count, score_decisions, score_tally, team_base_points
from .multipliers import alignment_multiplier, alignment_of, apply_multiplier, resolve_multipliers, stage_multiplier
from .stamina import next_stamina
from .synergy import apply_synergy_delta, clamp_synergy
from .types import MatrixOutcome, MultiplierBreakdown, Tally

__all__ = [
    "MatrixOutcome",
    "MultiplierBreakdown",
    "Tally",
    "alignment_multiplier",
    "alignment_of",
    "apply_multiplier",
    "apply_synergy_delta",
    "canonical_sprint_count",
    "clamp_synergy",
    "next_stamina",
    "resolve_multipliers",
    "score_decisions",
    "score_tally",
    "stage_multiplier",
    "team_base_points",
]
