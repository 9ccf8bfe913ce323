from __future__ import annotations

"""Opponent simulator for AI-controlled teams.

Each AI team is simulated independently:
1) draw AI_TEAM_SIZE Bernoulli trials with the faction's cruise probability
2) score the tally with the same matrix as the home team
3) on negotiation stages, apply the stage multiplier times the alignment
   multiplier of *this team's own* tally
4) truncate per simulated rider, sum into a team points delta
5) apply the raw synergy delta, clamped to [0, 100]

Only team aggregates are persisted; simulated riders exist in the result only.
"""

import logging
import random
from typing import Optional, Sequence

from schema import CHOICE_CRUISE, CHOICE_SPRINT
from scoring import Tally, apply_multiplier, apply_synergy_delta, resolve_multipliers, score_tally

from . import config as opp_cfg
from .types import OpponentStageOutcome

logger = logging.getLogger(__name__)


def cruise_probability_for(team_type: str) -> float:
    p = opp_cfg.AI_CRUISE_PROBABILITY.get(str(team_type).lower())
    if p is None:
        logger.warning("no AI profile for team type %r; using default cruise probability", team_type)
        return float(opp_cfg.DEFAULT_CRUISE_PROBABILITY)
    return float(p)


def draw_choices(cruise_probability: float, rng: random.Random, *, riders: int = opp_cfg.AI_TEAM_SIZE) -> tuple[str, ...]:
    p = float(cruise_probability)
    return tuple(CHOICE_CRUISE if rng.random() < p else CHOICE_SPRINT for _ in range(int(riders)))


def score_opponent_stage(
    *,
    team_id: str,
    team_type: str,
    stage_number: int,
    choices: Sequence[str],
    synergy_before: Optional[int],
    cruise_probability: float,
) -> OpponentStageOutcome:
    """Score a given set of simulated choices for one AI team."""
    tally = Tally.from_choices(choices)
    outcome = score_tally(tally)
    mult = resolve_multipliers(stage_number, tally)
    points = tuple(apply_multiplier(outcome.base_points_for(c), mult.total) for c in choices)
    syn_before = apply_synergy_delta(synergy_before, 0)
    return OpponentStageOutcome(
        team_id=str(team_id),
        team_type=str(team_type),
        cruise_probability=float(cruise_probability),
        choices=tuple(choices),
        tally=tally,
        multipliers=mult,
        points_by_rider=points,
        points_delta=int(sum(points)),
        synergy_before=int(syn_before),
        synergy_delta=int(outcome.synergy_delta),
        synergy_after=apply_synergy_delta(syn_before, outcome.synergy_delta),
    )


def simulate_opponent_stage(
    *,
    team_id: str,
    team_type: str,
    stage_number: int,
    synergy_before: Optional[int],
    rng: random.Random,
) -> OpponentStageOutcome:
    p = cruise_probability_for(team_type)
    choices = draw_choices(p, rng)
    result = score_opponent_stage(
        team_id=team_id,
        team_type=team_type,
        stage_number=stage_number,
        choices=choices,
        synergy_before=synergy_before,
        cruise_probability=p,
    )
    logger.info(
        "AI %s stage %s: %s sprint / %s cruise, x%.2f -> %+d points, synergy %s -> %s",
        team_type,
        stage_number,
        result.tally.sprint_count,
        result.tally.cruise_count,
        result.multipliers.total,
        result.points_delta,
        result.synergy_before,
        result.synergy_after,
    )
    return result
