"""
Opponent simulator tests.
"""

import random

import pytest

from opponents import (
    compute_seed,
    cruise_probability_for,
    draw_choices,
    rng_for_team,
    score_opponent_stage,
    simulate_opponent_stage,
)

from conftest import FixedRng


class TestProfiles:
    def test_known_factions(self):
        assert cruise_probability_for("solaris") == 0.6
        assert cruise_probability_for("corex") == 0.5
        assert cruise_probability_for("vortex") == 0.15

    def test_unknown_faction_falls_back(self):
        assert cruise_probability_for("mystery") == 0.5


class TestDraws:
    def test_low_draw_cruises(self):
        assert draw_choices(0.6, FixedRng(0.0)) == ("cruise",) * 4

    def test_high_draw_sprints(self):
        assert draw_choices(0.6, FixedRng(0.99)) == ("sprint",) * 4

    def test_seed_is_deterministic(self):
        a = compute_seed(session_id="s1", stage_number=3, team_type="corex")
        b = compute_seed(session_id="s1", stage_number=3, team_type="corex")
        assert a == b
        assert a != compute_seed(session_id="s1", stage_number=3, team_type="solaris")
        assert a != compute_seed(session_id="s1", stage_number=4, team_type="corex")

    def test_same_seed_same_choices(self):
        first = draw_choices(0.5, rng_for_team(session_id="s1", stage_number=2, team_type="corex"))
        again = draw_choices(0.5, rng_for_team(session_id="s1", stage_number=2, team_type="corex"))
        assert first == again


class TestScoring:
    def test_uses_own_alignment_and_truncates_per_rider(self):
        out = score_opponent_stage(
            team_id="t1",
            team_type="solaris",
            stage_number=4,
            choices=("sprint", "cruise", "cruise", "cruise"),
            synergy_before=60,
            cruise_probability=0.6,
        )
        assert out.multipliers.alignment == "good"
        assert out.points_by_rider == (13, -4, -4, -4)
        assert out.points_delta == 1
        assert out.synergy_after == 70

    def test_synergy_delta_not_multiplied(self):
        out = score_opponent_stage(
            team_id="t1",
            team_type="vortex",
            stage_number=10,
            choices=("sprint",) * 4,
            synergy_before=50,
            cruise_probability=0.15,
        )
        assert out.points_by_rider == (-20, -20, -20, -20)
        assert out.points_delta == -80
        assert out.synergy_delta == -20
        assert out.synergy_after == 30

    def test_teams_are_independent(self):
        """Identical profiles with different draws produce different outcomes."""
        cruising = simulate_opponent_stage(
            team_id="a", team_type="corex", stage_number=2, synergy_before=100, rng=FixedRng(0.0)
        )
        sprinting = simulate_opponent_stage(
            team_id="b", team_type="corex", stage_number=2, synergy_before=100, rng=FixedRng(0.99)
        )
        assert cruising.tally.cruise_count == 4
        assert sprinting.tally.sprint_count == 4
        assert cruising.points_delta == 4
        assert sprinting.points_delta == -4
        assert cruising.synergy_after == 100
        assert sprinting.synergy_after == 80

    def test_seeded_random_is_accepted(self):
        out = simulate_opponent_stage(
            team_id="c", team_type="solaris", stage_number=1, synergy_before=None, rng=random.Random(7)
        )
        assert out.tally.size == 4
        assert out.synergy_before == 50
        assert out.to_dict()["team_type"] == "solaris"
