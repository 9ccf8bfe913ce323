"""
Stage resolution engine tests.

Covers scoring through the store, multiplier stages, stamina/synergy gating,
AI simulation, end of game, duplicate and concurrent resolution, no-op and
failure reporting.
"""

import multiprocessing as mp
import sqlite3
import threading

import pytest

from ledger import repo as ledger_repo
from opponents import rng_for_team, simulate_opponent_stage
from race_repo import RaceRepo
from sessions.bootstrap import create_game_session
from stage_resolution import (
    STAGE_ALREADY_RESOLVED,
    STAGE_BAD_PAYLOAD,
    STAGE_LOCK_TIMEOUT,
    STAGE_SESSION_ENDED,
    STAGE_SESSION_NOT_FOUND,
    STAGE_STORE_UNAVAILABLE,
    StageResolutionError,
    get_stage_resolution,
    resolve_stage,
)
from stage_resolution.locks import held_stage_keys, stage_lock

from conftest import all_cruise_rng_factory, decide_all, home_team, open_stage, set_home_synergy


def _cyclist_state(repo, cyclist_ids):
    return {cid: repo.get_cyclist(cid) for cid in cyclist_ids}


class TestNegotiationScenario:
    """Stage 4, one Sprinter and three Cruisers, synergy 60."""

    @pytest.fixture
    def result(self, repo, session_id, cyclist_ids):
        set_home_synergy(repo, session_id, 60)
        decide_all(repo, session_id, cyclist_ids, ["sprint", "cruise", "cruise", "cruise"], 4)
        return resolve_stage(repo, session_id=session_id, stage_number=4, rng_factory=all_cruise_rng_factory)

    def test_multipliers(self, result):
        assert result.processed is True
        assert result.success is True
        assert result.stage_multiplier == 3.0
        assert result.alignment_multiplier == 1.5
        assert result.total_multiplier == pytest.approx(4.5)
        assert result.home.multipliers.alignment == "good"

    def test_points_truncate_toward_zero(self, repo, result, cyclist_ids):
        points = {c.cyclist_id: c.points for c in result.home.cyclists}
        assert points[cyclist_ids[0]] == 13
        assert [points[cid] for cid in cyclist_ids[1:]] == [-4, -4, -4]

        state = _cyclist_state(repo, cyclist_ids)
        assert state[cyclist_ids[0]].current_points == 13
        assert state[cyclist_ids[1]].current_points == -4

    def test_ledger_points_earned(self, repo, result, session_id, cyclist_ids):
        earned = {d.cyclist_id: d.points_earned for d in repo.read_decisions(session_id, 4)}
        assert earned == {
            cyclist_ids[0]: 13,
            cyclist_ids[1]: -4,
            cyclist_ids[2]: -4,
            cyclist_ids[3]: -4,
        }

    def test_synergy_and_team_points(self, repo, result, session_id):
        team = home_team(repo, session_id)
        assert team.synergy_score == 70
        assert team.total_points == 1
        assert result.home.synergy_before == 60
        assert result.home.synergy_delta == 10

    def test_stamina(self, repo, result, cyclist_ids):
        state = _cyclist_state(repo, cyclist_ids)
        assert state[cyclist_ids[0]].stamina == 4
        assert all(state[cid].stamina == 5 for cid in cyclist_ids[1:])

    def test_session_multiplier_cache(self, repo, result, session_id):
        session = repo.get_session(session_id)
        assert session.multiplier_active is True
        assert session.current_multiplier == pytest.approx(4.5)
        assert session.status == "active"

    def test_marker_records_summary(self, repo, result, session_id):
        marker = get_stage_resolution(repo, session_id=session_id, stage_number=4)
        assert marker["outcome"] == "applied"
        assert marker["summary"]["stage_number"] == 4
        assert marker["summary"]["total_multiplier"] == pytest.approx(4.5)


class TestResolutionRules:
    def test_stage_seven_all_sprint(self, repo, session_id, cyclist_ids):
        decide_all(repo, session_id, cyclist_ids, ["sprint"] * 4, 7)
        result = resolve_stage(repo, session_id=session_id, stage_number=7, rng_factory=all_cruise_rng_factory)
        assert result.total_multiplier == 10.0
        assert [c.points for c in result.home.cyclists] == [-10, -10, -10, -10]
        assert home_team(repo, session_id).synergy_score == 80
        assert all(c.stamina == 4 for c in _cyclist_state(repo, cyclist_ids).values())

    def test_plain_stage_has_no_multiplier(self, repo, session_id, cyclist_ids):
        decide_all(repo, session_id, cyclist_ids, ["sprint", "sprint", "cruise", "cruise"], 2)
        result = resolve_stage(repo, session_id=session_id, stage_number=2, rng_factory=all_cruise_rng_factory)
        assert result.total_multiplier == 1.0
        assert [c.points for c in result.home.cyclists] == [2, 2, -2, -2]
        assert result.home.synergy_after == 100
        assert repo.get_session(session_id).multiplier_active is False

    def test_exhausted_sprinter_stays_at_zero(self, repo, session_id, cyclist_ids):
        open_stage(repo, session_id, 1)
        repo.write_cyclist(cyclist_ids[0], points=0, stamina=0)
        with repo.transaction() as cur:
            ledger_repo.insert_decision_if_absent(
                cur,
                cyclist_id=cyclist_ids[0],
                session_id=session_id,
                stage_number=1,
                decision="sprint",
                timestamp="2026-01-01T00:00:00Z",
            )
        result = resolve_stage(repo, session_id=session_id, stage_number=1, rng_factory=all_cruise_rng_factory)
        assert result.home.cyclists[0].stamina_after == 0
        assert repo.get_cyclist(cyclist_ids[0]).stamina == 0
        # A lone rider sprinting is a unanimous team: row 4.
        assert repo.get_cyclist(cyclist_ids[0]).current_points == -1

    def test_low_synergy_blocks_recovery(self, repo, session_id, cyclist_ids):
        set_home_synergy(repo, session_id, 40)
        for cid in cyclist_ids:
            repo.write_cyclist(cid, points=0, stamina=3)
        decide_all(repo, session_id, cyclist_ids, ["cruise"] * 4, 1)
        resolve_stage(repo, session_id=session_id, stage_number=1, rng_factory=all_cruise_rng_factory)
        assert all(c.stamina == 3 for c in _cyclist_state(repo, cyclist_ids).values())
        assert home_team(repo, session_id).synergy_score == 60

    def test_synergy_clamped_at_hundred(self, repo, session_id, cyclist_ids):
        set_home_synergy(repo, session_id, 95)
        decide_all(repo, session_id, cyclist_ids, ["cruise"] * 4, 1)
        result = resolve_stage(repo, session_id=session_id, stage_number=1, rng_factory=all_cruise_rng_factory)
        assert result.home.synergy_after == 100
        assert home_team(repo, session_id).synergy_score == 100

    def test_small_team(self, repo):
        game = create_game_session(repo, title="Pair", trainer_id="coach@example.com", cyclists_count=2)
        sid = game["session"]["session_id"]
        ids = [c["cyclist_id"] for c in game["cyclists"]]
        assert len(ids) == 2
        decide_all(repo, sid, ids, ["sprint", "cruise"], 4)
        result = resolve_stage(repo, session_id=sid, stage_number=4, rng_factory=all_cruise_rng_factory)
        assert result.home.multipliers.alignment == "poor"
        assert [c.points for c in result.home.cyclists] == [6, -6]
        assert result.home.synergy_delta == 0


class TestOpponents:
    def test_ai_teams_updated(self, repo, session_id, cyclist_ids):
        decide_all(repo, session_id, cyclist_ids, ["cruise"] * 4, 4)
        result = resolve_stage(repo, session_id=session_id, stage_number=4, rng_factory=all_cruise_rng_factory)
        assert [o.team_type for o in result.opponents] == ["solaris", "corex", "vortex"]
        for team in repo.read_ai_teams(session_id):
            assert team.total_points == 24
            assert team.synergy_score == 100

    def test_default_rng_is_deterministic(self, repo, session_id, cyclist_ids):
        decide_all(repo, session_id, cyclist_ids, ["cruise"] * 4, 3)
        before = {t.type: t for t in repo.read_ai_teams(session_id)}
        result = resolve_stage(repo, session_id=session_id, stage_number=3)
        for outcome in result.opponents:
            team = before[outcome.team_type]
            expected = simulate_opponent_stage(
                team_id=team.team_id,
                team_type=team.type,
                stage_number=3,
                synergy_before=team.synergy_score,
                rng=rng_for_team(session_id=session_id, stage_number=3, team_type=team.type),
            )
            assert outcome.choices == expected.choices
            assert outcome.points_delta == expected.points_delta

    def test_home_riders_untouched_by_ai(self, repo, session_id, cyclist_ids):
        decide_all(repo, session_id, cyclist_ids, ["cruise"] * 4, 1)
        resolve_stage(repo, session_id=session_id, stage_number=1, rng_factory=all_cruise_rng_factory)
        assert home_team(repo, session_id).total_points == 4


class TestGameEnd:
    def test_stage_ten_ends_game(self, repo, session_id, cyclist_ids):
        decide_all(repo, session_id, cyclist_ids, ["sprint", "sprint", "cruise", "cruise"], 10)
        result = resolve_stage(repo, session_id=session_id, stage_number=10, rng_factory=all_cruise_rng_factory)
        assert result.game_ended is True
        assert repo.get_session(session_id).status == "ended"
        assert "Game complete" in result.message

    def test_stage_nine_does_not_end(self, repo, session_id, cyclist_ids):
        decide_all(repo, session_id, cyclist_ids, ["cruise"] * 4, 9)
        result = resolve_stage(repo, session_id=session_id, stage_number=9, rng_factory=all_cruise_rng_factory)
        assert result.game_ended is False
        assert repo.get_session(session_id).status == "active"

    def test_ended_session_rejects(self, repo, session_id, cyclist_ids):
        decide_all(repo, session_id, cyclist_ids, ["cruise"] * 4, 10)
        resolve_stage(repo, session_id=session_id, stage_number=10, rng_factory=all_cruise_rng_factory)
        with pytest.raises(StageResolutionError) as exc:
            resolve_stage(repo, session_id=session_id, stage_number=10)
        assert exc.value.code == STAGE_SESSION_ENDED


class TestDuplicateAndNoop:
    def test_second_resolution_rejected(self, repo, session_id, cyclist_ids):
        decide_all(repo, session_id, cyclist_ids, ["sprint", "cruise", "cruise", "cruise"], 2)
        resolve_stage(repo, session_id=session_id, stage_number=2, rng_factory=all_cruise_rng_factory)
        points_before = {cid: repo.get_cyclist(cid).current_points for cid in cyclist_ids}
        team_before = home_team(repo, session_id)

        with pytest.raises(StageResolutionError) as exc:
            resolve_stage(repo, session_id=session_id, stage_number=2, rng_factory=all_cruise_rng_factory)
        assert exc.value.code == STAGE_ALREADY_RESOLVED
        assert exc.value.retryable is False

        assert {cid: repo.get_cyclist(cid).current_points for cid in cyclist_ids} == points_before
        assert home_team(repo, session_id) == team_before

    def test_no_decisions_is_a_noop(self, repo, session_id):
        open_stage(repo, session_id, 1)
        result = resolve_stage(repo, session_id=session_id, stage_number=1)
        assert result.processed is False
        assert result.success is True
        assert result.message == "No decisions to process"
        assert get_stage_resolution(repo, session_id=session_id, stage_number=1) is None
        assert all(t.total_points == 0 for t in repo.list_teams(session_id))

    def test_noop_does_not_block_later_resolution(self, repo, session_id, cyclist_ids):
        open_stage(repo, session_id, 1)
        resolve_stage(repo, session_id=session_id, stage_number=1)
        decide_all(repo, session_id, cyclist_ids, ["cruise"] * 4, 1)
        result = resolve_stage(repo, session_id=session_id, stage_number=1, rng_factory=all_cruise_rng_factory)
        assert result.processed is True


class TestFailures:
    def test_unknown_session(self, repo):
        with pytest.raises(StageResolutionError) as exc:
            resolve_stage(repo, session_id="missing", stage_number=1)
        assert exc.value.code == STAGE_SESSION_NOT_FOUND

    @pytest.mark.parametrize("stage", [0, 11, "x", True])
    def test_bad_stage_number(self, repo, session_id, stage):
        with pytest.raises(StageResolutionError) as exc:
            resolve_stage(repo, session_id=session_id, stage_number=stage)
        assert exc.value.code == STAGE_BAD_PAYLOAD

    def test_store_unavailable_is_retryable(self, repo, session_id, monkeypatch):
        def _boom(_sid):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(repo, "get_session", _boom)
        with pytest.raises(StageResolutionError) as exc:
            resolve_stage(repo, session_id=session_id, stage_number=1)
        assert exc.value.code == STAGE_STORE_UNAVAILABLE
        assert exc.value.retryable is True

    def test_write_failure_continues(self, repo, session_id, cyclist_ids, monkeypatch):
        decide_all(repo, session_id, cyclist_ids, ["cruise"] * 4, 1)
        home_id = home_team(repo, session_id).team_id
        original = repo.write_team

        def _flaky_write_team(team_id, *, points, synergy):
            if team_id == home_id:
                raise sqlite3.OperationalError("database is locked")
            return original(team_id, points=points, synergy=synergy)

        monkeypatch.setattr(repo, "write_team", _flaky_write_team)
        result = resolve_stage(repo, session_id=session_id, stage_number=1, rng_factory=all_cruise_rng_factory)

        assert result.processed is True
        assert result.success is False
        assert result.write_failures == (f"team:{home_id}",)
        assert "write error" in result.message
        # Remaining writes still ran.
        assert all(c.current_points == 1 for c in _cyclist_state(repo, cyclist_ids).values())
        assert all(t.total_points == 4 for t in repo.read_ai_teams(session_id))
        marker = get_stage_resolution(repo, session_id=session_id, stage_number=1)
        assert marker["outcome"] == "partial"


# ============================================================================
# CONCURRENT RESOLUTION
# ============================================================================


def _seed_closed_stage(db_path):
    """Fresh store with one session whose stage 1 holds four cruise decisions."""
    with RaceRepo(db_path) as r:
        r.init_db()
        game = create_game_session(r, title="Race", trainer_id="coach@example.com")
        sid = game["session"]["session_id"]
        decide_all(r, sid, [c["cyclist_id"] for c in game["cyclists"]], ["cruise"] * 4, 1)
    return sid


def _resolve_in_own_connection(db_path, session_id):
    with RaceRepo(db_path) as r:
        try:
            result = resolve_stage(r, session_id=session_id, stage_number=1, rng_factory=all_cruise_rng_factory)
        except StageResolutionError as exc:
            return exc.code
    return "processed" if result.processed else "noop"


def _resolve_in_child(db_path, session_id, out):
    out.put(_resolve_in_own_connection(db_path, session_id))


def _assert_applied_once(db_path, session_id, outcomes):
    assert sorted(outcomes) == ["processed"] + [STAGE_ALREADY_RESOLVED] * (len(outcomes) - 1)
    with RaceRepo(db_path) as r:
        team, cyclists = r.read_home_team_and_cyclists(session_id)
        assert team.total_points == 4
        assert [c.current_points for c in cyclists] == [1, 1, 1, 1]
        assert all(t.total_points == 4 for t in r.read_ai_teams(session_id))
        assert get_stage_resolution(r, session_id=session_id, stage_number=1)["outcome"] == "applied"


class TestConcurrentResolution:
    def test_threads_with_separate_connections(self, db_path):
        sid = _seed_closed_stage(db_path)
        barrier = threading.Barrier(4)
        outcomes = []

        def _worker():
            barrier.wait()
            outcomes.append(_resolve_in_own_connection(db_path, sid))

        threads = [threading.Thread(target=_worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        assert len(outcomes) == 4
        _assert_applied_once(db_path, sid, outcomes)

    @pytest.mark.skipif("fork" not in mp.get_all_start_methods(), reason="needs fork start method")
    def test_processes_race_the_claim(self, db_path):
        sid = _seed_closed_stage(db_path)
        ctx = mp.get_context("fork")
        out = ctx.Queue()
        procs = [ctx.Process(target=_resolve_in_child, args=(db_path, sid, out)) for _ in range(4)]
        for p in procs:
            p.start()
        outcomes = [out.get(timeout=30) for _ in procs]
        for p in procs:
            p.join(timeout=30)

        _assert_applied_once(db_path, sid, outcomes)


class TestStageLock:
    def test_same_stage_blocks_other_threads(self):
        seen = {}

        def _try(stage):
            try:
                with stage_lock("s1", stage, timeout_s=0):
                    seen[stage] = "acquired"
            except TimeoutError:
                seen[stage] = "timeout"

        with stage_lock("s1", 1):
            for stage in (1, 2):
                t = threading.Thread(target=_try, args=(stage,))
                t.start()
                t.join(timeout=5)

        assert seen == {1: "timeout", 2: "acquired"}
        assert ("s1", 1) in held_stage_keys()

    def test_lock_timeout_maps_to_error(self, repo, session_id):
        errors = []

        def _resolve():
            try:
                resolve_stage(repo, session_id=session_id, stage_number=1, lock_timeout_s=0)
            except StageResolutionError as exc:
                errors.append(exc.code)

        with stage_lock(session_id, 1):
            t = threading.Thread(target=_resolve)
            t.start()
            t.join(timeout=5)

        assert errors == [STAGE_LOCK_TIMEOUT]
