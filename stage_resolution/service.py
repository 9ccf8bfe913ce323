from __future__ import annotations

"""Stage resolution engine.

Called once per (session, stage) after the trainer closes the stage. Reads the
ledger and current team/rider state, scores the home team and every AI team,
and writes the new state back to the store.

Guarantees
----------
- Single application: the stage is claimed in `stage_resolutions` (in the same
  immediate transaction that reads the decisions) before anything is applied.
  A second call for the same stage raises STAGE_ALREADY_RESOLVED.
- No decisions: nothing is claimed or written; the result reports a no-op.
- Best-effort writes: every rider/decision/team/session write runs on its own.
  A failing write is logged and reported in `write_failures`; the remaining
  writes still run. The stage is marked `partial` and the trainer can reopen
  it to correct it. A cleanly `applied` stage cannot be released.
- Read failures (store unreachable) raise STAGE_STORE_UNAVAILABLE so the
  caller can retry.
"""

import json
import logging
import random
import sqlite3
from typing import Any, Callable, Dict, List, Optional

import config
import game_time
from ledger import repo as ledger_repo
from ledger.types import DecisionRecord
from opponents import OpponentStageOutcome, rng_for_team, simulate_opponent_stage
from race_repo import CyclistRow, RaceRepo, TeamRow
from schema import CHOICE_SPRINT, STATUS_ENDED, normalize_session_id, normalize_stage_number
from scoring import (
    MultiplierBreakdown,
    Tally,
    apply_multiplier,
    apply_synergy_delta,
    next_stamina,
    resolve_multipliers,
    score_tally,
)

from . import repo as res_repo
from .errors import (
    STAGE_ALREADY_RESOLVED,
    STAGE_BAD_PAYLOAD,
    STAGE_HOME_TEAM_NOT_FOUND,
    STAGE_LOCK_TIMEOUT,
    STAGE_SESSION_ENDED,
    STAGE_SESSION_NOT_FOUND,
    STAGE_STORE_UNAVAILABLE,
    StageResolutionError,
)
from .locks import stage_lock
from .types import CyclistStageResult, StageResolution, TeamStageResult

logger = logging.getLogger(__name__)

# (session_id, stage_number, team_type) -> generator for that AI team's draws
RngFactory = Callable[[str, int, str], random.Random]

NO_DECISIONS_MESSAGE = "No decisions to process"

# Markers a trainer may drop with reopen_stage. "applied" stays: its effects are final.
RELEASABLE_OUTCOMES = ("claimed", "partial")


def _default_rng_factory(session_id: str, stage_number: int, team_type: str) -> random.Random:
    return rng_for_team(session_id=session_id, stage_number=stage_number, team_type=team_type)


def _store_unavailable(exc: Exception, *, step: str) -> StageResolutionError:
    return StageResolutionError(
        STAGE_STORE_UNAVAILABLE,
        f"store unavailable during {step}: {exc}",
        details={"step": step},
    )


# ---------------------------------------------------------------------------
# Pure computation
# ---------------------------------------------------------------------------


def compute_home_stage(
    *,
    team: TeamRow,
    cyclists: List[CyclistRow],
    decisions: List[DecisionRecord],
    stage_number: int,
) -> TeamStageResult:
    """Score the home team for one stage without touching the store.

    Stamina gating reads the team's synergy *before* this stage's delta.
    """
    by_id = {c.cyclist_id: c for c in cyclists}
    tally = Tally.from_choices(d.decision for d in decisions)
    outcome = score_tally(tally)
    mult: MultiplierBreakdown = resolve_multipliers(stage_number, tally)

    synergy_before = apply_synergy_delta(team.synergy_score, 0)

    results: List[CyclistStageResult] = []
    for d in decisions:
        c = by_id[d.cyclist_id]
        base = outcome.base_points_for(d.decision)
        pts = apply_multiplier(base, mult.total)
        results.append(
            CyclistStageResult(
                cyclist_id=c.cyclist_id,
                decision=d.decision,
                base_points=int(base),
                points=int(pts),
                stamina_before=int(c.stamina),
                stamina_after=next_stamina(c.stamina, d.decision, synergy_before=synergy_before),
                total_points=int(c.current_points) + int(pts),
            )
        )

    points_delta = sum(r.points for r in results)
    return TeamStageResult(
        team_id=team.team_id,
        tally=tally,
        multipliers=mult,
        cyclists=tuple(results),
        synergy_before=int(synergy_before),
        synergy_delta=int(outcome.synergy_delta),
        synergy_after=apply_synergy_delta(synergy_before, outcome.synergy_delta),
        points_delta=int(points_delta),
        total_points=int(team.total_points) + int(points_delta),
    )


def _summary_message(
    stage_number: int,
    home: TeamStageResult,
    *,
    opponents_simulated: int,
    game_ended: bool,
    failures: List[str],
) -> str:
    msg = (
        f"Stage {stage_number} completed - Home: {home.tally.sprint_count} sprinted, "
        f"{home.tally.cruise_count} cruised"
    )
    if config.is_negotiation_stage(stage_number):
        m = home.multipliers
        msg += f" ({m.stage_multiplier:g}x stage x {m.alignment_multiplier:g}x alignment = {m.total:g}x total)"
    msg += f", synergy {home.synergy_before} -> {home.synergy_after}."
    msg += f" {opponents_simulated} AI teams simulated."
    if game_ended:
        msg += " Game complete."
    if failures:
        msg += f" Completed with {len(failures)} write error(s)."
    return msg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def resolve_stage(
    repo: RaceRepo,
    *,
    session_id: Any,
    stage_number: Any,
    rng_factory: Optional[RngFactory] = None,
    lock_timeout_s: Optional[float] = 10.0,
) -> StageResolution:
    """Resolve one stage: score, persist, simulate AI teams, detect game end.

    Raises:
        StageResolutionError: bad input, unknown or ended session, stage already
            resolved, or store unreachable while reading.
    """
    try:
        sid = str(normalize_session_id(session_id))
        stage = normalize_stage_number(stage_number)
    except ValueError as exc:
        raise StageResolutionError(STAGE_BAD_PAYLOAD, str(exc)) from exc

    make_rng = rng_factory or _default_rng_factory

    try:
        with stage_lock(sid, stage, timeout_s=lock_timeout_s):
            return _resolve_locked(repo, sid=sid, stage=stage, make_rng=make_rng)
    except TimeoutError as exc:
        raise StageResolutionError(STAGE_LOCK_TIMEOUT, str(exc)) from exc


def _resolve_locked(repo: RaceRepo, *, sid: str, stage: int, make_rng: RngFactory) -> StageResolution:
    # -- Preconditions ----------------------------------------------------
    try:
        session = repo.get_session(sid)
    except KeyError as exc:
        raise StageResolutionError(STAGE_SESSION_NOT_FOUND, f"session not found: {sid}") from exc
    except sqlite3.Error as exc:
        raise _store_unavailable(exc, step="read_session") from exc

    if session.status == STATUS_ENDED:
        raise StageResolutionError(
            STAGE_SESSION_ENDED,
            f"session {sid} has ended; no further stages can be resolved",
        )
    if not session.stage_locked:
        logger.warning("resolving stage %s of session %s while the stage is still open", stage, sid)

    # -- Step 1: read decisions + claim the stage (one immediate transaction)
    now = game_time.now_utc_iso()
    try:
        with repo.transaction(immediate=True) as cur:
            decisions = ledger_repo.list_stage_decisions(cur, session_id=sid, stage_number=stage)
            if decisions:
                if not res_repo.claim_stage(cur, session_id=sid, stage_number=stage, now=now):
                    raise StageResolutionError(
                        STAGE_ALREADY_RESOLVED,
                        f"stage {stage} of session {sid} has already been resolved",
                        details={"marker": res_repo.get_stage_marker(cur, session_id=sid, stage_number=stage)},
                    )
    except sqlite3.Error as exc:
        raise _store_unavailable(exc, step="claim_stage") from exc

    if not decisions:
        logger.info("stage %s of session %s: no decisions found", stage, sid)
        return StageResolution(
            session_id=sid,
            stage_number=stage,
            processed=False,
            success=True,
            message=NO_DECISIONS_MESSAGE,
        )

    # -- Step 2: current home team + riders ------------------------------
    try:
        home_team, cyclists = repo.read_home_team_and_cyclists(sid)
    except (KeyError, sqlite3.Error) as exc:
        _release_claim(repo, sid=sid, stage=stage)
        if isinstance(exc, KeyError):
            raise StageResolutionError(STAGE_HOME_TEAM_NOT_FOUND, str(exc)) from exc
        raise _store_unavailable(exc, step="read_home_team") from exc

    roster = {c.cyclist_id for c in cyclists}
    home_decisions = [d for d in decisions if d.cyclist_id in roster]
    strays = [d.cyclist_id for d in decisions if d.cyclist_id not in roster]
    if strays:
        logger.warning("stage %s of session %s: ignoring decisions from non-roster riders %s", stage, sid, strays)
    if not home_decisions:
        _release_claim(repo, sid=sid, stage=stage)
        return StageResolution(
            session_id=sid,
            stage_number=stage,
            processed=False,
            success=True,
            message=NO_DECISIONS_MESSAGE,
        )

    # -- Steps 3-5: tally, multipliers, matrix ---------------------------
    home = compute_home_stage(team=home_team, cyclists=cyclists, decisions=home_decisions, stage_number=stage)
    for r in home.cyclists:
        if r.decision == CHOICE_SPRINT and r.stamina_before == config.MIN_STAMINA:
            logger.warning(
                "cyclist %s sprinted with %s stamina in stage %s (session %s); stamina stays at %s",
                r.cyclist_id,
                r.stamina_before,
                stage,
                sid,
                config.MIN_STAMINA,
            )
    logger.info(
        "stage %s session %s: %s sprint / %s cruise, x%g stage x %g alignment = x%g",
        stage,
        sid,
        home.tally.sprint_count,
        home.tally.cruise_count,
        home.multipliers.stage_multiplier,
        home.multipliers.alignment_multiplier,
        home.multipliers.total,
    )

    failures: List[str] = []

    # -- Step 6: riders + ledger points ----------------------------------
    for r in home.cyclists:
        try:
            repo.write_cyclist(r.cyclist_id, points=r.total_points, stamina=r.stamina_after)
        except Exception:
            logger.exception("failed to update cyclist %s (session %s, stage %s)", r.cyclist_id, sid, stage)
            failures.append(f"cyclist:{r.cyclist_id}")
        try:
            repo.write_decision_points_earned(r.cyclist_id, sid, stage, r.points)
        except Exception:
            logger.exception("failed to update decision log for %s (session %s, stage %s)", r.cyclist_id, sid, stage)
            failures.append(f"decision:{r.cyclist_id}")

    # -- Step 7: home team -------------------------------------------------
    try:
        repo.write_team(home.team_id, points=home.total_points, synergy=home.synergy_after)
        logger.info(
            "home team %s: synergy %s -> %s (%+d), points %+d -> %s",
            home.team_id,
            home.synergy_before,
            home.synergy_after,
            home.synergy_delta,
            home.points_delta,
            home.total_points,
        )
    except Exception:
        logger.exception("failed to update home team %s (session %s, stage %s)", home.team_id, sid, stage)
        failures.append(f"team:{home.team_id}")

    # -- Step 8: AI teams --------------------------------------------------
    opponents: List[OpponentStageOutcome] = []
    try:
        ai_teams = repo.read_ai_teams(sid)
    except Exception:
        logger.exception("failed to read AI teams (session %s, stage %s)", sid, stage)
        failures.append("ai_teams:read")
        ai_teams = []

    for team in ai_teams:
        try:
            outcome = simulate_opponent_stage(
                team_id=team.team_id,
                team_type=team.type,
                stage_number=stage,
                synergy_before=team.synergy_score,
                rng=make_rng(sid, stage, team.type),
            )
            repo.write_team(team.team_id, points=team.total_points + outcome.points_delta, synergy=outcome.synergy_after)
            opponents.append(outcome)
        except Exception:
            logger.exception("failed to update AI team %s (session %s, stage %s)", team.team_id, sid, stage)
            failures.append(f"team:{team.team_id}")

    # -- Step 9: multiplier cache + end of game ----------------------------
    try:
        repo.update_session(
            sid,
            multiplier_active=config.is_negotiation_stage(stage),
            current_multiplier=home.multipliers.total,
        )
    except Exception:
        logger.exception("failed to update multiplier cache for session %s (stage %s)", sid, stage)
        failures.append(f"session_multiplier:{sid}")

    game_ended = False
    if config.is_final_stage(stage):
        try:
            repo.write_session_status(sid, STATUS_ENDED)
            game_ended = True
            logger.info("session %s: final stage resolved; game ended", sid)
        except Exception:
            logger.exception("failed to end session %s after stage %s", sid, stage)
            failures.append(f"session:{sid}")

    # -- Step 10: result ---------------------------------------------------
    result = StageResolution(
        session_id=sid,
        stage_number=stage,
        processed=True,
        success=not failures,
        message=_summary_message(
            stage,
            home,
            opponents_simulated=len(opponents),
            game_ended=game_ended,
            failures=failures,
        ),
        home=home,
        opponents=tuple(opponents),
        game_ended=game_ended,
        write_failures=tuple(failures),
    )
    _finish_claim(repo, result)
    return result


def _finish_claim(repo: RaceRepo, result: StageResolution) -> None:
    try:
        with repo.transaction() as cur:
            res_repo.finish_stage(
                cur,
                session_id=result.session_id,
                stage_number=result.stage_number,
                outcome="applied" if result.success else "partial",
                summary_json=json.dumps(result.to_dict(), sort_keys=True, separators=(",", ":")),
                now=game_time.now_utc_iso(),
            )
    except Exception:
        logger.warning(
            "failed to record resolution summary for session %s stage %s",
            result.session_id,
            result.stage_number,
            exc_info=True,
        )


def _release_claim(repo: RaceRepo, *, sid: str, stage: int) -> None:
    try:
        with repo.transaction() as cur:
            res_repo.release_stage(cur, session_id=sid, stage_number=stage)
    except Exception:
        logger.warning("failed to release claim for session %s stage %s", sid, stage, exc_info=True)


def release_stage_claim(repo: RaceRepo, *, session_id: Any, stage_number: Any) -> bool:
    """Drop a `partial` or stale `claimed` marker so the stage can be resolved again.

    Returns True when a marker was removed. Effects already applied by the
    earlier resolution are NOT reverted.

    Raises:
        StageResolutionError: STAGE_ALREADY_RESOLVED when the stage was applied
            cleanly; releasing it would let a second resolution apply it twice.
    """
    sid = str(normalize_session_id(session_id))
    stage = normalize_stage_number(stage_number)
    with stage_lock(sid, stage):
        with repo.transaction(immediate=True) as cur:
            marker = res_repo.get_stage_marker(cur, session_id=sid, stage_number=stage)
            if marker is None:
                return False
            if marker["outcome"] not in RELEASABLE_OUTCOMES:
                raise StageResolutionError(
                    STAGE_ALREADY_RESOLVED,
                    f"stage {stage} of session {sid} was applied and cannot be reopened",
                    details={"outcome": marker["outcome"], "releasable": list(RELEASABLE_OUTCOMES)},
                )
            released = res_repo.release_stage(cur, session_id=sid, stage_number=stage)
    if released:
        logger.info("released %s resolution marker for session %s stage %s", marker["outcome"], sid, stage)
    return released


def get_stage_resolution(repo: RaceRepo, *, session_id: Any, stage_number: Any) -> Optional[Dict[str, Any]]:
    """Return the stored resolution marker (with decoded summary) or None."""
    sid = str(normalize_session_id(session_id))
    stage = normalize_stage_number(stage_number)
    with repo.transaction() as cur:
        marker = res_repo.get_stage_marker(cur, session_id=sid, stage_number=stage)
    if marker is None:
        return None
    raw = marker.pop("summary_json", None)
    try:
        marker["summary"] = json.loads(raw) if raw else None
    except (TypeError, ValueError):
        logger.warning("undecodable resolution summary for session %s stage %s", sid, stage)
        marker["summary"] = None
    return marker
