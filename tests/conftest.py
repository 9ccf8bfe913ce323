"""
Pytest configuration and shared fixtures.

Provides:
- a temp-file SQLite RaceRepo with the schema applied
- a freshly created four-rider session
- helpers to move a session to a given stage and record decisions
"""

import sys
from pathlib import Path
from typing import Dict, List, Sequence

import pytest

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from race_repo import RaceRepo  # noqa: E402
from ledger.service import submit_decision  # noqa: E402
from sessions.bootstrap import create_game_session  # noqa: E402


class FixedRng:
    """Stand-in for random.Random that always returns the same draw."""

    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value


def all_cruise_rng_factory(session_id, stage_number, team_type):
    return FixedRng(0.0)


def all_sprint_rng_factory(session_id, stage_number, team_type):
    return FixedRng(0.999)


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "race_test.db")


@pytest.fixture
def repo(db_path):
    r = RaceRepo(db_path)
    r.init_db()
    yield r
    r.close()


@pytest.fixture
def game(repo) -> Dict:
    """A new four-rider session (not started)."""
    return create_game_session(repo, title="Workshop A", trainer_id="coach@example.com")


@pytest.fixture
def session_id(game) -> str:
    return game["session"]["session_id"]


@pytest.fixture
def cyclist_ids(game) -> List[str]:
    return [c["cyclist_id"] for c in game["cyclists"]]


# ============================================================================
# HELPERS
# ============================================================================


def open_stage(repo: RaceRepo, session_id: str, stage_number: int) -> None:
    """Jump a session straight to an open, active stage."""
    repo.update_session(session_id, current_stage=stage_number, status="active", stage_locked=False)


def decide_all(
    repo: RaceRepo,
    session_id: str,
    cyclist_ids: Sequence[str],
    choices: Sequence[str],
    stage_number: int,
) -> None:
    """Open the stage, record one decision per rider, then lock it."""
    open_stage(repo, session_id, stage_number)
    for cid, choice in zip(cyclist_ids, choices):
        submit_decision(repo, session_id=session_id, cyclist_id=cid, stage_number=stage_number, choice=choice)
    repo.update_session(session_id, stage_locked=True)


def home_team(repo: RaceRepo, session_id: str):
    team, _cyclists = repo.read_home_team_and_cyclists(session_id)
    return team


def set_home_synergy(repo: RaceRepo, session_id: str, synergy: int) -> None:
    team = home_team(repo, session_id)
    repo.write_team(team.team_id, points=team.total_points, synergy=synergy)
