from __future__ import annotations

import hashlib
import random

from . import config as opp_cfg


def compute_seed(*, session_id: str, stage_number: int, team_type: str, salt: str = opp_cfg.DETERMINISTIC_SEED_SALT) -> int:
    """Deterministic RNG seed (python hash() is salted per process; do not use it)."""
    raw = f"{salt}|{session_id}|{int(stage_number)}|{str(team_type).lower()}"
    h = hashlib.sha256(raw.encode("utf-8")).digest()
    return int.from_bytes(h[:8], "big", signed=False)


def rng_for_team(*, session_id: str, stage_number: int, team_type: str) -> random.Random:
    """Independent generator per AI team so one team's draws never shift another's."""
    return random.Random(compute_seed(session_id=session_id, stage_number=stage_number, team_type=team_type))
