from __future__ import annotations

import config
from schema import CHOICE_SPRINT, normalize_choice

from . import config as sc_cfg


def next_stamina(stamina: int, choice: str, *, synergy_before: int) -> int:
    """Stamina after one stage.

    - Sprint: -1, floored at MIN_STAMINA (a 0-stamina Sprint stays at 0)
    - Cruise: +1 capped at MAX_STAMINA, only when the team's synergy before
      this stage's update is >= the recovery threshold; otherwise unchanged
    """
    st = int(min(config.MAX_STAMINA, max(config.MIN_STAMINA, int(stamina))))
    if normalize_choice(choice) == CHOICE_SPRINT:
        return max(config.MIN_STAMINA, st - sc_cfg.SPRINT_STAMINA_COST)
    if int(synergy_before) >= sc_cfg.STAMINA_RECOVERY_SYNERGY_THRESHOLD:
        return min(config.MAX_STAMINA, st + sc_cfg.CRUISE_STAMINA_RECOVERY)
    return st
