from __future__ import annotations

from typing import Any, Optional

import config

from . import config as sc_cfg


def clamp_synergy(value: Any) -> int:
    try:
        v = int(value)
    except (TypeError, ValueError):
        return int(sc_cfg.DEFAULT_SYNERGY)
    return int(min(config.MAX_SYNERGY, max(config.MIN_SYNERGY, v)))


def apply_synergy_delta(synergy: Optional[int], delta: int) -> int:
    """New team synergy: clamp(old + delta, 0, 100). Missing synergy counts as DEFAULT_SYNERGY."""
    base = sc_cfg.DEFAULT_SYNERGY if synergy is None else synergy
    return clamp_synergy(int(base) + int(delta))
