from __future__ import annotations

from typing import Any, Dict, List, Sequence

from race_repo import TeamRow


def rank_teams(teams: Sequence[TeamRow]) -> List[Dict[str, Any]]:
    """Leaderboard: total points desc, then synergy desc. Ties share no rank; order is stable by team type."""
    ordered = sorted(teams, key=lambda t: (-int(t.total_points), -int(t.synergy_score), t.type))
    out: List[Dict[str, Any]] = []
    for i, t in enumerate(ordered, start=1):
        row = t.to_dict()
        row["rank"] = i
        row["is_home"] = t.is_home
        out.append(row)
    return out
