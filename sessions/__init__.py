"""Session setup, trainer lifecycle actions, standings and reflections.

Public API
----------
- bootstrap.create_game_session
- lifecycle.start_stage / close_stage / advance_stage / reopen_stage
- lifecycle.start_reflection / end_reflection
- standings.rank_teams
- reflections.submit_reflection / list_reflections
"""

from .errors import (
    SESSION_BAD_PAYLOAD,
    SESSION_CYCLIST_NOT_FOUND,
    SESSION_INVALID_TRANSITION,
    SESSION_LAST_STAGE,
    SESSION_NOT_FOUND,
    SessionFlowError,
)

__all__ = [
    "SESSION_BAD_PAYLOAD",
    "SESSION_CYCLIST_NOT_FOUND",
    "SESSION_INVALID_TRANSITION",
    "SESSION_LAST_STAGE",
    "SESSION_NOT_FOUND",
    "SessionFlowError",
]
