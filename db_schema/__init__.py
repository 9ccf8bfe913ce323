"""SQLite schema for the race store: sessions/teams/cyclists, the decision
ledger with stage resolution markers, and player reflections.

Public API:
- apply_schema(...)
- DEFAULT_MODULES
"""

from .init import DEFAULT_MODULES, apply_schema  # noqa: F401

__all__ = ["DEFAULT_MODULES", "apply_schema"]
