from __future__ import annotations

"""Canonical ids, enums and normalization helpers.

Every layer (repo, services, HTTP) funnels external values through these
helpers so that the SQLite store only ever sees canonical strings:

- session/team/cyclist ids are non-empty stripped strings
- choices are lower-case "sprint" | "cruise"
- team types are lower-case faction keys from config.ALL_TEAM_TYPES
- stage numbers are ints within 1..config.TOTAL_STAGES

Normalizers raise ValueError on invalid input.
"""

from typing import Any, Literal, NewType

import config

SCHEMA_VERSION = "1.0"

SessionId = NewType("SessionId", str)
TeamId = NewType("TeamId", str)
CyclistId = NewType("CyclistId", str)

Choice = Literal["sprint", "cruise"]
SessionStatus = Literal["not_started", "active", "reflection", "ended"]

CHOICE_SPRINT: Choice = "sprint"
CHOICE_CRUISE: Choice = "cruise"
CHOICES = (CHOICE_SPRINT, CHOICE_CRUISE)

STATUS_NOT_STARTED: SessionStatus = "not_started"
STATUS_ACTIVE: SessionStatus = "active"
STATUS_REFLECTION: SessionStatus = "reflection"
STATUS_ENDED: SessionStatus = "ended"
SESSION_STATUSES = (STATUS_NOT_STARTED, STATUS_ACTIVE, STATUS_REFLECTION, STATUS_ENDED)


def _norm_id(value: Any, *, field: str) -> str:
    if value is None:
        raise ValueError(f"{field} is required")
    s = str(value).strip()
    if not s:
        raise ValueError(f"{field} is empty")
    return s


def normalize_session_id(value: Any) -> SessionId:
    return SessionId(_norm_id(value, field="session_id"))


def normalize_team_id(value: Any) -> TeamId:
    return TeamId(_norm_id(value, field="team_id"))


def normalize_cyclist_id(value: Any) -> CyclistId:
    return CyclistId(_norm_id(value, field="cyclist_id"))


def normalize_choice(value: Any) -> Choice:
    s = str(value or "").strip().lower()
    if s not in CHOICES:
        raise ValueError(f"Invalid choice (expected sprint|cruise): {value!r}")
    return s  # type: ignore[return-value]


def normalize_team_type(value: Any) -> str:
    s = str(value or "").strip().lower()
    if s not in config.ALL_TEAM_TYPES:
        raise ValueError(f"Invalid team type: {value!r}")
    return s


def normalize_status(value: Any) -> SessionStatus:
    s = str(value or "").strip().lower()
    if s not in SESSION_STATUSES:
        raise ValueError(f"Invalid session status: {value!r}")
    return s  # type: ignore[return-value]


def normalize_stage_number(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Invalid stage_number: {value!r}")
    try:
        n = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid stage_number: {value!r}") from exc
    if n < config.FIRST_STAGE or n > config.TOTAL_STAGES:
        raise ValueError(f"stage_number out of range {config.FIRST_STAGE}..{config.TOTAL_STAGES}: {value!r}")
    return n
