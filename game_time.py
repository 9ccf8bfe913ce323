from __future__ import annotations

import datetime as _dt
from typing import Any


def now_utc_iso() -> str:
    """UTC timestamp string used for created_at/updated_at columns."""
    return _dt.datetime.now(_dt.timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def require_timestamp_iso(value: Any, *, field: str = "timestamp") -> str:
    """
    Ensure value parses as an ISO timestamp and return it unchanged (stripped).
    Fail-loud.
    """
    if value is None:
        raise ValueError(f"{field} is required")
    s = str(value).strip()
    try:
        _dt.datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValueError(f"Invalid {field}: {value!r}") from exc
    return s
