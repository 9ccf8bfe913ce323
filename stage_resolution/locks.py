from __future__ import annotations

"""stage_resolution.locks

Per-stage process-local locks.

The stage_resolutions claim row decides who resolves a stage, across processes
and connections. These locks only keep two threads of one server from running
claim/apply (or claim/release) for the same (session, stage) at once, so a
second caller waits and then sees the finished marker instead of racing the
first one's writes. Different stages never block each other.

Lock order: stage_lock -> RaceRepo.transaction(...)
(do not acquire a stage lock inside an open transaction).
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Tuple

StageKey = Tuple[str, int]

_REGISTRY_LOCK = threading.Lock()
_STAGE_LOCKS: Dict[StageKey, threading.RLock] = {}


def _lock_for(key: StageKey) -> threading.RLock:
    with _REGISTRY_LOCK:
        lock = _STAGE_LOCKS.get(key)
        if lock is None:
            lock = threading.RLock()
            _STAGE_LOCKS[key] = lock
        return lock


@contextmanager
def stage_lock(session_id: str, stage_number: int, *, timeout_s: float | None = None) -> Iterator[None]:
    """Hold the lock for one (session, stage).

    Raises:
        TimeoutError: the lock was not acquired within timeout_s (None waits forever).
    """
    key = (str(session_id), int(stage_number))
    lock = _lock_for(key)
    if timeout_s is None:
        acquired = lock.acquire()
    else:
        acquired = lock.acquire(timeout=max(0.0, float(timeout_s)))
    if not acquired:
        raise TimeoutError(f"stage lock timeout for session {key[0]} stage {key[1]} (timeout_s={timeout_s})")
    try:
        yield
    finally:
        lock.release()


def held_stage_keys() -> list[StageKey]:
    """Keys that currently have a lock object (for diagnostics and tests)."""
    with _REGISTRY_LOCK:
        return sorted(_STAGE_LOCKS)


__all__ = [
    "StageKey",
    "held_stage_keys",
    "stage_lock",
]
