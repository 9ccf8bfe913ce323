"""Decision ledger.

Append-only record of one Sprint/Cruise decision per (cyclist, session,
stage). Written by the player-facing submission flow, read by stage
resolution (which only ever writes `points_earned`).

Public API
----------
- ledger.service.submit_decision
- ledger.service.stage_decision_status

The service module is not re-exported here: race_repo imports ledger.repo,
and ledger.service imports race_repo.
"""

from .errors import DecisionLedgerError
from .types import DecisionRecord, StageDecisionStatus, SubmissionResult

__all__ = [
    "DecisionLedgerError",
    "DecisionRecord",
    "StageDecisionStatus",
    "SubmissionResult",
]
