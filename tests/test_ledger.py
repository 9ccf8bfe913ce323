"""
Decision ledger tests: submission rules and insert-if-absent idempotence.
"""

import pytest

from ledger.errors import (
    DECISION_BAD_PAYLOAD,
    DECISION_CYCLIST_NOT_FOUND,
    DECISION_NO_STAMINA,
    DECISION_SESSION_NOT_ACTIVE,
    DECISION_SESSION_NOT_FOUND,
    DECISION_STAGE_LOCKED,
    DECISION_WRONG_STAGE,
    DecisionLedgerError,
)
from ledger.service import stage_decision_status, submit_decision

from conftest import open_stage


class TestSubmitDecision:
    def test_first_submission_is_recorded(self, repo, session_id, cyclist_ids):
        open_stage(repo, session_id, 1)
        result = submit_decision(repo, session_id=session_id, cyclist_id=cyclist_ids[0], stage_number=1, choice="Sprint")
        assert result.created is True
        assert result.record.decision == "sprint"
        assert result.record.points_earned == 0

    def test_duplicate_submission_keeps_first(self, repo, session_id, cyclist_ids):
        open_stage(repo, session_id, 1)
        submit_decision(repo, session_id=session_id, cyclist_id=cyclist_ids[0], stage_number=1, choice="sprint")
        again = submit_decision(repo, session_id=session_id, cyclist_id=cyclist_ids[0], stage_number=1, choice="cruise")
        assert again.created is False
        assert again.record.decision == "sprint"
        assert len(repo.read_decisions(session_id, 1)) == 1

    def test_not_started_session_rejects(self, repo, session_id, cyclist_ids):
        with pytest.raises(DecisionLedgerError) as exc:
            submit_decision(repo, session_id=session_id, cyclist_id=cyclist_ids[0], stage_number=1, choice="cruise")
        assert exc.value.code == DECISION_SESSION_NOT_ACTIVE

    def test_locked_stage_rejects(self, repo, session_id, cyclist_ids):
        open_stage(repo, session_id, 2)
        repo.update_session(session_id, stage_locked=True)
        with pytest.raises(DecisionLedgerError) as exc:
            submit_decision(repo, session_id=session_id, cyclist_id=cyclist_ids[0], stage_number=2, choice="cruise")
        assert exc.value.code == DECISION_STAGE_LOCKED

    def test_wrong_stage_rejects(self, repo, session_id, cyclist_ids):
        open_stage(repo, session_id, 2)
        with pytest.raises(DecisionLedgerError) as exc:
            submit_decision(repo, session_id=session_id, cyclist_id=cyclist_ids[0], stage_number=3, choice="cruise")
        assert exc.value.code == DECISION_WRONG_STAGE
        assert exc.value.details == {"current_stage": 2}

    def test_unknown_cyclist_rejects(self, repo, session_id):
        open_stage(repo, session_id, 1)
        with pytest.raises(DecisionLedgerError) as exc:
            submit_decision(repo, session_id=session_id, cyclist_id="nobody", stage_number=1, choice="cruise")
        assert exc.value.code == DECISION_CYCLIST_NOT_FOUND

    def test_unknown_session_rejects(self, repo):
        with pytest.raises(DecisionLedgerError) as exc:
            submit_decision(repo, session_id="missing", cyclist_id="c1", stage_number=1, choice="cruise")
        assert exc.value.code == DECISION_SESSION_NOT_FOUND

    @pytest.mark.parametrize("choice", ["", "attack", None])
    def test_bad_choice_rejects(self, repo, session_id, cyclist_ids, choice):
        open_stage(repo, session_id, 1)
        with pytest.raises(DecisionLedgerError) as exc:
            submit_decision(repo, session_id=session_id, cyclist_id=cyclist_ids[0], stage_number=1, choice=choice)
        assert exc.value.code == DECISION_BAD_PAYLOAD

    def test_bad_timestamp_rejects(self, repo, session_id, cyclist_ids):
        open_stage(repo, session_id, 1)
        with pytest.raises(DecisionLedgerError) as exc:
            submit_decision(
                repo,
                session_id=session_id,
                cyclist_id=cyclist_ids[0],
                stage_number=1,
                choice="cruise",
                timestamp="yesterday",
            )
        assert exc.value.code == DECISION_BAD_PAYLOAD

    def test_exhausted_rider_cannot_sprint(self, repo, session_id, cyclist_ids):
        open_stage(repo, session_id, 1)
        repo.write_cyclist(cyclist_ids[0], points=0, stamina=0)
        with pytest.raises(DecisionLedgerError) as exc:
            submit_decision(repo, session_id=session_id, cyclist_id=cyclist_ids[0], stage_number=1, choice="sprint")
        assert exc.value.code == DECISION_NO_STAMINA

        ok = submit_decision(repo, session_id=session_id, cyclist_id=cyclist_ids[0], stage_number=1, choice="cruise")
        assert ok.created is True


class TestStageDecisionStatus:
    def test_tracks_missing_riders(self, repo, session_id, cyclist_ids):
        open_stage(repo, session_id, 1)
        submit_decision(repo, session_id=session_id, cyclist_id=cyclist_ids[1], stage_number=1, choice="cruise")
        status = stage_decision_status(repo, session_id=session_id, stage_number=1)
        assert status.expected == 4
        assert status.submitted == 1
        assert status.complete is False
        assert set(status.missing_cyclist_ids) == {cyclist_ids[0], cyclist_ids[2], cyclist_ids[3]}

    def test_complete_when_everyone_decided(self, repo, session_id, cyclist_ids):
        open_stage(repo, session_id, 1)
        for cid in cyclist_ids:
            submit_decision(repo, session_id=session_id, cyclist_id=cid, stage_number=1, choice="cruise")
        status = stage_decision_status(repo, session_id=session_id, stage_number=1)
        assert status.complete is True
        assert status.to_dict()["missing_cyclist_ids"] == []
