"""
Tests for pipeline stage management.

Tests cover:
- Stage transitions and history
- Concurrent transition conflicts
- Board view grouped by stage
- Pipeline statistics
- Bulk stage updates
"""

import uuid

import pytest

from nexus_ats.core.exceptions import PipelineServiceError
from nexus_ats.models.candidate import PIPELINE_STAGES
from nexus_ats.services.candidate_service import CandidateService
from nexus_ats.services.pipeline_service import PipelineService


class TestStageUpdate:
    """Tests for update_candidate_stage"""

    def test_move_to_next_stage(self, db_session, make_candidate):
        grace = make_candidate("Grace", "Hopper")
        service = PipelineService(db_session)

        candidate = service.update_candidate_stage(grace["id"], "Screening", "recruiter-1", "Phone screen booked")

        assert candidate["pipeline_info"]["current_stage"] == "Screening"
        history = candidate["pipeline_info"]["stage_history"]
        assert [entry["stage"] for entry in history] == ["Applied", "Screening"]
        assert history[-1]["from_stage"] == "Applied"
        assert history[-1]["changed_by"] == "recruiter-1"
        assert history[-1]["notes"] == "Phone screen booked"

    def test_walk_full_pipeline(self, db_session, make_candidate):
        grace = make_candidate("Grace", "Hopper")
        service = PipelineService(db_session)

        for stage in ("Screening", "Interview", "Offer", "Hired"):
            candidate = service.update_candidate_stage(grace["id"], stage)

        assert candidate["pipeline_info"]["current_stage"] == "Hired"
        assert len(service.get_stage_history(grace["id"])) == 5

    def test_skipping_stages_is_rejected(self, db_session, make_candidate):
        grace = make_candidate("Grace", "Hopper")

        with pytest.raises(PipelineServiceError) as exc_info:
            PipelineService(db_session).update_candidate_stage(grace["id"], "Offer")

        assert exc_info.value.code == "VALIDATION_ERROR"
        assert exc_info.value.status_code == 400
        assert "Screening" in exc_info.value.message
        assert len(PipelineService(db_session).get_stage_history(grace["id"])) == 1

    def test_same_stage_is_recorded(self, db_session, make_candidate):
        grace = make_candidate("Grace", "Hopper")
        service = PipelineService(db_session)

        candidate = service.update_candidate_stage(grace["id"], "Applied", notes="Re-reviewed")

        assert candidate["pipeline_info"]["current_stage"] == "Applied"
        assert len(candidate["pipeline_info"]["stage_history"]) == 2

    def test_unknown_stage(self, db_session, make_candidate):
        grace = make_candidate("Grace", "Hopper")

        with pytest.raises(PipelineServiceError) as exc_info:
            PipelineService(db_session).update_candidate_stage(grace["id"], "Rejected")

        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_missing_candidate(self, db_session):
        with pytest.raises(PipelineServiceError) as exc_info:
            PipelineService(db_session).update_candidate_stage(str(uuid.uuid4()), "Screening")

        assert exc_info.value.code == "CANDIDATE_NOT_FOUND"
        assert exc_info.value.status_code == 404

    def test_deleted_candidate_cannot_move(self, db_session, make_candidate):
        grace = make_candidate("Grace", "Hopper")
        CandidateService(db_session).delete_candidate(grace["id"])

        with pytest.raises(PipelineServiceError) as exc_info:
            PipelineService(db_session).update_candidate_stage(grace["id"], "Screening")

        assert exc_info.value.code == "CANDIDATE_NOT_FOUND"

    def test_concurrent_change_is_a_conflict(self, db_session, make_candidate, monkeypatch):
        """The stored stage no longer matches the one the transition was checked against"""
        grace = make_candidate("Grace", "Hopper")
        monkeypatch.setattr("nexus_ats.crud.candidate.set_stage", lambda *args, **kwargs: 0)

        with pytest.raises(PipelineServiceError) as exc_info:
            PipelineService(db_session).update_candidate_stage(grace["id"], "Screening")

        assert exc_info.value.code == "STAGE_CONFLICT"
        assert exc_info.value.status_code == 409


class TestStageGraph:
    """Tests for the static stage helpers"""

    def test_validate_stage_transition(self):
        assert PipelineService.validate_stage_transition("Applied", "Screening") is True
        assert PipelineService.validate_stage_transition("Applied", "Hired") is False
        assert PipelineService.validate_stage_transition("Nope", "Applied") is False

    def test_get_valid_next_stages(self):
        assert PipelineService.get_valid_next_stages("Offer") == ["Hired", "Interview"]
        assert PipelineService.get_valid_next_stages("Hired") == []
        assert PipelineService.get_valid_next_stages("Nope") == []


class TestPipelineViews:
    """Tests for the board view and statistics"""

    def test_candidates_by_stage_lists_every_stage(self, db_session, make_candidate):
        service = PipelineService(db_session)
        ada = make_candidate("Ada", "Lovelace")
        make_candidate("Grace", "Hopper")
        service.update_candidate_stage(ada["id"], "Screening")

        board = service.get_candidates_by_stage()

        assert list(board) == PIPELINE_STAGES
        assert board["Applied"]["count"] == 1
        assert board["Screening"]["count"] == 1
        assert board["Screening"]["candidates"][0]["id"] == ada["id"]
        assert board["Hired"] == {"candidates": [], "count": 0}

    def test_candidates_by_stage_ignores_stage_filter(self, db_session, make_candidate):
        make_candidate("Ada", "Lovelace", location="London")
        make_candidate("Grace", "Hopper", location="Arlington")

        board = PipelineService(db_session).get_candidates_by_stage({"stage": "Hired", "location": "London"})

        assert board["Applied"]["count"] == 1
        assert board["Applied"]["candidates"][0]["personal_info"]["first_name"] == "Ada"

    def test_pipeline_stats(self, db_session, make_candidate):
        service = PipelineService(db_session)
        candidates = [make_candidate(f"Person{i}", "Tester") for i in range(4)]
        service.update_candidate_stage(candidates[0]["id"], "Screening")
        for stage in ("Screening", "Interview", "Offer", "Hired"):
            service.update_candidate_stage(candidates[1]["id"], stage)

        stats = service.get_pipeline_stats()

        assert stats["total_candidates"] == 4
        assert stats["stage_distribution"] == {
            "Applied": 2, "Screening": 1, "Interview": 0, "Offer": 0, "Hired": 1,
        }
        assert stats["conversion_rate"] == 50.0
        assert stats["hire_rate"] == 25.0

    def test_pipeline_stats_empty(self, db_session):
        stats = PipelineService(db_session).get_pipeline_stats()

        assert stats["total_candidates"] == 0
        assert stats["conversion_rate"] == 0
        assert stats["hire_rate"] == 0


class TestBulkStageUpdate:
    """Tests for bulk_update_stages"""

    def test_partial_success(self, db_session, make_candidate):
        ada = make_candidate("Ada", "Lovelace")
        grace = make_candidate("Grace", "Hopper")

        results = PipelineService(db_session).bulk_update_stages([
            {"candidate_id": ada["id"], "new_stage": "Screening", "notes": "Looks good"},
            {"candidate_id": grace["id"], "new_stage": "Hired"},
            {"candidate_id": "bogus", "new_stage": "Screening"},
        ], user_id="recruiter-1")

        assert [item["candidate_id"] for item in results["successful"]] == [ada["id"]]
        assert results["successful"][0]["result"]["pipeline_info"]["current_stage"] == "Screening"

        failures = {item["candidate_id"]: item["code"] for item in results["failed"]}
        assert failures == {grace["id"]: "VALIDATION_ERROR", "bogus": "INVALID_ID"}

    def test_non_list_input(self, db_session):
        with pytest.raises(PipelineServiceError) as exc_info:
            PipelineService(db_session).bulk_update_stages({"candidate_id": "x"})

        assert exc_info.value.code == "VALIDATION_ERROR"


class TestCandidateJourney:
    def test_create_then_screen_then_skip_to_hired(self, db_session):
        candidate = CandidateService(db_session).create_candidate({
            "first_name": "Jane",
            "last_name": "Doe",
            "email": "JANE@Example.com",
        })
        assert candidate["personal_info"]["email"] == "jane@example.com"
        assert candidate["pipeline_info"]["current_stage"] == "Applied"

        service = PipelineService(db_session)
        screened = service.update_candidate_stage(candidate["id"], "Screening")
        assert len(screened["pipeline_info"]["stage_history"]) == 2

        with pytest.raises(PipelineServiceError) as exc_info:
            service.update_candidate_stage(candidate["id"], "Hired")

        assert "Valid transitions: Interview, Applied" in exc_info.value.message
