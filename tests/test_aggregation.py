"""
Test: grade aggregation, idempotency, flag handling and the gradebook.
"""
import copy
import pytest

from workshep import phases
from workshep.audit import get_audit_logs
from workshep.errors import PhaseError, ValidationError
from workshep.services import aggregation_service as agg
from workshep.services import flagging_service as flags
from workshep.services import workshop_service as ws


@pytest.fixture
def peer_graded(submitted, allocate):
    """s1's submission got 60 (weight 1) from s2 and 90 (weight 2) from s3."""
    low = allocate(submitted, "s1", "s2")
    high = allocate(submitted, "s1", "s3", weight=2)
    ws.set_peer_grade(submitted, low, 60)
    ws.set_peer_grade(submitted, high, 90)
    ws.switch_phase(submitted, phases.PHASE_EVALUATION)
    submitted["ids"] = {"low": low, "high": high}
    return submitted


class TestSubmissionGrades:
    def test_weighted_mean(self, peer_graded, submission_of):
        agg.aggregate_submission_grades(peer_graded, now=500)
        submission = submission_of(peer_graded, "s1")
        assert submission["grade"] == 80.0
        assert submission["timegraded"] == 500

    def test_nothing_to_count(self, peer_graded, submission_of):
        agg.aggregate_submission_grades(peer_graded)
        assert submission_of(peer_graded, "s2")["grade"] is None

    def test_idempotent(self, peer_graded):
        assert agg.aggregate_submission_grades(peer_graded, now=500) == 1
        before = copy.deepcopy(peer_graded)
        assert agg.aggregate_submission_grades(peer_graded, now=900) == 0
        assert peer_graded == before

    def test_zero_weight_ignored(self, peer_graded, submission_of):
        ws.override_grading_grade(peer_graded, peer_graded["ids"]["high"], "t1", weight=0)
        agg.aggregate_submission_grades(peer_graded)
        assert submission_of(peer_graded, "s1")["grade"] == 60.0

    def test_restrict(self, peer_graded, submission_of):
        agg.aggregate_submission_grades(peer_graded, restrict=["s2"])
        assert submission_of(peer_graded, "s1")["grade"] is None

    def test_empty_restriction(self, peer_graded):
        with pytest.raises(ValidationError):
            agg.aggregate_submission_grades(peer_graded, restrict=[])

    def test_clear(self, peer_graded, submission_of):
        agg.aggregate_submission_grades(peer_graded)
        agg.clear_submission_grades(peer_graded)
        assert submission_of(peer_graded, "s1")["grade"] is None


class TestFlaggedAssessments:
    def test_pending_flag_not_counted(self, peer_graded, submission_of):
        flags.flag_assessment(peer_graded, peer_graded["ids"]["high"], "s1")
        agg.aggregate_submission_grades(peer_graded)
        assert submission_of(peer_graded, "s1")["grade"] == 60.0

    def test_rejected_flag_counts_again(self, peer_graded, submission_of):
        flags.flag_assessment(peer_graded, peer_graded["ids"]["high"], "s1")
        agg.aggregate_submission_grades(peer_graded)
        flags.resolve_flag(peer_graded, peer_graded["ids"]["high"], uphold=False, user="t1")
        agg.aggregate_submission_grades(peer_graded)
        assert submission_of(peer_graded, "s1")["grade"] == 80.0

    def test_upheld_flag_discards(self, peer_graded, submission_of):
        flags.flag_assessment(peer_graded, peer_graded["ids"]["high"], "s1")
        flags.resolve_flag(peer_graded, peer_graded["ids"]["high"], uphold=True, user="t1")
        agg.aggregate_submission_grades(peer_graded)
        assert submission_of(peer_graded, "s1")["grade"] == 60.0
        assert ws.get_assessment(peer_graded, peer_graded["ids"]["high"])["weight"] == 0

    def test_run_reports_pending_flags(self, peer_graded):
        flags.flag_assessment(peer_graded, peer_graded["ids"]["low"], "s1")
        summary = agg.run_aggregation(peer_graded, user="t1")
        assert summary["pending_flags"] == 1


class TestGradingGrades:
    def test_mean_of_grading_grades(self, peer_graded, allocate):
        other = allocate(peer_graded, "s4", "s2")
        ws.get_assessment(peer_graded, peer_graded["ids"]["low"])["gradinggrade"] = 80.0
        ws.get_assessment(peer_graded, other)["gradinggrade"] = 100.0
        agg.aggregate_grading_grades(peer_graded)
        assert peer_graded["aggregations"]["s2"]["gradinggrade"] == 90.0

    def test_override_wins(self, peer_graded, allocate):
        other = allocate(peer_graded, "s4", "s2")
        ws.get_assessment(peer_graded, peer_graded["ids"]["low"])["gradinggrade"] = 80.0
        ws.get_assessment(peer_graded, other)["gradinggrade"] = 100.0
        ws.override_grading_grade(peer_graded, other, "t1", gradinggradeover=10)
        agg.aggregate_grading_grades(peer_graded)
        assert peer_graded["aggregations"]["s2"]["gradinggrade"] == 65.0

    def test_audit_evaluated_then_reevaluated(self, peer_graded):
        assessment = ws.get_assessment(peer_graded, peer_graded["ids"]["low"])
        assessment["gradinggrade"] = 80.0
        agg.aggregate_grading_grades(peer_graded, user="t1")
        assessment["gradinggrade"] = 40.0
        agg.aggregate_grading_grades(peer_graded, user="t1")
        actions = [entry["action"] for entry in get_audit_logs()]
        assert actions.index("ASSESSMENT_REEVALUATED") < actions.index("ASSESSMENT_EVALUATED")

    def test_unchanged_is_not_rewritten(self, peer_graded):
        ws.get_assessment(peer_graded, peer_graded["ids"]["low"])["gradinggrade"] = 80.0
        assert agg.aggregate_grading_grades(peer_graded, now=1) == 1
        assert agg.aggregate_grading_grades(peer_graded, now=2) == 0
        assert peer_graded["aggregations"]["s2"]["timegraded"] == 1


class TestRunAggregation:
    def test_only_in_evaluation(self, submitted):
        with pytest.raises(PhaseError):
            agg.run_aggregation(submitted)

    def test_twice_is_identical(self, submitted, allocate, assess):
        ids = [allocate(submitted, "s1", r) for r in ("s2", "s3", "s4")]
        ws.switch_phase(submitted, phases.PHASE_ASSESSMENT)
        for aid, reviewer, grade in zip(ids, ("s2", "s3", "s4"), (8, 8, 2)):
            assess(submitted, aid, reviewer, grade, grade)
        ws.switch_phase(submitted, phases.PHASE_EVALUATION)

        agg.run_aggregation(submitted, now=10)
        before = copy.deepcopy(submitted)
        summary = agg.run_aggregation(submitted, now=20)
        assert summary["submissions_changed"] == 0
        assert summary["reviewers_changed"] == 0
        assert submitted == before

    def test_twice_is_identical_with_adjusted_grades(self, submitted, allocate, assess, submission_of):
        ids = [allocate(submitted, "s1", r) for r in ("s2", "s3", "s4")]
        ws.switch_phase(submitted, phases.PHASE_ASSESSMENT)
        for aid, reviewer, grade in zip(ids, ("s2", "s3", "s4"), (8, 8, 2)):
            assess(submitted, aid, reviewer, grade, grade)
        ws.switch_phase(submitted, phases.PHASE_EVALUATION)
        ws.update_workshop(submitted, {"evaluation": "calibrated"})
        submitted["calibration_scores"] = {"s2": 75.0, "s3": 40.0, "s4": 25.0}

        first = agg.run_aggregation(submitted, {"adjustgrades": True}, now=10)
        assert first["submissions_adjusted"] is True
        assert first["submissions_changed"] == 1
        # (80*75 + 80*40 + 20*25) / (75 + 40 + 25)
        assert submission_of(submitted, "s1")["grade"] == 69.28571

        before = copy.deepcopy(submitted)
        summary = agg.run_aggregation(submitted, {"adjustgrades": True}, now=20)
        assert summary["submissions_changed"] == 0
        assert summary["reviewers_changed"] == 0
        assert submitted == before
        assert submission_of(submitted, "s1")["timegraded"] == 10

    def test_settings_remembered(self, peer_graded):
        agg.run_aggregation(peer_graded, {"comparison": 9})
        assert peer_graded["evaluation_settings"]["best"] == {"comparison": 9}

    def test_invalid_settings(self, peer_graded):
        with pytest.raises(ValidationError):
            agg.run_aggregation(peer_graded, {"comparison": 4})

    def test_clear_aggregated(self, peer_graded, submission_of):
        ws.get_assessment(peer_graded, peer_graded["ids"]["low"])["gradinggrade"] = 80.0
        agg.aggregate_submission_grades(peer_graded)
        agg.aggregate_grading_grades(peer_graded)
        agg.clear_aggregated_grades(peer_graded)
        assert submission_of(peer_graded, "s1")["grade"] is None
        assert peer_graded["aggregations"]["s2"]["gradinggrade"] is None


class TestGradebook:
    def test_real_grades(self, peer_graded):
        ws.get_assessment(peer_graded, peer_graded["ids"]["low"])["gradinggrade"] = 90.0
        agg.aggregate_submission_grades(peer_graded)
        agg.aggregate_grading_grades(peer_graded)
        gradebook = agg.update_gradebook(peer_graded)
        assert gradebook["s1"] == {"submissiongrade": 64.0, "assessmentgrade": None}
        assert gradebook["s2"]["assessmentgrade"] == 18.0

    def test_override_is_final(self, peer_graded, submission_of):
        agg.aggregate_submission_grades(peer_graded)
        ws.override_submission_grade(peer_graded, submission_of(peer_graded, "s1")["id"], 20, "t1")
        assert agg.update_gradebook(peer_graded)["s1"]["submissiongrade"] == 20.0

    def test_nothing_to_show(self, peer_graded):
        agg.update_gradebook(peer_graded)
        assert agg.get_gradebook_grades(peer_graded, "s4") is None

    def test_user_required(self, peer_graded):
        with pytest.raises(ValidationError):
            agg.get_gradebook_grades(peer_graded, "")
