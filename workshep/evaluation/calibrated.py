"""Calibrated evaluation.

The grade for assessment is the reviewer's calibration score, i.e. how
closely their assessments of the example submissions matched the teacher's
reference assessments. Optionally the submission grades are re-weighted so
that competent reviewers count for more.
"""
import time
import logging

from ..grades import grade_floatval, grade_floats_different
from ..services import workshop_service as ws
from .base import GradingEvaluation

logger = logging.getLogger(__name__)


def _gradinggrade(assessment):
    if assessment.get("gradinggradeover") is not None:
        return assessment["gradinggradeover"]
    return assessment.get("gradinggrade")


class CalibratedEvaluation(GradingEvaluation):

    name = "calibrated"
    default_settings = {"adjustgrades": False}

    def clean_settings(self, settings: dict) -> dict:
        return {"adjustgrades": bool(settings.get("adjustgrades"))}

    def update_grading_grades(self, settings: dict, restrict=None):
        from ..calibration import get_calibration

        scores = get_calibration(self.state).get_calibration_scores()
        reviewers = None
        if restrict is not None:
            if not isinstance(restrict, (list, tuple, set)):
                restrict = [restrict]
            reviewers = {str(r) for r in restrict}

        for a in ws.get_all_assessments(self.state):
            if a["weight"] <= 0:
                continue
            if reviewers is not None and a["reviewerid"] not in reviewers:
                continue
            score = scores.get(a["reviewerid"])
            if a.get("grade") is not None and score is not None:
                gradinggrade = grade_floatval(score)
            else:
                gradinggrade = 0
            if grade_floats_different(gradinggrade, a.get("gradinggrade")):
                a["gradinggrade"] = gradinggrade

    def adjusts_submission_grades(self, settings: dict) -> bool:
        return self.clean_settings(settings)["adjustgrades"]

    def update_submission_grades(self, settings: dict, now=None) -> int:
        """Weight the peer grades by the reviewers' grading grades.

        Returns the number of submissions whose grade changed.
        """
        from ..services.aggregation_service import counts_towards_submission_grade

        settings = self.clean_settings(settings)
        if not settings["adjustgrades"]:
            return 0
        now = int(time.time()) if now is None else int(now)

        changed = 0
        for submission in ws.get_submissions(self.state):
            weighted = 0
            total = 0
            for a in ws.get_assessments_of_submission(self.state, submission["id"]):
                if not counts_towards_submission_grade(a):
                    continue
                gradinggrade = _gradinggrade(a) or 0
                weighted += a["grade"] * a["weight"] * gradinggrade
                total += gradinggrade * a["weight"]

            grade = grade_floatval(weighted / total) if total > 0 else None
            if grade_floats_different(grade, submission.get("grade")):
                submission["grade"] = grade
                submission["timegraded"] = now
                changed += 1
        return changed

    def no_competent_reviewers(self) -> list:
        """Submissions whose reviewers all have a zero grade for assessment."""
        scores = {}
        for a in ws.get_all_assessments(self.state):
            if a.get("gradinggrade") is None or a["weight"] <= 0:
                continue
            scores[a["submissionid"]] = scores.get(a["submissionid"], 0) + a["gradinggrade"]

        result = []
        for submissionid in sorted(scores):
            if scores[submissionid] == 0:
                submission = ws.get_submission(self.state, submissionid)
                result.append({"id": submission["id"], "title": submission["title"]})
        return result
