"""
Calibration by Example Submissions
==================================
Reviewers assess example submissions which the teacher assessed too. Every
dimension grade they give is compared with the teacher's reference grade:

- accuracy: the mean absolute deviation from the references, inverted so
  that 1 is a perfect match, then bent by the accuracy curve
- consistency: the mean absolute deviation of those deviations, turned into
  a multiplier by the consistency curve

The score is accuracy times the consistency multiplier, clamped to 0..100.
"""
import logging

from ..audit import audit_log
from ..errors import ValidationError
from ..grades import grade_floatval
from ..strategies import get_strategy
from ..services import examples_service
from .base import CalibrationMethod

logger = logging.getLogger(__name__)

# Exponents indexed by the strictness setting (0 lax .. 9 strict)
GRADING_CURVES = {9: 4.0, 8: 3.0, 7: 2.0, 6: 1.5, 5: 1.0, 4: 0.666, 3: 0.5, 2: 0.333, 1: 0.25, 0: 0}


def apply_curve(x: float, curve: float) -> float:
    if curve >= 1:
        return 1 - (1 - x) ** curve
    return x ** (1 / curve)


def normalize_deviation(dim: dict, deviation: float) -> float:
    if dim["min"] == dim["max"]:
        return grade_floatval(dim["max"])
    return grade_floatval(deviation / (dim["max"] - dim["min"]) * 100)


def mean_absolute_deviation(values: list) -> float:
    mean = sum(values) / len(values)
    return sum(abs(v - mean) for v in values) / len(values)


def score_parts(deviations: list, settings: dict) -> tuple:
    """Curved accuracy and consistency multiplier of normalised deviations."""
    x = sum(deviations) / len(deviations) / 100
    if x < 0.01:
        # 99% is as good as a perfect match
        x = 0
    accuracy = apply_curve(1 - x, GRADING_CURVES[settings["comparison"]])

    y = mean_absolute_deviation(deviations) / 100
    if y < 0.01:
        y = 0
    if y > 1:
        y = 1
    consistency_curve = GRADING_CURVES[9 - settings["consistency"]]
    return accuracy, consistency_curve * (1 - y) - consistency_curve + 1


class ExamplesCalibration(CalibrationMethod):

    name = "examples"
    default_settings = {"comparison": 5, "consistency": 5}

    def clean_settings(self, settings: dict) -> dict:
        cleaned = {}
        for key in ("comparison", "consistency"):
            try:
                value = int(settings[key])
            except (TypeError, ValueError):
                raise ValidationError(f"{key} must be a number")
            if not 0 <= value <= 9:
                raise ValidationError(f"{key} must be between 0 and 9")
            cleaned[key] = value
        if cleaned["comparison"] == 0:
            raise ValidationError("comparison must be between 1 and 9")
        return cleaned

    def get_reference_assessments(self) -> dict:
        """{example id: {"assessmentid": id, "dimgrades": {dimid: grade}}} of graded references."""
        references = {}
        for example in examples_service.get_examples_for_manager(self.state):
            if example["assessmentid"] is None:
                continue
            references[example["id"]] = {"assessmentid": example["assessmentid"], "dimgrades": {}}

        strategy = get_strategy(self.state)
        for row in strategy.assessment_grades(include_examples=True):
            reference = references.get(row["submissionid"])
            if reference is not None and row["assessmentid"] == reference["assessmentid"]:
                reference["dimgrades"][row["dimensionid"]] = row["grade"]
        return {k: v for k, v in references.items() if v["dimgrades"]}

    def _example_assessments(self, references: dict, restrict=None) -> dict:
        """{reviewer id: {example id: {dimid: grade}}} without the references themselves."""
        reference_ids = {r["assessmentid"] for r in references.values()}
        result = {}
        strategy = get_strategy(self.state)
        for row in strategy.assessment_grades(restrict=restrict, include_examples=True):
            if row["assessmentid"] in reference_ids or row["submissionid"] not in references:
                continue
            result.setdefault(row["reviewerid"], {}).setdefault(row["submissionid"], {})[
                row["dimensionid"]] = row["grade"]
        return result

    def _deviations(self, assessments: dict, references: dict, diminfo: dict) -> list:
        deviations = []
        for exampleid, reference in references.items():
            theirs = assessments.get(exampleid)
            if not theirs:
                continue
            for dimid, refgrade in reference["dimgrades"].items():
                if dimid not in theirs or dimid not in diminfo:
                    continue
                deviations.append(normalize_deviation(diminfo[dimid], abs(refgrade - theirs[dimid])))
        return deviations

    def calculate_calibration_score(self, assessments: dict, references: dict,
                                    diminfo: dict, settings: dict) -> float:
        """Score of one reviewer in 0..1."""
        required = int(self.state["workshop"].get("numexamples") or 0) or len(references)
        if len(assessments) < required:
            return 0

        deviations = self._deviations(assessments, references, diminfo)
        if not deviations:
            return 0

        accuracy, multiplier = score_parts(deviations, settings)
        return min(max(accuracy * multiplier, 0), 1)

    def calculate_calibration_scores(self, settings: dict = None, user: str = "system") -> dict:
        settings = self.save_settings(settings or {})
        diminfo = get_strategy(self.state).dimensions_info()
        references = self.get_reference_assessments()

        scores = {}
        for reviewerid, assessments in sorted(self._example_assessments(references).items()):
            scores[reviewerid] = grade_floatval(
                self.calculate_calibration_score(assessments, references, diminfo, settings) * 100)

        stored = self.state.setdefault("calibration_scores", {})
        stored.update(scores)
        logger.info("Calibrated %d reviewers in workshop %s", len(scores), self.state["workshop"]["id"])
        audit_log("CALIBRATION_UPDATED",
                  f"workshop={self.state['workshop']['id']} method={self.name} reviewers={len(scores)}", user)
        return scores

    def prepare_grade_breakdown(self, userid) -> dict:
        userid = str(userid)
        settings = self.get_settings()
        diminfo = get_strategy(self.state).dimensions_info()
        references = self.get_reference_assessments()
        assessments = self._example_assessments(references, restrict=[userid]).get(userid, {})
        if not assessments:
            return {"empty": True}

        table = []
        deviations = []
        for exampleid in sorted(references):
            theirs = assessments.get(exampleid)
            if not theirs:
                continue
            for dimid, refgrade in sorted(references[exampleid]["dimgrades"].items()):
                if dimid not in theirs or dimid not in diminfo:
                    continue
                deviation = abs(refgrade - theirs[dimid])
                table.append({
                    "exampleid": exampleid,
                    "dimensionid": dimid,
                    "title": diminfo[dimid].get("title", ""),
                    "grade": theirs[dimid],
                    "reference": refgrade,
                    "deviation": deviation,
                })
                deviations.append(normalize_deviation(diminfo[dimid], deviation))
        if not deviations:
            return {"empty": True}

        raw_average = sum(deviations) / len(deviations)
        accuracy, multiplier = score_parts(deviations, settings)
        scaled_average = accuracy * 100
        mad = mean_absolute_deviation(deviations)
        final_score = min(max(multiplier * scaled_average, 0), 100)

        return {
            "empty": False,
            "userid": userid,
            "table": table,
            "raw_average": raw_average,
            "scaled_average": scaled_average,
            "mad": mad,
            "consistency_multiplier": multiplier,
            "final_score": final_score,
            "accuracy": settings["comparison"],
            "consistency": settings["consistency"],
        }
