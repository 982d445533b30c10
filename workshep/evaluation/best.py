"""Comparison with the best assessment.

For every submission, the assessments are compared with a hypothetical
average assessment. The ones closest to it are considered the best, and
every assessment's grading grade reflects its distance from the nearest
best one. The comparison setting (1 very lax .. 9 very strict) scales how
quickly the grade falls with the distance.
"""
import logging

from ..errors import ValidationError
from ..grades import grade_floatval, grade_floats_different
from ..strategies import get_strategy
from .base import GradingEvaluation

logger = logging.getLogger(__name__)

COMPARISON_LEVELS = (9, 7, 5, 3, 1)


class BestEvaluation(GradingEvaluation):

    name = "best"
    default_settings = {"comparison": 5}

    def clean_settings(self, settings: dict) -> dict:
        try:
            comparison = int(settings["comparison"])
        except (TypeError, ValueError):
            raise ValidationError("comparison must be a number")
        if comparison not in COMPARISON_LEVELS:
            raise ValidationError(f"comparison must be one of {COMPARISON_LEVELS}")
        return {"comparison": comparison}

    def update_grading_grades(self, settings: dict, restrict=None):
        settings = self.clean_settings(settings)
        strategy = get_strategy(self.state)
        diminfo = strategy.dimensions_info()

        # only submissions the restricted reviewers took part in
        submissionids = None
        if restrict is not None:
            restrict_set = {str(r) for r in (restrict if isinstance(restrict, (list, tuple, set)) else [restrict])}
            submissionids = {
                a["submissionid"] for a in self.state["assessments"] if a["reviewerid"] in restrict_set
            }

        batches = {}
        for row in strategy.assessment_grades():
            if submissionids is not None and row["submissionid"] not in submissionids:
                continue
            batches.setdefault(row["submissionid"], []).append(row)

        for submissionid in sorted(batches):
            self.process_assessments(batches[submissionid], diminfo, settings)

    def process_assessments(self, rows: list, diminfo: dict, settings: dict):
        """Grading grades for all assessments of a single submission."""
        assessments = self.prepare_data_from_rows(rows)
        assessments = self.normalize_grades(assessments, diminfo)

        average = self.average_assessment(assessments)
        if average is None:
            grades = {asid: None for asid in assessments}
        else:
            variances = self.weighted_variance(assessments)
            diminfo = {dimid: dict(info, variance=variances.get(dimid)) for dimid, info in diminfo.items()}

            distances = {}
            for asid, assessment in assessments.items():
                distances[asid] = self.assessments_distance(assessment, average, diminfo, settings)
            known = [d for d in distances.values() if d is not None]
            if not known:
                grades = {asid: None for asid in assessments}
            else:
                bestids = [asid for asid, d in distances.items() if d == min(known)]

                distances = {}
                for bestid in bestids:
                    best = assessments[bestid]
                    for asid, assessment in assessments.items():
                        d = self.assessments_distance(assessment, best, diminfo, settings)
                        if d is not None and (asid not in distances or d < distances[asid]):
                            distances[asid] = d

                grades = {}
                for asid in assessments:
                    if asid not in distances:
                        grades[asid] = None
                        continue
                    gradinggrade = min(max(100 - distances[asid], 0), 100)
                    grades[asid] = grade_floatval(gradinggrade)

        by_id = {a["id"]: a for a in self.state["assessments"]}
        for asid, grade in grades.items():
            assessment = by_id[asid]
            if grade_floats_different(grade, assessment.get("gradinggrade")):
                assessment["gradinggrade"] = grade

    @staticmethod
    def prepare_data_from_rows(rows: list) -> dict:
        """Reindex the flat rows by assessment id."""
        assessments = {}
        for row in rows:
            assessment = assessments.setdefault(row["assessmentid"], {
                "assessmentid": row["assessmentid"],
                "weight": row["assessmentweight"],
                "dimgrades": {},
            })
            assessment["dimgrades"][row["dimensionid"]] = row["grade"]
        return assessments

    @staticmethod
    def normalize_grades(assessments: dict, diminfo: dict) -> dict:
        """Dimension grades expressed on a 0..100 scale."""
        for assessment in assessments.values():
            for dimid, dimgrade in assessment["dimgrades"].items():
                dimmin = diminfo[dimid]["min"]
                dimmax = diminfo[dimid]["max"]
                if dimmin == dimmax:
                    assessment["dimgrades"][dimid] = grade_floatval(dimmax)
                else:
                    assessment["dimgrades"][dimid] = grade_floatval(
                        (dimgrade - dimmin) / (dimmax - dimmin) * 100)
        return assessments

    @staticmethod
    def average_assessment(assessments: dict):
        """Weighted average of the dimension grades, None if all weights are zero."""
        sumdimgrades = {}
        totalweight = 0
        for a in assessments.values():
            for dimid, dimgrade in a["dimgrades"].items():
                sumdimgrades[dimid] = sumdimgrades.get(dimid, 0) + dimgrade * a["weight"]
            totalweight += a["weight"]
        if totalweight == 0:
            return None
        return {
            "dimgrades": {dimid: s / totalweight for dimid, s in sumdimgrades.items()},
        }

    @staticmethod
    def weighted_variance(assessments: dict) -> dict:
        """Weighted population variance of every dimension (West's algorithm)."""
        first = next(iter(assessments.values()))
        variances = {}
        for dimid in first["dimgrades"]:
            n = 0
            s = 0
            mean = 0
            sumweight = 0
            for assessment in assessments.values():
                x = assessment["dimgrades"].get(dimid)
                weight = assessment["weight"]
                if x is None or weight == 0:
                    continue
                if n == 0:
                    n = 1
                    mean = x
                    s = 0
                    sumweight = weight
                else:
                    n += 1
                    temp = weight + sumweight
                    q = x - mean
                    r = q * weight / temp
                    s = s + sumweight * q * r
                    mean = mean + r
                    sumweight = temp
            if sumweight > 0 and n > 1:
                variances[dimid] = s / sumweight
            else:
                variances[dimid] = None
        return variances

    @staticmethod
    def assessments_distance(assessment: dict, referential: dict, diminfo: dict, settings: dict):
        """Distance between two assessments, None when no dimension has a weight."""
        distance = 0
        n = 0
        for dimid, agrade in assessment["dimgrades"].items():
            rgrade = referential["dimgrades"][dimid]
            var = diminfo[dimid].get("variance")
            weight = diminfo[dimid]["weight"]
            n += weight

            # variances very close to zero are too sensitive to a small change of data values
            var = max(var if var is not None else 0, 0.01)

            if agrade != rgrade:
                absdelta = abs(agrade - rgrade)
                reldelta = (agrade - rgrade) ** 2 / (settings["comparison"] * var)
                distance += absdelta * reldelta * weight
        if n > 0:
            return round(distance / n, 4)
        return None
