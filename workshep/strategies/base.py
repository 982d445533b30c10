"""Base class for grading strategies.

A grading strategy defines the structure of the assessment form (its
dimensions) and how the per-dimension grades of one assessment turn into a
single percentual peer grade.
"""
from typing import Optional

from ..errors import ValidationError


class GradingStrategy:
    """Extension point for assessment form definitions."""

    name = ""

    def __init__(self, state: dict):
        self.state = state
        self.form = state.get("form") or {}

    @property
    def dimensions(self) -> dict:
        return {d["id"]: d for d in self.form.get("dimensions", [])}

    @property
    def settings(self) -> dict:
        return self.form.get("config", {})

    def form_ready(self) -> bool:
        """Can the form be used for assessing yet?"""
        return len(self.form.get("dimensions", [])) > 0

    def validate_form(self, form: dict):
        if not isinstance(form.get("dimensions"), list):
            raise ValidationError("The form must define a list of dimensions")

    def save_form(self, form: dict) -> dict:
        """Validate the definition and store it, numbering new dimensions."""
        self.validate_form(form)
        dimensions = []
        used = {d.get("id") for d in form["dimensions"] if d.get("id")}
        next_dimid = max(used) + 1 if used else 1
        for sortorder, dimension in enumerate(form["dimensions"], 1):
            dimension = dict(dimension)
            if not dimension.get("id"):
                dimension["id"] = next_dimid
                next_dimid += 1
            dimension["sort"] = sortorder
            dimensions.append(dimension)
        self.form = {
            "strategy": self.name,
            "dimensions": dimensions,
            "config": dict(form.get("config", {})),
        }
        self.form.update(self._extra_form_fields(form))
        self.state["form"] = self.form
        return self.form

    def _extra_form_fields(self, form: dict) -> dict:
        return {}

    def dimensions_info(self) -> dict:
        """Min, max and weight of every dimension, keyed by dimension id."""
        raise NotImplementedError

    def validate_grades(self, grades: dict):
        """Check a {dimensionid: grade} mapping against the form."""
        dimensions = self.dimensions
        missing = [dimid for dimid in dimensions if dimid not in grades]
        if missing:
            raise ValidationError(f"Missing grades for dimensions: {missing}")
        info = self.dimensions_info()
        for dimid, grade in grades.items():
            if dimid not in dimensions:
                raise ValidationError(f"Unknown dimension: {dimid}")
            if grade is None:
                raise ValidationError(f"Missing grade for dimension {dimid}")
            if grade < info[dimid]["min"] or grade > info[dimid]["max"]:
                raise ValidationError(
                    f"Grade {grade} out of range for dimension {dimid}"
                )

    def calculate_peer_grade(self, grades: list) -> Optional[float]:
        """Percentual grade (0..100) from a list of dimension grade records."""
        raise NotImplementedError

    def assessment_grades(self, restrict=None, include_examples=False) -> list:
        """Flat rows of dimension grades joined with their assessment and submission.

        Rows are ordered by submission id. `restrict` limits the rows to the
        given reviewer ids.
        """
        submissions = {s["id"]: s for s in self.state["submissions"]}
        assessments = {a["id"]: a for a in self.state["assessments"]}
        if restrict is not None:
            restrict = {str(r) for r in restrict}

        rows = []
        for g in self.state["grades"]:
            if g.get("strategy") != self.name:
                continue
            assessment = assessments.get(g["assessmentid"])
            if assessment is None:
                continue
            submission = submissions.get(assessment["submissionid"])
            if submission is None:
                continue
            if submission.get("example") and not include_examples:
                continue
            if restrict is not None and str(assessment["reviewerid"]) not in restrict:
                continue
            rows.append({
                "submissionid": submission["id"],
                "assessmentid": assessment["id"],
                "assessmentweight": assessment["weight"],
                "reviewerid": assessment["reviewerid"],
                "gradinggrade": assessment.get("gradinggrade"),
                "dimensionid": g["dimensionid"],
                "grade": g["grade"],
            })
        rows.sort(key=lambda r: (r["submissionid"], r["assessmentid"], r["dimensionid"]))
        return rows
