"""Number of errors grading strategy.

Each dimension is an assertion the reviewer answers yes (1) or no (0). The
weights of the failed assertions add up to a number of errors, which the
mapping table turns into a grade.
"""
from ..errors import ValidationError
from ..grades import grade_floatval, grade_floats_different
from .base import GradingStrategy


class NumErrorsStrategy(GradingStrategy):

    name = "numerrors"

    def _extra_form_fields(self, form: dict) -> dict:
        mappings = {}
        for numerrors, grade in (form.get("mappings") or {}).items():
            numerrors = int(numerrors)
            if numerrors < 1:
                raise ValidationError("Mappings start at one error")
            if grade is None or grade == '':
                continue
            mappings[str(numerrors)] = grade_floatval(grade)
        return {"mappings": mappings}

    @property
    def mappings(self) -> dict:
        return {int(k): v for k, v in self.form.get("mappings", {}).items()}

    def validate_form(self, form: dict):
        super().validate_form(form)
        for dimension in form["dimensions"]:
            if dimension.get("weight", 1) < 0:
                raise ValidationError("Dimension weights must not be negative")

    def dimensions_info(self) -> dict:
        return {
            dimid: {
                "id": dimid,
                "weight": dimension.get("weight", 1),
                "title": dimension.get("description", ""),
                "min": 0,
                "max": 1,
            }
            for dimid, dimension in self.dimensions.items()
        }

    def calculate_peer_grade(self, grades: list):
        if not grades:
            return None
        dimensions = self.dimensions
        sumerrors = 0
        for grade in grades:
            if grade_floats_different(grade["grade"], 1.0):
                sumerrors += dimensions[grade["dimensionid"]].get("weight", 1)
        return self.errors_to_grade(sumerrors)

    def errors_to_grade(self, numerrors) -> float:
        """Grade of the highest mapped error count not above numerrors."""
        grade = 100.0
        mappings = self.mappings
        i = 1
        while i <= numerrors:
            if i in mappings:
                grade = mappings[i]
            i += 1
        grade = min(max(grade, 0.0), 100.0)
        return grade_floatval(grade)
