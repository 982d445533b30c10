"""Rubric grading strategy.

Every dimension (criterion) offers a set of levels, each worth some points.
The reviewer picks one level per criterion and the grade is the position of
the total between the lowest and the highest reachable totals.
"""
from ..errors import ValidationError
from ..grades import grade_floatval
from .base import GradingStrategy


class RubricStrategy(GradingStrategy):

    name = "rubric"

    def validate_form(self, form: dict):
        super().validate_form(form)
        for dimension in form["dimensions"]:
            levels = dimension.get("levels") or []
            if not levels:
                raise ValidationError("Every rubric criterion needs at least one level")

    def dimensions_info(self) -> dict:
        diminfo = {}
        for dimid, dimension in self.dimensions.items():
            levelgrades = [level["grade"] for level in dimension["levels"]]
            diminfo[dimid] = {
                "id": dimid,
                "weight": 1,
                "title": dimension.get("description", ""),
                "min": min(levelgrades),
                "max": max(levelgrades),
            }
        return diminfo

    def validate_grades(self, grades: dict):
        super().validate_grades(grades)
        dimensions = self.dimensions
        for dimid, grade in grades.items():
            levelgrades = [level["grade"] for level in dimensions[dimid]["levels"]]
            if grade not in levelgrades:
                raise ValidationError(f"Grade {grade} is not a level of criterion {dimid}")

    def calculate_peer_grade(self, grades: list):
        if not grades:
            return None

        sumgrades = sum(g["grade"] for g in grades)

        mingrade = 0
        maxgrade = 0
        for dimension in self.dimensions.values():
            levelgrades = [level["grade"] for level in dimension["levels"]]
            mingrade += min(levelgrades)
            maxgrade += max(levelgrades)

        if maxgrade - mingrade > 0:
            return grade_floatval(100 * (sumgrades - mingrade) / (maxgrade - mingrade))
        return None
