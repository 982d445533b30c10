"""Accumulative grading strategy.

Each dimension is graded either in points (0..grade) or on a scale (a list
of items, graded by item number from 1). The peer grade is the weighted
mean of the dimension grades expressed as a fraction of their maximum.
"""
from ..errors import ValidationError
from ..grades import grade_floatval, grade_floats_equal
from .base import GradingStrategy


class AccumulativeStrategy(GradingStrategy):

    name = "accumulative"

    def validate_form(self, form: dict):
        super().validate_form(form)
        for dimension in form["dimensions"]:
            weight = dimension.get("weight", 1)
            if weight is None or weight < 0:
                raise ValidationError("Dimension weights must not be negative")
            scale = dimension.get("scale")
            if scale is not None:
                if not isinstance(scale, list) or len(scale) < 2:
                    raise ValidationError("A scale needs at least two items")
            elif dimension.get("grade", 0) < 0:
                raise ValidationError("Dimension max grade must not be negative")

    def dimensions_info(self) -> dict:
        diminfo = {}
        for dimid, dimension in self.dimensions.items():
            if dimension.get("scale"):
                low, high = 1, len(dimension["scale"])
            else:
                low, high = 0, grade_floatval(dimension.get("grade", 0))
            diminfo[dimid] = {
                "id": dimid,
                "weight": dimension.get("weight", 1),
                "title": dimension.get("description", ""),
                "min": low,
                "max": high,
            }
        return diminfo

    def calculate_peer_grade(self, grades: list):
        if not grades:
            return None

        dimensions = self.dimensions
        additive = self.settings.get("additive", False)
        sumgrades = 0
        sumweights = 0
        for grade in grades:
            dimension = dimensions[grade["dimensionid"]]
            weight = dimension.get("weight", 1)
            if weight < 0:
                raise ValidationError("Negative weights are not supported")
            scale = dimension.get("scale")
            maxgrade = len(scale) if scale else dimension.get("grade", 0)
            if grade_floats_equal(weight, 0) or grade_floats_equal(maxgrade, 0):
                # does not influence the final grade
                continue

            if additive and not scale:
                sumgrades += grade["grade"] * weight * 100
                sumweights += weight * maxgrade
            elif scale:
                sumgrades += self.scale_to_grade(scale, grade["grade"]) * weight * 100
                sumweights += weight
            else:
                sumgrades += (grade["grade"] / maxgrade) * weight * 100
                sumweights += weight

        if sumweights == 0:
            return 0
        return grade_floatval(sumgrades / sumweights)

    @staticmethod
    def scale_to_grade(scale: list, item) -> float:
        """Fraction 0..1 for the item-th (1-based) scale item."""
        numofitems = len(scale)
        if numofitems <= 1:
            raise ValidationError("Invalid scale definition, no scale items found")
        if item > numofitems or item < 1:
            raise ValidationError("Invalid scale item number")
        return (item - 1) / (numofitems - 1)
