"""Comments grading strategy.

Reviewers only write comments. A completed assessment always scores 100.
"""
from ..grades import grade_floatval
from .base import GradingStrategy


class CommentsStrategy(GradingStrategy):

    name = "comments"

    def dimensions_info(self) -> dict:
        return {
            dimid: {
                "id": dimid,
                "weight": 1,
                "title": dimension.get("description", ""),
                "min": 0,
                "max": 0,
            }
            for dimid, dimension in self.dimensions.items()
        }

    def validate_grades(self, grades: dict):
        # grades are placeholders for the comments, only the keys matter
        super().validate_grades({dimid: 0 for dimid in grades})

    def calculate_peer_grade(self, grades: list):
        if not grades:
            return None
        return grade_floatval(100)
