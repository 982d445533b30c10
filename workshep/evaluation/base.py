"""Base class for grading evaluation methods.

A grading evaluation calculates the grade for assessment ('gradinggrade')
of every assessment, i.e. how well the reviewer assessed.
"""


class GradingEvaluation:

    name = ""
    default_settings = {}

    def __init__(self, state: dict):
        self.state = state

    def get_settings(self) -> dict:
        """The recently used settings in this workshop, or the defaults."""
        settings = dict(self.default_settings)
        settings.update(self.state.get("evaluation_settings", {}).get(self.name, {}))
        return settings

    def save_settings(self, settings: dict) -> dict:
        """Validate and remember the settings for this round of evaluation."""
        merged = self.get_settings()
        merged.update({k: v for k, v in (settings or {}).items() if k in self.default_settings})
        merged = self.clean_settings(merged)
        self.state.setdefault("evaluation_settings", {})[self.name] = merged
        return merged

    def clean_settings(self, settings: dict) -> dict:
        return settings

    def update_grading_grades(self, settings: dict, restrict=None):
        """Calculate and store 'gradinggrade' of the assessments."""
        raise NotImplementedError

    def adjusts_submission_grades(self, settings: dict) -> bool:
        """Does this evaluation replace the weighted mean as the submission grade?"""
        return False
