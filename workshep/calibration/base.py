"""Base class for calibration methods.

A calibration method scores every reviewer (0..100) by how well they
assess, before they assess real submissions. The calibrated grading
evaluation turns these scores into grades for assessment.
"""


class CalibrationMethod:

    name = ""
    default_settings = {}

    def __init__(self, state: dict):
        self.state = state

    def get_settings(self) -> dict:
        settings = dict(self.default_settings)
        settings.update(self.state.get("calibration_settings", {}).get(self.name, {}))
        return settings

    def save_settings(self, settings: dict) -> dict:
        merged = self.get_settings()
        merged.update({k: v for k, v in (settings or {}).items() if k in self.default_settings})
        merged = self.clean_settings(merged)
        self.state.setdefault("calibration_settings", {})[self.name] = merged
        return merged

    def clean_settings(self, settings: dict) -> dict:
        return settings

    def calculate_calibration_scores(self, settings: dict, user: str = "system") -> dict:
        raise NotImplementedError

    def get_calibration_scores(self) -> dict:
        """Stored scores keyed by user id."""
        return dict(self.state.get("calibration_scores", {}))

    def get_calibration_score_for_user(self, userid):
        return self.state.get("calibration_scores", {}).get(str(userid))

    def prepare_grade_breakdown(self, userid) -> dict:
        """Optional explanation of a user's score."""
        return {"empty": True}
