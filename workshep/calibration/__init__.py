"""
Calibration methods, keyed by the name stored in the workshop settings.
"""
from .base import CalibrationMethod
from .examples import ExamplesCalibration

CALIBRATION_METHODS = {
    ExamplesCalibration.name: ExamplesCalibration,
}


def get_calibration(state: dict) -> CalibrationMethod:
    name = state["workshop"].get("calibrationmethod") or ExamplesCalibration.name
    return CALIBRATION_METHODS[name](state)
