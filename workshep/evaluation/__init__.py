"""
Grading evaluation methods, keyed by the name stored in the workshop settings.
"""
from .base import GradingEvaluation
from .best import BestEvaluation
from .calibrated import CalibratedEvaluation

EVALUATORS = {
    BestEvaluation.name: BestEvaluation,
    CalibratedEvaluation.name: CalibratedEvaluation,
}


def get_evaluator(state: dict) -> GradingEvaluation:
    """The evaluation instance configured for the workshop."""
    name = state["workshop"].get("evaluation") or BestEvaluation.name
    return EVALUATORS[name](state)
