"""Grading strategy registry."""

from ..errors import ValidationError
from .base import GradingStrategy
from .accumulative import AccumulativeStrategy
from .comments import CommentsStrategy
from .numerrors import NumErrorsStrategy
from .rubric import RubricStrategy

STRATEGIES = {
    AccumulativeStrategy.name: AccumulativeStrategy,
    CommentsStrategy.name: CommentsStrategy,
    NumErrorsStrategy.name: NumErrorsStrategy,
    RubricStrategy.name: RubricStrategy,
}


def get_strategy(state: dict) -> GradingStrategy:
    """Grading strategy instance for the workshop's configured strategy."""
    name = state["workshop"]["strategy"]
    if name not in STRATEGIES:
        raise ValidationError(f"Unknown grading strategy: {name}")
    return STRATEGIES[name](state)


__all__ = ['STRATEGIES', 'GradingStrategy', 'get_strategy']
