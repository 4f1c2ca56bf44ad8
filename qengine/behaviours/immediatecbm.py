"""
Immediate feedback with certainty-based marking (CBM).

Alongside each answer the learner says how sure they are. Being right with
high certainty scores best; being wrong with high certainty costs the most.
"""

from typing import Any, Dict

from qengine.behaviours.base import Decision, DISCARD, KEEP
from qengine.behaviours.immediatefeedback import ImmediateFeedbackBehaviour
from qengine.engine.states import QuestionState, FRACTION_TOLERANCE
from qengine.engine.steps import PendingStep, Step

LOW = 1
MEDIUM = 2
HIGH = 3
CERTAINTY_LEVELS = (LOW, MEDIUM, HIGH)

RIGHT_SCORE = {LOW: 1, MEDIUM: 2, HIGH: 3}
WRONG_SCORE = {LOW: 0, MEDIUM: -2, HIGH: -6}
# Scores are divided by this so that right-with-high-certainty is a fraction of 1.
MAX_SCORE = RIGHT_SCORE[HIGH]


def default_certainty() -> int:
    """Certainty assumed when a response is graded without one."""
    return LOW


def parse_certainty(value: Any) -> int:
    """
    Convert a submitted certainty to a level.

    Returns:
        LOW, MEDIUM or HIGH, or 0 when the value is not a valid level
    """
    try:
        certainty = int(value)
    except (TypeError, ValueError):
        return 0
    return certainty if certainty in CERTAINTY_LEVELS else 0


def adjust_fraction(fraction: float, certainty: int) -> float:
    """
    Apply the CBM score table to a raw fraction.

    Anything short of fully right scores as wrong.

    Args:
        fraction: Raw fraction from the question
        certainty: LOW, MEDIUM or HIGH

    Returns:
        The CBM fraction, between -2 and 1
    """
    if fraction > 1 - FRACTION_TOLERANCE:
        return RIGHT_SCORE[certainty] / MAX_SCORE
    return WRONG_SCORE[certainty] / MAX_SCORE


class ImmediateCBMBehaviour(ImmediateFeedbackBehaviour):
    """Immediate feedback where the submitted certainty scales the mark."""

    name = "immediatecbm"
    IS_ARCHETYPAL = True

    def get_min_fraction(self) -> float:
        return adjust_fraction(super().get_min_fraction(), HIGH)

    def get_expected_data(self) -> Dict[str, Any]:
        if self.attempt.get_state().is_active():
            return {'submit': bool, 'certainty': int}
        return {}

    def get_correct_response(self) -> Dict[str, Any]:
        if self.attempt.get_state().is_active():
            return {'certainty': HIGH}
        return {}

    def is_same_response(self, pending_step: Step) -> bool:
        last_certainty = self.attempt.get_last_behaviour_var('certainty')
        new_certainty = pending_step.get_behaviour_var('certainty')
        return (super().is_same_response(pending_step)
                and str(last_certainty) == str(new_certainty))

    def is_complete_response(self, pending_step: Step) -> bool:
        return (super().is_complete_response(pending_step)
                and pending_step.has_behaviour_var('certainty'))

    def process_submit(self, pending_step: PendingStep) -> Decision:
        if self.attempt.get_state().is_finished():
            return DISCARD

        response = pending_step.get_qt_data()
        if (not self.question.is_gradable_response(response)
                or not parse_certainty(pending_step.get_behaviour_var('certainty'))):
            pending_step.set_state(QuestionState.INVALID)
            pending_step.set_new_response_summary(self.question.summarise_response(response))
            return KEEP

        return super().process_submit(pending_step)

    def do_grading(self, response: Dict[str, Any], pending_step: PendingStep, response_step: Step) -> None:
        fraction, state = self.question.grade_response(response)

        certainty = parse_certainty(response_step.get_behaviour_var('certainty'))
        if not certainty:
            certainty = default_certainty()
            pending_step.set_behaviour_var('_assumedcertainty', certainty)

        pending_step.set_behaviour_var('_rawfraction', fraction)
        pending_step.set_fraction(adjust_fraction(fraction, certainty))
        pending_step.set_state(state)

    def summarise_action(self, step: Step) -> str:
        summary = super().summarise_action(step)
        if step.has_behaviour_var('certainty'):
            summary += f" (certainty {step.get_behaviour_var('certainty')})"
        return summary
