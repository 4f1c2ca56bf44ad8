"""
Interactive with multiple tries.

The learner submits each question on its own. A submission that is not fully
right uses up a try and reopens the question, with the next hint on offer,
until the tries run out. Each extra try costs the question's penalty.
"""

from typing import Any, Dict, Optional

from qengine.behaviours.base import Decision, DISCARD, KEEP
from qengine.behaviours.immediatefeedback import ImmediateFeedbackBehaviour
from qengine.engine.states import QuestionState
from qengine.engine.steps import RESPONSE_CLEARED, PendingStep, Step


class InteractiveBehaviour(ImmediateFeedbackBehaviour):
    """Immediate feedback with a tries-left counter and hints between tries."""

    name = "interactive"
    IS_ARCHETYPAL = True
    ALWAYS_PROCESS_PREFIXES = ('omact_',)

    def get_total_tries(self) -> int:
        return 1 + len(self.question.hints)

    def get_tries_left(self) -> int:
        return int(self.attempt.get_last_behaviour_var('_triesleft', self.get_total_tries()))

    def init_first_step(self, step: Step) -> None:
        super().init_first_step(step)
        step.set_behaviour_var('_triesleft', self.get_total_tries())

    def get_expected_data(self) -> Dict[str, Any]:
        if self.attempt.get_state().is_active():
            return {'submit': bool, 'tryagain': bool}
        return {}

    def is_try_again_state(self) -> bool:
        """Whether the last action was a submission that used up a try and left the question open."""
        last_step = self.attempt.get_last_step()
        return (self.attempt.get_state().is_active()
                and last_step.has_behaviour_var('submit')
                and last_step.has_behaviour_var('_triesleft'))

    def get_applicable_hint(self) -> Optional[str]:
        if not self.is_try_again_state():
            return None
        index = self.get_total_tries() - self.get_tries_left() - 1
        if 0 <= index < len(self.question.hints):
            return self.question.hints[index]
        return None

    def adjust_fraction_for_tries(self, fraction: float, tries_used: int) -> float:
        """Subtract the penalty for each earlier try, never taking a positive fraction below zero."""
        penalised = fraction - self.question.penalty * tries_used
        return max(penalised, min(fraction, 0.0))

    def process_action(self, pending_step: PendingStep) -> Decision:
        if pending_step.has_behaviour_var('finish'):
            return self.process_finish(pending_step)
        if pending_step.has_behaviour_var('comment'):
            return self.process_comment(pending_step)
        if pending_step.has_behaviour_var('tryagain'):
            return self.process_try_again(pending_step)
        if pending_step.has_behaviour_var('submit'):
            return self.process_submit(pending_step)
        return self.process_save(pending_step)

    def process_try_again(self, pending_step: PendingStep) -> Decision:
        if not self.is_try_again_state():
            return DISCARD
        pending_step.set_behaviour_var(RESPONSE_CLEARED, 1)
        pending_step.set_state(QuestionState.TODO)
        return KEEP

    def process_submit(self, pending_step: PendingStep) -> Decision:
        if self.attempt.get_state().is_finished():
            return DISCARD

        response = pending_step.get_qt_data()
        if not self.question.is_gradable_response(response):
            pending_step.set_state(QuestionState.INVALID)
            pending_step.set_new_response_summary(self.question.summarise_response(response))
            return KEEP

        # Resubmitting the answer that just used up a try changes nothing.
        if self.is_try_again_state() and self.is_same_response(pending_step):
            return DISCARD

        tries_left = self.get_tries_left()
        fraction, state = self.question.grade_response(response)

        if state == QuestionState.GRADED_RIGHT or tries_left <= 1:
            tries_used = self.get_total_tries() - tries_left
            pending_step.set_behaviour_var('_rawfraction', fraction)
            pending_step.set_behaviour_var('_triesleft', 0)
            pending_step.set_fraction(self.adjust_fraction_for_tries(fraction, tries_used))
            pending_step.set_state(state)
        else:
            pending_step.set_behaviour_var('_triesleft', tries_left - 1)
            pending_step.set_state(QuestionState.TODO)

        pending_step.set_new_response_summary(self.question.summarise_response(response))
        return KEEP

    def process_finish(self, pending_step: PendingStep) -> Decision:
        if self.attempt.get_state().is_finished():
            return DISCARD

        response = self.attempt.get_last_qt_data()
        if not self.question.is_gradable_response(response):
            pending_step.set_state(QuestionState.GAVE_UP)
        else:
            tries_used = self.get_total_tries() - self.get_tries_left()
            if self.is_try_again_state():
                # The try that was just marked wrong is the one being graded now.
                tries_used -= 1
            fraction, state = self.question.grade_response(response)
            pending_step.set_behaviour_var('_rawfraction', fraction)
            pending_step.set_fraction(self.adjust_fraction_for_tries(fraction, tries_used))
            pending_step.set_state(state)

        pending_step.set_new_response_summary(self.question.summarise_response(response))
        return KEEP

    def summarise_action(self, step: Step) -> str:
        if step.has_behaviour_var('tryagain'):
            return "Tried again"
        if step.has_behaviour_var('submit'):
            summary = self.question.summarise_response(step.get_qt_data())
            return f"Submitted: {summary}"
        return super().summarise_action(step)
