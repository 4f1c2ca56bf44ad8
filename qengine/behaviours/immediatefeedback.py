"""
Immediate feedback: each question has its own submit button and is graded
as soon as it is submitted. After that the response is locked.
"""

from typing import Any, Dict

from qengine.behaviours.base import BehaviourWithSave, Decision, DISCARD, KEEP
from qengine.engine.display import DisplayOptions
from qengine.engine.question import GradableQuestion
from qengine.engine.states import QuestionState
from qengine.engine.steps import PendingStep, Step


class ImmediateFeedbackBehaviour(BehaviourWithSave):
    """Grade on submit; an ungradable submission is kept as invalid so it can be corrected."""

    name = "immediatefeedback"
    IS_ARCHETYPAL = True

    def required_question_definition_type(self):
        return GradableQuestion

    def get_expected_data(self) -> Dict[str, Any]:
        if self.attempt.get_state().is_active():
            return {'submit': bool}
        return {}

    def process_action(self, pending_step: PendingStep) -> Decision:
        if pending_step.has_behaviour_var('finish'):
            return self.process_finish(pending_step)
        if pending_step.has_behaviour_var('comment'):
            return self.process_comment(pending_step)
        if pending_step.has_behaviour_var('submit'):
            return self.process_submit(pending_step)
        return self.process_save(pending_step)

    def process_submit(self, pending_step: PendingStep) -> Decision:
        if self.attempt.get_state().is_finished():
            return DISCARD

        response = pending_step.get_qt_data()
        if not self.question.is_gradable_response(response):
            pending_step.set_state(QuestionState.INVALID)
        else:
            self.do_grading(response, pending_step, pending_step)
        pending_step.set_new_response_summary(self.question.summarise_response(response))
        return KEEP

    def process_finish(self, pending_step: PendingStep) -> Decision:
        if self.attempt.get_state().is_finished():
            return DISCARD

        response = self.attempt.get_last_qt_data()
        if not self.question.is_gradable_response(response):
            pending_step.set_state(QuestionState.GAVE_UP)
        else:
            self.do_grading(response, pending_step, self.attempt.get_last_step())
        pending_step.set_new_response_summary(self.question.summarise_response(response))
        return KEEP

    def do_grading(self, response: Dict[str, Any], pending_step: PendingStep, response_step: Step) -> None:
        """Grade ``response`` onto ``pending_step``. ``response_step`` is where the response came from."""
        fraction, state = self.question.grade_response(response)
        pending_step.set_fraction(fraction)
        pending_step.set_state(state)

    def adjust_display_options(self, options: DisplayOptions) -> None:
        super().adjust_display_options(options)
        if not self.attempt.get_state().is_finished():
            options.feedback = False
