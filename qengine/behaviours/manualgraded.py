"""
Manually graded: nothing is marked automatically. Finishing sends the attempt
to a grader, which can be done, and redone, at any time after.
"""

from qengine.behaviours.base import BehaviourWithSave, Decision, DISCARD, KEEP
from qengine.engine.display import DisplayOptions
from qengine.engine.states import QuestionState
from qengine.engine.steps import PendingStep


class ManualGradedBehaviour(BehaviourWithSave):
    """Finish moves to needs-grading (or gave-up); marks only arrive through comments."""

    name = "manualgraded"
    IS_ARCHETYPAL = True

    def process_action(self, pending_step: PendingStep) -> Decision:
        if pending_step.has_behaviour_var('finish'):
            return self.process_finish(pending_step)
        if pending_step.has_behaviour_var('comment'):
            return self.process_comment(pending_step)
        return self.process_save(pending_step)

    def process_finish(self, pending_step: PendingStep) -> Decision:
        if self.attempt.get_state().is_finished():
            return DISCARD

        response = self.attempt.get_last_qt_data()
        if not self.question.is_complete_response(response):
            pending_step.set_state(QuestionState.GAVE_UP)
        else:
            pending_step.set_state(QuestionState.NEEDS_GRADING)
        pending_step.set_new_response_summary(self.question.summarise_response(response))
        return KEEP

    def adjust_display_options(self, options: DisplayOptions) -> None:
        """Nothing to feed back until a grader has looked at it; the right answer never shows."""
        super().adjust_display_options(options)
        if self.attempt.get_state().is_finished():
            options.readonly = True
            options.feedback = False
            options.right_answer = False
        else:
            options.hide_all_feedback()
