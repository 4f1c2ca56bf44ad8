"""
Deferred feedback: responses are saved as the learner goes and only graded
when the whole attempt is finished.
"""

from qengine.behaviours.base import BehaviourWithSave, Decision, DISCARD
from qengine.engine.display import DisplayOptions
from qengine.engine.question import GradableQuestion
from qengine.engine.steps import PendingStep


class DeferredFeedbackBehaviour(BehaviourWithSave):
    """Save until finish, then grade the last saved response."""

    name = "deferredfeedback"
    IS_ARCHETYPAL = True

    def required_question_definition_type(self):
        return GradableQuestion

    def process_action(self, pending_step: PendingStep) -> Decision:
        if pending_step.has_behaviour_var('finish'):
            return self.process_finish(pending_step)
        if pending_step.has_behaviour_var('comment'):
            return self.process_comment(pending_step)
        return self.process_save(pending_step)

    def process_finish(self, pending_step: PendingStep) -> Decision:
        if self.attempt.get_state().is_finished():
            return DISCARD
        return self.grade_last_response(pending_step)

    def adjust_display_options(self, options: DisplayOptions) -> None:
        super().adjust_display_options(options)
        if not self.attempt.get_state().is_finished():
            options.feedback = False
