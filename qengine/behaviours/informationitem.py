"""
Information items are content the learner only needs to read, such as
instructions between questions. They are never graded.
"""

from typing import Any, Dict

from qengine.behaviours.base import Behaviour, Decision, DISCARD, KEEP
from qengine.common.exceptions import BehaviourError
from qengine.engine.display import DisplayOptions
from qengine.engine.states import QuestionState
from qengine.engine.steps import PendingStep


class InformationItemBehaviour(Behaviour):
    """``seen`` completes the item, ``finish`` closes it, comments may not carry a mark."""

    name = "informationitem"

    def get_expected_data(self) -> Dict[str, Any]:
        if self.attempt.get_state() == QuestionState.TODO:
            return {'seen': bool}
        return {}

    def get_correct_response(self) -> Dict[str, Any]:
        if self.attempt.get_state() == QuestionState.TODO:
            return {'seen': 1}
        return {}

    def adjust_display_options(self, options: DisplayOptions) -> None:
        super().adjust_display_options(options)
        # Commenting is supported but only shown once a comment exists.
        if not self.attempt.get_state().is_commented():
            options.manual_comment = False

    def process_action(self, pending_step: PendingStep) -> Decision:
        if pending_step.has_behaviour_var('comment'):
            return self.process_comment(pending_step)
        if pending_step.has_behaviour_var('finish'):
            return self.process_finish(pending_step)
        if pending_step.has_behaviour_var('seen'):
            return self.process_seen(pending_step)
        return DISCARD

    def process_comment(self, pending_step: PendingStep) -> Decision:
        if pending_step.has_behaviour_var('mark'):
            raise BehaviourError("Information items cannot be graded")
        return super().process_comment(pending_step)

    def process_finish(self, pending_step: PendingStep) -> Decision:
        pending_step.set_state(QuestionState.FINISHED)
        return KEEP

    def process_seen(self, pending_step: PendingStep) -> Decision:
        pending_step.set_state(QuestionState.COMPLETE)
        return KEEP
