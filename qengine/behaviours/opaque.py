"""
Opaque behaviour: the attempt is driven by a remote question engine, which
decides what every action means. The local behaviour relays actions, checks
that the engine's results are for the current step, and records the score.
"""

import logging
import time
from typing import Any, Dict

from qengine.behaviours.base import Behaviour, Decision, DISCARD, KEEP
from qengine.engine.states import QuestionState, graded_state_for_fraction
from qengine.engine.steps import PendingStep, Step
from qengine.questions.remote import RemoteEngineError, RemoteQuestion

logger = logging.getLogger(__name__)


class OpaqueBehaviour(Behaviour):
    """Relay every action to the question's remote engine."""

    name = "opaque"
    ALWAYS_PROCESS_PREFIXES = ('omact_',)

    def required_question_definition_type(self):
        return RemoteQuestion

    def init_first_step(self, step: Step) -> None:
        if step.has_behaviour_var('_randomseed'):
            return

        step.set_behaviour_var('_randomseed', str(int(time.time() * 1000)))
        step.set_behaviour_var('_userid', step.user_id)
        step.set_behaviour_var('_preferredbehaviour', self.preferred_behaviour)
        result = self.question.engine.start(self.question, step)
        step.set_behaviour_var('_statestring', result.progress_info)

    def get_expected_data(self) -> Dict[str, Any]:
        return {'finish': bool}

    def is_same_response(self, pending_step: Step) -> bool:
        """
        Compare the whole submitted data with the previous step's.

        A field starting with an action prefix means a button was pressed,
        so such a request is never a repeat.
        """
        new_data = pending_step.get_submitted_data()
        old_data = self.attempt.get_last_step().get_submitted_data()

        for key, value in new_data.items():
            if key not in old_data or str(old_data[key]) != str(value):
                return False
            if key.startswith(self.ALWAYS_PROCESS_PREFIXES):
                return False

        return len(old_data) == len(new_data)

    def process_action(self, pending_step: PendingStep) -> Decision:
        if pending_step.has_behaviour_var('finish'):
            return self.process_finish(pending_step)
        if pending_step.has_behaviour_var('comment'):
            return self.process_comment(pending_step)
        if self.is_same_response(pending_step) or self.attempt.get_state().is_finished():
            return DISCARD
        return self.process_remote_action(pending_step)

    def process_finish(self, pending_step: PendingStep) -> Decision:
        if self.attempt.get_state().is_finished():
            return DISCARD
        pending_step.set_state(QuestionState.GAVE_UP)
        return KEEP

    def process_remote_action(self, pending_step: PendingStep) -> Decision:
        try:
            result = self.question.engine.process(self.attempt, pending_step)
        except RemoteEngineError as e:
            logger.warning(f"Remote engine rejected action for {self.question.remote_id}: {e.message}")
            return DISCARD

        if result.sequence_number != self.attempt.get_num_steps():
            pending_step.set_state(QuestionState.TODO)
            pending_step.set_behaviour_var('_statestring', result.progress_info)
            return KEEP

        fraction = 0.0
        if result.marks is not None and self.question.max_grade:
            fraction = result.marks / self.question.max_grade
        pending_step.set_fraction(fraction)

        if result.attempts > 0:
            pending_step.set_state(QuestionState.GRADED_RIGHT)
        else:
            pending_step.set_state(graded_state_for_fraction(fraction))
        return KEEP
