"""
Stand-in for attempts whose stored behaviour is no longer registered. The
attempt can still be loaded, reviewed and commented on, but not changed.
"""

from typing import Optional, TYPE_CHECKING

from qengine.behaviours.base import Behaviour, Decision
from qengine.common.exceptions import BehaviourError
from qengine.engine.steps import PendingStep, Step

if TYPE_CHECKING:
    from qengine.engine.attempt import QuestionAttempt


class MissingBehaviour(Behaviour):
    """Read-only behaviour that remembers the name it replaced."""

    name = "missing"

    def __init__(
        self,
        attempt: 'QuestionAttempt',
        preferred_behaviour: Optional[str] = None,
        missing_name: Optional[str] = None
    ):
        super().__init__(attempt, preferred_behaviour)
        self.missing_name = missing_name or self.name

    def get_name(self) -> str:
        return self.missing_name

    def init_first_step(self, step: Step) -> None:
        raise BehaviourError(f"Cannot start an attempt with missing behaviour '{self.missing_name}'")

    def process_action(self, pending_step: PendingStep) -> Decision:
        if pending_step.has_behaviour_var('comment'):
            return self.process_comment(pending_step)
        raise BehaviourError(
            f"Cannot process this action: behaviour '{self.missing_name}' is not installed")

    def process_finish(self, pending_step: PendingStep) -> Decision:
        raise BehaviourError(
            f"Cannot finish this attempt: behaviour '{self.missing_name}' is not installed")
