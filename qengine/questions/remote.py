"""
Remote Questions

Questions whose logic runs in a separate question engine. The local side only
relays each action and records the score the remote engine reports. How the
engine is reached (HTTP, RPC, in-process) is up to the implementation of
:class:`RemoteQuestionEngine`.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, TYPE_CHECKING

from qengine.common.exceptions import BaseError
from qengine.engine.question import QuestionDefinition, USE_RAW_DATA

if TYPE_CHECKING:
    from qengine.behaviours.base import Behaviour
    from qengine.engine.attempt import QuestionAttempt
    from qengine.engine.steps import Step


class RemoteEngineError(BaseError):
    """Raised by a remote engine client when the engine cannot be reached or refuses an action."""


@dataclass
class RemoteResult:
    """
    What the remote engine reports after an action.

    Attributes:
        sequence_number: The number of steps the remote engine has results for
        progress_info: Short text describing where the learner is
        marks: Marks awarded on the remote scale, when results are final
        attempts: Try on which the learner got it right; zero or less if they did not
    """
    sequence_number: int
    progress_info: str = ""
    marks: Optional[float] = None
    attempts: int = 0


class RemoteQuestionEngine(ABC):
    """Client for a remote question engine."""

    @abstractmethod
    def start(self, question: 'RemoteQuestion', step: 'Step') -> RemoteResult:
        """Start a session for a new attempt whose first step is ``step``."""
        pass

    @abstractmethod
    def process(self, attempt: 'QuestionAttempt', step: 'Step') -> RemoteResult:
        """Send the data in ``step`` and return the engine's new state."""
        pass


class RemoteQuestion(QuestionDefinition):
    """A question delegated to a remote engine."""

    def __init__(
        self,
        question_id: str,
        engine: RemoteQuestionEngine,
        remote_id: str,
        remote_version: str = "1.0",
        max_grade: float = 1.0,
        name: str = "",
        question_text: str = "",
        default_mark: float = 1.0,
        hints: Sequence[str] = ()
    ):
        super().__init__(question_id, name, question_text, default_mark, hints=hints)
        self.engine = engine
        self.remote_id = remote_id
        self.remote_version = remote_version
        self.max_grade = float(max_grade)

    def make_behaviour(self, attempt: 'QuestionAttempt', preferred_behaviour: str) -> 'Behaviour':
        return attempt.registry.make_behaviour('opaque', attempt, preferred_behaviour)

    def get_expected_data(self) -> Any:
        return USE_RAW_DATA

    def is_complete_response(self, response: Dict[str, Any]) -> bool:
        return True

    def get_question_summary(self) -> str:
        return self.question_text or f"{self.remote_id} {self.remote_version}"
