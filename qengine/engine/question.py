"""
Question Definitions

The engine never grades anything itself. A question definition is the
immutable collaborator that knows what data a question expects, whether a
response is complete, and what a response is worth. Definitions are shared
read-only between many attempts; per-attempt state (such as a shuffled
choice order) lives in the attempt's first step instead.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence, Tuple, TYPE_CHECKING

from qengine.engine.states import QuestionState

if TYPE_CHECKING:
    from qengine.behaviours.base import Behaviour
    from qengine.engine.attempt import QuestionAttempt
    from qengine.engine.steps import Step

# Returned from get_expected_qt_data() to take every question field from the request.
USE_RAW_DATA = 'use_raw_data'


class QuestionDefinition(ABC):
    """
    Base class for anything that can be attempted.

    Attributes:
        id: Identifier used by the question bank
        name: Short name for reports
        question_text: The question as shown to the learner
        default_mark: Max mark used when the usage does not set one
        penalty: Fraction lost per extra try in multi-try behaviours
        hints: Hints offered between tries, in order
    """

    def __init__(
        self,
        question_id: str,
        name: str = "",
        question_text: str = "",
        default_mark: float = 1.0,
        penalty: float = 0.0,
        hints: Sequence[str] = ()
    ):
        self.id = question_id
        self.name = name
        self.question_text = question_text
        self.default_mark = float(default_mark)
        self.penalty = float(penalty)
        self.hints: Tuple[str, ...] = tuple(hints)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r}>"

    def make_behaviour(self, attempt: 'QuestionAttempt', preferred_behaviour: str) -> 'Behaviour':
        """
        Create the behaviour that will drive an attempt at this question.

        Most questions accept whichever archetypal behaviour the usage prefers.
        Questions that only work one way override this.
        """
        return attempt.registry.make_archetypal_behaviour(preferred_behaviour, attempt)

    def init_first_step(self, step: 'Step') -> None:
        """Seed per-attempt cached variables. Must leave existing values alone."""
        pass

    def get_min_fraction(self) -> float:
        return 0.0

    @abstractmethod
    def get_expected_data(self) -> Dict[str, Any]:
        """Map of question-type field name to the type it is coerced to."""
        pass

    def get_correct_response(self) -> Dict[str, Any]:
        return {}

    @abstractmethod
    def is_complete_response(self, response: Dict[str, Any]) -> bool:
        """Whether the response answers the question fully enough to be marked."""
        pass

    def is_gradable_response(self, response: Dict[str, Any]) -> bool:
        """Whether the response can be graded at all (possibly as wrong)."""
        return self.is_complete_response(response)

    def is_same_response(self, previous: Dict[str, Any], new: Dict[str, Any]) -> bool:
        """
        Compare two responses on the fields this question expects.

        Values are compared as strings, since stored steps give back strings.
        """
        for name in self.get_expected_data():
            old_value = previous.get(name)
            new_value = new.get(name)
            if old_value is None or new_value is None:
                if old_value is not new_value:
                    return False
            elif str(old_value) != str(new_value):
                return False
        return True

    def summarise_response(self, response: Dict[str, Any]) -> Optional[str]:
        return None

    def get_question_summary(self) -> str:
        return self.question_text

    def get_right_answer_summary(self) -> Optional[str]:
        return None


class GradableQuestion(QuestionDefinition):
    """A question that can grade a response automatically."""

    @abstractmethod
    def grade_response(self, response: Dict[str, Any]) -> Tuple[float, QuestionState]:
        """
        Grade a response.

        Args:
            response: Question-type data from a step

        Returns:
            The fraction awarded and the graded state it corresponds to
        """
        pass
