"""
Reference Question Types

A small set of question definitions: true/false, single-answer multiple
choice, essay and description. They cover each behaviour archetype and
serve as examples for writing further types.
"""

import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

from qengine.engine.question import GradableQuestion, QuestionDefinition
from qengine.engine.states import QuestionState, graded_state_for_fraction

if TYPE_CHECKING:
    from qengine.behaviours.base import Behaviour
    from qengine.engine.attempt import QuestionAttempt
    from qengine.engine.steps import Step


def _has_answer(response: Dict[str, Any]) -> bool:
    value = response.get('answer')
    return value is not None and str(value).strip() != ''


class TrueFalseQuestion(GradableQuestion):
    """The learner picks true or false."""

    def __init__(self, question_id: str, right_answer: bool, **kwargs):
        super().__init__(question_id, **kwargs)
        self.right_answer = bool(right_answer)

    def get_expected_data(self) -> Dict[str, Any]:
        return {'answer': int}

    def get_correct_response(self) -> Dict[str, Any]:
        return {'answer': int(self.right_answer)}

    def is_complete_response(self, response: Dict[str, Any]) -> bool:
        return _has_answer(response)

    def grade_response(self, response: Dict[str, Any]) -> Tuple[float, QuestionState]:
        fraction = 1.0 if bool(int(response['answer'])) == self.right_answer else 0.0
        return fraction, graded_state_for_fraction(fraction)

    def summarise_response(self, response: Dict[str, Any]) -> Optional[str]:
        if not _has_answer(response):
            return None
        return "True" if int(response['answer']) else "False"

    def get_right_answer_summary(self) -> Optional[str]:
        return "True" if self.right_answer else "False"


@dataclass(frozen=True)
class Choice:
    """One option of a multiple choice question."""
    text: str
    fraction: float
    feedback: str = ""


class MultichoiceSingleQuestion(GradableQuestion):
    """
    Multiple choice with one answer allowed.

    The submitted ``answer`` is the index of the chosen option in
    ``choices``. When options are shuffled, the display order is stored in
    the first step as ``_order`` so it stays the same for the whole attempt.
    """

    def __init__(self, question_id: str, choices: Sequence[Choice], shuffle_choices: bool = False, **kwargs):
        super().__init__(question_id, **kwargs)
        if not choices:
            raise ValueError("A multiple choice question needs at least one choice")
        self.choices: Tuple[Choice, ...] = tuple(choices)
        self.shuffle_choices = shuffle_choices

    def init_first_step(self, step: 'Step') -> None:
        if step.has_qt_var('_order'):
            return
        order = list(range(len(self.choices)))
        if self.shuffle_choices:
            random.shuffle(order)
        step.set_qt_var('_order', ','.join(str(index) for index in order))

    def get_order(self, step: 'Step') -> List[int]:
        """The display order recorded in an attempt's first step."""
        return [int(index) for index in str(step.get_qt_var('_order')).split(',')]

    def get_min_fraction(self) -> float:
        return min(choice.fraction for choice in self.choices)

    def get_expected_data(self) -> Dict[str, Any]:
        return {'answer': int}

    def _best_choice(self) -> int:
        return max(range(len(self.choices)), key=lambda index: self.choices[index].fraction)

    def get_correct_response(self) -> Dict[str, Any]:
        return {'answer': self._best_choice()}

    def _chosen(self, response: Dict[str, Any]) -> Optional[Choice]:
        if not _has_answer(response):
            return None
        index = int(response['answer'])
        if 0 <= index < len(self.choices):
            return self.choices[index]
        return None

    def is_complete_response(self, response: Dict[str, Any]) -> bool:
        return self._chosen(response) is not None

    def grade_response(self, response: Dict[str, Any]) -> Tuple[float, QuestionState]:
        fraction = self._chosen(response).fraction
        return fraction, graded_state_for_fraction(fraction)

    def summarise_response(self, response: Dict[str, Any]) -> Optional[str]:
        choice = self._chosen(response)
        return choice.text if choice else None

    def get_question_summary(self) -> str:
        options = '; '.join(choice.text for choice in self.choices)
        return f"{self.question_text}: {options}"

    def get_right_answer_summary(self) -> Optional[str]:
        return self.choices[self._best_choice()].text


class EssayQuestion(QuestionDefinition):
    """Free text, always graded by a person."""

    SUMMARY_LENGTH = 200

    def make_behaviour(self, attempt: 'QuestionAttempt', preferred_behaviour: str) -> 'Behaviour':
        return attempt.registry.make_behaviour('manualgraded', attempt, preferred_behaviour)

    def get_expected_data(self) -> Dict[str, Any]:
        return {'answer': str}

    def is_complete_response(self, response: Dict[str, Any]) -> bool:
        return _has_answer(response)

    def summarise_response(self, response: Dict[str, Any]) -> Optional[str]:
        if not _has_answer(response):
            return None
        text = str(response['answer'])
        if len(text) > self.SUMMARY_LENGTH:
            return text[:self.SUMMARY_LENGTH - 3] + '...'
        return text


class DescriptionQuestion(QuestionDefinition):
    """Text to read, not a question at all. Carries no marks."""

    def __init__(self, question_id: str, **kwargs):
        kwargs.setdefault('default_mark', 0.0)
        super().__init__(question_id, **kwargs)

    def make_behaviour(self, attempt: 'QuestionAttempt', preferred_behaviour: str) -> 'Behaviour':
        return attempt.registry.make_behaviour('informationitem', attempt, preferred_behaviour)

    def get_expected_data(self) -> Dict[str, Any]:
        return {}

    def is_complete_response(self, response: Dict[str, Any]) -> bool:
        return True
