"""
Behaviour Base Classes

A behaviour is the policy that drives one question attempt. The attempt
builds a pending step from each request and hands it to the behaviour, which
sets the step's state and fraction and decides whether to keep it or
discard it.
"""

import enum
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple, Type, TYPE_CHECKING

from qengine.common.exceptions import BehaviourError, GradingValueError
from qengine.engine.display import DisplayOptions, MarkDisplay
from qengine.engine.question import QuestionDefinition
from qengine.engine.states import QuestionState, corresponding_commented_state
from qengine.engine.steps import PendingStep, Step

if TYPE_CHECKING:
    from qengine.engine.attempt import QuestionAttempt

logger = logging.getLogger(__name__)

# Slack allowed when checking a manual mark against the attempt's range.
MARK_TOLERANCE = 0.0000001


class Decision(enum.Enum):
    """Outcome of handing a pending step to a behaviour."""
    KEEP = "keep"
    DISCARD = "discard"


KEEP = Decision.KEEP
DISCARD = Decision.DISCARD


class Behaviour(ABC):
    """
    Base class for all behaviours.

    Subclasses set ``name`` to their registry name and ``IS_ARCHETYPAL`` when
    a usage may ask for them by preference. ``ALWAYS_PROCESS_PREFIXES`` lists
    submitted-field prefixes that mark an explicit action button; a request
    carrying one is never treated as a repeat of the previous response.
    """

    name: str = ""
    IS_ARCHETYPAL = False
    ALWAYS_PROCESS_PREFIXES: Tuple[str, ...] = ()

    def __init__(self, attempt: 'QuestionAttempt', preferred_behaviour: Optional[str] = None):
        """
        Bind the behaviour to an attempt.

        Args:
            attempt: The attempt this behaviour drives
            preferred_behaviour: The usage's preferred behaviour name

        Raises:
            BehaviourError: If the attempt's question is the wrong kind for this behaviour
        """
        self.attempt = attempt
        self.question = attempt.question
        self.preferred_behaviour = preferred_behaviour

        required = self.required_question_definition_type()
        if not isinstance(self.question, required):
            raise BehaviourError(
                f"Behaviour '{self.get_name()}' needs a {required.__name__}, "
                f"got {type(self.question).__name__}"
            )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.get_name()!r}>"

    def get_name(self) -> str:
        return self.name

    def required_question_definition_type(self) -> Type[QuestionDefinition]:
        return QuestionDefinition

    # Starting

    def init_first_step(self, step: Step) -> None:
        self.question.init_first_step(step)

    def get_min_fraction(self) -> float:
        return self.question.get_min_fraction()

    # Request data

    def get_expected_data(self) -> Dict[str, Any]:
        """Behaviour fields (without the '-' prefix) this behaviour reads from a request."""
        return {}

    def get_expected_qt_data(self) -> Any:
        if self.attempt.get_state().is_active():
            return self.question.get_expected_data()
        return {}

    def get_correct_response(self) -> Dict[str, Any]:
        return {}

    def get_resume_data(self) -> Dict[str, Any]:
        """
        The data a new attempt needs to carry on where this one stopped.

        The first step's variables keep any per-attempt seeding; the latest
        response overrides them.
        """
        data = self.attempt.get_step(0).get_all_data()
        data.update(self.attempt.get_last_qt_data())
        return data

    # Response comparison

    def forces_processing(self, pending_step: Step) -> bool:
        """Whether the step carries an explicit action field that must always be processed."""
        if not self.ALWAYS_PROCESS_PREFIXES:
            return False
        return any(name.startswith(self.ALWAYS_PROCESS_PREFIXES)
                   for name in pending_step.get_submitted_data())

    def is_same_response(self, pending_step: Step) -> bool:
        if self.forces_processing(pending_step):
            return False
        return self.question.is_same_response(
            self.attempt.get_last_qt_data(), pending_step.get_qt_data())

    def is_complete_response(self, pending_step: Step) -> bool:
        return self.question.is_complete_response(pending_step.get_qt_data())

    # Processing

    @abstractmethod
    def process_action(self, pending_step: PendingStep) -> Decision:
        """Classify a pending step, setting its state and fraction when kept."""
        pass

    @abstractmethod
    def process_finish(self, pending_step: PendingStep) -> Decision:
        pass

    def process_comment(self, pending_step: PendingStep) -> Decision:
        """
        Apply a manual comment and, optionally, a mark.

        The mark is in the units of ``-maxmark`` when given, else of the
        attempt's max mark. A comment without a mark keeps the current fraction.

        Raises:
            GradingValueError: If the mark is outside the attempt's range
        """
        fraction = self.attempt.get_fraction()

        if pending_step.has_behaviour_var('mark'):
            mark = pending_step.get_behaviour_var('mark')
            if mark is None or str(mark).strip() == '':
                fraction = None
            else:
                max_mark = float(pending_step.get_behaviour_var('maxmark', self.attempt.get_max_mark()))
                min_fraction = self.attempt.get_min_fraction()
                try:
                    mark = float(mark)
                except (TypeError, ValueError) as e:
                    raise GradingValueError(mark, min_fraction * max_mark, max_mark) from e
                if max_mark <= 0:
                    raise GradingValueError(mark, 0.0, max_mark)
                fraction = mark / max_mark
                if fraction > 1 + MARK_TOLERANCE or fraction < min_fraction - MARK_TOLERANCE:
                    raise GradingValueError(mark, min_fraction * max_mark, max_mark)

        pending_step.set_state(corresponding_commented_state(self.attempt.get_state(), fraction))
        pending_step.set_fraction(fraction)
        return KEEP

    # Reporting

    def get_question_summary(self) -> str:
        return self.question.get_question_summary()

    def get_right_answer_summary(self) -> Optional[str]:
        return self.question.get_right_answer_summary()

    def get_applicable_hint(self) -> Optional[str]:
        return None

    def summarise_action(self, step: Step) -> str:
        """One-line description of what a step did, for history tables."""
        if step.has_behaviour_var('comment'):
            return self.summarise_manual_comment(step)
        if step.has_behaviour_var('finish'):
            return "Attempt finished"
        summary = self.question.summarise_response(step.get_qt_data())
        if summary:
            return f"Saved: {summary}"
        return "Started"

    def summarise_manual_comment(self, step: Step) -> str:
        summary = f"Commented: {step.get_behaviour_var('comment')}"
        if step.has_behaviour_var('mark'):
            summary = f"Manually graded {step.get_behaviour_var('mark')} with comment: {step.get_behaviour_var('comment')}"
        return summary

    def adjust_display_options(self, options: DisplayOptions) -> None:
        """Narrow what may be shown to what the attempt's state allows."""
        state = self.attempt.get_state()
        if not state.is_graded():
            options.correctness = False
        if self.attempt.get_max_mark() == 0:
            options.marks = MarkDisplay.HIDDEN
        if state.is_finished():
            options.readonly = True
        else:
            options.general_feedback = False
            options.right_answer = False


class BehaviourWithSave(Behaviour):
    """Base for behaviours where the learner can save a response without submitting it."""

    def process_save(self, pending_step: PendingStep) -> Decision:
        state = self.attempt.get_state()
        if state.is_finished():
            return DISCARD
        if not state.is_active():
            raise BehaviourError(f"Cannot save a response to a question in state {state.value}")

        if self.is_same_response(pending_step):
            return DISCARD

        if self.is_complete_response(pending_step):
            pending_step.set_state(QuestionState.COMPLETE)
        else:
            pending_step.set_state(QuestionState.TODO)
        pending_step.set_new_response_summary(
            self.question.summarise_response(pending_step.get_qt_data()))
        return KEEP

    def grade_last_response(self, pending_step: PendingStep) -> Decision:
        """Grade the most recent response onto ``pending_step``, giving up when it cannot be graded."""
        response = self.attempt.get_last_qt_data()
        if not self.question.is_gradable_response(response):
            pending_step.set_state(QuestionState.GAVE_UP)
        else:
            fraction, state = self.question.grade_response(response)
            pending_step.set_fraction(fraction)
            pending_step.set_state(state)
        pending_step.set_new_response_summary(self.question.summarise_response(response))
        return KEEP
