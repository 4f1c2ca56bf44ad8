"""
Question Attempts

A question attempt is one learner's go at one question within a usage. It
owns an append-only list of steps; its state, fraction and mark are always
those of the last step. Every change goes through the attempt's behaviour,
which decides whether each pending step is kept or discarded.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from qengine.behaviours.base import Behaviour, Decision, KEEP
from qengine.common.exceptions import (
    AlreadyStartedError,
    NotStartedError,
    OutOfSequenceError,
    StepIndexOutOfBoundsError,
    ValidationError,
)
from qengine.common.logger import app_logger
from qengine.common.serialization import SerializableMixin
from qengine.engine.observer import NullObserver, UsageObserver
from qengine.engine.question import QuestionDefinition, USE_RAW_DATA
from qengine.engine.registry import BehaviourRegistry, build_default_registry
from qengine.engine.states import QuestionState
from qengine.engine.steps import BEHAVIOUR_PREFIX, RESPONSE_CLEARED, NullStep, PendingStep, ReadOnlyStep, Step

logger = app_logger.getChild("engine.attempt")

_FALSE_STRINGS = ('', '0', 'false', 'no', 'off')


def clean_param(name: str, value: Any, param_type: Any) -> Any:
    """
    Coerce a raw request value to the type a behaviour or question expects.

    Raises:
        ValidationError: If the value cannot be converted
    """
    if param_type is bool:
        if isinstance(value, str):
            return value.strip().lower() not in _FALSE_STRINGS
        return bool(value)
    if param_type in (int, float):
        try:
            return param_type(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Field '{name}' must be {param_type.__name__}",
                                  {name: str(value)}) from e
    if param_type is str:
        return str(value)
    return value


class QuestionAttempt(SerializableMixin):
    """
    One attempt at one question.

    Attributes:
        question: The shared, read-only question definition
        observer: Receives a notification for each change
        registry: Where behaviours are looked up by name
    """

    __serializable_fields__ = [
        'id', 'slot', 'usage_id', 'behaviour_name', 'max_mark', 'flagged',
        'state', 'fraction', 'mark', 'question_summary', 'right_answer_summary',
        'response_summary', 'steps',
    ]

    def __init__(
        self,
        question: QuestionDefinition,
        usage_id: Any,
        observer: Optional[UsageObserver] = None,
        max_mark: Optional[float] = None,
        registry: Optional[BehaviourRegistry] = None,
        default_user_id: Optional[str] = None
    ):
        """
        Create an unstarted attempt.

        Args:
            question: The question being attempted
            usage_id: Id of the owning usage
            observer: Change observer; defaults to one that ignores everything
            max_mark: Mark for a fully right answer; defaults to the question's default mark
            registry: Behaviour registry; a default one is built when omitted
            default_user_id: User recorded on steps when the caller gives none
        """
        self.question = question
        self.observer = observer or NullObserver()
        self.registry = registry or build_default_registry()
        self.default_user_id = default_user_id
        self.id: Optional[int] = None
        self.behaviour: Optional[Behaviour] = None
        self.question_summary: Optional[str] = None
        self.right_answer_summary: Optional[str] = None
        self.response_summary: Optional[str] = None
        self._usage_id = usage_id
        self._slot: Optional[int] = None
        self._max_mark = question.default_mark if max_mark is None else float(max_mark)
        self._min_fraction: Optional[float] = None
        self._flagged = False
        self._steps: List[Step] = []

    def __repr__(self) -> str:
        return f"<QuestionAttempt slot={self._slot} question={self.question.id!r} state={self.get_state().value}>"

    # Identity

    @property
    def usage_id(self) -> Any:
        return self._usage_id

    def set_usage_id(self, usage_id: Any) -> None:
        self._usage_id = usage_id

    @property
    def slot(self) -> Optional[int]:
        return self._slot

    def set_slot(self, slot: int) -> None:
        self._slot = slot

    def set_database_id(self, attempt_id: Optional[int]) -> None:
        self.id = attempt_id

    @property
    def behaviour_name(self) -> Optional[str]:
        return self.get_behaviour_name()

    def get_behaviour_name(self) -> Optional[str]:
        if self.behaviour is None:
            return None
        return self.behaviour.get_name()

    # Flag

    @property
    def flagged(self) -> bool:
        return self._flagged

    def set_flagged(self, flagged: bool) -> None:
        self._flagged = bool(flagged)
        self.observer.notify_attempt_modified(self)

    def is_flagged(self) -> bool:
        return self._flagged

    # Request field names

    def get_field_prefix(self) -> str:
        return f"q{self._usage_id}:{self._slot}_"

    def get_qt_field_name(self, name: str) -> str:
        return self.get_field_prefix() + name

    def get_behaviour_field_name(self, name: str) -> str:
        return self.get_field_prefix() + BEHAVIOUR_PREFIX + name

    def get_flag_field_name(self) -> str:
        return self.get_field_prefix() + ':flagged'

    def get_sequence_check_field_name(self) -> str:
        return self.get_field_prefix() + ':sequencecheck'

    # Steps

    @property
    def steps(self) -> Tuple[Step, ...]:
        """The steps in order, as a read-only tuple."""
        return tuple(self._steps)

    def reverse_steps(self) -> Tuple[Step, ...]:
        """The steps newest first."""
        return tuple(reversed(self._steps))

    def get_step(self, index: int) -> Step:
        if index < 0 or index >= len(self._steps):
            raise StepIndexOutOfBoundsError(index, len(self._steps))
        return self._steps[index]

    def get_num_steps(self) -> int:
        return len(self._steps)

    def get_last_step(self) -> Union[Step, NullStep]:
        if not self._steps:
            return NullStep()
        return self._steps[-1]

    def get_last_qt_data(self, default: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """The question-type data of the latest step that has any, unless a later step cleared the response."""
        for step in reversed(self._steps):
            data = step.get_qt_data()
            if data:
                return data
            if step.has_behaviour_var(RESPONSE_CLEARED):
                break
        return dict(default or {})

    def get_last_qt_var(self, name: str, default: Any = None) -> Any:
        for step in reversed(self._steps):
            if step.has_qt_var(name):
                return step.get_qt_var(name)
        return default

    def get_last_behaviour_var(self, name: str, default: Any = None) -> Any:
        for step in reversed(self._steps):
            if step.has_behaviour_var(name):
                return step.get_behaviour_var(name)
        return default

    # Current state

    @property
    def state(self) -> QuestionState:
        return self.get_state()

    @property
    def fraction(self) -> Optional[float]:
        return self.get_fraction()

    @property
    def mark(self) -> Optional[float]:
        return self.get_mark()

    @property
    def max_mark(self) -> float:
        return self._max_mark

    def get_state(self) -> QuestionState:
        return self.get_last_step().get_state()

    def get_fraction(self) -> Optional[float]:
        return self.get_last_step().get_fraction()

    def get_mark(self) -> Optional[float]:
        """``fraction * max_mark``, or None while the attempt is ungraded."""
        fraction = self.get_fraction()
        if fraction is None:
            return None
        return fraction * self._max_mark

    def get_max_mark(self) -> float:
        return self._max_mark

    def get_min_fraction(self) -> float:
        if self._min_fraction is None:
            raise NotStartedError("This question attempt has not been started yet, the min fraction is not known")
        return self._min_fraction

    def format_mark(self, decimal_places: int) -> str:
        mark = self.get_mark()
        if mark is None:
            return ""
        return f"{mark:.{decimal_places}f}"

    def format_max_mark(self, decimal_places: int) -> str:
        return f"{self._max_mark:.{decimal_places}f}"

    def get_last_action_time(self) -> Optional[int]:
        return self.get_last_step().timestamp

    def get_applicable_hint(self) -> Optional[str]:
        if self.behaviour is None:
            return None
        return self.behaviour.get_applicable_hint()

    def has_manual_comment(self) -> bool:
        return any(step.has_behaviour_var('comment') for step in self._steps)

    def get_manual_comment(self) -> Optional[str]:
        """The most recent manual comment, or None."""
        for step in reversed(self._steps):
            if step.has_behaviour_var('comment'):
                return step.get_behaviour_var('comment')
        return None

    # Mutation

    def _require_started(self) -> Behaviour:
        if self.behaviour is None:
            raise NotStartedError(f"Question attempt in slot {self._slot} has not been started")
        return self.behaviour

    def add_step(self, step: Step) -> None:
        self._steps.append(step)
        self.observer.notify_step_added(step, self, len(self._steps) - 1)

    def start(
        self,
        preferred_behaviour: Union[str, Behaviour],
        submitted_data: Optional[Dict[str, Any]] = None,
        timestamp: Optional[int] = None,
        user_id: Optional[str] = None,
        restart: bool = False
    ) -> None:
        """
        Start the attempt, creating the first step.

        Args:
            preferred_behaviour: Name of the archetypal behaviour to prefer, or a
                behaviour whose class (and preference) the new one copies
            submitted_data: Data for the first step, used when resuming or replaying
            timestamp: Time of the action; defaults to now
            user_id: Who started it
            restart: Throw away existing steps instead of refusing to start

        Raises:
            AlreadyStartedError: If the attempt already has steps and restart is not set
        """
        if self._steps:
            if not restart:
                raise AlreadyStartedError(f"Question attempt in slot {self._slot} has already been started")
            self.observer.notify_delete_attempt_steps(self)
            self._steps = []
            self.response_summary = None

        if isinstance(preferred_behaviour, str):
            self.behaviour = self.question.make_behaviour(self, preferred_behaviour)
        else:
            self.behaviour = self.registry.make_behaviour(
                preferred_behaviour.get_name(), self, preferred_behaviour.preferred_behaviour)

        self._min_fraction = self.behaviour.get_min_fraction()

        first_step = Step(submitted_data, timestamp, user_id or self.default_user_id)
        first_step.set_state(QuestionState.TODO)
        self.behaviour.init_first_step(first_step)
        self.add_step(first_step)

        self.question_summary = self.behaviour.get_question_summary()
        self.right_answer_summary = self.behaviour.get_right_answer_summary()
        self.observer.notify_attempt_modified(self)
        logger.debug(f"Started slot {self._slot} of usage {self._usage_id} with {self.get_behaviour_name()}")

    def start_based_on(self, old_attempt: 'QuestionAttempt') -> None:
        """Start from where ``old_attempt`` got to, with the same behaviour."""
        behaviour = old_attempt._require_started()
        self.start(behaviour, old_attempt.get_resume_data())

    def get_resume_data(self) -> Dict[str, Any]:
        return self._require_started().get_resume_data()

    def _get_expected_data(self, expected: Dict[str, Any], post_data: Dict[str, Any], extra_prefix: str) -> Dict[str, Any]:
        submitted = {}
        for name, param_type in expected.items():
            field_name = self.get_field_prefix() + extra_prefix + name
            if post_data.get(field_name) is not None:
                submitted[extra_prefix + name] = clean_param(field_name, post_data[field_name], param_type)
        return submitted

    def _get_all_submitted_qt_vars(self, post_data: Dict[str, Any]) -> Dict[str, Any]:
        prefix = self.get_field_prefix()
        submitted = {}
        for name, value in post_data.items():
            if name.startswith(prefix):
                local_name = name[len(prefix):]
                if local_name and local_name[0] not in (BEHAVIOUR_PREFIX, ':'):
                    submitted[local_name] = value
        return submitted

    def get_submitted_data(self, post_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Pull this attempt's fields out of a request.

        Args:
            post_data: Every field in the request, keyed by full field name

        Returns:
            Data ready to pass to :meth:`process_action`

        Raises:
            ValidationError: If a field cannot be converted to its expected type
        """
        behaviour = self._require_started()
        submitted = self._get_expected_data(behaviour.get_expected_data(), post_data, BEHAVIOUR_PREFIX)

        expected = behaviour.get_expected_qt_data()
        if expected == USE_RAW_DATA:
            submitted.update(self._get_all_submitted_qt_vars(post_data))
        else:
            submitted.update(self._get_expected_data(expected, post_data, ''))
            if behaviour.ALWAYS_PROCESS_PREFIXES:
                for name, value in self._get_all_submitted_qt_vars(post_data).items():
                    if name.startswith(behaviour.ALWAYS_PROCESS_PREFIXES):
                        submitted[name] = value
        return submitted

    def get_correct_response(self) -> Dict[str, Any]:
        """Data that would earn full marks: the question's answer plus any behaviour fields."""
        behaviour = self._require_started()
        response = dict(self.question.get_correct_response() or {})
        for name, value in behaviour.get_correct_response().items():
            response[BEHAVIOUR_PREFIX + name] = value
        return response

    def check_sequence(self, expected_num_steps: Any) -> None:
        """
        Check that a request was built against the attempt's current step count.

        Raises:
            OutOfSequenceError: If the counts differ
        """
        try:
            expected = int(expected_num_steps)
        except (TypeError, ValueError) as e:
            raise ValidationError("Sequence check must be an integer",
                                  {'sequencecheck': str(expected_num_steps)}) from e
        if expected != len(self._steps):
            raise OutOfSequenceError(self._usage_id, self._slot, expected, len(self._steps))

    def process_action(
        self,
        submitted_data: Dict[str, Any],
        timestamp: Optional[int] = None,
        user_id: Optional[str] = None
    ) -> Decision:
        """
        Offer an action to the behaviour.

        Returns:
            KEEP if a step was appended, DISCARD if the action changed nothing
        """
        behaviour = self._require_started()
        pending_step = PendingStep(submitted_data, timestamp, user_id or self.default_user_id)
        decision = behaviour.process_action(pending_step)
        if decision == KEEP:
            self.add_step(pending_step)
            if pending_step.response_summary_changed():
                self.response_summary = pending_step.get_new_response_summary()
                self.observer.notify_attempt_modified(self)
        else:
            logger.debug(f"Discarded action on slot {self._slot} of usage {self._usage_id}")
        return decision

    def finish(self, timestamp: Optional[int] = None, user_id: Optional[str] = None) -> Decision:
        return self.process_action({'-finish': 1}, timestamp, user_id)

    def manual_grade(
        self,
        comment: str,
        mark: Optional[float] = None,
        timestamp: Optional[int] = None,
        user_id: Optional[str] = None
    ) -> Decision:
        """
        Add a manual comment and, when given, a mark.

        The current max mark is recorded with the mark so that the fraction
        survives later changes to the max mark.
        """
        data: Dict[str, Any] = {'-comment': comment}
        if mark is not None:
            data['-mark'] = mark
            data['-maxmark'] = self._max_mark
        return self.process_action(data, timestamp, user_id)

    def regrade(self, old_attempt: 'QuestionAttempt') -> None:
        """
        Rebuild this (fresh) attempt by replaying ``old_attempt``'s submitted data.

        Timestamps and users are kept, so only state and fraction can change.
        """
        old_behaviour = old_attempt._require_started()
        for index, step in enumerate(old_attempt.steps):
            if index == 0:
                self.start(old_behaviour, step.get_all_data(), step.timestamp, step.user_id)
            else:
                self.process_action(step.get_submitted_data(), step.timestamp, step.user_id)

    def summarise_steps(self) -> List[str]:
        """One line per step describing what happened, for history views."""
        behaviour = self._require_started()
        return [behaviour.summarise_action(step) for step in self._steps]

    @classmethod
    def restore(
        cls,
        question: QuestionDefinition,
        usage_id: Any,
        attempt_id: int,
        slot: int,
        behaviour_name: str,
        max_mark: float,
        min_fraction: float,
        flagged: bool,
        steps: Sequence[ReadOnlyStep],
        registry: BehaviourRegistry,
        preferred_behaviour: Optional[str] = None,
        question_summary: Optional[str] = None,
        right_answer_summary: Optional[str] = None,
        response_summary: Optional[str] = None,
        observer: Optional[UsageObserver] = None
    ) -> 'QuestionAttempt':
        """
        Rebuild an attempt from storage without notifying anyone.

        A behaviour name that is no longer registered gives a read-only attempt.
        """
        attempt = cls(question, usage_id, None, max_mark, registry)
        attempt.set_database_id(attempt_id)
        attempt.set_slot(slot)
        attempt._min_fraction = float(min_fraction)
        attempt._flagged = bool(flagged)
        attempt.question_summary = question_summary
        attempt.right_answer_summary = right_answer_summary
        attempt.response_summary = response_summary
        attempt.behaviour = registry.make_behaviour(behaviour_name, attempt, preferred_behaviour)
        attempt._steps = list(steps)
        if attempt._steps:
            question.init_first_step(attempt._steps[0])
        attempt.observer = observer or NullObserver()
        return attempt
