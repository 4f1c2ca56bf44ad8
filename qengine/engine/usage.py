"""
Question Usages

A usage is the set of question attempts belonging to one activity, for
example one learner's attempt at a quiz. Attempts are held by slot number,
starting at 1 in the order questions were added; slots never change once
assigned. The usage fans operations out to its attempts and processes whole
requests, checking each attempt's sequence number first.
"""

import secrets
import string
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from qengine.behaviours.base import Decision
from qengine.common.exceptions import BehaviourError, UnknownSlotError, ValidationError
from qengine.common.logger import LoggerAdapter, app_logger
from qengine.common.serialization import SerializableMixin
from qengine.engine.attempt import QuestionAttempt, clean_param
from qengine.engine.observer import NullObserver, UsageObserver
from qengine.engine.question import QuestionDefinition
from qengine.engine.registry import BehaviourRegistry, build_default_registry
from qengine.engine.states import QuestionState

logger = app_logger.getChild("engine.usage")

DEFAULT_ID_LENGTH = 10
SLOTS_FIELD = 'slots'
_ID_ALPHABET = string.ascii_letters + string.digits


def make_temporary_id(length: int = DEFAULT_ID_LENGTH) -> str:
    """Random id for a usage that has not been stored yet."""
    return ''.join(secrets.choice(_ID_ALPHABET) for _ in range(length))


class QuestionUsage(SerializableMixin):
    """
    The attempts that make up one activity.

    Attributes:
        owning_plugin: Tag naming the component that created the usage
        context: Opaque reference to where the usage lives
        observer: Receives change notifications for the usage and its attempts
        registry: Behaviour registry shared by the usage's attempts
    """

    __serializable_fields__ = ['id', 'owning_plugin', 'context', 'preferred_behaviour', 'attempts']

    def __init__(
        self,
        owning_plugin: str,
        context: Any,
        observer: Optional[UsageObserver] = None,
        registry: Optional[BehaviourRegistry] = None,
        id_length: int = DEFAULT_ID_LENGTH,
        default_user_id: Optional[str] = None
    ):
        self.owning_plugin = owning_plugin
        self.context = context
        self.observer = observer or NullObserver()
        self.registry = registry or build_default_registry()
        self.default_user_id = default_user_id
        self._id: Any = make_temporary_id(id_length)
        self._preferred_behaviour: Optional[str] = None
        self._attempts: Dict[int, QuestionAttempt] = {}
        self.log = LoggerAdapter(logger, {"usage_id": self._id})

    def __repr__(self) -> str:
        return f"<QuestionUsage id={self._id!r} slots={len(self._attempts)}>"

    # Identity and settings

    @property
    def id(self) -> Any:
        return self._id

    def get_id(self) -> Any:
        return self._id

    def set_id_from_database(self, usage_id: int) -> None:
        """Replace the temporary id once the usage has been stored."""
        self._id = usage_id
        for attempt in self._attempts.values():
            attempt.set_usage_id(usage_id)
        self.log = LoggerAdapter(logger, {"usage_id": usage_id})

    def set_observer(self, observer: UsageObserver) -> None:
        """Attach a new observer to the usage and every attempt in it."""
        self.observer = observer
        for attempt in self._attempts.values():
            attempt.observer = observer

    @property
    def preferred_behaviour(self) -> Optional[str]:
        return self._preferred_behaviour

    def set_preferred_behaviour(self, behaviour: str) -> None:
        self._preferred_behaviour = behaviour
        self.observer.notify_modified()

    def get_preferred_behaviour(self) -> Optional[str]:
        return self._preferred_behaviour

    # Slots

    def add_question(self, question: QuestionDefinition, max_mark: Optional[float] = None) -> int:
        """
        Add an unstarted attempt at ``question`` in the next free slot.

        Returns:
            The new slot number
        """
        slot = max(self._attempts, default=0) + 1
        attempt = QuestionAttempt(question, self._id, self.observer, max_mark,
                                  self.registry, self.default_user_id)
        attempt.set_slot(slot)
        self._attempts[slot] = attempt
        self.observer.notify_attempt_added(attempt)
        return slot

    def _check_slot(self, slot: Any) -> int:
        if slot not in self._attempts:
            raise UnknownSlotError(slot, self._id)
        return slot

    def get_slots(self) -> List[int]:
        return list(self._attempts)

    def first_slot(self) -> Optional[int]:
        return next(iter(self._attempts), None)

    def question_count(self) -> int:
        return len(self._attempts)

    @property
    def attempts(self) -> Tuple[QuestionAttempt, ...]:
        """The attempts in slot order."""
        return tuple(self._attempts.values())

    @property
    def attempts_by_slot(self) -> Mapping[int, QuestionAttempt]:
        """Read-only slot -> attempt view."""
        return MappingProxyType(self._attempts)

    def get_question_attempt(self, slot: int) -> QuestionAttempt:
        return self._attempts[self._check_slot(slot)]

    def get_question(self, slot: int) -> QuestionDefinition:
        return self.get_question_attempt(slot).question

    def get_question_state(self, slot: int) -> QuestionState:
        return self.get_question_attempt(slot).get_state()

    def get_question_fraction(self, slot: int) -> Optional[float]:
        return self.get_question_attempt(slot).get_fraction()

    def get_question_mark(self, slot: int) -> Optional[float]:
        return self.get_question_attempt(slot).get_mark()

    def get_question_max_mark(self, slot: int) -> float:
        return self.get_question_attempt(slot).get_max_mark()

    def get_question_action_time(self, slot: int) -> Optional[int]:
        return self.get_question_attempt(slot).get_last_action_time()

    def get_question_summary(self, slot: int) -> Optional[str]:
        return self.get_question_attempt(slot).question_summary

    def get_response_summary(self, slot: int) -> Optional[str]:
        return self.get_question_attempt(slot).response_summary

    def get_right_answer_summary(self, slot: int) -> Optional[str]:
        return self.get_question_attempt(slot).right_answer_summary

    def get_field_prefix(self, slot: int) -> str:
        return self.get_question_attempt(slot).get_field_prefix()

    def get_total_mark(self) -> Optional[float]:
        """
        Sum of the attempts' marks, counting ungraded ones as zero.

        Returns:
            The total, or None while any attempt still needs grading
        """
        total = 0.0
        for attempt in self._attempts.values():
            if attempt.get_state() == QuestionState.NEEDS_GRADING:
                return None
            total += attempt.get_mark() or 0.0
        return total

    # Starting

    def _require_preferred_behaviour(self) -> str:
        if not self._preferred_behaviour:
            raise BehaviourError(f"Usage {self._id} has no preferred behaviour set")
        return self._preferred_behaviour

    def start_question(self, slot: int, timestamp: Optional[int] = None, user_id: Optional[str] = None) -> None:
        attempt = self.get_question_attempt(slot)
        attempt.start(self._require_preferred_behaviour(), None, timestamp, user_id)

    def start_all_questions(self, timestamp: Optional[int] = None, user_id: Optional[str] = None) -> None:
        preferred = self._require_preferred_behaviour()
        for attempt in self._attempts.values():
            attempt.start(preferred, None, timestamp, user_id)

    def start_question_based_on(self, slot: int, old_attempt: QuestionAttempt) -> None:
        self.get_question_attempt(slot).start_based_on(old_attempt)

    # Processing requests

    def get_slots_in_request(self, post_data: Dict[str, Any]) -> List[int]:
        """
        The slots a request is about: its ``slots`` field, else every slot.

        Raises:
            ValidationError: If the slots field is malformed
            UnknownSlotError: If it names a slot this usage does not have
        """
        raw = post_data.get(SLOTS_FIELD)
        if raw is None or raw == '':
            return self.get_slots()
        try:
            slots = [int(part) for part in str(raw).split(',') if part.strip()]
        except ValueError as e:
            raise ValidationError("Slots must be a comma separated list of numbers",
                                  {SLOTS_FIELD: str(raw)}) from e
        return [self._check_slot(slot) for slot in slots]

    def process_all_actions(self, timestamp: Optional[int] = None, post_data: Optional[Dict[str, Any]] = None) -> None:
        """
        Process a whole submitted request.

        For each slot in the request the sequence number is checked, the
        slot's fields are extracted and the action is processed. Flags are
        updated last, for every attempt.

        Raises:
            OutOfSequenceError: If any attempt has moved on since the page was built
        """
        post_data = post_data or {}
        for slot in self.get_slots_in_request(post_data):
            self.validate_sequence_number(slot, post_data)
            submitted = self.extract_responses(slot, post_data)
            self.process_action(slot, submitted, timestamp)
        self.update_question_flags(post_data)

    def extract_responses(self, slot: int, post_data: Dict[str, Any]) -> Dict[str, Any]:
        return self.get_question_attempt(slot).get_submitted_data(post_data)

    def process_action(
        self,
        slot: int,
        submitted_data: Dict[str, Any],
        timestamp: Optional[int] = None,
        user_id: Optional[str] = None
    ) -> Decision:
        attempt = self.get_question_attempt(slot)
        decision = attempt.process_action(submitted_data, timestamp, user_id)
        self.log.debug(f"Slot {slot}: {decision.value}, state now {attempt.get_state().value}")
        return decision

    def validate_sequence_number(self, slot: int, post_data: Dict[str, Any]) -> None:
        """Check the slot's sequence field, when the request has one."""
        attempt = self.get_question_attempt(slot)
        field_name = attempt.get_sequence_check_field_name()
        if post_data.get(field_name) is None:
            return
        attempt.check_sequence(post_data[field_name])

    def update_question_flags(self, post_data: Dict[str, Any]) -> None:
        for attempt in self._attempts.values():
            field_name = attempt.get_flag_field_name()
            if field_name in post_data:
                flagged = clean_param(field_name, post_data[field_name], bool)
                if flagged != attempt.is_flagged():
                    attempt.set_flagged(flagged)

    def get_correct_response(self, slot: int) -> Dict[str, Any]:
        return self.get_question_attempt(slot).get_correct_response()

    # Finishing and grading

    def finish_question(self, slot: int, timestamp: Optional[int] = None) -> Decision:
        return self.get_question_attempt(slot).finish(timestamp)

    def finish_all_questions(self, timestamp: Optional[int] = None) -> None:
        for attempt in self._attempts.values():
            attempt.finish(timestamp)

    def manual_grade(
        self,
        slot: int,
        comment: str,
        mark: Optional[float] = None,
        timestamp: Optional[int] = None,
        user_id: Optional[str] = None
    ) -> Decision:
        return self.get_question_attempt(slot).manual_grade(comment, mark, timestamp, user_id)

    def regrade_question(self, slot: int, new_max_mark: Optional[float] = None) -> QuestionAttempt:
        """
        Replay an attempt's submitted history under the current grading rules.

        The replacement keeps the slot, storage id and flag of the old attempt.
        The observer is told to drop the old steps before the new ones are added.

        Returns:
            The new attempt now in the slot
        """
        old_attempt = self.get_question_attempt(slot)
        if new_max_mark is None:
            new_max_mark = old_attempt.get_max_mark()

        new_attempt = QuestionAttempt(old_attempt.question, self._id, self.observer, new_max_mark,
                                      self.registry, self.default_user_id)
        new_attempt.set_database_id(old_attempt.id)
        new_attempt.set_slot(slot)
        new_attempt._flagged = old_attempt.is_flagged()

        self.observer.notify_delete_attempt_steps(old_attempt)
        new_attempt.regrade(old_attempt)
        self._attempts[slot] = new_attempt
        self.observer.notify_attempt_modified(new_attempt)
        self.log.info(f"Regraded slot {slot}: {old_attempt.get_fraction()} -> {new_attempt.get_fraction()}")
        return new_attempt

    def regrade_all_questions(self) -> None:
        for slot in self.get_slots():
            self.regrade_question(slot)

    # Storage support

    def replace_loaded_question_attempt_info(self, slot: int, attempt: QuestionAttempt) -> None:
        """Swap in an attempt reloaded from storage, without notifying the observer."""
        self._check_slot(slot)
        attempt.set_slot(slot)
        attempt.set_usage_id(self._id)
        attempt.observer = self.observer
        self._attempts[slot] = attempt

    @classmethod
    def restore(
        cls,
        usage_id: int,
        owning_plugin: str,
        context: Any,
        preferred_behaviour: Optional[str],
        attempts: Sequence[QuestionAttempt],
        registry: BehaviourRegistry,
        observer: Optional[UsageObserver] = None
    ) -> 'QuestionUsage':
        """Rebuild a usage from storage without notifying anyone."""
        usage = cls(owning_plugin, context, None, registry)
        usage.set_id_from_database(usage_id)
        usage._preferred_behaviour = preferred_behaviour
        for attempt in attempts:
            usage._attempts[attempt.slot] = attempt
        usage.set_observer(observer or NullObserver())
        return usage
