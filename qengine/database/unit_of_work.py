"""
Unit of Work

An observer that remembers what changed in a loaded (or freshly stored) usage
so that a single save writes only the changes, in one transaction.

Changes are recorded by slot and step position and resolved against the
usage at save time, so an attempt that was replaced by a regrade after the
notification is written in its final form.
"""

import logging
from typing import Dict, List, Set, Tuple, TYPE_CHECKING

from qengine.engine.attempt import QuestionAttempt
from qengine.engine.observer import UsageObserver
from qengine.engine.steps import Step

if TYPE_CHECKING:
    from qengine.database.mapper import DataMapper
    from qengine.engine.usage import QuestionUsage

logger = logging.getLogger(__name__)


class UnitOfWork(UsageObserver):
    """Collects usage changes until :meth:`save`."""

    def __init__(self, usage: 'QuestionUsage'):
        self.usage = usage
        self.modified = False
        self._attempts_added: Set[int] = set()
        self._attempts_modified: Set[int] = set()
        self._steps_added: Dict[int, Set[int]] = {}
        # slot -> stored attempt id whose stored steps must be deleted
        self._steps_deleted: Dict[int, int] = {}

    def __repr__(self) -> str:
        return (f"<UnitOfWork usage={self.usage.id!r} added={sorted(self._attempts_added)} "
                f"modified={sorted(self._attempts_modified)} deleted={sorted(self._steps_deleted)}>")

    # Observer interface

    def notify_modified(self) -> None:
        self.modified = True

    def notify_attempt_added(self, attempt: QuestionAttempt) -> None:
        self._attempts_added.add(attempt.slot)

    def notify_attempt_modified(self, attempt: QuestionAttempt) -> None:
        if attempt.slot in self._attempts_added:
            return
        self._attempts_modified.add(attempt.slot)

    def notify_delete_attempt_steps(self, attempt: QuestionAttempt) -> None:
        self._steps_added.pop(attempt.slot, None)
        if attempt.slot in self._attempts_added or attempt.id is None:
            return
        self._steps_deleted[attempt.slot] = attempt.id

    def notify_step_added(self, step: Step, attempt: QuestionAttempt, seq: int) -> None:
        if attempt.slot in self._attempts_added:
            return
        self._steps_added.setdefault(attempt.slot, set()).add(seq)

    # Saving

    def has_changes(self) -> bool:
        return bool(self.modified or self._attempts_added or self._attempts_modified
                    or self._steps_added or self._steps_deleted)

    def get_attempt_ids_with_deleted_steps(self) -> List[int]:
        return sorted(self._steps_deleted.values())

    def get_added_attempts(self) -> List[QuestionAttempt]:
        return [self.usage.get_question_attempt(slot) for slot in sorted(self._attempts_added)]

    def get_modified_attempts(self) -> List[QuestionAttempt]:
        return [self.usage.get_question_attempt(slot) for slot in sorted(self._attempts_modified)]

    def get_added_steps(self) -> List[Tuple[QuestionAttempt, Step, int]]:
        added = []
        for slot in sorted(self._steps_added):
            attempt = self.usage.get_question_attempt(slot)
            for seq in sorted(self._steps_added[slot]):
                added.append((attempt, attempt.get_step(seq), seq))
        return added

    def reset(self) -> None:
        self.modified = False
        self._attempts_added.clear()
        self._attempts_modified.clear()
        self._steps_added.clear()
        self._steps_deleted.clear()

    def save(self, mapper: 'DataMapper') -> None:
        """Write every recorded change in one transaction, then start afresh."""
        if not self.has_changes():
            logger.debug(f"Nothing to save for usage {self.usage.id}")
            return
        mapper.apply_unit_of_work(self)
        self.reset()
