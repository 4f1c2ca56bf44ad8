"""
Usage Observers

A usage reports every structural change to its observer so that a durable
store can be kept in sync. The null observer is used for usages that are
never saved, such as previews.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from qengine.engine.attempt import QuestionAttempt
    from qengine.engine.steps import Step


class UsageObserver(ABC):
    """Receives change notifications from a usage and its attempts."""

    @abstractmethod
    def notify_modified(self) -> None:
        """The usage-level fields changed."""
        pass

    @abstractmethod
    def notify_attempt_added(self, attempt: 'QuestionAttempt') -> None:
        """A new attempt was added to a slot."""
        pass

    @abstractmethod
    def notify_attempt_modified(self, attempt: 'QuestionAttempt') -> None:
        """Attempt-level fields (flag, summaries, max mark) changed."""
        pass

    @abstractmethod
    def notify_delete_attempt_steps(self, attempt: 'QuestionAttempt') -> None:
        """All stored steps of the attempt must go, ahead of a replay."""
        pass

    @abstractmethod
    def notify_step_added(self, step: 'Step', attempt: 'QuestionAttempt', seq: int) -> None:
        """A step was appended to an attempt at position ``seq``."""
        pass


class NullObserver(UsageObserver):
    """Observer that ignores every notification."""

    def notify_modified(self) -> None:
        pass

    def notify_attempt_added(self, attempt: 'QuestionAttempt') -> None:
        pass

    def notify_attempt_modified(self, attempt: 'QuestionAttempt') -> None:
        pass

    def notify_delete_attempt_steps(self, attempt: 'QuestionAttempt') -> None:
        pass

    def notify_step_added(self, step: 'Step', attempt: 'QuestionAttempt', seq: int) -> None:
        pass
