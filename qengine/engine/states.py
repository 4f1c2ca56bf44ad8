"""
Question States

This module defines the states a question attempt can be in, and the
classification helpers behaviours use to turn a fraction into a state.
"""

import enum
from typing import Optional

# Tolerance band for classifying fractions as right or wrong.
FRACTION_TOLERANCE = 0.000001


class QuestionState(enum.Enum):
    """States of a question attempt. The value is the persisted form."""

    NOT_STARTED = "notstarted"
    UNPROCESSED = "unprocessed"
    TODO = "todo"
    INVALID = "invalid"
    COMPLETE = "complete"
    NEEDS_GRADING = "needsgrading"
    FINISHED = "finished"
    GAVE_UP = "gaveup"
    GRADED_WRONG = "gradedwrong"
    GRADED_PARTIAL = "gradedpartial"
    GRADED_RIGHT = "gradedright"
    MANUALLY_FINISHED = "manfinished"
    MANUALLY_GAVE_UP = "mangaveup"
    MANUALLY_GRADED_WRONG = "mangrwrong"
    MANUALLY_GRADED_PARTIAL = "mangrpartial"
    MANUALLY_GRADED_RIGHT = "mangrright"

    def is_active(self) -> bool:
        """Whether the learner can still submit responses."""
        return self in _ACTIVE

    def is_finished(self) -> bool:
        """Whether automatic actions are over for this attempt."""
        return self in _FINISHED

    def is_graded(self) -> bool:
        return self in _GRADED

    def is_commented(self) -> bool:
        """Whether the state was reached through a manual comment."""
        return self in _COMMENTED

    def is_gave_up(self) -> bool:
        return self in (QuestionState.GAVE_UP, QuestionState.MANUALLY_GAVE_UP)

    def is_correct(self) -> bool:
        return self in (QuestionState.GRADED_RIGHT, QuestionState.MANUALLY_GRADED_RIGHT)

    def is_partially_correct(self) -> bool:
        return self in (QuestionState.GRADED_PARTIAL, QuestionState.MANUALLY_GRADED_PARTIAL)

    def is_wrong(self) -> bool:
        return self in (QuestionState.GRADED_WRONG, QuestionState.MANUALLY_GRADED_WRONG)

    def default_string(self) -> str:
        """A plain English label for reports."""
        return _LABELS[self]

    @classmethod
    def from_value(cls, value: str) -> 'QuestionState':
        """Look a state up by its persisted value."""
        return cls(value)


_ACTIVE = frozenset({QuestionState.TODO, QuestionState.INVALID, QuestionState.COMPLETE})

_GRADED = frozenset({
    QuestionState.GRADED_WRONG,
    QuestionState.GRADED_PARTIAL,
    QuestionState.GRADED_RIGHT,
    QuestionState.MANUALLY_GRADED_WRONG,
    QuestionState.MANUALLY_GRADED_PARTIAL,
    QuestionState.MANUALLY_GRADED_RIGHT,
})

_COMMENTED = frozenset({
    QuestionState.MANUALLY_FINISHED,
    QuestionState.MANUALLY_GAVE_UP,
    QuestionState.MANUALLY_GRADED_WRONG,
    QuestionState.MANUALLY_GRADED_PARTIAL,
    QuestionState.MANUALLY_GRADED_RIGHT,
})

_FINISHED = frozenset(
    state for state in QuestionState
    if state not in _ACTIVE and state not in (QuestionState.NOT_STARTED, QuestionState.UNPROCESSED)
)

_LABELS = {
    QuestionState.NOT_STARTED: "Not yet started",
    QuestionState.UNPROCESSED: "Unprocessed",
    QuestionState.TODO: "Not yet answered",
    QuestionState.INVALID: "Incomplete answer",
    QuestionState.COMPLETE: "Answer saved",
    QuestionState.NEEDS_GRADING: "Requires grading",
    QuestionState.FINISHED: "Complete",
    QuestionState.GAVE_UP: "Not answered",
    QuestionState.GRADED_WRONG: "Incorrect",
    QuestionState.GRADED_PARTIAL: "Partially correct",
    QuestionState.GRADED_RIGHT: "Correct",
    QuestionState.MANUALLY_FINISHED: "Commented",
    QuestionState.MANUALLY_GAVE_UP: "Commented: not answered",
    QuestionState.MANUALLY_GRADED_WRONG: "Incorrect",
    QuestionState.MANUALLY_GRADED_PARTIAL: "Partially correct",
    QuestionState.MANUALLY_GRADED_RIGHT: "Correct",
}


def graded_state_for_fraction(fraction: float) -> QuestionState:
    """
    Classify an automatically graded fraction.

    Both ends of the tolerance band are exclusive: 0.999999 is partial,
    0.9999995 is right.

    Args:
        fraction: The awarded fraction

    Returns:
        GRADED_WRONG, GRADED_PARTIAL or GRADED_RIGHT
    """
    if fraction < FRACTION_TOLERANCE:
        return QuestionState.GRADED_WRONG
    if fraction > 1 - FRACTION_TOLERANCE:
        return QuestionState.GRADED_RIGHT
    return QuestionState.GRADED_PARTIAL


def manually_graded_state_for_fraction(fraction: Optional[float]) -> QuestionState:
    """Classify a manually awarded fraction; None means a comment with no mark."""
    if fraction is None:
        return QuestionState.MANUALLY_FINISHED
    if fraction < FRACTION_TOLERANCE:
        return QuestionState.MANUALLY_GRADED_WRONG
    if fraction > 1 - FRACTION_TOLERANCE:
        return QuestionState.MANUALLY_GRADED_RIGHT
    return QuestionState.MANUALLY_GRADED_PARTIAL


def corresponding_commented_state(state: QuestionState, fraction: Optional[float]) -> QuestionState:
    """
    The state an attempt moves to when a manual comment is added.

    Args:
        state: The attempt's current state
        fraction: The fraction after the comment, None if no mark applies

    Returns:
        The commented counterpart of the state
    """
    if fraction is None:
        if state.is_gave_up():
            return QuestionState.MANUALLY_GAVE_UP
        return QuestionState.MANUALLY_FINISHED
    return manually_graded_state_for_fraction(fraction)
