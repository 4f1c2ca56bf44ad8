"""
Display Options

Flags telling a renderer what it may reveal about an attempt. The engine does
not render anything; behaviours only narrow these options to match the
attempt's state.
"""

import enum
from dataclasses import dataclass


class MarkDisplay(enum.Enum):
    """How much of the mark to show."""
    HIDDEN = "hidden"
    MAX_ONLY = "max_only"
    MARK_AND_MAX = "mark_and_max"


@dataclass
class DisplayOptions:
    """What a rendered attempt may show."""
    readonly: bool = False
    correctness: bool = True
    marks: MarkDisplay = MarkDisplay.MARK_AND_MAX
    mark_decimal_places: int = 2
    feedback: bool = True
    general_feedback: bool = True
    right_answer: bool = True
    manual_comment: bool = True
    history: bool = False

    def hide_all_feedback(self) -> None:
        self.feedback = False
        self.general_feedback = False
        self.right_answer = False
        self.correctness = False
