"""
Question Banks

A question bank turns the question ids stored with attempts back into
question definitions when a usage is loaded. The in-memory bank is enough for
tests and for applications that build their questions at start-up.
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional

from qengine.common.exceptions import NotFoundError
from qengine.engine.question import QuestionDefinition

logger = logging.getLogger(__name__)


class QuestionBank(ABC):
    """Source of question definitions."""

    @abstractmethod
    def load_question(self, question_id: str) -> QuestionDefinition:
        """
        Get a question by its ID.

        Args:
            question_id: The ID of the question to retrieve

        Returns:
            The question definition

        Raises:
            NotFoundError: If there is no such question
        """
        pass


class MemoryQuestionBank(QuestionBank):
    """
    In-memory question bank.

    Questions are held by id; adding a question with an existing id replaces it.
    """

    def __init__(self, initial_data: Optional[Iterable[QuestionDefinition]] = None):
        """
        Initialize the bank with optional initial questions.

        Args:
            initial_data: Questions to start with
        """
        self._questions: Dict[str, QuestionDefinition] = {}

        if initial_data:
            for question in initial_data:
                self.add(question)

    def __contains__(self, question_id: str) -> bool:
        return str(question_id) in self._questions

    def __len__(self) -> int:
        return len(self._questions)

    def add(self, question: QuestionDefinition) -> QuestionDefinition:
        """Add or replace a question."""
        if question.id in self._questions:
            logger.debug(f"Replacing question {question.id} in memory bank")
        self._questions[str(question.id)] = question
        return question

    def remove(self, question_id: str) -> bool:
        """
        Remove a question.

        Returns:
            True if the question was removed, False if it was not there
        """
        return self._questions.pop(str(question_id), None) is not None

    def load_question(self, question_id: str) -> QuestionDefinition:
        question = self._questions.get(str(question_id))
        if question is None:
            raise NotFoundError("Question", question_id)
        return question
