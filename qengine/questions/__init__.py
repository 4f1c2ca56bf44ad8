"""
Questions

Reference question definitions, remote questions and question banks.
"""

from qengine.questions.types import (
    Choice,
    DescriptionQuestion,
    EssayQuestion,
    MultichoiceSingleQuestion,
    TrueFalseQuestion,
)
from qengine.questions.remote import RemoteEngineError, RemoteQuestion, RemoteQuestionEngine, RemoteResult
from qengine.questions.bank import MemoryQuestionBank, QuestionBank

__all__ = [
    'Choice',
    'DescriptionQuestion',
    'EssayQuestion',
    'MultichoiceSingleQuestion',
    'TrueFalseQuestion',
    'RemoteEngineError',
    'RemoteQuestion',
    'RemoteQuestionEngine',
    'RemoteResult',
    'MemoryQuestionBank',
    'QuestionBank',
]
