"""
SQLAlchemy ORM models for question usages.

This module defines the tables the engine state is stored in:
- QuestionUsageModel: One usage (owning component, context, preferred behaviour)
- QuestionAttemptModel: One attempt per slot of a usage
- QuestionAttemptStepModel: The ordered steps of an attempt
- QuestionAttemptStepDataModel: One row per step variable
"""

import time
import logging
from typing import Any, Dict

from sqlalchemy import (
    Boolean, Column, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
)
from sqlalchemy.orm import relationship, validates

from qengine.database.base import ModelBase
from qengine.engine.states import QuestionState

logger = logging.getLogger(__name__)

_STATE_VALUES = frozenset(state.value for state in QuestionState)


class QuestionUsageModel(ModelBase):
    """A stored question usage."""
    __tablename__ = 'question_usages'

    id = Column(Integer, primary_key=True, autoincrement=True)
    owning_plugin = Column(String(255), nullable=False)
    context = Column(String(255), nullable=True)
    preferred_behaviour = Column(String(32), nullable=True)

    attempts = relationship("QuestionAttemptModel", back_populates="usage",
                            cascade="all, delete-orphan", order_by="QuestionAttemptModel.slot")


class QuestionAttemptModel(ModelBase):
    """A stored attempt, one per slot of a usage."""
    __tablename__ = 'question_attempts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    usage_id = Column(Integer, ForeignKey('question_usages.id', ondelete="CASCADE"), nullable=False)
    slot = Column(Integer, nullable=False)
    question_id = Column(String(255), nullable=False, index=True)
    behaviour = Column(String(32), nullable=False)
    max_mark = Column(Float, nullable=False)
    min_fraction = Column(Float, nullable=False)
    flagged = Column(Boolean, nullable=False, default=False)
    question_summary = Column(Text, nullable=True)
    right_answer_summary = Column(Text, nullable=True)
    response_summary = Column(Text, nullable=True)
    time_modified = Column(Integer, nullable=False, default=lambda: int(time.time()))

    usage = relationship("QuestionUsageModel", back_populates="attempts")
    steps = relationship("QuestionAttemptStepModel", back_populates="attempt",
                         cascade="all, delete-orphan", order_by="QuestionAttemptStepModel.sequence_number")

    __table_args__ = (
        UniqueConstraint('usage_id', 'slot', name='uq_question_attempts_usage_slot'),
    )


class QuestionAttemptStepModel(ModelBase):
    """A stored step."""
    __tablename__ = 'question_attempt_steps'

    id = Column(Integer, primary_key=True, autoincrement=True)
    attempt_id = Column(Integer, ForeignKey('question_attempts.id', ondelete="CASCADE"), nullable=False)
    sequence_number = Column(Integer, nullable=False)
    state = Column(String(16), nullable=False)
    fraction = Column(Float, nullable=True)
    timestamp = Column(Integer, nullable=False)
    user_id = Column(String(255), nullable=True)

    attempt = relationship("QuestionAttemptModel", back_populates="steps")
    data = relationship("QuestionAttemptStepDataModel", back_populates="step",
                        cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint('attempt_id', 'sequence_number', name='uq_question_attempt_steps_attempt_seq'),
        Index('idx_question_attempt_steps_user', user_id, timestamp),
    )

    @validates('state')
    def validate_state(self, key, state):
        """Only accept known state values"""
        if state not in _STATE_VALUES:
            raise ValueError(f"Unknown question state: {state}")
        return state

    def get_variables(self) -> Dict[str, Any]:
        return {row.name: row.value for row in self.data}


class QuestionAttemptStepDataModel(ModelBase):
    """One variable of a stored step. Values are stored as text."""
    __tablename__ = 'question_attempt_step_data'

    id = Column(Integer, primary_key=True, autoincrement=True)
    step_id = Column(Integer, ForeignKey('question_attempt_steps.id', ondelete="CASCADE"), nullable=False)
    name = Column(String(64), nullable=False)
    value = Column(Text, nullable=True)

    step = relationship("QuestionAttemptStepModel", back_populates="data")

    __table_args__ = (
        UniqueConstraint('step_id', 'name', name='uq_question_attempt_step_data_step_name'),
    )
