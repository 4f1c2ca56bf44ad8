"""
Shared fixtures for the question engine tests.
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from qengine.common.config import AppConfig
from qengine.database.mapper import DataMapper
from qengine.database.session import create_session_factory, init_database
from qengine.engine.engine import QuestionEngine
from qengine.engine.registry import build_default_registry
from qengine.questions import (
    Choice,
    DescriptionQuestion,
    EssayQuestion,
    MemoryQuestionBank,
    MultichoiceSingleQuestion,
    TrueFalseQuestion,
)

# Fixed time used for every action, so histories can be compared exactly.
T0 = 1700000000


def make_single_choice(question_id: str = "mc1", default_mark: float = 1.0) -> MultichoiceSingleQuestion:
    return MultichoiceSingleQuestion(
        question_id,
        [
            Choice("Red", 0.0, "No"),
            Choice("Green", 1.0, "Yes"),
            Choice("Blue", 0.5, "Nearly"),
        ],
        name="Colour",
        question_text="Which colour is grass?",
        default_mark=default_mark,
    )


@pytest.fixture
def single_choice():
    return make_single_choice()


@pytest.fixture
def true_false():
    return TrueFalseQuestion("tf1", True, question_text="The sky is blue.")


@pytest.fixture
def essay():
    return EssayQuestion("essay1", question_text="Describe a sunset.", default_mark=10.0)


@pytest.fixture
def description():
    return DescriptionQuestion("desc1", question_text="Read this first.")


@pytest.fixture
def question_bank(single_choice, true_false, essay, description):
    bank = MemoryQuestionBank()
    for question in (single_choice, true_false, essay, description):
        bank.add(question)
    return bank


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def app_config():
    return AppConfig()


@pytest.fixture
def db_engine():
    """In-memory SQLite database shared across the connections of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def mapper(session_factory, question_bank, registry):
    return DataMapper(session_factory, question_bank, registry)


@pytest.fixture
def engine(question_bank, mapper, registry, app_config):
    return QuestionEngine(question_bank, mapper, registry, app_config)
