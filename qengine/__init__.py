"""
Question Engine

Runs questions inside usages: each usage holds one attempt per slot, each
attempt records the actions taken on it as an ordered history of steps, and
a behaviour decides how every action changes the attempt's state and mark.

Key components:
1. QuestionUsage / QuestionAttempt - the in-memory model of an activity
2. Behaviours - deferred and immediate feedback, interactive, CBM, manual grading
3. DataMapper / UnitOfWork - SQLAlchemy storage that writes only what changed
4. QuestionEngine - facade tying the registry, question bank and storage together
"""

from qengine.common.logger import app_logger
from qengine.engine.attempt import QuestionAttempt
from qengine.engine.engine import QuestionEngine
from qengine.engine.registry import BehaviourRegistry, build_default_registry
from qengine.engine.states import QuestionState
from qengine.engine.steps import Step
from qengine.engine.usage import QuestionUsage

__version__ = "0.1.0"

__all__ = [
    'app_logger',
    'BehaviourRegistry',
    'build_default_registry',
    'QuestionAttempt',
    'QuestionEngine',
    'QuestionState',
    'QuestionUsage',
    'Step',
]
