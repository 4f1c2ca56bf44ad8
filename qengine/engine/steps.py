"""
Attempt Steps

A step records one action taken on a question attempt: who did it, when, the
state and fraction that resulted, and a bag of variables.

Variable names are namespaced by prefix:

* ``name``   submitted question-type data
* ``_name``  cached question-type data
* ``-name``  submitted behaviour data
* ``-_name`` cached behaviour data

Only cached variables can be set after a step is created, and only on steps
that are still pending. Steps built from storage are read-only.
"""

import enum
import time
from typing import Any, Dict, Optional

from qengine.common.exceptions import ImmutableStepError, InvalidVariableName, NotStartedError
from qengine.common.serialization import SerializableMixin
from qengine.engine.states import QuestionState

BEHAVIOUR_PREFIX = '-'
CACHED_PREFIX = '_'
# Cached behaviour variable marking a step after which there is no current response.
RESPONSE_CLEARED = '_responsecleared'


class Namespace(enum.Enum):
    """The two families of step variables."""
    QUESTION = ''
    BEHAVIOUR = BEHAVIOUR_PREFIX


def is_cached_name(name: str) -> bool:
    """Whether a full variable name (with any behaviour prefix) is a cached variable."""
    if name.startswith(BEHAVIOUR_PREFIX):
        name = name[len(BEHAVIOUR_PREFIX):]
    return name.startswith(CACHED_PREFIX)


class Step(SerializableMixin):
    """One recorded action against a question attempt."""

    __serializable_fields__ = ['id', 'state', 'fraction', 'timestamp', 'user_id', 'data']

    def __init__(
        self,
        data: Optional[Dict[str, Any]] = None,
        timestamp: Optional[int] = None,
        user_id: Optional[str] = None,
        step_id: Optional[int] = None
    ):
        """
        Create a step.

        Args:
            data: Submitted variables, keyed by full (prefixed) name
            timestamp: Unix time of the action; defaults to now
            user_id: Who took the action
            step_id: Storage key, for steps loaded from the database
        """
        self._data: Dict[str, Any] = dict(data or {})
        self._state = QuestionState.UNPROCESSED
        self._fraction: Optional[float] = None
        self._timestamp = int(time.time()) if timestamp is None else int(timestamp)
        self._user_id = user_id
        self.id = step_id

    def __repr__(self) -> str:
        return f"<{type(self).__name__} state={self._state.value} fraction={self._fraction} data={self._data}>"

    @property
    def state(self) -> QuestionState:
        return self._state

    @property
    def fraction(self) -> Optional[float]:
        return self._fraction

    @property
    def timestamp(self) -> int:
        return self._timestamp

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    @property
    def data(self) -> Dict[str, Any]:
        return dict(self._data)

    def get_state(self) -> QuestionState:
        return self._state

    def set_state(self, state: QuestionState) -> None:
        self._state = state

    def get_fraction(self) -> Optional[float]:
        return self._fraction

    def set_fraction(self, fraction: Optional[float]) -> None:
        self._fraction = None if fraction is None else float(fraction)

    # Namespace-generic access

    def has_var(self, namespace: Namespace, name: str) -> bool:
        return namespace.value + name in self._data

    def get_var(self, namespace: Namespace, name: str, default: Any = None) -> Any:
        return self._data.get(namespace.value + name, default)

    def set_cached_var(self, namespace: Namespace, name: str, value: Any) -> None:
        """
        Set a cached variable.

        Args:
            namespace: QUESTION or BEHAVIOUR
            name: Variable name without the behaviour prefix; must start with '_'
            value: The value to store

        Raises:
            InvalidVariableName: If the name is not a cached variable name
        """
        if not name.startswith(CACHED_PREFIX):
            raise InvalidVariableName(namespace.value + name)
        self._data[namespace.value + name] = value

    # Question-type variables

    def has_qt_var(self, name: str) -> bool:
        return self.has_var(Namespace.QUESTION, name)

    def get_qt_var(self, name: str, default: Any = None) -> Any:
        return self.get_var(Namespace.QUESTION, name, default)

    def set_qt_var(self, name: str, value: Any) -> None:
        self.set_cached_var(Namespace.QUESTION, name, value)

    def get_qt_data(self) -> Dict[str, Any]:
        """All question-type variables, submitted and cached."""
        return {name: value for name, value in self._data.items()
                if not name.startswith(BEHAVIOUR_PREFIX)}

    # Behaviour variables

    def has_behaviour_var(self, name: str) -> bool:
        return self.has_var(Namespace.BEHAVIOUR, name)

    def get_behaviour_var(self, name: str, default: Any = None) -> Any:
        return self.get_var(Namespace.BEHAVIOUR, name, default)

    def set_behaviour_var(self, name: str, value: Any) -> None:
        self.set_cached_var(Namespace.BEHAVIOUR, name, value)

    def get_behaviour_data(self) -> Dict[str, Any]:
        """All behaviour variables, keyed without the '-' prefix."""
        return {name[len(BEHAVIOUR_PREFIX):]: value for name, value in self._data.items()
                if name.startswith(BEHAVIOUR_PREFIX)}

    # Whole-step views

    def get_submitted_data(self) -> Dict[str, Any]:
        """
        The variables that came from the request, without cached ones.

        Replaying these through a fresh attempt reproduces the step.
        """
        return {name: value for name, value in self._data.items() if not is_cached_name(name)}

    def get_all_data(self) -> Dict[str, Any]:
        return dict(self._data)

    # Aliases matching the namespace-neutral contract
    get_all_vars = get_all_data
    get_submitted_vars = get_submitted_data


class PendingStep(Step):
    """A step that has been built from a request but not yet kept or discarded."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._new_response_summary: Optional[str] = None
        self._response_summary_changed = False

    def set_new_response_summary(self, summary: Optional[str]) -> None:
        self._new_response_summary = summary
        self._response_summary_changed = True

    def get_new_response_summary(self) -> Optional[str]:
        return self._new_response_summary

    def response_summary_changed(self) -> bool:
        return self._response_summary_changed


class ReadOnlyStep(Step):
    """A step loaded from storage. Every mutator raises ImmutableStepError."""

    def set_state(self, state: QuestionState) -> None:
        raise ImmutableStepError("set the state")

    def set_fraction(self, fraction: Optional[float]) -> None:
        raise ImmutableStepError("set the fraction")

    def set_cached_var(self, namespace: Namespace, name: str, value: Any) -> None:
        raise ImmutableStepError(f"set variable '{namespace.value + name}'")

    @classmethod
    def from_record(
        cls,
        step_id: Optional[int],
        state: str,
        fraction: Optional[float],
        timestamp: int,
        user_id: Optional[str],
        data: Dict[str, Any]
    ) -> 'ReadOnlyStep':
        """Rebuild a committed step from its stored columns and variables."""
        step = cls(data, timestamp, user_id, step_id)
        # Bypass the read-only mutators; this is the only place state is seeded.
        step._state = QuestionState.from_value(state)
        step._fraction = None if fraction is None else float(fraction)
        return step


class NullStep:
    """Stands in for the last step of an attempt that has no steps yet."""

    id = None
    timestamp = None
    user_id = None

    @property
    def state(self) -> QuestionState:
        return QuestionState.NOT_STARTED

    @property
    def fraction(self) -> None:
        return None

    def get_state(self) -> QuestionState:
        return QuestionState.NOT_STARTED

    def set_state(self, state: QuestionState) -> None:
        raise NotStartedError("This question attempt has not been started yet")

    def get_fraction(self) -> None:
        return None

    def has_qt_var(self, name: str) -> bool:
        return False

    def get_qt_var(self, name: str, default: Any = None) -> Any:
        return default

    def has_behaviour_var(self, name: str) -> bool:
        return False

    def get_behaviour_var(self, name: str, default: Any = None) -> Any:
        return default

    def get_qt_data(self) -> Dict[str, Any]:
        return {}

    def get_behaviour_data(self) -> Dict[str, Any]:
        return {}

    def get_submitted_data(self) -> Dict[str, Any]:
        return {}

    def get_all_data(self) -> Dict[str, Any]:
        return {}
