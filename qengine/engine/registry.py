"""
Behaviour Registry

Maps behaviour names to the factories that build them. Each engine owns its
own registry, so different engines (or tests) can offer different behaviours.
Factories are checked when they are registered rather than when a stored
name is first looked up.
"""

import inspect
import logging
from typing import Callable, Dict, List, Optional, Set, TYPE_CHECKING

from qengine.behaviours import DEFAULT_BEHAVIOURS, MissingBehaviour
from qengine.behaviours.base import Behaviour
from qengine.common.exceptions import BehaviourError, UnknownBehaviourError

if TYPE_CHECKING:
    from qengine.engine.attempt import QuestionAttempt

logger = logging.getLogger(__name__)

BehaviourFactory = Callable[['QuestionAttempt', Optional[str]], Behaviour]


class BehaviourRegistry:
    """
    Registry of behaviour factories.

    A factory is called as ``factory(attempt, preferred_behaviour)`` and must
    return a :class:`Behaviour`. Behaviour classes are themselves factories.
    """

    def __init__(self):
        self._factories: Dict[str, BehaviourFactory] = {}
        self._archetypal: Set[str] = set()

    def __contains__(self, name: str) -> bool:
        return name in self._factories

    def __len__(self) -> int:
        return len(self._factories)

    def register(
        self,
        name: str,
        factory: BehaviourFactory,
        archetypal: Optional[bool] = None,
        replace: bool = False
    ) -> None:
        """
        Register a behaviour factory.

        Args:
            name: Name stored with attempts that use the behaviour
            factory: Behaviour class or callable returning a Behaviour
            archetypal: Whether usages may select it as their preferred behaviour;
                defaults to the class's IS_ARCHETYPAL flag
            replace: Whether an existing registration may be overwritten

        Raises:
            BehaviourError: If the name or factory is unusable, or the name is taken
        """
        if not isinstance(name, str) or not name or not name.isidentifier():
            raise BehaviourError(f"Invalid behaviour name: {name!r}")
        if not callable(factory):
            raise BehaviourError(f"Factory for behaviour '{name}' is not callable")

        if inspect.isclass(factory):
            if not issubclass(factory, Behaviour):
                raise BehaviourError(f"{factory.__name__} is not a Behaviour")
            if factory.name != name:
                raise BehaviourError(
                    f"{factory.__name__} declares name '{factory.name}', cannot register it as '{name}'")
            if archetypal is None:
                archetypal = factory.IS_ARCHETYPAL

        if name in self._factories and not replace:
            raise BehaviourError(f"Behaviour '{name}' is already registered")

        self._factories[name] = factory
        if archetypal:
            self._archetypal.add(name)
        else:
            self._archetypal.discard(name)
        logger.debug(f"Registered behaviour: {name}")

    def register_class(self, behaviour_class, replace: bool = False) -> None:
        """Register a Behaviour subclass under its own ``name``."""
        self.register(behaviour_class.name, behaviour_class, replace=replace)

    def unregister(self, name: str) -> None:
        if name not in self._factories:
            raise UnknownBehaviourError(name)
        del self._factories[name]
        self._archetypal.discard(name)

    def get_archetypal_behaviours(self) -> List[str]:
        """Names of the behaviours a usage may prefer, in alphabetical order."""
        return sorted(self._archetypal)

    def is_archetypal(self, name: str) -> bool:
        return name in self._archetypal

    def _build(self, name: str, attempt: 'QuestionAttempt', preferred_behaviour: Optional[str]) -> Behaviour:
        behaviour = self._factories[name](attempt, preferred_behaviour)
        if not isinstance(behaviour, Behaviour):
            raise BehaviourError(f"Factory for '{name}' returned {type(behaviour).__name__}, not a Behaviour")
        return behaviour

    def make_archetypal_behaviour(self, preferred_behaviour: str, attempt: 'QuestionAttempt') -> Behaviour:
        """
        Build the archetypal behaviour a usage prefers.

        Raises:
            UnknownBehaviourError: If the name is not registered
            BehaviourError: If the behaviour is not archetypal
        """
        if preferred_behaviour not in self._factories:
            raise UnknownBehaviourError(preferred_behaviour)
        if preferred_behaviour not in self._archetypal:
            raise BehaviourError(f"Behaviour '{preferred_behaviour}' is not an archetypal behaviour")
        return self._build(preferred_behaviour, attempt, preferred_behaviour)

    def make_behaviour(
        self,
        name: str,
        attempt: 'QuestionAttempt',
        preferred_behaviour: Optional[str]
    ) -> Behaviour:
        """
        Build a behaviour by name, falling back to a read-only stand-in
        when the name is not registered (e.g. for attempts loaded from storage).
        """
        if name not in self._factories:
            logger.warning(f"Behaviour '{name}' is not registered, loading attempt read-only")
            return MissingBehaviour(attempt, preferred_behaviour, missing_name=name)
        return self._build(name, attempt, preferred_behaviour)


def build_default_registry() -> BehaviourRegistry:
    """Create a registry holding every built-in behaviour."""
    registry = BehaviourRegistry()
    for behaviour_class in DEFAULT_BEHAVIOURS:
        registry.register_class(behaviour_class)
    return registry
