"""
Question Engine

Entry point for code that runs questions: makes new usages, loads and saves
stored ones, and hands out behaviours from the engine's registry.
"""

from typing import Any, Iterable, List, Optional

from qengine.behaviours.base import Behaviour
from qengine.common.config import AppConfig, get_config
from qengine.common.exceptions import ConfigurationError
from qengine.common.logger import APP_LOGGER_NAME, app_logger, configure_logger
from qengine.database.mapper import DataMapper
from qengine.database.session import create_db_engine, create_session_factory, init_database
from qengine.engine.attempt import QuestionAttempt
from qengine.engine.display import DisplayOptions
from qengine.engine.registry import BehaviourRegistry, build_default_registry
from qengine.engine.usage import QuestionUsage
from qengine.questions.bank import MemoryQuestionBank, QuestionBank

logger = app_logger.getChild("engine")


class QuestionEngine:
    """
    Facade over the behaviour registry, the question bank and storage.

    Args:
        question_bank: Where stored question ids are resolved
        mapper: Storage; operations that need it raise ConfigurationError when it is missing
        registry: Behaviours on offer; the built-in set when omitted
        config: Engine settings; the global configuration when omitted
    """

    def __init__(
        self,
        question_bank: Optional[QuestionBank] = None,
        mapper: Optional[DataMapper] = None,
        registry: Optional[BehaviourRegistry] = None,
        config: Optional[AppConfig] = None
    ):
        self.config = config or get_config()
        self.registry = registry or build_default_registry()
        self.question_bank = question_bank or MemoryQuestionBank()
        self.mapper = mapper

    @classmethod
    def from_config(
        cls,
        question_bank: QuestionBank,
        config: Optional[AppConfig] = None,
        create_tables: bool = False
    ) -> 'QuestionEngine':
        """Build an engine whose storage and logging follow the configuration."""
        config = config or get_config()
        configure_logger(
            name=APP_LOGGER_NAME,
            level=config.logging.level,
            use_json=config.logging.use_json,
            log_file=config.logging.file_path
        )
        db_engine = create_db_engine(config.database)
        if create_tables:
            init_database(db_engine)
        registry = build_default_registry()
        mapper = DataMapper(create_session_factory(db_engine), question_bank, registry)
        return cls(question_bank, mapper, registry, config)

    def _require_mapper(self) -> DataMapper:
        if self.mapper is None:
            raise ConfigurationError("Question engine has no storage configured", "database")
        return self.mapper

    # Usages

    def make_usage(self, owning_plugin: str, context: Any) -> QuestionUsage:
        """Create an empty usage preferring the configured default behaviour."""
        engine_config = self.config.engine
        usage = QuestionUsage(owning_plugin, context, registry=self.registry,
                              id_length=engine_config.usage_id_length,
                              default_user_id=engine_config.default_user_id)
        usage.set_preferred_behaviour(engine_config.default_behaviour)
        return usage

    def load_usage(self, usage_id: int) -> QuestionUsage:
        return self._require_mapper().load_usage(usage_id)

    def save_usage(self, usage: QuestionUsage) -> None:
        """Store a new usage, or write the pending changes of a loaded one."""
        self._require_mapper().save_usage(usage)

    def reload_question_state_in_usage(self, usage: QuestionUsage, slot: int, seq: Optional[int] = None) -> None:
        self._require_mapper().reload_question_state_in_usage(usage, slot, seq)

    def delete_usage(self, usage_id: int) -> None:
        self._require_mapper().delete_usage(usage_id)

    def set_max_mark_in_attempts(self, usage_ids: Iterable[int], slot: int, new_max_mark: float) -> int:
        updated = self._require_mapper().set_max_mark_in_attempts(usage_ids, slot, new_max_mark)
        logger.info(f"Set max mark of slot {slot} to {new_max_mark} in {updated} attempts")
        return updated

    # Behaviours

    def make_archetypal_behaviour(self, preferred_behaviour: str, attempt: QuestionAttempt) -> Behaviour:
        return self.registry.make_archetypal_behaviour(preferred_behaviour, attempt)

    def make_behaviour(self, name: str, attempt: QuestionAttempt, preferred_behaviour: Optional[str]) -> Behaviour:
        return self.registry.make_behaviour(name, attempt, preferred_behaviour)

    def get_archetypal_behaviours(self) -> List[str]:
        return self.registry.get_archetypal_behaviours()

    # Display

    def make_display_options(self, attempt: QuestionAttempt, **overrides: Any) -> DisplayOptions:
        """
        Display options for rendering ``attempt``, narrowed by its behaviour.

        Marks use the configured number of decimal places unless overridden.
        """
        overrides.setdefault('mark_decimal_places', self.config.engine.mark_decimal_places)
        options = DisplayOptions(**overrides)
        if attempt.behaviour is not None:
            attempt.behaviour.adjust_display_options(options)
        return options

    def format_mark(self, attempt: QuestionAttempt) -> str:
        return attempt.format_mark(self.config.engine.mark_decimal_places)
