"""
Data Mapper

Loads usages from, and saves them to, the relational store. Every public
operation runs in its own session and transaction: it commits on success and
rolls back on any error, so a failed save (for example half way through a
regrade) leaves the stored usage as it was.
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from qengine.common.exceptions import DatabaseError, NotFoundError
from qengine.common.logger import app_logger, log_execution_time
from qengine.database.models import (
    QuestionAttemptModel,
    QuestionAttemptStepDataModel,
    QuestionAttemptStepModel,
    QuestionUsageModel,
)
from qengine.database.unit_of_work import UnitOfWork
from qengine.engine.attempt import QuestionAttempt
from qengine.engine.registry import BehaviourRegistry, build_default_registry
from qengine.engine.steps import ReadOnlyStep, Step
from qengine.engine.usage import QuestionUsage
from qengine.questions.bank import QuestionBank

logger = app_logger.getChild("db.mapper")


def to_db_value(value: Any) -> Optional[str]:
    """Step variables are stored as text."""
    if value is None:
        return None
    if isinstance(value, bool):
        return '1' if value else '0'
    return str(value)


class DataMapper:
    """
    Maps usages, attempts and steps to their tables.

    Args:
        session_factory: Creates sessions bound to the engine database
        question_bank: Resolves stored question ids to definitions
        registry: Behaviour registry given to loaded usages
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        question_bank: QuestionBank,
        registry: Optional[BehaviourRegistry] = None
    ):
        self.session_factory = session_factory
        self.question_bank = question_bank
        self.registry = registry or build_default_registry()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Database session error: {e}")
            raise DatabaseError(str(e), e) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # Row building

    @staticmethod
    def _attempt_fields(attempt: QuestionAttempt) -> Dict[str, Any]:
        return {
            'slot': attempt.slot,
            'question_id': str(attempt.question.id),
            'behaviour': attempt.get_behaviour_name(),
            'max_mark': attempt.get_max_mark(),
            'min_fraction': attempt.get_min_fraction(),
            'flagged': attempt.is_flagged(),
            'question_summary': attempt.question_summary,
            'right_answer_summary': attempt.right_answer_summary,
            'response_summary': attempt.response_summary,
            'time_modified': attempt.get_last_action_time(),
        }

    @staticmethod
    def _build_step_row(step: Step, seq: int) -> QuestionAttemptStepModel:
        row = QuestionAttemptStepModel(
            sequence_number=seq,
            state=step.get_state().value,
            fraction=step.get_fraction(),
            timestamp=step.timestamp,
            user_id=step.user_id,
        )
        for name, value in step.get_all_data().items():
            row.data.append(QuestionAttemptStepDataModel(name=name, value=to_db_value(value)))
        return row

    def _build_attempt_row(self, attempt: QuestionAttempt) -> QuestionAttemptModel:
        row = QuestionAttemptModel(**self._attempt_fields(attempt))
        for seq, step in enumerate(attempt.steps):
            row.steps.append(self._build_step_row(step, seq))
        return row

    @staticmethod
    def _assign_attempt_ids(attempt: QuestionAttempt, row: QuestionAttemptModel) -> None:
        attempt.set_database_id(row.id)
        for step, step_row in zip(attempt.steps, row.steps):
            step.id = step_row.id

    # Saving

    @log_execution_time(logger)
    def insert_usage(self, usage: QuestionUsage) -> None:
        """
        Store a new usage with all its attempts and steps.

        Afterwards the usage has its database id and a fresh UnitOfWork observer.
        """
        with self.session_scope() as session:
            usage_row = QuestionUsageModel(
                owning_plugin=usage.owning_plugin,
                context=to_db_value(usage.context),
                preferred_behaviour=usage.preferred_behaviour,
            )
            attempt_rows = []
            for attempt in usage.attempts:
                attempt_row = self._build_attempt_row(attempt)
                usage_row.attempts.append(attempt_row)
                attempt_rows.append((attempt, attempt_row))
            session.add(usage_row)
            session.flush()

            usage.set_id_from_database(usage_row.id)
            for attempt, attempt_row in attempt_rows:
                self._assign_attempt_ids(attempt, attempt_row)

        usage.set_observer(UnitOfWork(usage))
        logger.info(f"Inserted usage {usage.id} with {usage.question_count()} questions")

    @log_execution_time(logger)
    def apply_unit_of_work(self, unit_of_work: UnitOfWork) -> None:
        """Write the changes recorded by a UnitOfWork in one transaction."""
        usage = unit_of_work.usage
        with self.session_scope() as session:
            deleted_ids = unit_of_work.get_attempt_ids_with_deleted_steps()
            if deleted_ids:
                self._delete_steps(session, deleted_ids)

            new_attempts = []
            for attempt in unit_of_work.get_added_attempts():
                attempt_row = self._build_attempt_row(attempt)
                attempt_row.usage_id = usage.id
                session.add(attempt_row)
                new_attempts.append((attempt, attempt_row))

            new_steps = []
            for attempt, step, seq in unit_of_work.get_added_steps():
                step_row = self._build_step_row(step, seq)
                step_row.attempt_id = attempt.id
                session.add(step_row)
                new_steps.append((step, step_row))

            for attempt in unit_of_work.get_modified_attempts():
                attempt_row = session.get(QuestionAttemptModel, attempt.id)
                if attempt_row is None:
                    raise NotFoundError("Question attempt", attempt.id)
                attempt_row.update(self._attempt_fields(attempt))

            if unit_of_work.modified:
                usage_row = session.get(QuestionUsageModel, usage.id)
                if usage_row is None:
                    raise NotFoundError("Question usage", usage.id)
                usage_row.update({
                    'owning_plugin': usage.owning_plugin,
                    'context': to_db_value(usage.context),
                    'preferred_behaviour': usage.preferred_behaviour,
                })

            session.flush()
            for attempt, attempt_row in new_attempts:
                self._assign_attempt_ids(attempt, attempt_row)
            for step, step_row in new_steps:
                step.id = step_row.id

        logger.debug(f"Saved changes to usage {usage.id}")

    def save_usage(self, usage: QuestionUsage) -> None:
        """Insert a usage that has never been stored, otherwise write its pending changes."""
        observer = usage.observer
        if isinstance(observer, UnitOfWork) and observer.usage is usage:
            observer.save(self)
        else:
            self.insert_usage(usage)

    # Loading

    def _restore_attempt(
        self,
        attempt_row: QuestionAttemptModel,
        preferred_behaviour: Optional[str],
        max_seq: Optional[int] = None
    ) -> QuestionAttempt:
        question = self.question_bank.load_question(attempt_row.question_id)
        steps = [
            ReadOnlyStep.from_record(
                step_row.id,
                step_row.state,
                step_row.fraction,
                step_row.timestamp,
                step_row.user_id,
                step_row.get_variables(),
            )
            for step_row in attempt_row.steps
            if max_seq is None or step_row.sequence_number <= max_seq
        ]
        return QuestionAttempt.restore(
            question,
            attempt_row.usage_id,
            attempt_row.id,
            attempt_row.slot,
            attempt_row.behaviour,
            attempt_row.max_mark,
            attempt_row.min_fraction,
            attempt_row.flagged,
            steps,
            self.registry,
            preferred_behaviour,
            question_summary=attempt_row.question_summary,
            right_answer_summary=attempt_row.right_answer_summary,
            response_summary=attempt_row.response_summary,
        )

    @log_execution_time(logger)
    def load_usage(self, usage_id: int) -> QuestionUsage:
        """
        Load a usage with its attempts in slot order and their steps in sequence order.

        Raises:
            NotFoundError: If there is no such usage, or a stored question is no longer in the bank
        """
        with self.session_scope() as session:
            query = (
                select(QuestionUsageModel)
                .where(QuestionUsageModel.id == usage_id)
                .options(
                    selectinload(QuestionUsageModel.attempts)
                    .selectinload(QuestionAttemptModel.steps)
                    .selectinload(QuestionAttemptStepModel.data)
                )
            )
            usage_row = session.execute(query).scalar_one_or_none()
            if usage_row is None:
                raise NotFoundError("Question usage", usage_id)

            attempts = [self._restore_attempt(attempt_row, usage_row.preferred_behaviour)
                        for attempt_row in usage_row.attempts]
            usage = QuestionUsage.restore(
                usage_row.id,
                usage_row.owning_plugin,
                usage_row.context,
                usage_row.preferred_behaviour,
                attempts,
                self.registry,
            )

        usage.set_observer(UnitOfWork(usage))
        return usage

    def reload_question_state_in_usage(self, usage: QuestionUsage, slot: int, seq: Optional[int] = None) -> None:
        """
        Replace one attempt of a usage with its stored version.

        Args:
            usage: A stored usage
            slot: The slot to reload
            seq: Only load steps up to and including this sequence number
        """
        usage.get_question_attempt(slot)
        with self.session_scope() as session:
            query = (
                select(QuestionAttemptModel)
                .where(QuestionAttemptModel.usage_id == usage.id, QuestionAttemptModel.slot == slot)
                .options(selectinload(QuestionAttemptModel.steps).selectinload(QuestionAttemptStepModel.data))
            )
            attempt_row = session.execute(query).scalar_one_or_none()
            if attempt_row is None:
                raise NotFoundError("Question attempt", f"{usage.id}:{slot}")
            attempt = self._restore_attempt(attempt_row, usage.preferred_behaviour, seq)

        usage.replace_loaded_question_attempt_info(slot, attempt)

    # Deleting and bulk updates

    @staticmethod
    def _delete_steps(session: Session, attempt_ids: Iterable[int]) -> None:
        attempt_ids = list(attempt_ids)
        step_ids = select(QuestionAttemptStepModel.id).where(QuestionAttemptStepModel.attempt_id.in_(attempt_ids))
        session.execute(
            delete(QuestionAttemptStepDataModel)
            .where(QuestionAttemptStepDataModel.step_id.in_(step_ids))
            .execution_options(synchronize_session=False)
        )
        session.execute(
            delete(QuestionAttemptStepModel)
            .where(QuestionAttemptStepModel.attempt_id.in_(attempt_ids))
            .execution_options(synchronize_session=False)
        )

    def delete_steps_for_attempts(self, attempt_ids: Iterable[int]) -> None:
        with self.session_scope() as session:
            self._delete_steps(session, attempt_ids)

    @log_execution_time(logger)
    def delete_usage(self, usage_id: int) -> None:
        """
        Delete a usage with everything in it.

        Raises:
            NotFoundError: If there is no such usage
        """
        with self.session_scope() as session:
            usage_row = session.get(QuestionUsageModel, usage_id)
            if usage_row is None:
                raise NotFoundError("Question usage", usage_id)
            session.delete(usage_row)
        logger.info(f"Deleted usage {usage_id}")

    def set_max_mark_in_attempts(self, usage_ids: Iterable[int], slot: int, new_max_mark: float) -> int:
        """
        Change the max mark of one slot across many usages without replaying anything.

        Returns:
            The number of attempts updated
        """
        with self.session_scope() as session:
            result = session.execute(
                update(QuestionAttemptModel)
                .where(QuestionAttemptModel.usage_id.in_(list(usage_ids)), QuestionAttemptModel.slot == slot)
                .values(max_mark=float(new_max_mark))
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    def update_question_attempt_flag(self, attempt_id: int, flagged: bool) -> None:
        with self.session_scope() as session:
            result = session.execute(
                update(QuestionAttemptModel)
                .where(QuestionAttemptModel.id == attempt_id)
                .values(flagged=bool(flagged))
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFoundError("Question attempt", attempt_id)

    def list_usage_ids(self, owning_plugin: Optional[str] = None) -> List[int]:
        with self.session_scope() as session:
            query = select(QuestionUsageModel.id).order_by(QuestionUsageModel.id)
            if owning_plugin is not None:
                query = query.where(QuestionUsageModel.owning_plugin == owning_plugin)
            return list(session.execute(query).scalars())
