"""
Tests for storing and loading usages.
"""

import logging

import pytest
from sqlalchemy import select, text, update

from qengine.behaviours import MissingBehaviour
from qengine.common.logger import APP_LOGGER_NAME
from qengine.common.exceptions import (
    ConfigurationError,
    DatabaseError,
    NotFoundError,
    NotStartedError,
    UnknownSlotError,
)
from qengine.database.models import QuestionAttemptModel, QuestionAttemptStepModel
from qengine.database.unit_of_work import UnitOfWork
from qengine.engine.engine import QuestionEngine
from qengine.engine.states import QuestionState
from qengine.engine.steps import ReadOnlyStep
from qengine.tests.conftest import T0, make_single_choice


@pytest.fixture
def stored_usage(engine, question_bank):
    """A two question usage, answered but not finished, and saved."""
    usage = engine.make_usage('mod_quiz', 'context-1')
    usage.add_question(question_bank.load_question('mc1'), max_mark=3.0)
    usage.add_question(question_bank.load_question('tf1'))
    usage.start_all_questions(T0, 'learner')
    usage.process_action(1, {'answer': 1}, T0 + 1, 'learner')
    engine.save_usage(usage)
    return usage


def count_rows(session_factory, model):
    with session_factory() as session:
        return len(session.execute(select(model.id)).all())


class TestInsert:

    def test_insert_assigns_database_ids(self, stored_usage):
        assert isinstance(stored_usage.id, int)
        assert stored_usage.get_field_prefix(1) == f'q{stored_usage.id}:1_'
        for attempt in stored_usage.attempts:
            assert isinstance(attempt.id, int)
            assert all(isinstance(step.id, int) for step in attempt.steps)
        assert isinstance(stored_usage.observer, UnitOfWork)
        assert not stored_usage.observer.has_changes()

    def test_unstarted_attempts_cannot_be_stored(self, engine, session_factory, single_choice):
        usage = engine.make_usage('mod_quiz', 'context-1')
        usage.add_question(single_choice)
        with pytest.raises(NotStartedError):
            engine.save_usage(usage)
        assert count_rows(session_factory, QuestionAttemptModel) == 0

    def test_list_usage_ids(self, engine, stored_usage, single_choice, mapper):
        other = engine.make_usage('mod_lesson', 'context-2')
        other.add_question(single_choice)
        other.start_all_questions(T0)
        engine.save_usage(other)

        assert mapper.list_usage_ids() == [stored_usage.id, other.id]
        assert mapper.list_usage_ids('mod_lesson') == [other.id]


class TestLoad:

    def test_round_trip(self, engine, stored_usage):
        loaded = engine.load_usage(stored_usage.id)

        assert loaded.id == stored_usage.id
        assert loaded.owning_plugin == 'mod_quiz'
        assert loaded.context == 'context-1'
        assert loaded.preferred_behaviour == 'deferredfeedback'
        assert loaded.get_slots() == [1, 2]
        for slot in loaded.get_slots():
            original = stored_usage.get_question_attempt(slot)
            attempt = loaded.get_question_attempt(slot)
            assert attempt.id == original.id
            assert attempt.get_behaviour_name() == original.get_behaviour_name()
            assert attempt.get_max_mark() == original.get_max_mark()
            assert attempt.get_state() == original.get_state()
            assert attempt.get_num_steps() == original.get_num_steps()
            assert attempt.get_last_action_time() == original.get_last_action_time()
            assert attempt.response_summary == original.response_summary

    def test_loaded_steps_are_read_only_and_hold_text(self, engine, stored_usage):
        attempt = engine.load_usage(stored_usage.id).get_question_attempt(1)
        assert all(isinstance(step, ReadOnlyStep) for step in attempt.steps)
        assert attempt.get_step(0).get_qt_var('_order') == '0,1,2'
        assert attempt.get_step(0).user_id == 'learner'
        assert attempt.get_step(1).get_qt_var('answer') == '1'
        assert attempt.get_state() == QuestionState.COMPLETE

    def test_missing_usage(self, engine):
        with pytest.raises(NotFoundError):
            engine.load_usage(12345)

    def test_missing_question(self, engine, stored_usage, question_bank):
        question_bank.remove('tf1')
        with pytest.raises(NotFoundError):
            engine.load_usage(stored_usage.id)

    def test_unknown_behaviour_loads_as_missing(self, engine, stored_usage, session_factory):
        with session_factory() as session:
            session.execute(
                update(QuestionAttemptModel)
                .where(QuestionAttemptModel.usage_id == stored_usage.id, QuestionAttemptModel.slot == 2)
                .values(behaviour='adaptivenopenalty')
            )
            session.commit()

        attempt = engine.load_usage(stored_usage.id).get_question_attempt(2)
        assert isinstance(attempt.behaviour, MissingBehaviour)
        assert attempt.get_behaviour_name() == 'adaptivenopenalty'
        assert attempt.get_state() == QuestionState.TODO


class TestUnitOfWorkSave:

    def test_continue_loaded_usage(self, engine, stored_usage):
        usage = engine.load_usage(stored_usage.id)
        usage.process_action(2, {'answer': 1}, T0 + 2, 'learner')
        usage.finish_all_questions(T0 + 3)
        engine.save_usage(usage)

        reloaded = engine.load_usage(stored_usage.id)
        assert reloaded.get_question_attempt(1).get_num_steps() == 3
        assert reloaded.get_question_state(1) == QuestionState.GRADED_RIGHT
        assert reloaded.get_question_mark(1) == 3.0
        assert reloaded.get_question_state(2) == QuestionState.GRADED_RIGHT
        assert reloaded.get_total_mark() == 4.0
        assert reloaded.get_question_attempt(2).get_step(2).id == usage.get_question_attempt(2).get_step(2).id

    def test_nothing_to_save(self, engine, stored_usage, session_factory):
        before = count_rows(session_factory, QuestionAttemptStepModel)
        usage = engine.load_usage(stored_usage.id)
        usage.process_action(1, {'answer': '1'}, T0 + 5)
        engine.save_usage(usage)
        assert count_rows(session_factory, QuestionAttemptStepModel) == before

    def test_flag_change_is_saved(self, engine, stored_usage):
        usage = engine.load_usage(stored_usage.id)
        usage.get_question_attempt(2).set_flagged(True)
        engine.save_usage(usage)
        assert engine.load_usage(stored_usage.id).get_question_attempt(2).is_flagged()

    def test_added_question_is_saved(self, engine, stored_usage, essay):
        usage = engine.load_usage(stored_usage.id)
        slot = usage.add_question(essay)
        usage.start_question(slot, T0 + 5)
        usage.process_action(slot, {'answer': "Orange and pink"}, T0 + 6)
        engine.save_usage(usage)

        reloaded = engine.load_usage(stored_usage.id)
        assert reloaded.get_slots() == [1, 2, 3]
        attempt = reloaded.get_question_attempt(3)
        assert attempt.get_behaviour_name() == 'manualgraded'
        assert attempt.get_num_steps() == 2
        assert attempt.get_last_qt_var('answer') == "Orange and pink"

    def test_regrade_replaces_steps(self, engine, stored_usage, session_factory):
        usage = engine.load_usage(stored_usage.id)
        usage.finish_all_questions(T0 + 2)
        engine.save_usage(usage)
        steps_before = count_rows(session_factory, QuestionAttemptStepModel)
        attempt_id = usage.get_question_attempt(1).id

        usage.regrade_question(1, new_max_mark=5.0)
        engine.save_usage(usage)

        reloaded = engine.load_usage(stored_usage.id)
        attempt = reloaded.get_question_attempt(1)
        assert attempt.id == attempt_id
        assert attempt.get_max_mark() == 5.0
        assert attempt.get_mark() == 5.0
        assert [step.timestamp for step in attempt.steps] == [T0, T0 + 1, T0 + 2]
        assert count_rows(session_factory, QuestionAttemptStepModel) == steps_before

    def test_interactive_tries_survive_storage(self, engine, question_bank):
        question = make_single_choice('mc-hints')
        question.hints = ("Look up.",)
        question.penalty = 0.25
        question_bank.add(question)

        usage = engine.make_usage('mod_quiz', 'context-1')
        usage.set_preferred_behaviour('interactive')
        usage.add_question(question)
        usage.start_all_questions(T0)
        usage.process_action(1, {'answer': 0, '-submit': 1}, T0 + 1)
        engine.save_usage(usage)

        loaded = engine.load_usage(usage.id)
        assert loaded.get_question_attempt(1).get_last_behaviour_var('_triesleft') == '1'
        loaded.process_action(1, {'answer': 1, '-submit': 1}, T0 + 2)
        engine.save_usage(loaded)

        attempt = engine.load_usage(usage.id).get_question_attempt(1)
        assert attempt.get_state() == QuestionState.GRADED_RIGHT
        assert attempt.get_fraction() == pytest.approx(0.75)


class TestPartialReload:

    def test_reload_up_to_sequence_number(self, engine, stored_usage):
        usage = engine.load_usage(stored_usage.id)
        engine.reload_question_state_in_usage(usage, 1, seq=0)
        attempt = usage.get_question_attempt(1)
        assert attempt.get_num_steps() == 1
        assert attempt.get_state() == QuestionState.TODO

        engine.reload_question_state_in_usage(usage, 1)
        assert usage.get_question_attempt(1).get_num_steps() == 2

    def test_reload_unknown_slot(self, engine, stored_usage):
        usage = engine.load_usage(stored_usage.id)
        with pytest.raises(UnknownSlotError):
            engine.reload_question_state_in_usage(usage, 9)


class TestDeleteAndBulkUpdates:

    def test_delete_usage_removes_everything(self, engine, stored_usage, session_factory):
        engine.delete_usage(stored_usage.id)
        with pytest.raises(NotFoundError):
            engine.load_usage(stored_usage.id)
        assert count_rows(session_factory, QuestionAttemptModel) == 0
        assert count_rows(session_factory, QuestionAttemptStepModel) == 0
        with pytest.raises(NotFoundError):
            engine.delete_usage(stored_usage.id)

    def test_delete_steps_for_attempts(self, mapper, stored_usage, session_factory):
        mapper.delete_steps_for_attempts([stored_usage.get_question_attempt(2).id])
        with session_factory() as session:
            attempt_ids = set(session.execute(select(QuestionAttemptStepModel.attempt_id)).scalars())
        assert attempt_ids == {stored_usage.get_question_attempt(1).id}

    def test_set_max_mark_in_attempts(self, engine, stored_usage):
        assert engine.set_max_mark_in_attempts([stored_usage.id], 2, 4.0) == 1
        assert engine.set_max_mark_in_attempts([stored_usage.id], 7, 4.0) == 0
        assert engine.load_usage(stored_usage.id).get_question_max_mark(2) == 4.0

    def test_update_question_attempt_flag(self, mapper, engine, stored_usage):
        attempt_id = stored_usage.get_question_attempt(1).id
        mapper.update_question_attempt_flag(attempt_id, True)
        assert engine.load_usage(stored_usage.id).get_question_attempt(1).is_flagged()
        with pytest.raises(NotFoundError):
            mapper.update_question_attempt_flag(98765, True)


def test_database_errors_are_wrapped(mapper):
    with pytest.raises(DatabaseError):
        with mapper.session_scope() as session:
            session.execute(text("SELECT * FROM no_such_table"))


class TestQuestionEngine:

    def test_make_usage_uses_configured_behaviour(self, question_bank, app_config):
        app_config.engine.default_behaviour = 'immediatefeedback'
        app_config.engine.usage_id_length = 6
        engine = QuestionEngine(question_bank, config=app_config)
        usage = engine.make_usage('mod_quiz', 'context-1')
        assert usage.preferred_behaviour == 'immediatefeedback'
        assert len(usage.id) == 6

    def test_storage_operations_need_a_mapper(self, question_bank, app_config):
        engine = QuestionEngine(question_bank, config=app_config)
        with pytest.raises(ConfigurationError):
            engine.load_usage(1)
        with pytest.raises(ConfigurationError):
            engine.save_usage(engine.make_usage('mod_quiz', 'context-1'))

    def test_behaviour_helpers(self, engine, single_choice):
        assert 'interactive' in engine.get_archetypal_behaviours()
        usage = engine.make_usage('mod_quiz', 'context-1')
        usage.add_question(single_choice)
        attempt = usage.get_question_attempt(1)
        assert engine.make_archetypal_behaviour('interactive', attempt).get_name() == 'interactive'
        assert isinstance(engine.make_behaviour('gone', attempt, None), MissingBehaviour)

    def test_from_config(self, question_bank, app_config, tmp_path):
        config = app_config.model_copy(deep=True)
        config.database.url = f"sqlite:///{tmp_path / 'engine.db'}"
        engine = QuestionEngine.from_config(question_bank, config, create_tables=True)
        usage = engine.make_usage('mod_quiz', 'context-1')
        usage.add_question(question_bank.load_question('tf1'))
        usage.start_all_questions(T0)
        engine.save_usage(usage)
        assert engine.load_usage(usage.id).get_question_state(1) == QuestionState.TODO

    def test_from_config_applies_logging_settings(self, question_bank, app_config, tmp_path):
        log_file = tmp_path / 'logs' / 'qengine.log'
        config = app_config.model_copy(deep=True)
        config.database.url = f"sqlite:///{tmp_path / 'engine.db'}"
        config.logging.level = 'DEBUG'
        config.logging.file_path = str(log_file)
        app_log = logging.getLogger(APP_LOGGER_NAME)
        old_handlers, old_level = list(app_log.handlers), app_log.level
        try:
            engine = QuestionEngine.from_config(question_bank, config, create_tables=True)
            assert app_log.level == logging.DEBUG
            assert any(isinstance(h, logging.FileHandler) for h in app_log.handlers)

            usage = engine.make_usage('mod_quiz', 'context-1')
            usage.add_question(question_bank.load_question('tf1'))
            usage.start_all_questions(T0)
            engine.save_usage(usage)
            for handler in app_log.handlers:
                handler.flush()
            assert f"Inserted usage {usage.id}" in log_file.read_text()
        finally:
            for handler in app_log.handlers:
                handler.close()
            app_log.handlers = old_handlers
            app_log.setLevel(old_level)

    def test_display_options_use_configured_decimal_places(self, question_bank, app_config):
        app_config.engine.mark_decimal_places = 3
        engine = QuestionEngine(question_bank, config=app_config)
        usage = engine.make_usage('mod_quiz', 'context-1')
        usage.add_question(question_bank.load_question('mc1'), max_mark=2.0)
        usage.start_all_questions(T0)
        attempt = usage.get_question_attempt(1)

        options = engine.make_display_options(attempt)
        assert options.mark_decimal_places == 3
        assert not options.correctness
        assert not options.right_answer
        assert engine.make_display_options(attempt, mark_decimal_places=1).mark_decimal_places == 1

        usage.process_action(1, {'answer': 2}, T0 + 1)
        usage.finish_all_questions(T0 + 2)
        options = engine.make_display_options(attempt)
        assert options.readonly
        assert options.correctness
        assert engine.format_mark(attempt) == "1.000"
