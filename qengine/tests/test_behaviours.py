"""
Behaviour tests.

Each behaviour is driven through a QuestionAttempt the way a usage would
drive it, checking the state, fraction and variables of the steps it keeps.
"""

import unittest

import pytest

from qengine.behaviours import DeferredFeedbackBehaviour
from qengine.behaviours.base import DISCARD, KEEP
from qengine.behaviours.immediatecbm import HIGH, LOW, MEDIUM, adjust_fraction, parse_certainty
from qengine.common.exceptions import BehaviourError, GradingValueError
from qengine.engine.attempt import QuestionAttempt
from qengine.engine.display import DisplayOptions, MarkDisplay
from qengine.engine.registry import build_default_registry
from qengine.engine.states import QuestionState
from qengine.questions import (
    DescriptionQuestion,
    EssayQuestion,
    RemoteEngineError,
    RemoteQuestion,
    RemoteQuestionEngine,
    RemoteResult,
    TrueFalseQuestion,
)
from qengine.tests.conftest import T0, make_single_choice


def start_attempt(question, behaviour, max_mark=None):
    attempt = QuestionAttempt(question, 'u1', max_mark=max_mark, registry=build_default_registry())
    attempt.set_slot(1)
    attempt.start(behaviour, timestamp=T0, user_id='learner')
    return attempt


class TestDeferredFeedback(unittest.TestCase):

    def setUp(self):
        self.attempt = start_attempt(make_single_choice(), 'deferredfeedback', max_mark=3.0)

    def test_save_changes_state_but_not_fraction(self):
        self.attempt.process_action({'answer': 2}, T0 + 1)
        self.assertEqual(self.attempt.get_state(), QuestionState.COMPLETE)
        self.assertIsNone(self.attempt.get_fraction())

    def test_blank_save_is_todo(self):
        self.attempt.process_action({'answer': 1}, T0 + 1)
        self.attempt.process_action({}, T0 + 2)
        self.assertEqual(self.attempt.get_state(), QuestionState.TODO)

    def test_finish_without_answer_gives_up(self):
        self.attempt.finish(T0 + 1)
        self.assertEqual(self.attempt.get_state(), QuestionState.GAVE_UP)
        self.assertIsNone(self.attempt.get_mark())

    def test_finish_twice_is_discarded(self):
        self.attempt.process_action({'answer': 1}, T0 + 1)
        self.assertEqual(self.attempt.finish(T0 + 2), KEEP)
        self.assertEqual(self.attempt.finish(T0 + 3), DISCARD)
        self.assertEqual(self.attempt.get_num_steps(), 3)

    def test_save_after_finish_is_discarded(self):
        self.attempt.process_action({'answer': 1}, T0 + 1)
        self.attempt.finish(T0 + 2)
        self.assertEqual(self.attempt.process_action({'answer': 0}, T0 + 3), DISCARD)
        self.assertEqual(self.attempt.get_state(), QuestionState.GRADED_RIGHT)

    def test_manual_override_after_auto_grading(self):
        self.attempt.process_action({'answer': 0}, T0 + 1)
        self.attempt.finish(T0 + 2)
        self.attempt.manual_grade("Generous", 1.5, T0 + 3, 'grader')
        self.assertEqual(self.attempt.get_state(), QuestionState.MANUALLY_GRADED_PARTIAL)
        self.assertEqual(self.attempt.get_fraction(), 0.5)
        self.assertEqual(self.attempt.get_last_step().user_id, 'grader')

    def test_feedback_hidden_until_finished(self):
        options = DisplayOptions()
        self.attempt.behaviour.adjust_display_options(options)
        self.assertFalse(options.feedback)
        self.assertFalse(options.correctness)
        self.assertFalse(options.readonly)

        self.attempt.process_action({'answer': 1}, T0 + 1)
        self.attempt.finish(T0 + 2)
        options = DisplayOptions()
        self.attempt.behaviour.adjust_display_options(options)
        self.assertTrue(options.feedback)
        self.assertTrue(options.readonly)

    def test_requires_gradable_question(self):
        with self.assertRaises(BehaviourError):
            DeferredFeedbackBehaviour(QuestionAttempt(EssayQuestion('e'), 'u1'), 'deferredfeedback')


class TestImmediateFeedback(unittest.TestCase):

    def setUp(self):
        self.attempt = start_attempt(TrueFalseQuestion('tf', True), 'immediatefeedback')

    def test_submit_grades_at_once(self):
        self.attempt.process_action({'answer': 1, '-submit': 1}, T0 + 1)
        self.assertEqual(self.attempt.get_state(), QuestionState.GRADED_RIGHT)
        self.assertEqual(self.attempt.get_fraction(), 1.0)
        self.assertEqual(self.attempt.process_action({'answer': 0, '-submit': 1}, T0 + 2), DISCARD)

    def test_incomplete_submit_is_invalid(self):
        self.attempt.process_action({'-submit': 1}, T0 + 1)
        self.assertEqual(self.attempt.get_state(), QuestionState.INVALID)
        self.assertTrue(self.attempt.get_state().is_active())

        self.attempt.process_action({'answer': 0, '-submit': 1}, T0 + 2)
        self.assertEqual(self.attempt.get_state(), QuestionState.GRADED_WRONG)

    def test_finish_grades_saved_response(self):
        self.attempt.process_action({'answer': 0}, T0 + 1)
        self.attempt.finish(T0 + 2)
        self.assertEqual(self.attempt.get_state(), QuestionState.GRADED_WRONG)
        self.assertEqual(self.attempt.get_fraction(), 0.0)

    def test_expected_data_only_while_active(self):
        self.assertEqual(self.attempt.behaviour.get_expected_data(), {'submit': bool})
        self.attempt.finish(T0 + 1)
        self.assertEqual(self.attempt.behaviour.get_expected_data(), {})


class TestInteractive(unittest.TestCase):

    def setUp(self):
        question = TrueFalseQuestion('tf', True, hints=["Look up."], penalty=0.25)
        self.attempt = start_attempt(question, 'interactive', max_mark=2.0)

    def test_two_tries(self):
        self.assertEqual(self.attempt.get_last_behaviour_var('_triesleft'), 2)

        self.attempt.process_action({'answer': 0, '-submit': 1}, T0 + 1)
        self.assertEqual(self.attempt.get_state(), QuestionState.TODO)
        self.assertEqual(self.attempt.get_last_behaviour_var('_triesleft'), 1)
        self.assertIsNone(self.attempt.get_mark())
        self.assertEqual(self.attempt.get_applicable_hint(), "Look up.")

        self.attempt.process_action({'answer': 1, '-submit': 1}, T0 + 2)
        self.assertEqual(self.attempt.get_state(), QuestionState.GRADED_RIGHT)
        self.assertEqual(self.attempt.get_last_behaviour_var('_triesleft'), 0)
        self.assertEqual(self.attempt.get_fraction(), 0.75)
        self.assertEqual(self.attempt.get_mark(), self.attempt.get_fraction() * 2.0)

        self.assertEqual(self.attempt.process_action({'answer': 1, '-submit': 1}, T0 + 3), DISCARD)
        self.assertEqual(self.attempt.get_num_steps(), 3)

    def test_right_first_time_has_no_penalty(self):
        self.attempt.process_action({'answer': 1, '-submit': 1}, T0 + 1)
        self.assertEqual(self.attempt.get_fraction(), 1.0)
        self.assertIsNone(self.attempt.get_applicable_hint())

    def test_unchanged_resubmit_in_try_again_state_is_discarded(self):
        self.attempt.process_action({'answer': 0, '-submit': 1}, T0 + 1)
        self.assertEqual(self.attempt.process_action({'answer': 0, '-submit': 1}, T0 + 2), DISCARD)

    def test_action_key_forces_processing(self):
        self.attempt.process_action({'answer': 0, '-submit': 1}, T0 + 1)
        decision = self.attempt.process_action({'answer': 0, '-submit': 1, 'omact_check': 1}, T0 + 2)
        self.assertEqual(decision, KEEP)
        self.assertEqual(self.attempt.get_state(), QuestionState.GRADED_WRONG)
        self.assertEqual(self.attempt.get_fraction(), 0.0)

    def test_try_again(self):
        self.attempt.process_action({'answer': 0, '-submit': 1}, T0 + 1)
        self.assertEqual(self.attempt.process_action({'-tryagain': 1}, T0 + 2), KEEP)
        self.assertEqual(self.attempt.get_state(), QuestionState.TODO)
        self.assertIsNone(self.attempt.get_applicable_hint())
        # Not in the try-again state any more, so a second try-again is ignored.
        self.assertEqual(self.attempt.process_action({'-tryagain': 1}, T0 + 3), DISCARD)

    def test_try_again_clears_the_response(self):
        self.attempt.process_action({'answer': 0, '-submit': 1}, T0 + 1)
        self.attempt.process_action({'-tryagain': 1}, T0 + 2)
        self.assertEqual(self.attempt.get_last_qt_data(), {})
        self.assertEqual(self.attempt.get_step(1).get_qt_var('answer'), 0)
        self.assertNotIn('answer', self.attempt.get_resume_data())

        self.attempt.finish(T0 + 3)
        self.assertEqual(self.attempt.get_state(), QuestionState.GAVE_UP)
        self.assertIsNone(self.attempt.get_fraction())

    def test_answer_after_try_again(self):
        self.attempt.process_action({'answer': 0, '-submit': 1}, T0 + 1)
        self.attempt.process_action({'-tryagain': 1}, T0 + 2)
        self.assertEqual(self.attempt.process_action({'answer': 1, '-submit': 1}, T0 + 3), KEEP)
        self.assertEqual(self.attempt.get_state(), QuestionState.GRADED_RIGHT)
        self.assertEqual(self.attempt.get_fraction(), 0.75)

    def test_finish_after_wrong_try(self):
        self.attempt.process_action({'answer': 0, '-submit': 1}, T0 + 1)
        self.attempt.finish(T0 + 2)
        self.assertEqual(self.attempt.get_state(), QuestionState.GRADED_WRONG)
        self.assertEqual(self.attempt.get_fraction(), 0.0)

    def test_regrade_is_deterministic(self):
        self.attempt.process_action({'answer': 0, '-submit': 1}, T0 + 1)
        self.attempt.process_action({'answer': 1, '-submit': 1}, T0 + 2)

        replay = QuestionAttempt(self.attempt.question, 'u1', max_mark=2.0, registry=build_default_registry())
        replay.set_slot(1)
        replay.regrade(self.attempt)
        self.assertEqual([(s.get_state(), s.get_fraction()) for s in replay.steps],
                         [(s.get_state(), s.get_fraction()) for s in self.attempt.steps])


class TestImmediateCBM(unittest.TestCase):

    def setUp(self):
        self.attempt = start_attempt(TrueFalseQuestion('tf', True), 'immediatecbm')

    def test_min_fraction(self):
        self.assertEqual(self.attempt.get_min_fraction(), -2.0)

    def test_right_with_high_certainty(self):
        self.attempt.process_action({'answer': 1, '-submit': 1, '-certainty': HIGH}, T0 + 1)
        self.assertEqual(self.attempt.get_state(), QuestionState.GRADED_RIGHT)
        self.assertEqual(self.attempt.get_fraction(), 1.0)
        self.assertEqual(self.attempt.get_last_behaviour_var('_rawfraction'), 1.0)

    def test_wrong_with_high_certainty(self):
        self.attempt.process_action({'answer': 0, '-submit': 1, '-certainty': HIGH}, T0 + 1)
        self.assertEqual(self.attempt.get_state(), QuestionState.GRADED_WRONG)
        self.assertEqual(self.attempt.get_fraction(), -2.0)

    def test_submit_without_certainty_is_invalid(self):
        self.attempt.process_action({'answer': 1, '-submit': 1}, T0 + 1)
        self.assertEqual(self.attempt.get_state(), QuestionState.INVALID)

    def test_finish_assumes_low_certainty(self):
        self.attempt.process_action({'answer': 1}, T0 + 1)
        self.assertEqual(self.attempt.get_state(), QuestionState.TODO)
        self.attempt.finish(T0 + 2)
        self.assertEqual(self.attempt.get_state(), QuestionState.GRADED_RIGHT)
        self.assertAlmostEqual(self.attempt.get_fraction(), 1 / 3)
        self.assertEqual(self.attempt.get_last_behaviour_var('_assumedcertainty'), LOW)

    def test_changing_only_certainty_is_not_a_repeat(self):
        self.attempt.process_action({'answer': 1, '-certainty': LOW}, T0 + 1)
        self.assertEqual(self.attempt.get_state(), QuestionState.COMPLETE)
        self.assertEqual(self.attempt.process_action({'answer': 1, '-certainty': LOW}, T0 + 2), DISCARD)
        self.assertEqual(self.attempt.process_action({'answer': 1, '-certainty': MEDIUM}, T0 + 3), KEEP)


@pytest.mark.parametrize("fraction, certainty, expected", [
    (1.0, LOW, 1 / 3),
    (1.0, MEDIUM, 2 / 3),
    (1.0, HIGH, 1.0),
    (0.0, LOW, 0.0),
    (0.0, MEDIUM, -2 / 3),
    (0.5, HIGH, -2.0),
])
def test_cbm_adjust_fraction(fraction, certainty, expected):
    assert adjust_fraction(fraction, certainty) == pytest.approx(expected)


@pytest.mark.parametrize("value, expected", [('3', HIGH), (2, MEDIUM), ('9', 0), (None, 0), ('x', 0)])
def test_cbm_parse_certainty(value, expected):
    assert parse_certainty(value) == expected


class TestManualGraded(unittest.TestCase):

    def test_manual_grading_after_finish(self):
        attempt = start_attempt(EssayQuestion('essay'), 'deferredfeedback', max_mark=1.0)
        self.assertEqual(attempt.get_behaviour_name(), 'manualgraded')

        attempt.process_action({'answer': "A red sky at night."}, T0 + 1)
        attempt.finish(T0 + 2)
        self.assertEqual(attempt.get_state(), QuestionState.NEEDS_GRADING)
        self.assertIsNone(attempt.get_mark())

        attempt.manual_grade("good", 0.8, T0 + 3)
        self.assertEqual(attempt.get_state(), QuestionState.MANUALLY_GRADED_PARTIAL)
        self.assertAlmostEqual(attempt.get_mark(), 0.8 * attempt.get_max_mark())

        attempt.manual_grade("very good", 1.0, T0 + 4)
        self.assertEqual(attempt.get_state(), QuestionState.MANUALLY_GRADED_RIGHT)
        self.assertEqual(attempt.get_mark(), 1.0)
        self.assertEqual(attempt.get_num_steps(), 5)
        self.assertEqual(attempt.get_step(3).get_behaviour_var('mark'), 0.8)
        self.assertEqual(attempt.get_manual_comment(), "very good")
        self.assertTrue(attempt.has_manual_comment())

    def test_mark_out_of_range(self):
        attempt = start_attempt(EssayQuestion('essay'), 'manualgraded', max_mark=10.0)
        attempt.process_action({'answer': "Words"}, T0 + 1)
        attempt.finish(T0 + 2)
        with self.assertRaises(GradingValueError):
            attempt.manual_grade("too much", 11.0, T0 + 3)
        with self.assertRaises(GradingValueError):
            attempt.manual_grade("too little", -1.0, T0 + 3)
        self.assertEqual(attempt.get_num_steps(), 3)

    def test_finish_without_answer_gives_up(self):
        attempt = start_attempt(EssayQuestion('essay'), 'manualgraded')
        attempt.finish(T0 + 1)
        self.assertEqual(attempt.get_state(), QuestionState.GAVE_UP)
        attempt.manual_grade("You did not answer", timestamp=T0 + 2)
        self.assertEqual(attempt.get_state(), QuestionState.MANUALLY_GAVE_UP)
        self.assertIsNone(attempt.get_fraction())

    def test_feedback_hidden_while_awaiting_grader(self):
        attempt = start_attempt(EssayQuestion('essay'), 'manualgraded')
        attempt.process_action({'answer': "Words"}, T0 + 1)
        options = DisplayOptions()
        attempt.behaviour.adjust_display_options(options)
        self.assertFalse(options.feedback)
        self.assertFalse(options.general_feedback)
        self.assertFalse(options.right_answer)
        self.assertFalse(options.correctness)
        self.assertFalse(options.readonly)

        attempt.finish(T0 + 2)
        options = DisplayOptions()
        attempt.behaviour.adjust_display_options(options)
        self.assertTrue(options.readonly)
        self.assertFalse(options.feedback)
        self.assertFalse(options.right_answer)
        self.assertTrue(options.general_feedback)


class TestInformationItem(unittest.TestCase):

    def setUp(self):
        self.attempt = start_attempt(DescriptionQuestion('d'), 'deferredfeedback')

    def test_lifecycle(self):
        self.assertEqual(self.attempt.get_behaviour_name(), 'informationitem')
        self.assertEqual(self.attempt.get_max_mark(), 0.0)
        self.assertEqual(self.attempt.behaviour.get_expected_data(), {'seen': bool})

        self.assertEqual(self.attempt.process_action({}, T0 + 1), DISCARD)
        self.attempt.process_action({'-seen': 1}, T0 + 1)
        self.assertEqual(self.attempt.get_state(), QuestionState.COMPLETE)
        self.attempt.finish(T0 + 2)
        self.assertEqual(self.attempt.get_state(), QuestionState.FINISHED)
        self.assertIsNone(self.attempt.get_mark())

    def test_comment_without_mark(self):
        self.attempt.finish(T0 + 1)
        self.attempt.manual_grade("Thanks for reading", timestamp=T0 + 2)
        self.assertEqual(self.attempt.get_state(), QuestionState.MANUALLY_FINISHED)

    def test_comment_with_mark_is_refused(self):
        with self.assertRaises(BehaviourError):
            self.attempt.manual_grade("Nice", 1.0, T0 + 1)

    def test_marks_hidden(self):
        options = DisplayOptions()
        self.attempt.behaviour.adjust_display_options(options)
        self.assertEqual(options.marks, MarkDisplay.HIDDEN)
        self.assertFalse(options.manual_comment)


class FakeRemoteEngine(RemoteQuestionEngine):
    """Remote engine returning canned results."""

    def __init__(self):
        self.results = []
        self.processed = []

    def start(self, question, step):
        return RemoteResult(sequence_number=0, progress_info="Question 1 of 1")

    def process(self, attempt, step):
        self.processed.append(step.get_submitted_data())
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        if result.sequence_number < 0:
            result.sequence_number = attempt.get_num_steps()
        return result


class TestOpaque(unittest.TestCase):

    def setUp(self):
        self.engine = FakeRemoteEngine()
        question = RemoteQuestion('rq', self.engine, 'remote.q1', max_grade=3.0)
        self.attempt = start_attempt(question, 'deferredfeedback', max_mark=2.0)

    def test_first_step_is_seeded(self):
        self.assertEqual(self.attempt.get_behaviour_name(), 'opaque')
        first = self.attempt.get_step(0)
        self.assertTrue(first.has_behaviour_var('_randomseed'))
        self.assertEqual(first.get_behaviour_var('_userid'), 'learner')
        self.assertEqual(first.get_behaviour_var('_preferredbehaviour'), 'deferredfeedback')
        self.assertEqual(first.get_behaviour_var('_statestring'), "Question 1 of 1")

    def test_graded_result(self):
        self.engine.results.append(RemoteResult(sequence_number=-1, marks=1.5, attempts=0))
        self.attempt.process_action({'answer': '42'}, T0 + 1)
        self.assertEqual(self.attempt.get_state(), QuestionState.GRADED_PARTIAL)
        self.assertEqual(self.attempt.get_fraction(), 0.5)
        self.assertEqual(self.attempt.get_mark(), 1.0)

    def test_right_on_some_try(self):
        self.engine.results.append(RemoteResult(sequence_number=-1, marks=2.0, attempts=2))
        self.attempt.process_action({'answer': '42'}, T0 + 1)
        self.assertEqual(self.attempt.get_state(), QuestionState.GRADED_RIGHT)

    def test_unfinished_result_stays_todo(self):
        self.engine.results.append(RemoteResult(sequence_number=0, progress_info="Try 2"))
        self.attempt.process_action({'answer': '41'}, T0 + 1)
        self.assertEqual(self.attempt.get_state(), QuestionState.TODO)
        self.assertEqual(self.attempt.get_last_behaviour_var('_statestring'), "Try 2")

    def test_same_response_is_discarded_unless_action_key(self):
        for _ in range(3):
            self.engine.results.append(RemoteResult(sequence_number=0))
        self.attempt.process_action({'answer': '41'}, T0 + 1)
        self.assertEqual(self.attempt.process_action({'answer': '41'}, T0 + 2), DISCARD)

        self.attempt.process_action({'answer': '41', 'omact_next': '1'}, T0 + 3)
        self.assertEqual(self.attempt.process_action({'answer': '41', 'omact_next': '1'}, T0 + 4), KEEP)
        self.assertEqual(len(self.engine.processed), 3)

    def test_engine_error_discards_action(self):
        self.engine.results.append(RemoteEngineError("Remote engine unavailable"))
        self.assertEqual(self.attempt.process_action({'answer': '42'}, T0 + 1), DISCARD)
        self.assertEqual(self.attempt.get_num_steps(), 1)

    def test_finish_gives_up(self):
        self.attempt.finish(T0 + 1)
        self.assertEqual(self.attempt.get_state(), QuestionState.GAVE_UP)

    def test_needs_remote_question(self):
        with self.assertRaises(BehaviourError):
            self.attempt.registry.make_behaviour('opaque', QuestionAttempt(TrueFalseQuestion('tf', True), 'u1'), None)
