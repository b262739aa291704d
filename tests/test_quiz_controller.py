"""
Unit tests for QuizController session transitions.
"""
import logging
import unittest
from unittest.mock import Mock

from quizcraft.quiz_controller import (
    SCHEDULED_QUIZ_SIZE,
    InvalidTransition,
    NoLiveSessionError,
    QuizController,
    QuizControllerError,
    ScheduledQuizCompletedError,
    SessionConflictError,
    SessionPausedError,
    SessionState,
    longest_streak,
)
from quizcraft.snapshots import SnapshotNotFound
from quizcraft.statistics import PartialAggregateUpdate
from quizcraft.storage import MemoryStore, StoreUnavailable
from tests.test_fixtures import FailingStore, FakeClock, TestFixtures


class ControllerTestCase(unittest.TestCase):
    """Shared setup: three Math questions, manual clock, no background timer."""

    def setUp(self):
        logging.disable(logging.CRITICAL)
        self.clock = FakeClock(1000.0)
        self.questions = TestFixtures.create_sample_questions(3)
        self.data_manager = TestFixtures.create_mock_data_manager({"Math": self.questions})
        self.store = self.create_store()
        self.controller = QuizController(
            self.store, self.data_manager, clock=self.clock, session_key="test-channel", auto_tick=False
        )

    def tearDown(self):
        logging.disable(logging.NOTSET)

    def create_store(self):
        return MemoryStore()

    def answer(self, correct: bool, seconds: float = 0):
        self.clock.advance(seconds)
        question = self.controller.session.current_question
        text = TestFixtures.correct_text(question) if correct else TestFixtures.wrong_text(question)
        return self.controller.select_answer(text)

    def play_through(self, pattern, seconds: float = 0):
        """Answer every question following pattern, returning the completion result."""
        result = None
        for correct in pattern:
            self.answer(correct, seconds)
            result = self.controller.next_question()
        return result


class TestSessionLifecycle(ControllerTestCase):

    def test_initial_state(self):
        self.assertEqual(self.controller.get_state(), SessionState.INACTIVE)
        self.assertIsNone(self.controller.get_progress())
        self.assertFalse(self.controller.tick())

    def test_correct_wrong_correct(self):
        self.controller.start(self.questions, "Math", file_name="algebra")

        self.assertTrue(self.answer(True, 5))
        self.assertEqual(self.controller.get_state(), SessionState.ANSWER_REVEALED)
        self.assertIsNone(self.controller.next_question())
        self.assertFalse(self.answer(False, 7))
        self.controller.next_question()
        self.assertTrue(self.answer(True, 3))
        result = self.controller.next_question()

        self.assertEqual(result.correct_answers, 2)
        self.assertEqual(result.incorrect_answers, 1)
        self.assertEqual(result.accuracy, 66.67)
        self.assertEqual(result.total_time, 15)
        self.assertEqual(result.average_time_per_question, 5)
        self.assertEqual(result.longest_streak, 1)
        self.assertEqual(result.question_times, [5, 7, 3])
        self.assertEqual(self.controller.session.score, 2)
        self.assertEqual(self.controller.get_state(), SessionState.COMPLETED)
        self.assertIs(self.controller.last_result, result)
        self.assertIsNone(self.controller.pending_result)

        self.assertEqual(self.controller.statistics.get_folder_stats("Math").quizzes_completed, 1)
        self.assertEqual(self.controller.statistics.get_file_stats("Math", "algebra").correct_answers, 2)

    def test_skip_records_no_answer(self):
        self.controller.start(self.questions, "Math")
        self.answer(True)
        self.controller.next_question()

        self.clock.advance(4)
        self.assertIsNone(self.controller.skip())

        session = self.controller.session
        self.assertIsNone(session.answers[1])
        self.assertEqual(session.per_question_times[1], 4)
        self.assertEqual(session.current_index, 2)
        self.assertEqual(session.score, 1)
        self.assertFalse(session.answer_revealed)

    def test_cumulative_skip_timing_records_elapsed_timer(self):
        self.controller.config_manager.set_skip_timing("cumulative")
        self.controller.start(self.questions, "Math")
        for _ in range(9):
            self.controller.tick()

        self.clock.advance(2)
        self.controller.skip()

        self.assertEqual(self.controller.session.per_question_times[0], 9)

    def test_skipping_every_question_completes_with_zero_score(self):
        self.controller.start(self.questions, "Math")
        self.controller.skip()
        self.controller.skip()
        result = self.controller.skip()

        self.assertEqual(result.correct_answers, 0)
        self.assertEqual(result.accuracy, 0.0)
        self.assertEqual(result.answers, [None, None, None])

    def test_double_select_is_rejected(self):
        self.controller.start(self.questions, "Math")
        self.answer(True)

        with self.assertRaises(InvalidTransition) as context:
            self.answer(False)
        self.assertEqual(context.exception.state, SessionState.ANSWER_REVEALED)
        self.assertEqual(self.controller.session.score, 1)
        self.assertEqual(self.controller.session.selected_option, TestFixtures.correct_text(self.questions[0]))

        with self.assertRaises(InvalidTransition):
            self.controller.skip()

    def test_unknown_choice_is_rejected(self):
        self.controller.start(self.questions, "Math")
        with self.assertRaises(ValueError):
            self.controller.select_answer("not a choice")
        self.assertEqual(self.controller.session.answers, [])
        self.assertFalse(self.controller.session.answer_revealed)

    def test_next_requires_revealed_answer(self):
        self.controller.start(self.questions, "Math")
        with self.assertRaises(InvalidTransition):
            self.controller.next_question()

    def test_completed_session_rejects_actions(self):
        self.controller.start(self.questions, "Math")
        self.play_through([True, True, True])

        with self.assertRaises(InvalidTransition):
            self.controller.skip()
        with self.assertRaises(InvalidTransition):
            self.controller.pause()
        self.assertFalse(self.controller.has_live_session())
        self.assertFalse(self.controller.tick())

    def test_start_conflicts_with_live_session(self):
        self.controller.start(self.questions, "Math")
        with self.assertRaises(SessionConflictError):
            self.controller.start(self.questions, "Math")

    def test_start_after_completion_is_allowed(self):
        self.controller.start(self.questions, "Math")
        self.play_through([True, False, True])

        session = self.controller.start(self.questions, "Math")
        self.assertEqual(session.current_index, 0)
        self.assertIsNone(self.controller.last_result)

    def test_start_without_questions(self):
        with self.assertRaises(ValueError):
            self.controller.start([], "Math")

    def test_no_live_session(self):
        with self.assertRaises(NoLiveSessionError):
            self.controller.select_answer("x")
        with self.assertRaises(NoLiveSessionError):
            self.controller.pause()

    def test_close(self):
        self.controller.start(self.questions, "Math")
        self.assertTrue(self.controller.close())
        self.assertFalse(self.controller.close())
        self.assertEqual(self.controller.statistics.get_folder_stats("Math").quizzes_completed, 0)

    def test_progress(self):
        self.controller.start(self.questions, "Math", file_name="algebra")
        self.answer(True)
        self.controller.next_question()
        self.answer(False)

        progress = self.controller.get_progress()

        self.assertEqual(progress['current_question'], 2)
        self.assertEqual(progress['total_questions'], 3)
        self.assertEqual(progress['answered'], 2)
        self.assertEqual(progress['score'], 1)
        self.assertEqual(progress['accuracy'], 50.0)
        self.assertEqual(progress['state'], "answer_revealed")
        self.assertEqual(progress['file_name'], "algebra")


class TestStartFromFolder(ControllerTestCase):

    def test_uses_configured_settings(self):
        self.controller.config_manager.set_question_count(2)
        session = self.controller.start_from_folder("Math")

        self.assertEqual([q.id for q in session.questions], [q.id for q in self.questions[:2]])
        self.data_manager.get_questions.assert_called_with("Math", None)

    def test_unknown_folder(self):
        with self.assertRaises(ValueError):
            self.controller.start_from_folder("History")

    def test_without_data_manager(self):
        controller = QuizController(MemoryStore(), auto_tick=False)
        with self.assertRaises(QuizControllerError):
            controller.start_from_folder("Math")


class TestPauseResume(ControllerTestCase):

    def test_ticks_while_paused_are_ignored(self):
        self.controller.start(self.questions, "Math")
        for _ in range(3):
            self.controller.tick()

        self.controller.pause()
        for _ in range(5):
            self.assertTrue(self.controller.tick())
        self.assertEqual(self.controller.session.elapsed_timer, 3)

        self.controller.resume()
        self.controller.tick()
        self.assertEqual(self.controller.session.elapsed_timer, 4)

    def test_paused_session_blocks_answers(self):
        self.controller.start(self.questions, "Math")
        self.controller.pause()

        self.assertEqual(self.controller.get_state(), SessionState.PAUSED)
        with self.assertRaises(SessionPausedError):
            self.answer(True)
        with self.assertRaises(SessionPausedError):
            self.controller.skip()
        with self.assertRaises(SessionPausedError):
            self.controller.next_question()

    def test_pause_over_revealed_answer(self):
        self.controller.start(self.questions, "Math")
        self.answer(True)
        self.controller.pause()

        self.assertEqual(self.controller.get_state(), SessionState.PAUSED)
        self.controller.resume()
        self.assertEqual(self.controller.get_state(), SessionState.ANSWER_REVEALED)

    def test_repeated_pause_and_resume_are_rejected(self):
        self.controller.start(self.questions, "Math")
        with self.assertRaises(InvalidTransition):
            self.controller.resume()
        self.controller.pause()
        with self.assertRaises(InvalidTransition):
            self.controller.pause()

    def test_toggle_pause(self):
        self.controller.start(self.questions, "Math")
        self.assertTrue(self.controller.toggle_pause())
        self.assertFalse(self.controller.toggle_pause())

    def test_timer_follows_pause_state(self):
        engine = Mock()
        controller = QuizController(self.store, self.data_manager, quiz_engine=engine,
                                    clock=self.clock, session_key="chan", auto_tick=True)
        controller.start(self.questions, "Math")
        engine.start_session_timer.assert_called_once_with("chan", controller.tick, 1.0)

        controller.pause()
        engine.pause_timer.assert_called_once_with("chan")
        controller.resume()
        engine.resume_timer.assert_called_once_with("chan")

        controller.close()
        engine.cancel_timer.assert_called_with("chan")


class TestSaveAndResume(ControllerTestCase):

    def test_round_trip(self):
        self.controller.start(self.questions, "Math", file_name="algebra")
        self.answer(True, 6)
        self.controller.next_question()
        for _ in range(4):
            self.controller.tick()

        session_id = self.controller.save_for_later()

        self.assertIsNone(self.controller.session)
        self.assertEqual(self.controller.get_state(), SessionState.INACTIVE)
        self.assertEqual([s['id'] for s in self.controller.snapshots.list_saved()], [session_id])

        session = self.controller.resume_from_snapshot(session_id)

        self.assertFalse(session.paused)
        self.assertEqual(session.id, session_id)
        self.assertEqual(session.current_index, 1)
        self.assertEqual(session.score, 1)
        self.assertEqual(session.elapsed_timer, 4)
        self.assertEqual(session.source_file_name, "algebra")
        self.assertEqual(session.per_question_times, [6])

        self.play_through([True, True])
        self.assertFalse(self.controller.snapshots.exists(session_id))

    def test_saving_paused_session_resumes_unpaused(self):
        self.controller.start(self.questions, "Math")
        self.controller.pause()
        session_id = self.controller.save_for_later()

        self.assertFalse(self.controller.resume_from_snapshot(session_id).paused)

    def test_resaving_keeps_the_same_id(self):
        self.controller.start(self.questions, "Math")
        first_id = self.controller.save_for_later()
        self.controller.resume_from_snapshot(first_id)
        self.clock.advance(30)
        self.assertEqual(self.controller.save_for_later(), first_id)

    def test_resume_missing_snapshot(self):
        with self.assertRaises(SnapshotNotFound):
            self.controller.resume_from_snapshot("missing")

    def test_resume_conflicts_with_live_session(self):
        self.controller.start(self.questions, "Math")
        session_id = self.controller.save_for_later()
        self.controller.start(self.questions, "Math")

        with self.assertRaises(SessionConflictError):
            self.controller.resume_from_snapshot(session_id)

    def test_failed_save_keeps_session_live(self):
        controller = QuizController(FailingStore(["savedQuiz_"]), self.data_manager,
                                    clock=self.clock, auto_tick=False)
        controller.start(self.questions, "Math")

        with self.assertRaises(StoreUnavailable):
            controller.save_for_later()
        self.assertTrue(controller.has_live_session())


class TestCompletionStatistics(ControllerTestCase):

    def create_store(self):
        return FailingStore()

    def test_store_failure_keeps_pending_result_for_retry(self):
        self.store.fail_prefixes = ["quizHistory_"]
        self.controller.start(self.questions, "Math")
        self.answer(True)
        self.controller.next_question()
        self.answer(True)
        self.controller.next_question()
        self.answer(False)

        with self.assertRaises(StoreUnavailable):
            self.controller.next_question()

        self.assertEqual(self.controller.get_state(), SessionState.COMPLETED)
        self.assertIsNotNone(self.controller.pending_result)
        self.assertEqual(self.controller.statistics.get_folder_stats("Math").quizzes_completed, 0)

        self.store.fail_prefixes = []
        self.assertTrue(self.controller.retry_statistics())
        self.assertIsNone(self.controller.pending_result)
        self.assertEqual(self.controller.statistics.get_folder_stats("Math").correct_answers, 2)
        self.assertFalse(self.controller.retry_statistics())

    def test_partial_update_then_retry_does_not_double_count(self):
        self.store.fail_prefixes = ["fileStats_"]
        self.controller.start(self.questions, "Math", file_name="algebra")

        with self.assertRaises(PartialAggregateUpdate):
            self.play_through([True, True, True])

        self.store.fail_prefixes = []
        self.controller.retry_statistics()

        self.assertEqual(self.controller.statistics.get_folder_stats("Math").quizzes_completed, 1)
        self.assertEqual(self.controller.statistics.get_file_stats("Math", "algebra").quizzes_completed, 1)

    def test_resumed_snapshot_deleted_after_retry(self):
        self.controller.start(self.questions, "Math")
        session_id = self.controller.save_for_later()
        self.controller.resume_from_snapshot(session_id)

        self.store.fail_prefixes = ["quizHistory_"]
        with self.assertRaises(StoreUnavailable):
            self.play_through([True, True, True])
        self.assertTrue(self.controller.snapshots.exists(session_id))

        self.store.fail_prefixes = []
        self.controller.retry_statistics()
        self.assertFalse(self.controller.snapshots.exists(session_id))

    def test_facade_reports_completion_without_statistics(self):
        self.store.fail_prefixes = ["quizHistory_"]
        self.controller.start(self.questions, "Math")
        self.controller.skip()
        self.controller.skip()

        response = self.controller.skip_quiz_question()

        self.assertTrue(response['success'])
        self.assertTrue(response['completed'])
        self.assertFalse(response['statistics_saved'])
        self.assertEqual(response['error_type'], "StoreUnavailable")
        self.assertEqual(response['result'].total_questions, 3)

    def test_listeners_are_notified_and_isolated(self):
        received = []

        @self.controller.on_session_complete
        def broken(result):
            raise RuntimeError("listener failure")

        self.controller.on_session_complete(received.append)
        self.controller.start(self.questions, "Math")
        result = self.play_through([True, False, False])

        self.assertEqual(received, [result])
        self.assertEqual(self.controller.statistics.get_folder_stats("Math").quizzes_completed, 1)

    def test_unsaved_results_queue_until_retried(self):
        self.store.fail_prefixes = ["quizHistory_"]
        for _ in range(2):
            self.controller.start(self.questions, "Math")
            with self.assertRaises(StoreUnavailable):
                self.play_through([True, False, True])

        self.assertEqual(len(self.controller.pending_results), 2)

        self.store.fail_prefixes = []
        response = self.controller.retry_quiz_statistics()

        self.assertTrue(response['success'])
        self.assertEqual(response['stored'], 2)
        self.assertEqual(self.controller.pending_results, [])
        self.assertEqual(self.controller.statistics.get_folder_stats("Math").quizzes_completed, 2)

    def test_retry_facade_reports_partial_update(self):
        self.store.fail_prefixes = ["fileStats_"]
        self.controller.start(self.questions, "Math", file_name="algebra")
        with self.assertRaises(PartialAggregateUpdate):
            self.play_through([True, True, False])

        response = self.controller.retry_quiz_statistics()

        self.assertFalse(response['success'])
        self.assertEqual(response['error_type'], "PartialAggregateUpdate")
        self.assertEqual(response['pending'], 1)
        self.assertEqual(self.controller.statistics.get_folder_stats("Math").quizzes_completed, 1)

    def test_retry_facade_with_nothing_pending(self):
        response = self.controller.retry_quiz_statistics()
        self.assertFalse(response['success'])
        self.assertEqual(response['error_type'], "NothingPending")

    def test_total_starred_recorded_at_completion(self):
        self.controller.stars.toggle_star("Math", 0)
        self.controller.stars.toggle_star("Math", 2)
        self.controller.start(self.questions, "Math")
        self.play_through([True, True, True])

        self.assertEqual(self.controller.statistics.get_folder_stats("Math").total_starred, 2)


class TestStarsAndReports(ControllerTestCase):

    def test_toggle_star_twice_restores_membership(self):
        self.controller.start(self.questions, "Math")

        self.assertTrue(self.controller.toggle_star_current())
        self.assertTrue(self.controller.stars.is_starred("Math", 0))
        self.assertFalse(self.controller.toggle_star_current())
        self.assertFalse(self.controller.stars.is_starred("Math", 0))

    def test_star_by_position_after_completion(self):
        self.controller.start(self.questions, "Math")
        self.play_through([True, False, True])

        self.assertTrue(self.controller.toggle_star_current(position=1))
        self.assertEqual(self.controller.stars.starred_ids("Math"), {"Math-1"})

        with self.assertRaises(IndexError):
            self.controller.toggle_star_current(position=3)

    def test_star_without_session(self):
        with self.assertRaises(NoLiveSessionError):
            self.controller.toggle_star_current()

    def test_report_current_question(self):
        self.controller.start(self.questions, "Math")
        report = self.controller.report_current_question("Answer A is ambiguous")

        self.assertEqual(report.question['id'], self.questions[0].id)
        self.assertEqual(len(self.controller.reports.list_reports()), 1)


class TestScheduledQuizzes(ControllerTestCase):

    def setUp(self):
        super().setUp()
        self.physics = TestFixtures.create_sample_questions(2, folder="Physics", file_name="mechanics")
        self.data_manager = TestFixtures.create_mock_data_manager({"Math": self.questions, "Physics": self.physics})
        self.controller.data_manager = self.data_manager

    def test_scheduled_quiz_draws_starred_questions_from_all_folders(self):
        self.controller.stars.toggle_star("Math", 0)
        self.controller.stars.toggle_star("Physics", 1)

        session = self.controller.start_scheduled_quiz(quiz_id="weekly")

        self.assertEqual(session.quiz_id, "weekly")
        self.assertEqual(
            sorted(q.id for q in session.questions),
            sorted([self.questions[0].id, self.physics[1].id])
        )

    def test_completed_scheduled_quiz_cannot_restart(self):
        self.controller.stars.toggle_star("Math", 1)
        self.controller.start_scheduled_quiz(quiz_id="weekly")
        self.play_through([True])

        self.assertTrue(self.controller.snapshots.is_completed("weekly"))
        with self.assertRaises(ScheduledQuizCompletedError):
            self.controller.start_scheduled_quiz(quiz_id="weekly")

    def test_saved_scheduled_quiz_resumes_under_its_id(self):
        self.controller.stars.toggle_star("Math", 0)
        self.controller.stars.toggle_star("Math", 1)
        self.controller.start_scheduled_quiz(quiz_id="weekly")
        self.answer(True)
        self.controller.next_question()

        self.assertEqual(self.controller.save_for_later(), "weekly")

        session = self.controller.start_scheduled_quiz(quiz_id="weekly")
        self.assertEqual(session.current_index, 1)
        self.assertEqual(session.score, 1)

    def test_scheduled_quiz_size_is_capped(self):
        many = TestFixtures.create_sample_questions(SCHEDULED_QUIZ_SIZE + 5, folder="Big", file_name="bank")
        self.controller.data_manager = TestFixtures.create_mock_data_manager({"Big": many})
        for index in range(len(many)):
            self.controller.stars.toggle_star("Big", index)

        session = self.controller.start_scheduled_quiz()

        self.assertEqual(session.total_questions, SCHEDULED_QUIZ_SIZE)
        self.assertIsNotNone(session.quiz_id)

    def test_no_starred_questions(self):
        with self.assertRaises(ValueError):
            self.controller.start_scheduled_quiz()

    def test_generated_pool_is_stored_and_replayed(self):
        for index in range(3):
            self.controller.stars.toggle_star("Math", index)
        first = [q.id for q in self.controller.start_scheduled_quiz(quiz_id="weekly").questions]
        self.assertIsNotNone(self.store.get("generatedQuiz_weekly"))
        self.controller.close()

        self.controller.stars.toggle_star("Math", 2)
        replayed = self.controller.start_scheduled_quiz(quiz_id="weekly")

        self.assertEqual([q.id for q in replayed.questions], first)

    def test_create_then_start_by_id(self):
        self.controller.stars.toggle_star("Math", 0)
        self.controller.stars.toggle_star("Physics", 0)

        created = self.controller.create_scheduled()

        self.assertTrue(created['success'])
        self.assertEqual(created['question_count'], 2)
        self.assertIsNone(self.controller.session)

        started = self.controller.start_scheduled(quiz_id=created['quiz_id'])
        self.assertTrue(started['success'])
        self.assertEqual(self.controller.session.quiz_id, created['quiz_id'])

    def test_corrupt_pool_cannot_start(self):
        self.store.set("generatedQuiz_bad", {'questions': []})

        response = self.controller.start_scheduled(quiz_id="bad")

        self.assertFalse(response['success'])
        self.assertEqual(response['error_type'], "CorruptScheduledQuiz")
        self.assertIsNone(self.controller.session)

    def test_delete_scheduled_quiz(self):
        self.controller.stars.toggle_star("Math", 0)
        quiz_id = self.controller.create_scheduled()['quiz_id']

        self.assertTrue(self.controller.delete_scheduled_quiz(quiz_id)['success'])
        self.assertFalse(self.controller.scheduled.exists(quiz_id))

        missing = self.controller.delete_scheduled_quiz(quiz_id)
        self.assertEqual(missing['error_type'], "ScheduledQuizNotFound")
        self.assertIn("/scheduled", missing['user_message'])

    def test_delete_saved_quiz(self):
        self.controller.start_quiz("Math")
        session_id = self.controller.save_quiz()['session_id']

        self.assertTrue(self.controller.delete_saved_quiz(session_id)['success'])
        self.assertEqual(self.controller.snapshots.list_saved(), [])

        missing = self.controller.delete_saved_quiz(session_id)
        self.assertEqual(missing['error_type'], "SnapshotNotFound")


class TestResultDictFacade(ControllerTestCase):

    def test_start_and_answer(self):
        started = self.controller.start_quiz("Math")
        self.assertTrue(started['success'])
        self.assertEqual(started['session_info']['total_questions'], 3)

        answered = self.controller.answer_quiz(TestFixtures.wrong_text(self.questions[0]))
        self.assertTrue(answered['success'])
        self.assertFalse(answered['correct'])
        self.assertEqual(answered['correct_choice'], TestFixtures.correct_text(self.questions[0]))

        again = self.controller.answer_quiz(TestFixtures.correct_text(self.questions[0]))
        self.assertFalse(again['success'])
        self.assertEqual(again['error_type'], "InvalidTransition")
        self.assertIn("already answered", again['user_message'])

    def test_conflicting_start(self):
        self.controller.start_quiz("Math")
        result = self.controller.start_quiz("Math")

        self.assertFalse(result['success'])
        self.assertEqual(result['error_type'], "SessionConflictError")
        self.assertIn("/save", result['user_message'])

    def test_unknown_folder(self):
        result = self.controller.start_quiz("History")
        self.assertFalse(result['success'])
        self.assertEqual(result['error_type'], "ValueError")

    def test_pause_and_resume_are_forgiving(self):
        self.controller.start_quiz("Math")

        self.assertEqual(self.controller.resume_quiz()['message'], "Quiz is not paused")
        self.assertEqual(self.controller.pause_quiz()['message'], "Quiz paused")
        self.assertEqual(self.controller.pause_quiz()['message'], "Quiz is already paused")

        skipped = self.controller.skip_quiz_question()
        self.assertFalse(skipped['success'])
        self.assertEqual(skipped['error_type'], "SessionPausedError")
        self.assertIn("/resume", skipped['user_message'])

    def test_next_and_skip_to_completion(self):
        self.controller.start_quiz("Math")
        self.assertEqual(self.controller.skip_quiz_question()['message'], "Question skipped")
        self.controller.answer_quiz(TestFixtures.correct_text(self.questions[1]))
        self.assertFalse(self.controller.next_quiz_question()['completed'])

        finished = self.controller.skip_quiz_question()

        self.assertTrue(finished['completed'])
        self.assertTrue(finished['statistics_saved'])
        self.assertEqual(finished['result'].correct_answers, 1)

    def test_save_and_resume(self):
        self.controller.start_quiz("Math")
        saved = self.controller.save_quiz()
        self.assertTrue(saved['success'])

        resumed = self.controller.resume_saved_quiz(saved['session_id'])
        self.assertTrue(resumed['success'])

        missing = self.controller.resume_saved_quiz("nope")
        self.assertFalse(missing['success'])
        self.assertEqual(missing['error_type'], "SessionConflictError")

    def test_resume_missing(self):
        missing = self.controller.resume_saved_quiz("nope")
        self.assertEqual(missing['error_type'], "SnapshotNotFound")
        self.assertIn("/saved", missing['user_message'])

    def test_stop(self):
        self.controller.start_quiz("Math")
        self.assertTrue(self.controller.stop_quiz()['success'])

        again = self.controller.stop_quiz()
        self.assertFalse(again['success'])
        self.assertEqual(again['error_type'], "NoLiveSessionError")

    def test_error_summary_keeps_last_ten(self):
        for _ in range(12):
            self.controller.answer_quiz("x")

        summary = self.controller.get_error_summary()
        self.assertEqual(summary['error_count'], 10)
        self.assertTrue(summary['has_errors'])
        self.assertEqual(summary['session_key'], "test-channel")


class TestLongestStreak(unittest.TestCase):

    def test_skips_break_runs(self):
        questions = TestFixtures.create_sample_questions(6)
        right = [TestFixtures.correct_text(q) for q in questions]
        answers = [right[0], right[1], None, right[3], right[4], right[5]]
        self.assertEqual(longest_streak(questions, answers), 3)

    def test_short_answer_list(self):
        questions = TestFixtures.create_sample_questions(3)
        self.assertEqual(longest_streak(questions, [TestFixtures.correct_text(questions[0])]), 1)
        self.assertEqual(longest_streak(questions, []), 0)


if __name__ == '__main__':
    unittest.main()
