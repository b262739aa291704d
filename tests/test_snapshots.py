"""
Unit tests for snapshot serialization and the saved-quiz repository.
"""
import unittest

from quizcraft.models import QuizSession
from quizcraft.snapshots import (
    CorruptSnapshot,
    SnapshotNotFound,
    SnapshotRepository,
    deserialize_session,
    mint_session_id,
    serialize_session,
    to_base36,
)
from quizcraft.storage import MemoryStore, saved_quiz_key
from tests.test_fixtures import FakeClock, TestFixtures


def make_session(**overrides) -> QuizSession:
    questions = TestFixtures.create_sample_questions(3)
    values = dict(
        questions=questions,
        folder="Math",
        start_timestamp=1000.0,
        question_start_timestamp=1012.5,
        source_file_name="algebra",
        current_index=1,
        answers=[questions[0].correct_choice],
        per_question_times=[12.5],
        score=1,
        elapsed_timer=13,
        answer_revealed=False,
    )
    values.update(overrides)
    return QuizSession(**values)


class TestSessionIds(unittest.TestCase):

    def test_base36(self):
        self.assertEqual(to_base36(0), "0")
        self.assertEqual(to_base36(35), "z")
        self.assertEqual(to_base36(36), "10")

    def test_minted_id_is_milliseconds_in_base36(self):
        self.assertEqual(mint_session_id(lambda: 1.296), to_base36(1296))


class TestSerialization(unittest.TestCase):

    def test_serialized_copy_is_paused(self):
        session = make_session(paused=False)
        payload = serialize_session(session, timestamp=5.0)

        self.assertTrue(payload['isPaused'])
        self.assertEqual(payload['timestamp'], 5.0)
        self.assertFalse(session.paused)

    def test_round_trip_preserves_every_field_but_paused(self):
        session = make_session(selected_option=None, quiz_id="sched1", id="sched1")
        restored = deserialize_session(serialize_session(session))

        self.assertTrue(restored.paused)
        restored.paused = session.paused
        self.assertEqual(restored, session)

    def test_rejects_non_mapping(self):
        with self.assertRaises(CorruptSnapshot):
            deserialize_session(["not", "a", "session"], "x")

    def test_rejects_index_out_of_range(self):
        payload = serialize_session(make_session())
        payload['currentQuestion'] = 3
        with self.assertRaises(CorruptSnapshot):
            deserialize_session(payload, "x")

    def test_rejects_score_mismatch(self):
        payload = serialize_session(make_session())
        payload['score'] = 2
        with self.assertRaises(CorruptSnapshot):
            deserialize_session(payload, "x")

    def test_rejects_question_without_single_correct_choice(self):
        payload = serialize_session(make_session())
        for choice in payload['questions'][2]['choices']:
            choice['isCorrect'] = False
        with self.assertRaises(CorruptSnapshot):
            deserialize_session(payload, "x")

    def test_rejects_wrong_field_types(self):
        payload = serialize_session(make_session())
        payload['timer'] = "13"
        with self.assertRaises(CorruptSnapshot):
            deserialize_session(payload, "x")

        payload = serialize_session(make_session())
        del payload['questions']
        with self.assertRaises(CorruptSnapshot):
            deserialize_session(payload, "x")


class TestSnapshotRepository(unittest.TestCase):

    def setUp(self):
        self.store = MemoryStore()
        self.clock = FakeClock(2000.0)
        self.repository = SnapshotRepository(self.store, self.clock)

    def test_save_mints_id_once(self):
        session = make_session()
        first_id = self.repository.save(session)

        self.assertEqual(first_id, to_base36(2_000_000))
        self.assertEqual(session.id, first_id)

        self.clock.advance(10)
        self.assertEqual(self.repository.save(session), first_id)
        self.assertEqual(self.store.keys("savedQuiz_"), [saved_quiz_key(first_id)])

    def test_scheduled_quiz_saves_under_quiz_id(self):
        session = make_session(quiz_id="sched42")
        self.assertEqual(self.repository.save(session), "sched42")

    def test_load_returns_paused_session(self):
        session_id = self.repository.save(make_session())
        loaded = self.repository.load(session_id)

        self.assertTrue(loaded.paused)
        self.assertEqual(loaded.id, session_id)
        self.assertEqual(loaded.current_index, 1)
        self.assertEqual(loaded.elapsed_timer, 13)

    def test_load_missing(self):
        with self.assertRaises(SnapshotNotFound) as context:
            self.repository.load("nope")
        self.assertEqual(context.exception.session_id, "nope")

    def test_load_corrupt(self):
        self.store.set(saved_quiz_key("bad"), {"questions": "nope"})
        with self.assertRaises(CorruptSnapshot):
            self.repository.load("bad")

    def test_list_saved_most_recent_first_and_skips_corrupt(self):
        older = self.repository.save(make_session())
        self.clock.advance(60)
        newer = self.repository.save(make_session(folder="Physics"))
        self.store.set(saved_quiz_key("broken"), {"folder": "x"})

        summaries = self.repository.list_saved()

        self.assertEqual([s['id'] for s in summaries], [newer, older])
        self.assertEqual(summaries[0]['folder'], "Physics")
        self.assertEqual(summaries[0]['current_question'], 2)

    def test_delete(self):
        session_id = self.repository.save(make_session())
        self.assertTrue(self.repository.delete(session_id))
        self.assertFalse(self.repository.exists(session_id))
        self.assertFalse(self.repository.delete(session_id))

    def test_mark_completed_is_idempotent(self):
        self.assertTrue(self.repository.mark_completed("q1"))
        self.assertFalse(self.repository.mark_completed("q1"))
        self.assertTrue(self.repository.is_completed("q1"))
        self.assertEqual(self.repository.completed_ids(), ["q1"])


if __name__ == '__main__':
    unittest.main()
