"""
Snapshot serialization and saved-quiz bookkeeping.

A snapshot is the full QuizSession written under savedQuiz_<id>. The stored
copy always has isPaused set so a reloaded session never starts ticking on
its own.
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from .models import QuizSession
from .storage import (
    COMPLETED_SCHEDULED_KEY,
    SAVED_QUIZ_PREFIX,
    PersistentStore,
    saved_quiz_key,
)


logger = logging.getLogger(__name__)

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


class SnapshotError(Exception):
    """Base exception for snapshot errors."""
    pass


class SnapshotNotFound(SnapshotError):
    """Raised when no snapshot is stored under the requested id."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"No saved quiz found with id '{session_id}'")


class CorruptSnapshot(SnapshotError):
    """Raised when a stored snapshot payload is not a well-formed session."""

    def __init__(self, session_id: Optional[str], reason: str):
        self.session_id = session_id
        self.reason = reason
        super().__init__(f"Saved quiz '{session_id}' is corrupt: {reason}")


def to_base36(number: int) -> str:
    if number < 0:
        raise ValueError("Cannot encode negative numbers")
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def mint_session_id(clock: Callable[[], float] = time.time) -> str:
    """Time-based id: milliseconds since the epoch in base 36."""
    return to_base36(int(clock() * 1000))


def serialize_session(session: QuizSession, timestamp: Optional[float] = None) -> Dict[str, Any]:
    """
    Serialize a session for storage.

    Args:
        session: Session to serialize
        timestamp: Save time recorded alongside the snapshot

    Returns:
        JSON-ready dictionary with isPaused forced to True
    """
    payload = session.to_dict()
    payload['isPaused'] = True
    payload['timestamp'] = timestamp if timestamp is not None else time.time()
    return payload


def deserialize_session(payload: Any, session_id: Optional[str] = None) -> QuizSession:
    """
    Rebuild a session from a stored payload.

    Raises:
        CorruptSnapshot: If the payload is not a well-formed session
    """
    if not isinstance(payload, dict):
        raise CorruptSnapshot(session_id, "payload is not an object")

    questions = payload.get('questions')
    if not isinstance(questions, list) or not questions:
        raise CorruptSnapshot(session_id, "missing question list")

    for field_name in ('currentQuestion', 'score', 'timer'):
        value = payload.get(field_name, 0)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise CorruptSnapshot(session_id, f"'{field_name}' must be a non-negative integer")

    for field_name in ('startTime', 'questionStartTime'):
        value = payload.get(field_name, payload.get('startTime'))
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            raise CorruptSnapshot(session_id, f"'{field_name}' must be a number")

    for field_name in ('userAnswers', 'questionTimes'):
        value = payload.get(field_name, [])
        if not isinstance(value, list) or len(value) > len(questions):
            raise CorruptSnapshot(session_id, f"'{field_name}' must be a list no longer than the questions")

    if not isinstance(payload.get('folder'), str):
        raise CorruptSnapshot(session_id, "missing folder")

    try:
        session = QuizSession.from_dict(payload)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise CorruptSnapshot(session_id, f"invalid field: {e}") from e

    for index, question in enumerate(session.questions):
        correct_count = sum(1 for choice in question.choices if choice.is_correct)
        if correct_count != 1:
            raise CorruptSnapshot(
                session_id, f"question {index} has {correct_count} correct choices"
            )

    if session.current_index >= session.total_questions:
        raise CorruptSnapshot(session_id, "current question index out of range")

    if session.score != session.count_correct():
        raise CorruptSnapshot(session_id, "score does not match recorded answers")

    if session.id is None:
        session.id = session_id
    return session


class SnapshotRepository:
    """Reads and writes session snapshots in a PersistentStore."""

    def __init__(self, store: PersistentStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def save(self, session: QuizSession) -> str:
        """
        Write a snapshot of the session.

        The session keeps its id across saves; a scheduled quiz uses its
        quiz id, anything else gets a freshly minted time-based id.

        Returns:
            The id the snapshot was stored under

        Raises:
            StoreUnavailable: If the write fails
        """
        session_id = session.id or session.quiz_id or mint_session_id(self.clock)
        payload = serialize_session(session, timestamp=self.clock())
        payload['id'] = session_id
        self.store.set(saved_quiz_key(session_id), payload)
        session.id = session_id
        self.logger.info(
            f"Saved quiz snapshot {session_id} at question {session.current_index + 1}/{session.total_questions}",
            extra={
                'event_type': 'snapshot_saved',
                'session_id': session_id,
                'folder': session.folder,
                'timestamp': time.time()
            }
        )
        return session_id

    def load(self, session_id: str) -> QuizSession:
        """
        Load a snapshot exactly as stored (paused).

        Raises:
            SnapshotNotFound: If no snapshot exists under session_id
            CorruptSnapshot: If the stored payload is malformed
        """
        payload = self.store.get(saved_quiz_key(session_id))
        if payload is None:
            raise SnapshotNotFound(session_id)
        return deserialize_session(payload, session_id)

    def exists(self, session_id: str) -> bool:
        return self.store.get(saved_quiz_key(session_id)) is not None

    def delete(self, session_id: str) -> bool:
        deleted = self.store.delete(saved_quiz_key(session_id))
        if deleted:
            self.logger.info(f"Deleted saved quiz {session_id}")
        return deleted

    def list_saved(self) -> List[Dict[str, Any]]:
        """
        Summaries of all saved quizzes, most recent first.

        Corrupt snapshots are skipped and logged rather than failing the listing.
        """
        summaries = []
        for key in self.store.keys(SAVED_QUIZ_PREFIX):
            session_id = key[len(SAVED_QUIZ_PREFIX):]
            payload = self.store.get(key)
            try:
                session = deserialize_session(payload, session_id)
            except CorruptSnapshot as e:
                self.logger.warning(f"Skipping corrupt saved quiz {session_id}: {e.reason}")
                continue
            summaries.append({
                'id': session_id,
                'folder': session.folder,
                'quiz_id': session.quiz_id,
                'current_question': session.current_index + 1,
                'total_questions': session.total_questions,
                'score': session.score,
                'elapsed_timer': session.elapsed_timer,
                'timestamp': payload.get('timestamp', 0),
            })
        summaries.sort(key=lambda item: item['timestamp'], reverse=True)
        return summaries

    def completed_ids(self) -> List[str]:
        return list(self.store.get(COMPLETED_SCHEDULED_KEY, []))

    def is_completed(self, quiz_id: str) -> bool:
        return quiz_id in self.completed_ids()

    def mark_completed(self, quiz_id: str) -> bool:
        """
        Record a scheduled quiz as completed.

        Returns:
            True if the id was newly added, False if it was already recorded
        """
        completed = self.completed_ids()
        if quiz_id in completed:
            return False
        completed.append(quiz_id)
        self.store.set(COMPLETED_SCHEDULED_KEY, completed)
        self.logger.info(f"Marked scheduled quiz {quiz_id} as completed")
        return True
