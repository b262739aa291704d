"""
Scheduled quizzes built from starred questions.

The generated question pool is stored under generatedQuiz_<id> so a scheduled
quiz replays the same questions every time it is started. Progress on a
started pool is the snapshot saved under the same id, and completion is
recorded in the completed scheduled quizzes list of the SnapshotRepository.
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from .models import Question
from .snapshots import SnapshotRepository, mint_session_id
from .storage import GENERATED_QUIZ_PREFIX, PersistentStore, generated_quiz_key


SCHEDULED_QUIZ_TYPE = "scheduled"


class ScheduledQuizNotFound(LookupError):
    """Raised when no generated pool is stored under the requested id."""

    def __init__(self, quiz_id: str):
        self.quiz_id = quiz_id
        super().__init__(f"No scheduled quiz found with id '{quiz_id}'")


class CorruptScheduledQuiz(ValueError):
    """Raised when a stored pool is not a usable list of questions."""

    def __init__(self, quiz_id: str, reason: str):
        self.quiz_id = quiz_id
        self.reason = reason
        super().__init__(f"Scheduled quiz '{quiz_id}' is corrupt: {reason}")


def parse_pool(payload: Any, quiz_id: str) -> List[Question]:
    """
    Rebuild the questions of a stored pool.

    Raises:
        CorruptScheduledQuiz: If the payload is malformed
    """
    if not isinstance(payload, dict):
        raise CorruptScheduledQuiz(quiz_id, "payload is not an object")

    entries = payload.get('questions')
    if not isinstance(entries, list) or not entries:
        raise CorruptScheduledQuiz(quiz_id, "missing question list")

    try:
        questions = [Question.from_dict(entry) for entry in entries]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise CorruptScheduledQuiz(quiz_id, f"invalid question: {e}") from e

    for index, question in enumerate(questions):
        if sum(1 for choice in question.choices if choice.is_correct) != 1:
            raise CorruptScheduledQuiz(quiz_id, f"question {index} does not have exactly one correct choice")
    return questions


class ScheduledQuizRepository:
    """Stores, lists and deletes generated scheduled quiz pools."""

    def __init__(
        self,
        store: PersistentStore,
        snapshots: SnapshotRepository,
        clock: Callable[[], float] = time.time
    ):
        self.store = store
        self.snapshots = snapshots
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def save_pool(self, questions: List[Question], quiz_id: Optional[str] = None) -> str:
        """
        Store a generated pool.

        Args:
            questions: Questions of the quiz, in the order they will be asked
            quiz_id: Id to store the pool under; minted from the clock when omitted

        Returns:
            The quiz id

        Raises:
            ValueError: If questions is empty
            StoreUnavailable: If the write fails
        """
        if not questions:
            raise ValueError("A scheduled quiz needs at least one question")

        quiz_id = quiz_id or mint_session_id(self.clock)
        self.store.set(generated_quiz_key(quiz_id), {
            'questions': [question.to_dict() for question in questions],
            'timestamp': self.clock(),
            'type': SCHEDULED_QUIZ_TYPE,
            'folder': questions[0].folder,
        })
        self.logger.info(
            f"Created scheduled quiz {quiz_id} with {len(questions)} questions",
            extra={
                'event_type': 'scheduled_quiz_created',
                'quiz_id': quiz_id,
                'question_count': len(questions),
                'timestamp': time.time()
            }
        )
        return quiz_id

    def load_pool(self, quiz_id: str) -> List[Question]:
        """
        Raises:
            ScheduledQuizNotFound: If no pool is stored under quiz_id
            CorruptScheduledQuiz: If the stored pool is malformed
        """
        payload = self.store.get(generated_quiz_key(quiz_id))
        if payload is None:
            raise ScheduledQuizNotFound(quiz_id)
        return parse_pool(payload, quiz_id)

    def exists(self, quiz_id: str) -> bool:
        return self.store.get(generated_quiz_key(quiz_id)) is not None

    def delete(self, quiz_id: str) -> bool:
        """
        Remove a scheduled quiz and any saved progress on it.

        The completion record is kept so the quiz stays in the history.

        Returns:
            True if a pool or a saved snapshot was removed
        """
        removed_pool = self.store.delete(generated_quiz_key(quiz_id))
        removed_progress = self.snapshots.delete(quiz_id)
        if removed_pool:
            self.logger.info(f"Deleted scheduled quiz {quiz_id}")
        return removed_pool or removed_progress

    def list_quizzes(self, completed: Optional[bool] = None) -> List[Dict[str, Any]]:
        """
        Summaries of stored pools, most recent first.

        Args:
            completed: Only completed (True) or only upcoming (False) quizzes; all when None
        """
        completed_ids = set(self.snapshots.completed_ids())
        summaries = []
        for key in self.store.keys(GENERATED_QUIZ_PREFIX):
            quiz_id = key[len(GENERATED_QUIZ_PREFIX):]
            payload = self.store.get(key)
            try:
                questions = parse_pool(payload, quiz_id)
            except CorruptScheduledQuiz as e:
                self.logger.warning(f"Skipping corrupt scheduled quiz {quiz_id}: {e.reason}")
                continue

            is_completed = quiz_id in completed_ids
            if completed is not None and is_completed != completed:
                continue
            summaries.append({
                'id': quiz_id,
                'folder': payload.get('folder', questions[0].folder),
                'question_count': len(questions),
                'timestamp': payload.get('timestamp', 0),
                'completed': is_completed,
                'has_saved_state': self.snapshots.exists(quiz_id),
            })
        summaries.sort(key=lambda item: item['timestamp'], reverse=True)
        return summaries

    def completed_history(self) -> List[Dict[str, Any]]:
        """Completed scheduled quizzes in completion order, with pool details while the pool exists."""
        history = []
        for quiz_id in self.snapshots.completed_ids():
            entry = {'id': quiz_id, 'folder': None, 'question_count': None, 'timestamp': None}
            payload = self.store.get(generated_quiz_key(quiz_id))
            if isinstance(payload, dict) and isinstance(payload.get('questions'), list):
                entry.update(
                    folder=payload.get('folder'),
                    question_count=len(payload['questions']),
                    timestamp=payload.get('timestamp'),
                )
            history.append(entry)
        return history
