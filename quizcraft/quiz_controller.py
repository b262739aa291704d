"""
Quiz session controller.

Owns the single live QuizSession of one quiz surface (one Discord channel)
and applies the session transitions: answering, skipping, advancing,
pausing, saving for later, resuming a snapshot and completion. Completion
hands the result to the statistics aggregator and notifies listeners.
"""
import logging
import random
import time
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple
from enum import Enum

from .models import QuizSession, Question, QuizSettings, SessionResult
from .quiz_engine import QuizEngine
from .data_manager import DataManager
from .config_manager import ConfigManager, SKIP_TIMING_CUMULATIVE
from .storage import PersistentStore, StoreUnavailable
from .snapshots import SnapshotRepository, SnapshotNotFound, CorruptSnapshot
from .scheduled import ScheduledQuizRepository, ScheduledQuizNotFound, CorruptScheduledQuiz
from .stars import StarRegistry
from .statistics import StatisticsAggregator, PartialAggregateUpdate, round_half_up
from .reports import ReportLog


SCHEDULED_QUIZ_SIZE = 30


class SessionState(Enum):
    """Enumeration of observable session states."""
    INACTIVE = "inactive"
    ACTIVE = "active"
    ANSWER_REVEALED = "answer_revealed"
    PAUSED = "paused"
    COMPLETED = "completed"


class QuizControllerError(Exception):
    """Base exception for quiz controller errors."""
    pass


class InvalidTransition(QuizControllerError):
    """Raised when an action is not permitted in the current session state."""

    def __init__(self, action: str, state: SessionState, detail: Optional[str] = None):
        self.action = action
        self.state = state
        message = f"Cannot {action} while session is {state.value}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class SessionPausedError(InvalidTransition):
    """Raised when an answer, skip or advance is attempted on a paused session."""

    def __init__(self, action: str):
        super().__init__(action, SessionState.PAUSED)


class SessionConflictError(QuizControllerError):
    """Raised when a session is started while another one is live."""
    pass


class NoLiveSessionError(QuizControllerError):
    """Raised when an operation needs a live session and there is none."""
    pass


class ScheduledQuizCompletedError(QuizControllerError):
    """Raised when starting a scheduled quiz that was already completed."""
    pass


def longest_streak(questions: List[Question], answers: List[Optional[str]]) -> int:
    """Longest run of consecutive correct answers. Skips break a run."""
    best = current = 0
    for index, question in enumerate(questions):
        answer = answers[index] if index < len(answers) else None
        if question.is_correct_answer(answer):
            current += 1
            best = max(best, current)
        else:
            current = 0
    return best


class QuizController:
    """
    Session state machine for one quiz surface.

    At most one session is live at a time. Saved sessions are inert
    snapshots in the persistent store and any number of them may coexist.
    """

    def __init__(
        self,
        store: PersistentStore,
        data_manager: Optional[DataManager] = None,
        config_manager: Optional[ConfigManager] = None,
        quiz_engine: Optional[QuizEngine] = None,
        clock: Callable[[], float] = time.time,
        session_key: str = "default",
        auto_tick: bool = True
    ):
        """
        Initialize the quiz controller.

        Args:
            store: Persistent store for snapshots, stars, statistics and reports
            data_manager: Question set provider; needed to start quizzes by folder
                and to resolve starred questions
            config_manager: Settings source; defaults are used when omitted
            quiz_engine: Question selection and timers, may be shared between controllers
            clock: Wall-clock source in seconds
            session_key: Key of this controller's timer in the quiz engine
            auto_tick: Start a repeating timer for live sessions (needs a running event loop)
        """
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.data_manager = data_manager
        self.config_manager = config_manager or ConfigManager()
        self.quiz_engine = quiz_engine or QuizEngine()
        self.clock = clock
        self.session_key = session_key
        self.auto_tick = auto_tick

        self.snapshots = SnapshotRepository(store, clock)
        self.stars = StarRegistry(store, question_source=self._folder_questions)
        self.statistics = StatisticsAggregator(store)
        self.reports = ReportLog(store)
        self.scheduled = ScheduledQuizRepository(store, self.snapshots, clock)

        self._session: Optional[QuizSession] = None
        self._last_result: Optional[SessionResult] = None
        self._pending: List[Tuple[SessionResult, Optional[str]]] = []
        self._listeners: List[Callable[[SessionResult], Any]] = []
        self._errors: List[str] = []

    # Session access

    @property
    def session(self) -> Optional[QuizSession]:
        return self._session

    @property
    def last_result(self) -> Optional[SessionResult]:
        return self._last_result

    @property
    def pending_result(self) -> Optional[SessionResult]:
        """Oldest completed result whose statistics have not been stored yet."""
        return self._pending[0][0] if self._pending else None

    @property
    def pending_results(self) -> List[SessionResult]:
        return [result for result, _ in self._pending]

    def has_live_session(self) -> bool:
        return self._session is not None and not self._session.completed

    def get_state(self) -> SessionState:
        """
        Current state of the session.

        Paused is reported over Active/AnswerRevealed since it blocks both.
        """
        session = self._session
        if session is None:
            return SessionState.INACTIVE
        if session.completed:
            return SessionState.COMPLETED
        if session.paused:
            return SessionState.PAUSED
        if session.answer_revealed:
            return SessionState.ANSWER_REVEALED
        return SessionState.ACTIVE

    def _require_live(self, action: str) -> QuizSession:
        session = self._session
        if session is None:
            raise NoLiveSessionError(f"Cannot {action}: no quiz session is running")
        if session.completed:
            raise InvalidTransition(action, SessionState.COMPLETED)
        return session

    def _require_unpaused(self, action: str) -> QuizSession:
        session = self._require_live(action)
        if session.paused:
            raise SessionPausedError(action)
        return session

    # Timer

    def _start_timer(self) -> None:
        if not self.auto_tick:
            return
        interval = self.config_manager.get_tick_interval()
        self.quiz_engine.start_session_timer(self.session_key, self.tick, interval)

    def _stop_timer(self) -> None:
        self.quiz_engine.cancel_timer(self.session_key)

    def tick(self) -> bool:
        """
        Advance the elapsed timer by one unit.

        Paused sessions ignore ticks. Ticks run on the same event loop as
        every transition, so a tick never observes a half-applied transition.

        Returns:
            False once there is no live session, True otherwise
        """
        session = self._session
        if session is None or session.completed:
            return False
        if not session.paused:
            session.elapsed_timer += 1
        return True

    # Transitions

    def start(
        self,
        questions: List[Question],
        folder: str,
        quiz_id: Optional[str] = None,
        file_name: Optional[str] = None
    ) -> QuizSession:
        """
        Start a new live session.

        A quiz id that already has a saved snapshot resumes that snapshot
        instead of starting over.

        Args:
            questions: Ordered, validated questions for the session
            folder: Folder the questions belong to
            quiz_id: Id of a scheduled quiz, if any
            file_name: Source file when all questions come from one file

        Returns:
            The live session

        Raises:
            SessionConflictError: If a session is already live
            ValueError: If no questions are given
        """
        if self.has_live_session():
            raise SessionConflictError("A quiz session is already running; stop or save it first")

        if quiz_id is not None and self.snapshots.exists(quiz_id):
            self.logger.info(f"Quiz {quiz_id} has a saved snapshot, resuming it")
            return self.resume_from_snapshot(quiz_id)

        if not questions:
            raise ValueError("Cannot start a quiz without questions")

        now = self.clock()
        session = QuizSession(
            questions=list(questions),
            folder=folder,
            start_timestamp=now,
            question_start_timestamp=now,
            quiz_id=quiz_id,
            source_file_name=file_name,
        )
        self._session = session
        self._last_result = None
        self._start_timer()

        self.logger.info(
            f"Started quiz in folder '{folder}' with {session.total_questions} questions",
            extra={
                'event_type': 'session_started',
                'session_key': self.session_key,
                'folder': folder,
                'quiz_id': quiz_id,
                'question_count': session.total_questions,
                'timestamp': time.time()
            }
        )
        return session

    def start_from_folder(
        self,
        folder: str,
        file_name: Optional[str] = None,
        settings: Optional[QuizSettings] = None
    ) -> QuizSession:
        """
        Start a session from the question set provider.

        Args:
            folder: Folder to take questions from
            file_name: Single file inside the folder, or None for the whole folder
            settings: Selection settings; the configured settings when omitted

        Raises:
            QuizControllerError: If there is no question set provider
            ValueError: If the folder or file has no questions
        """
        if self.data_manager is None:
            raise QuizControllerError("No question set provider configured")

        questions = self.data_manager.get_questions(folder, file_name)
        if not questions:
            target = f"'{folder}/{file_name}'" if file_name else f"folder '{folder}'"
            raise ValueError(f"Quiz {target} not found or has no questions")

        if self.has_live_session():
            raise SessionConflictError("A quiz session is already running; stop or save it first")

        settings = settings or self.config_manager.get_quiz_settings()
        selected = self.quiz_engine.select_questions(questions, settings)
        if not selected:
            raise ValueError("No questions available after applying settings")
        return self.start(selected, folder, file_name=file_name)

    def start_scheduled_quiz(
        self,
        folders: Optional[List[str]] = None,
        quiz_id: Optional[str] = None
    ) -> QuizSession:
        """
        Start a quiz made of starred questions.

        A quiz id with saved progress resumes it, and a quiz id with a stored
        pool replays that pool. Otherwise a new pool is generated, stored
        under quiz_id (or a freshly minted id) and started.

        Raises:
            SessionConflictError: If a session is already live
            ScheduledQuizCompletedError: If quiz_id was already completed
            ValueError: If no questions are starred
        """
        if self.has_live_session():
            raise SessionConflictError("A quiz session is already running; stop or save it first")

        if quiz_id is not None:
            if self.snapshots.is_completed(quiz_id):
                raise ScheduledQuizCompletedError(f"Scheduled quiz {quiz_id} was already completed")
            if self.snapshots.exists(quiz_id):
                return self.resume_from_snapshot(quiz_id)
            if self.scheduled.exists(quiz_id):
                questions = self.scheduled.load_pool(quiz_id)
                return self.start(questions, questions[0].folder, quiz_id=quiz_id)

        quiz_id = self.create_scheduled_quiz(folders, quiz_id)
        questions = self.scheduled.load_pool(quiz_id)
        return self.start(questions, questions[0].folder, quiz_id=quiz_id)

    def create_scheduled_quiz(self, folders: Optional[List[str]] = None, quiz_id: Optional[str] = None) -> str:
        """
        Generate and store a scheduled quiz without starting it.

        Up to SCHEDULED_QUIZ_SIZE starred questions from the given folders
        (all folders by default) are shuffled into the pool.

        Returns:
            Id of the stored quiz

        Raises:
            ValueError: If no questions are starred
            StoreUnavailable: If the pool cannot be stored
        """
        if folders is None:
            folders = self.data_manager.get_folders() if self.data_manager else []

        pool = []
        for folder in folders:
            pool.extend(self.stars.get_starred_questions(folder))
        if not pool:
            raise ValueError("Star some questions first to create a scheduled quiz")

        random.shuffle(pool)
        return self.scheduled.save_pool(pool[:SCHEDULED_QUIZ_SIZE], quiz_id)

    def _record(self, session: QuizSession, answer: Optional[str], time_spent: float) -> None:
        index = session.current_index
        for values in (session.answers, session.per_question_times):
            while len(values) <= index:
                values.append(None)
        session.answers[index] = answer
        session.per_question_times[index] = time_spent

    def select_answer(self, choice_text: str) -> bool:
        """
        Answer the current question and reveal the correct choice.

        Args:
            choice_text: Text of the chosen choice

        Returns:
            True if the answer is correct

        Raises:
            NoLiveSessionError: If there is no live session
            SessionPausedError: If the session is paused
            InvalidTransition: If the answer is already revealed or the session completed
            ValueError: If choice_text is not one of the question's choices
        """
        session = self._require_unpaused("select an answer")
        if session.answer_revealed:
            raise InvalidTransition("select an answer", SessionState.ANSWER_REVEALED,
                                    "the question was already answered")

        question = session.current_question
        if not question.has_choice(choice_text):
            raise ValueError(f"'{choice_text}' is not a choice of the current question")

        self._record(session, choice_text, self.clock() - session.question_start_timestamp)
        correct = question.is_correct_answer(choice_text)
        if correct:
            session.score += 1
        session.selected_option = choice_text
        session.answer_revealed = True

        self.logger.debug(
            f"Answered question {session.current_index + 1}/{session.total_questions}: "
            f"{'correct' if correct else 'wrong'}, score {session.score}"
        )
        return correct

    def next_question(self) -> Optional[SessionResult]:
        """
        Move past a revealed answer.

        Returns:
            The SessionResult when this completed the session, else None

        Raises:
            InvalidTransition: If the answer is not revealed yet
            StoreUnavailable, PartialAggregateUpdate: If completion could not store statistics
        """
        session = self._require_unpaused("go to the next question")
        if not session.answer_revealed:
            raise InvalidTransition("go to the next question", SessionState.ACTIVE,
                                    "answer or skip the current question first")
        return self._advance(session)

    def skip(self) -> Optional[SessionResult]:
        """
        Skip the current question, recording no answer.

        Returns:
            The SessionResult when this completed the session, else None
        """
        session = self._require_unpaused("skip")
        if session.answer_revealed:
            raise InvalidTransition("skip", SessionState.ANSWER_REVEALED,
                                    "the question was already answered")

        if self.config_manager.get_skip_timing() == SKIP_TIMING_CUMULATIVE:
            time_spent = session.elapsed_timer
        else:
            time_spent = self.clock() - session.question_start_timestamp
        self._record(session, None, time_spent)
        session.selected_option = None
        return self._advance(session)

    def _advance(self, session: QuizSession) -> Optional[SessionResult]:
        if session.is_last_question:
            return self._complete(session)
        session.current_index += 1
        session.answer_revealed = False
        session.selected_option = None
        session.question_start_timestamp = self.clock()
        return None

    def pause(self) -> None:
        session = self._require_live("pause")
        if session.paused:
            raise InvalidTransition("pause", SessionState.PAUSED, "the quiz is already paused")
        session.paused = True
        self.quiz_engine.pause_timer(self.session_key)
        self.logger.info(f"Paused quiz at question {session.current_index + 1}")

    def resume(self) -> None:
        session = self._require_live("resume")
        if not session.paused:
            raise InvalidTransition("resume", self.get_state(), "the quiz is not paused")
        session.paused = False
        self.quiz_engine.resume_timer(self.session_key)
        self.logger.info(f"Resumed quiz at question {session.current_index + 1}")

    def toggle_pause(self) -> bool:
        """Pause or resume. Returns True if the session is paused afterwards."""
        session = self._require_live("pause or resume")
        if session.paused:
            self.resume()
        else:
            self.pause()
        return session.paused

    def save_for_later(self) -> str:
        """
        Write a snapshot of the live session and close it.

        If the write fails the session stays live so the save can be retried.

        Returns:
            Id of the saved snapshot

        Raises:
            StoreUnavailable: If the snapshot cannot be written
        """
        session = self._require_live("save the quiz")
        session_id = self.snapshots.save(session)
        self._stop_timer()
        self._session = None
        self.logger.info(
            f"Quiz saved for later as {session_id}",
            extra={
                'event_type': 'session_saved',
                'session_key': self.session_key,
                'session_id': session_id,
                'timestamp': time.time()
            }
        )
        return session_id

    def resume_from_snapshot(self, session_id: str) -> QuizSession:
        """
        Make a saved session live again.

        Every field is restored as saved except paused, which is cleared.

        Raises:
            SessionConflictError: If another session is live
            SnapshotNotFound: If nothing is saved under session_id
            CorruptSnapshot: If the saved payload is malformed
        """
        if self.has_live_session():
            raise SessionConflictError("A quiz session is already running; stop or save it first")

        session = self.snapshots.load(session_id)
        session.paused = False
        self._session = session
        self._last_result = None
        self._start_timer()

        self.logger.info(
            f"Resumed saved quiz {session_id} at question {session.current_index + 1}/{session.total_questions}",
            extra={
                'event_type': 'session_resumed',
                'session_key': self.session_key,
                'session_id': session_id,
                'timestamp': time.time()
            }
        )
        return session

    def close(self) -> bool:
        """
        Tear down the session without saving.

        Returns:
            True if there was a session to close
        """
        self._stop_timer()
        if self._session is None:
            return False
        if not self._session.completed:
            self.logger.info(f"Closed quiz in folder '{self._session.folder}' without saving")
        self._session = None
        return True

    # Completion

    def _build_result(self, session: QuizSession) -> SessionResult:
        total = session.total_questions
        correct = session.count_correct()
        total_time = max(0, int(self.clock() - session.start_timestamp))
        return SessionResult(
            result_id=uuid.uuid4().hex,
            folder=session.folder,
            file_name=session.source_file_name,
            quiz_id=session.quiz_id,
            total_questions=total,
            correct_answers=correct,
            incorrect_answers=total - correct,
            accuracy=round_half_up(correct / total * 100, 2),
            total_time=total_time,
            average_time_per_question=round_half_up(total_time / total),
            longest_streak=longest_streak(session.questions, session.answers),
            timestamp=self.clock(),
            answers=list(session.answers),
            question_times=list(session.per_question_times),
        )

    def _complete(self, session: QuizSession) -> SessionResult:
        if session.score != session.count_correct():
            raise QuizControllerError(
                f"Score {session.score} does not match {session.count_correct()} correct answers"
            )

        result = self._build_result(session)
        session.completed = True
        self._stop_timer()
        self._last_result = result
        self._pending.append((result, session.id))

        self.logger.info(
            f"Quiz completed in folder '{session.folder}': {result.correct_answers}/{result.total_questions} "
            f"({result.accuracy}%) in {result.total_time}s",
            extra={
                'event_type': 'session_completed',
                'session_key': self.session_key,
                'folder': session.folder,
                'result_id': result.result_id,
                'timestamp': time.time()
            }
        )

        self._notify_listeners(result)
        self._store_pending()
        return result

    def _store_pending(self) -> None:
        """
        Apply aggregates and completion bookkeeping of queued results, oldest first.

        A result leaves the queue only once all of its writes succeeded; store
        errors propagate and leave the rest queued.
        """
        while self._pending:
            result, snapshot_id = self._pending[0]
            total_starred = self.stars.starred_count(result.folder)
            self.statistics.apply_session_result(result, result.folder, result.file_name, total_starred)

            if result.quiz_id:
                self.snapshots.mark_completed(result.quiz_id)
            if snapshot_id:
                self.snapshots.delete(snapshot_id)

            self._pending.pop(0)

    def retry_statistics(self) -> bool:
        """
        Store the statistics of completions whose first attempt failed.

        Never called automatically; the user asks for it once storage is back.

        Returns:
            True if pending results were stored, False if nothing was pending

        Raises:
            StoreUnavailable, PartialAggregateUpdate: If storage is still failing
        """
        if not self._pending:
            return False
        count = len(self._pending)
        self._store_pending()
        self.logger.info(f"Stored {count} pending result(s) for {self.session_key}")
        return True

    def on_session_complete(self, listener: Callable[[SessionResult], Any]) -> Callable[[SessionResult], Any]:
        """Register a listener for completed sessions. Usable as a decorator."""
        self._listeners.append(listener)
        return listener

    def _notify_listeners(self, result: SessionResult) -> None:
        for listener in self._listeners:
            try:
                listener(result)
            except Exception:
                self.logger.exception(f"Session complete listener {listener!r} failed")

    # Stars and reports

    def _folder_questions(self, folder: str) -> List[Question]:
        if self.data_manager is None:
            raise QuizControllerError("No question set provider configured")
        return self.data_manager.get_questions(folder) or []

    def _session_question(self, position: Optional[int], action: str) -> Question:
        session = self._session
        if session is None:
            raise NoLiveSessionError(f"Cannot {action}: no quiz session is running")
        index = session.current_index if position is None else position
        if index < 0 or index >= session.total_questions:
            raise IndexError(f"Question {index + 1} is outside the quiz")
        return session.questions[index]

    def toggle_star_current(self, position: Optional[int] = None) -> bool:
        """
        Star or unstar a question of the session.

        Works on the current question by default; completed sessions can
        star any question by its 0-based position during review.

        Returns:
            True if the question is starred afterwards
        """
        question = self._session_question(position, "star a question")
        folder_questions = self._folder_questions(question.folder)
        for index, candidate in enumerate(folder_questions):
            if candidate.id == question.id:
                return self.stars.toggle_star(question.folder, index)
        raise QuizControllerError(f"Question {question.id} is not part of folder '{question.folder}'")

    def report_current_question(self, reason: str, position: Optional[int] = None):
        """Record a report against a question of the session."""
        question = self._session_question(position, "report a question")
        return self.reports.report_question(question, reason)

    # Progress

    def get_progress(self) -> Optional[Dict[str, Any]]:
        """
        Progress information about the session.

        Returns:
            Dictionary with progress details or None if there is no session
        """
        session = self._session
        if session is None:
            return None
        answered = session.answered_count()
        return {
            'state': self.get_state().value,
            'session_id': session.id,
            'quiz_id': session.quiz_id,
            'folder': session.folder,
            'file_name': session.source_file_name,
            'current_question': session.current_index + 1,
            'total_questions': session.total_questions,
            'answered': answered,
            'score': session.score,
            'accuracy': round_half_up(session.score / answered * 100, 2) if answered else 0.0,
            'elapsed_timer': session.elapsed_timer,
            'paused': session.paused,
            'answer_revealed': session.answer_revealed,
            'selected_option': session.selected_option,
            'completed': session.completed,
        }

    # Result-dict facade

    def _handle_session_error(self, error: Exception, operation: str) -> Dict[str, Any]:
        """
        Turn an exception into a failure result and track it.
        """
        if isinstance(error, (QuizControllerError, ValueError)):
            self.logger.warning(f"{operation} rejected for {self.session_key}: {error}")
        else:
            self.logger.error(f"Error in {operation} for {self.session_key}: {error}", exc_info=True)

        self._errors.append(f"{operation}: {error}")
        self._errors = self._errors[-10:]

        return {
            'success': False,
            'error': str(error),
            'error_type': type(error).__name__,
            'operation': operation,
            'user_message': self._get_user_friendly_error_message(error, operation)
        }

    def _get_user_friendly_error_message(self, error: Exception, operation: str) -> str:
        if isinstance(error, SessionConflictError):
            return "❌ A quiz is already running here. Save it with `/save` or stop it with `/stop` first."
        elif isinstance(error, NoLiveSessionError):
            return "❌ No quiz is running here. Start one with `/start`."
        elif isinstance(error, SessionPausedError):
            return "⏸️ The quiz is paused. Use `/resume` to continue."
        elif isinstance(error, InvalidTransition):
            if error.state == SessionState.ANSWER_REVEALED:
                return "❌ This question was already answered. Use `/next` to continue."
            if error.state == SessionState.COMPLETED:
                return "❌ This quiz is already finished."
            if error.action == "go to the next question":
                return "❌ Answer or skip the current question first."
            return f"❌ You can't {error.action} right now."
        elif isinstance(error, ScheduledQuizCompletedError):
            return "✅ You already completed this scheduled quiz."
        elif isinstance(error, SnapshotNotFound):
            return f"❌ No saved quiz with id `{error.session_id}`. Use `/saved` to list saved quizzes."
        elif isinstance(error, CorruptSnapshot):
            return "❌ That saved quiz is damaged and cannot be resumed."
        elif isinstance(error, ScheduledQuizNotFound):
            return f"❌ No scheduled quiz with id `{error.quiz_id}`. Use `/scheduled` to list them."
        elif isinstance(error, CorruptScheduledQuiz):
            return "❌ That scheduled quiz is damaged. Delete it and create a new one."
        elif isinstance(error, PartialAggregateUpdate):
            return "⚠️ Your result was only partly saved to your statistics."
        elif isinstance(error, StoreUnavailable):
            return "❌ Progress storage is unavailable right now. Your quiz is kept; please try again."
        elif isinstance(error, ValueError):
            return f"❌ {error}"
        else:
            return f"❌ An unexpected error occurred during {operation}. Please try again."

    def _completion_response(self, result: Optional[SessionResult], message: str) -> Dict[str, Any]:
        response = {
            'success': True,
            'message': message,
            'completed': result is not None,
            'session_info': self.get_progress(),
        }
        if result is not None:
            response['result'] = result
            response['statistics_saved'] = True
        return response

    def _statistics_failure_response(self, error: Exception, operation: str) -> Dict[str, Any]:
        """A completion happened but its statistics were not stored."""
        self._handle_session_error(error, operation)
        return {
            'success': True,
            'message': "Quiz completed",
            'completed': True,
            'result': self._last_result,
            'statistics_saved': False,
            'error': str(error),
            'error_type': type(error).__name__,
            'session_info': self.get_progress(),
            'user_message': self._get_user_friendly_error_message(error, operation),
        }

    def start_quiz(self, folder: str, file_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Start a quiz from a folder or a file inside it.

        Returns:
            Dictionary with operation results and error information
        """
        try:
            self.start_from_folder(folder, file_name)
            self._errors.clear()
            target = f"{folder}/{file_name}" if file_name else folder
            return {
                'success': True,
                'message': f"Quiz '{target}' started",
                'session_info': self.get_progress()
            }
        except Exception as e:
            return self._handle_session_error(e, "start_quiz")

    def start_scheduled(self, quiz_id: Optional[str] = None, folders: Optional[List[str]] = None) -> Dict[str, Any]:
        try:
            self.start_scheduled_quiz(folders, quiz_id)
            return {
                'success': True,
                'message': f"Scheduled quiz {self._session.quiz_id} started",
                'session_info': self.get_progress()
            }
        except Exception as e:
            return self._handle_session_error(e, "start_scheduled")

    def create_scheduled(self, folders: Optional[List[str]] = None) -> Dict[str, Any]:
        try:
            quiz_id = self.create_scheduled_quiz(folders)
            return {
                'success': True,
                'message': f"Scheduled quiz {quiz_id} created",
                'quiz_id': quiz_id,
                'question_count': len(self.scheduled.load_pool(quiz_id))
            }
        except Exception as e:
            return self._handle_session_error(e, "create_scheduled")

    def answer_quiz(self, choice_text: str) -> Dict[str, Any]:
        try:
            question = self._require_live("select an answer").current_question
            correct = self.select_answer(choice_text)
            return {
                'success': True,
                'correct': correct,
                'correct_choice': question.correct_choice,
                'explanation': question.explanation,
                'session_info': self.get_progress()
            }
        except Exception as e:
            return self._handle_session_error(e, "answer_quiz")

    def next_quiz_question(self) -> Dict[str, Any]:
        try:
            result = self.next_question()
            return self._completion_response(result, "Quiz completed" if result else "Moved to next question")
        except (StoreUnavailable, PartialAggregateUpdate) as e:
            if self._session is not None and self._session.completed:
                return self._statistics_failure_response(e, "next_quiz_question")
            return self._handle_session_error(e, "next_quiz_question")
        except Exception as e:
            return self._handle_session_error(e, "next_quiz_question")

    def skip_quiz_question(self) -> Dict[str, Any]:
        try:
            result = self.skip()
            return self._completion_response(result, "Quiz completed" if result else "Question skipped")
        except (StoreUnavailable, PartialAggregateUpdate) as e:
            if self._session is not None and self._session.completed:
                return self._statistics_failure_response(e, "skip_quiz_question")
            return self._handle_session_error(e, "skip_quiz_question")
        except Exception as e:
            return self._handle_session_error(e, "skip_quiz_question")

    def pause_quiz(self) -> Dict[str, Any]:
        try:
            session = self._require_live("pause")
            if session.paused:
                return {
                    'success': True,
                    'message': "Quiz is already paused",
                    'user_message': "ℹ️ Quiz is already paused",
                    'session_info': self.get_progress()
                }
            self.pause()
            return {'success': True, 'message': "Quiz paused", 'session_info': self.get_progress()}
        except Exception as e:
            return self._handle_session_error(e, "pause_quiz")

    def resume_quiz(self) -> Dict[str, Any]:
        try:
            session = self._require_live("resume")
            if not session.paused:
                return {
                    'success': True,
                    'message': "Quiz is not paused",
                    'user_message': "ℹ️ Quiz is not paused",
                    'session_info': self.get_progress()
                }
            self.resume()
            return {'success': True, 'message': "Quiz resumed", 'session_info': self.get_progress()}
        except Exception as e:
            return self._handle_session_error(e, "resume_quiz")

    def save_quiz(self) -> Dict[str, Any]:
        try:
            session_info = self.get_progress()
            session_id = self.save_for_later()
            return {
                'success': True,
                'message': f"Quiz saved as {session_id}",
                'session_id': session_id,
                'session_info': session_info
            }
        except Exception as e:
            return self._handle_session_error(e, "save_quiz")

    def resume_saved_quiz(self, session_id: str) -> Dict[str, Any]:
        try:
            self.resume_from_snapshot(session_id)
            return {
                'success': True,
                'message': f"Saved quiz {session_id} resumed",
                'session_info': self.get_progress()
            }
        except Exception as e:
            return self._handle_session_error(e, "resume_saved_quiz")

    def stop_quiz(self) -> Dict[str, Any]:
        """
        Stop the running quiz without saving.
        """
        session_info = self.get_progress()
        if not self.has_live_session():
            self.close()
            return {
                'success': False,
                'error': "No active quiz to stop",
                'error_type': NoLiveSessionError.__name__,
                'user_message': "ℹ️ No active quiz found here"
            }
        self.close()
        self._errors.clear()
        return {'success': True, 'message': "Quiz stopped", 'session_info': session_info}

    def delete_saved_quiz(self, session_id: str) -> Dict[str, Any]:
        """
        Delete a saved quiz snapshot.

        The live session is not affected, even when it was resumed from it.
        """
        try:
            if not self.snapshots.delete(session_id):
                raise SnapshotNotFound(session_id)
            return {'success': True, 'message': f"Saved quiz {session_id} deleted"}
        except Exception as e:
            return self._handle_session_error(e, "delete_saved_quiz")

    def delete_scheduled_quiz(self, quiz_id: str) -> Dict[str, Any]:
        try:
            if not self.scheduled.delete(quiz_id):
                raise ScheduledQuizNotFound(quiz_id)
            return {'success': True, 'message': f"Scheduled quiz {quiz_id} deleted"}
        except Exception as e:
            return self._handle_session_error(e, "delete_scheduled_quiz")

    def retry_quiz_statistics(self) -> Dict[str, Any]:
        """
        Store statistics left pending by a failed completion.

        Returns:
            Dictionary with operation results and error information
        """
        try:
            count = len(self._pending)
            if not self.retry_statistics():
                return {
                    'success': False,
                    'error': "No pending statistics",
                    'error_type': 'NothingPending',
                    'user_message': "ℹ️ All quiz results are already saved"
                }
            return {'success': True, 'message': f"Stored {count} pending result(s)", 'stored': count}
        except (StoreUnavailable, PartialAggregateUpdate) as e:
            response = self._handle_session_error(e, "retry_quiz_statistics")
            response['pending'] = len(self._pending)
            return response

    def get_error_summary(self) -> Dict[str, Any]:
        return {
            'session_key': self.session_key,
            'errors': list(self._errors),
            'error_count': len(self._errors),
            'has_errors': bool(self._errors)
        }
