"""
Quiz engine core logic.
Handles question selection, ordering, and the repeating session timer.
"""
import random
import asyncio
import inspect
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from .models import Question, QuizSettings

# Set up logger for timer operations
logger = logging.getLogger(__name__)


class TimerConflictError(RuntimeError):
    """Raised when a second timer is requested for a session that already has one."""

    def __init__(self, session_key: str):
        self.session_key = session_key
        super().__init__(f"A timer is already running for session {session_key}")


class TimerLifecycleLogger:
    """Structured logging for timer lifecycle events."""

    @staticmethod
    def log_timer_created(session_key: str, interval: float) -> None:
        logger.info(
            f"Timer lifecycle: CREATED - Session {session_key}, Interval {interval}s",
            extra={
                'event_type': 'timer_created',
                'session_key': session_key,
                'interval': interval,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_tick(session_key: str, tick_count: int) -> None:
        """Log tick events (throttled to avoid spam)."""
        if tick_count % 60 == 0:
            logger.debug(
                f"Timer lifecycle: TICK - Session {session_key}, {tick_count} ticks",
                extra={
                    'event_type': 'timer_tick',
                    'session_key': session_key,
                    'tick_count': tick_count,
                    'timestamp': time.time()
                }
            )

    @staticmethod
    def log_timer_completion(session_key: str, completion_type: str, tick_count: int) -> None:
        """Log the end of a timer loop (session finished or cancellation)."""
        logger.info(
            f"Timer lifecycle: COMPLETED - Session {session_key}, Type {completion_type}, Ticks {tick_count}",
            extra={
                'event_type': 'timer_completed',
                'session_key': session_key,
                'completion_type': completion_type,
                'tick_count': tick_count,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_state_transition(session_key: str, from_state: str, to_state: str, reason: str = None) -> None:
        logger.info(
            f"Timer lifecycle: STATE_TRANSITION - Session {session_key}, {from_state} -> {to_state}" +
            (f" ({reason})" if reason else ""),
            extra={
                'event_type': 'timer_state_transition',
                'session_key': session_key,
                'from_state': from_state,
                'to_state': to_state,
                'reason': reason,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_timer_error(session_key: str, error_type: str, error_message: str, operation: str) -> None:
        logger.error(
            f"Timer lifecycle: ERROR - Session {session_key}, Operation {operation}, Type {error_type}: {error_message}",
            extra={
                'event_type': 'timer_error',
                'session_key': session_key,
                'error_type': error_type,
                'error_message': error_message,
                'operation': operation,
                'timestamp': time.time()
            }
        )

    @staticmethod
    def log_race_condition_detected(session_key: str, details: str) -> None:
        logger.warning(
            f"Timer lifecycle: RACE_CONDITION - Session {session_key}: {details}",
            extra={
                'event_type': 'timer_race_condition',
                'session_key': session_key,
                'details': details,
                'timestamp': time.time()
            }
        )


class SessionTimer:
    """Repeating tick for one live session. Pausable and cancellable."""

    def __init__(self, session_key: str):
        self._task: Optional[asyncio.Task] = None
        self._is_paused = False
        self._is_cancelled = False
        self._session_key = session_key
        self._tick_count = 0

    async def run(self, on_tick: Callable[[], Any], interval: float = 1.0) -> None:
        """
        Call on_tick once per interval until cancelled.

        Ticks that fall while the timer is paused are dropped. The loop also
        stops when on_tick returns False (the session is no longer live).

        Args:
            on_tick: Callback, plain or async, invoked on every unpaused tick
            interval: Seconds between ticks
        """
        completion_type = "session_finished"
        try:
            while not self._is_cancelled:
                await asyncio.sleep(interval)
                if self._is_cancelled:
                    completion_type = "cancelled"
                    break
                if self._is_paused:
                    continue

                self._tick_count += 1
                TimerLifecycleLogger.log_timer_tick(self._session_key, self._tick_count)

                outcome = on_tick()
                if inspect.isawaitable(outcome):
                    outcome = await outcome
                if outcome is False:
                    break
            else:
                completion_type = "cancelled"

            TimerLifecycleLogger.log_timer_completion(self._session_key, completion_type, self._tick_count)

        except asyncio.CancelledError:
            self._is_cancelled = True
            TimerLifecycleLogger.log_timer_completion(self._session_key, "asyncio_cancelled", self._tick_count)
            raise
        except Exception as e:
            TimerLifecycleLogger.log_timer_error(
                self._session_key,
                "tick_execution_error",
                str(e),
                "run"
            )
            raise

    def pause(self) -> None:
        if not self._is_paused:
            TimerLifecycleLogger.log_timer_state_transition(
                self._session_key, "running", "paused", "pause requested"
            )
        self._is_paused = True

    def resume(self) -> None:
        if self._is_paused:
            TimerLifecycleLogger.log_timer_state_transition(
                self._session_key, "paused", "running", "resume requested"
            )
        self._is_paused = False

    def cancel(self) -> None:
        """Stop the timer and cancel its task."""
        TimerLifecycleLogger.log_timer_state_transition(
            self._session_key,
            "paused" if self._is_paused else "running",
            "cancelled",
            "cancel requested"
        )
        self._is_cancelled = True
        if self._task and not self._task.done():
            self._task.cancel()

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done() and not self._is_cancelled

    @property
    def is_paused(self) -> bool:
        return self._is_paused

    @property
    def is_cancelled(self) -> bool:
        return self._is_cancelled

    @property
    def tick_count(self) -> int:
        return self._tick_count


class QuizEngine:
    """Selects questions for sessions and owns at most one timer per session key."""

    def __init__(self):
        self._timers: Dict[str, SessionTimer] = {}  # Session key -> Timer mapping

    def select_questions(self, questions: List[Question], settings: QuizSettings) -> List[Question]:
        """
        Select and order questions based on quiz settings.

        Args:
            questions: List of available questions
            settings: Quiz configuration settings

        Returns:
            List of selected and ordered questions

        Raises:
            ValueError: If questions list is empty
        """
        if not questions:
            raise ValueError("Cannot select questions from empty list")

        selected_questions = questions.copy()

        if settings.random_order:
            selected_questions = self.shuffle_questions(selected_questions)

        if settings.question_count is not None:
            selected_questions = self.limit_question_count(selected_questions, settings.question_count)

        return selected_questions

    def shuffle_questions(self, questions: List[Question]) -> List[Question]:
        shuffled = questions.copy()
        random.shuffle(shuffled)
        return shuffled

    def limit_question_count(self, questions: List[Question], count: int) -> List[Question]:
        """
        Limit the number of questions to the specified count.

        Note:
            If count is greater than available questions, returns all questions.
            If count is less than 1, returns empty list.
        """
        if count < 1:
            return []

        return questions[:count]

    def _verify_timer_readiness(self, session_key: str) -> bool:
        """
        Verify no live timer exists for the session key.

        An inactive timer left behind is cleaned up.

        Returns:
            True if ready to start new timer, False if an active timer was found
        """
        timer = self._timers.get(session_key)
        if timer is None:
            return True

        if timer.is_active:
            TimerLifecycleLogger.log_race_condition_detected(
                session_key,
                "Active timer exists during readiness check"
            )
            return False

        TimerLifecycleLogger.log_timer_state_transition(
            session_key,
            "inactive_exists",
            "cleaned",
            "found inactive timer during readiness check"
        )
        del self._timers[session_key]
        return True

    def start_session_timer(
        self,
        session_key: str,
        on_tick: Callable[[], Any],
        interval: float = 1.0
    ) -> SessionTimer:
        """
        Start the repeating tick for a session on the running event loop.

        Args:
            session_key: Identifier of the live session
            on_tick: Called on every unpaused tick
            interval: Seconds between ticks

        Returns:
            The started SessionTimer

        Raises:
            TimerConflictError: If the session already has an active timer
            RuntimeError: If there is no running event loop
        """
        if not self._verify_timer_readiness(session_key):
            TimerLifecycleLogger.log_timer_error(
                session_key,
                "creation_conflict",
                "refusing to start a second timer",
                "start_session_timer"
            )
            raise TimerConflictError(session_key)

        loop = asyncio.get_running_loop()
        timer = SessionTimer(session_key)
        self._timers[session_key] = timer
        timer._task = loop.create_task(timer.run(on_tick, interval))
        timer._task.add_done_callback(lambda task: self._release_timer(session_key, timer))

        TimerLifecycleLogger.log_timer_created(session_key, interval)
        return timer

    def _release_timer(self, session_key: str, timer: SessionTimer) -> None:
        if self._timers.get(session_key) is timer:
            del self._timers[session_key]
            logger.debug(
                f"Timer released for session {session_key}",
                extra={
                    'event_type': 'timer_released',
                    'session_key': session_key,
                    'timestamp': time.time()
                }
            )

    def pause_timer(self, session_key: str) -> bool:
        """
        Pause the timer of a session.

        Returns:
            True if timer was paused, False if no active timer
        """
        timer = self._timers.get(session_key)
        if timer is None:
            logger.debug(f"Cannot pause timer for session {session_key}: no active timer")
            return False
        timer.pause()
        return True

    def resume_timer(self, session_key: str) -> bool:
        """
        Resume the timer of a session.

        Returns:
            True if timer was resumed, False if no active timer
        """
        timer = self._timers.get(session_key)
        if timer is None:
            logger.debug(f"Cannot resume timer for session {session_key}: no active timer")
            return False
        timer.resume()
        return True

    def cancel_timer(self, session_key: str) -> bool:
        """
        Cancel and forget the timer of a session.

        Returns:
            True if a timer was cancelled, False if there was none
        """
        timer = self._timers.pop(session_key, None)
        if timer is None:
            logger.debug(f"No active timer found for session {session_key}")
            return False
        timer.cancel()
        return True

    async def shutdown(self) -> None:
        """Cancel every timer and wait for their tasks to finish."""
        timers = list(self._timers.values())
        self._timers.clear()
        tasks = []
        for timer in timers:
            timer.cancel()
            if timer._task is not None:
                tasks.append(timer._task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Quiz engine shut down, {len(timers)} timers cancelled")

    def has_timer(self, session_key: str) -> bool:
        return session_key in self._timers

    def get_timer_status(self, session_key: str) -> Optional[dict]:
        """
        Get the status of a session's timer.

        Returns:
            Dictionary with timer status or None if no timer
        """
        timer = self._timers.get(session_key)
        if timer is None:
            return None
        return {
            'tick_count': timer.tick_count,
            'is_paused': timer.is_paused,
            'is_cancelled': timer.is_cancelled,
            'is_active': timer.is_active
        }
