"""
Statistics aggregation for completed quiz sessions.

Folder-level and file-level aggregates are running statistics updated with an
incremental mean. Each scope also keeps the history of results applied to
it, so an aggregate can always be rebuilt by folding the same update step
over the history.
"""
import logging
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional

from .models import AggregateStats, SessionResult
from .storage import (
    PersistentStore,
    StoreUnavailable,
    file_history_key,
    file_stats_key,
    folder_history_key,
    folder_stats_key,
)


logger = logging.getLogger(__name__)

FOLDER_SCOPE = "folder"
FILE_SCOPE = "file"

_SCOPE_KEYS = {
    FOLDER_SCOPE: {'count_key': 'quizzesCompleted', 'date_key': 'lastQuizDate'},
    FILE_SCOPE: {'count_key': 'attempts', 'date_key': 'lastAttemptDate'},
}


def round_half_up(value: float, digits: int = 0):
    """Round like JavaScript's Math.round (halves go up), not banker's rounding."""
    quantum = Decimal(1).scaleb(-digits)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    if digits == 0:
        return int(rounded)
    return float(rounded)


class PartialAggregateUpdate(Exception):
    """
    Raised when the folder aggregate was updated but the file aggregate was not.

    Statistics for the two scopes may diverge until the result is re-applied
    or the file aggregate is recomputed from history.
    """

    def __init__(self, result: SessionResult, folder: str, file_name: str, cause: Exception):
        self.result = result
        self.folder = folder
        self.file_name = file_name
        self.cause = cause
        super().__init__(
            f"Folder statistics for '{folder}' were updated but file statistics for "
            f"'{file_name}' were not: {cause}"
        )


def apply_result(
    stats: AggregateStats,
    result: SessionResult,
    total_starred: Optional[int] = None
) -> AggregateStats:
    """
    One incremental update step.

    Args:
        stats: Aggregate before the session
        result: Completed session result
        total_starred: Size of the folder's starred set at completion time

    Returns:
        New aggregate including the session
    """
    count = stats.quizzes_completed
    best_time = result.total_time if stats.best_time is None else min(stats.best_time, result.total_time)
    return AggregateStats(
        total_questions=stats.total_questions + result.total_questions,
        correct_answers=stats.correct_answers + result.correct_answers,
        quizzes_completed=count + 1,
        average_time=round_half_up((stats.average_time * count + result.total_time) / (count + 1)),
        best_time=best_time,
        total_time=stats.total_time + result.total_time,
        longest_streak=max(stats.longest_streak, result.longest_streak),
        total_starred=stats.total_starred if total_starred is None else total_starred,
        best_score=max(stats.best_score, result.accuracy),
        last_quiz_date=result.timestamp,
    )


def fold_results(entries: Iterable[Dict[str, Any]]) -> AggregateStats:
    """Rebuild an aggregate from scratch by folding apply_result over history entries."""
    stats = AggregateStats()
    for entry in entries:
        stats = apply_result(stats, SessionResult.from_dict(entry), entry.get('totalStarred'))
    return stats


class StatisticsAggregator:
    """Applies completed session results to folder and file aggregates."""

    def __init__(self, store: PersistentStore):
        self.store = store
        self.logger = logging.getLogger(__name__)

    def _keys(self, scope: str, folder: str, file_name: Optional[str]):
        if scope == FOLDER_SCOPE:
            return folder_stats_key(folder), folder_history_key(folder)
        return file_stats_key(folder, file_name), file_history_key(folder, file_name)

    def _read_history(self, history_key: str) -> List[Dict[str, Any]]:
        history = self.store.get(history_key, [])
        if not isinstance(history, list):
            self.logger.warning(f"Discarding malformed history under {history_key}")
            return []
        return history

    def _write_stats(self, scope: str, stats_key: str, stats: AggregateStats) -> None:
        self.store.set(stats_key, stats.to_dict(**_SCOPE_KEYS[scope]))

    def _apply_to_scope(
        self,
        scope: str,
        result: SessionResult,
        folder: str,
        file_name: Optional[str],
        total_starred: Optional[int]
    ) -> AggregateStats:
        stats_key, history_key = self._keys(scope, folder, file_name)
        history = self._read_history(history_key)

        if any(entry.get('resultId') == result.result_id for entry in history):
            # Already recorded; bring the aggregate back in line with history.
            stats = fold_results(history)
            self._write_stats(scope, stats_key, stats)
            self.logger.info(
                f"Result {result.result_id} already applied to {stats_key}, aggregate repaired from history",
                extra={
                    'event_type': 'aggregate_reapplied',
                    'scope': scope,
                    'stats_key': stats_key,
                    'result_id': result.result_id,
                    'timestamp': time.time()
                }
            )
            return stats

        entry = result.to_dict()
        entry['totalStarred'] = total_starred
        self.store.set(history_key, history + [entry])

        previous = AggregateStats.from_dict(self.store.get(stats_key))
        stats = apply_result(previous, result, total_starred)
        self._write_stats(scope, stats_key, stats)

        self.logger.info(
            f"Updated {stats_key}: {stats.quizzes_completed} completed, average {stats.average_time}s",
            extra={
                'event_type': 'aggregate_updated',
                'scope': scope,
                'stats_key': stats_key,
                'result_id': result.result_id,
                'timestamp': time.time()
            }
        )
        return stats

    def apply_folder_result(
        self,
        result: SessionResult,
        folder: str,
        total_starred: Optional[int] = None
    ) -> AggregateStats:
        """Apply a result to the folder aggregate. Idempotent per result id."""
        return self._apply_to_scope(FOLDER_SCOPE, result, folder, None, total_starred)

    def apply_file_result(self, result: SessionResult, folder: str, file_name: str) -> AggregateStats:
        """Apply a result to a file aggregate. Idempotent per result id."""
        return self._apply_to_scope(FILE_SCOPE, result, folder, file_name, None)

    def apply_session_result(
        self,
        result: SessionResult,
        folder: str,
        file_name: Optional[str] = None,
        total_starred: Optional[int] = None
    ) -> Dict[str, Optional[AggregateStats]]:
        """
        Apply a completed session to the folder aggregate, then the file aggregate.

        The two writes are independent. Calling this again with the same
        result finishes a partially applied update without double counting.

        Args:
            result: Completed session result
            folder: Folder the questions came from
            file_name: Source file, if the session came from a single file
            total_starred: Size of the folder's starred set

        Returns:
            Dictionary with the updated 'folder' and 'file' aggregates

        Raises:
            StoreUnavailable: If the folder update failed
            PartialAggregateUpdate: If the folder update succeeded and the file update failed
        """
        folder_stats = self.apply_folder_result(result, folder, total_starred)

        file_stats = None
        if file_name:
            try:
                file_stats = self.apply_file_result(result, folder, file_name)
            except StoreUnavailable as e:
                self.logger.error(
                    f"Partial statistics update for result {result.result_id}: "
                    f"folder '{folder}' updated, file '{file_name}' failed: {e}",
                    extra={
                        'event_type': 'partial_aggregate_update',
                        'folder': folder,
                        'file_name': file_name,
                        'result_id': result.result_id,
                        'timestamp': time.time()
                    }
                )
                raise PartialAggregateUpdate(result, folder, file_name, e) from e

        return {'folder': folder_stats, 'file': file_stats}

    def recompute_aggregates_from_history(
        self,
        folder: str,
        file_name: Optional[str] = None
    ) -> AggregateStats:
        """
        Rebuild and store an aggregate from its recorded history.

        Args:
            folder: Folder to recompute
            file_name: Recompute this file's aggregate instead of the folder's

        Returns:
            The recomputed aggregate
        """
        scope = FILE_SCOPE if file_name else FOLDER_SCOPE
        stats_key, history_key = self._keys(scope, folder, file_name)
        history = self._read_history(history_key)
        stats = fold_results(history)

        if history:
            self._write_stats(scope, stats_key, stats)
        else:
            self.store.delete(stats_key)

        self.logger.info(f"Recomputed {stats_key} from {len(history)} recorded sessions")
        return stats

    def reset_statistics(self, folder: str, file_name: Optional[str] = None) -> bool:
        """
        Delete aggregates and their history.

        Resetting a folder also resets every file aggregate recorded for it.
        Resetting something that has no statistics is a no-op.

        Returns:
            True if anything was deleted
        """
        if file_name:
            stats_key, history_key = self._keys(FILE_SCOPE, folder, file_name)
            deleted = self.store.delete(stats_key)
            deleted = self.store.delete(history_key) or deleted
            if deleted:
                self.logger.info(f"Reset statistics for file '{file_name}' in folder '{folder}'")
            return deleted

        stats_key, history_key = self._keys(FOLDER_SCOPE, folder, None)
        file_names = {
            entry.get('fileName') for entry in self._read_history(history_key)
            if entry.get('fileName')
        }

        deleted = False
        for name in sorted(file_names):
            deleted = self.reset_statistics(folder, name) or deleted
        deleted = self.store.delete(stats_key) or deleted
        deleted = self.store.delete(history_key) or deleted

        if deleted:
            self.logger.info(f"Reset statistics for folder '{folder}'")
        return deleted

    def get_folder_stats(self, folder: str) -> AggregateStats:
        return AggregateStats.from_dict(self.store.get(folder_stats_key(folder)))

    def get_file_stats(self, folder: str, file_name: str) -> AggregateStats:
        return AggregateStats.from_dict(self.store.get(file_stats_key(folder, file_name)))

    def get_history(self, folder: str, file_name: Optional[str] = None) -> List[SessionResult]:
        scope = FILE_SCOPE if file_name else FOLDER_SCOPE
        _, history_key = self._keys(scope, folder, file_name)
        return [SessionResult.from_dict(entry) for entry in self._read_history(history_key)]

    def get_overall_stats(self, folders: Iterable[str]) -> Dict[str, Any]:
        """
        Roll folder aggregates up into overall totals.

        Returns:
            Dictionary with totals, overall accuracy and per-folder performance
        """
        total_questions = 0
        total_correct = 0
        total_quizzes = 0
        total_time = 0
        best_time = None
        per_folder = {}

        for folder in folders:
            stats = self.get_folder_stats(folder)
            if not stats.quizzes_completed:
                continue
            total_questions += stats.total_questions
            total_correct += stats.correct_answers
            total_quizzes += stats.quizzes_completed
            total_time += stats.total_time
            if stats.best_time is not None:
                best_time = stats.best_time if best_time is None else min(best_time, stats.best_time)
            per_folder[folder] = {
                'accuracy': round_half_up(stats.accuracy, 2),
                'quizzes_completed': stats.quizzes_completed,
                'average_time': stats.average_time,
            }

        accuracy = round_half_up(total_correct / total_questions * 100, 2) if total_questions else 0.0
        return {
            'total_questions': total_questions,
            'correct_answers': total_correct,
            'quizzes_completed': total_quizzes,
            'total_time': total_time,
            'best_time': best_time,
            'accuracy': accuracy,
            'per_folder': per_folder,
        }
