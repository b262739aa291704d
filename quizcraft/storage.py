"""
Persistent key-value storage for session snapshots, stars and statistics.

Values are JSON-serializable. Callers depend on the PersistentStore interface
only; the key helpers below define the stable key schema.
"""
import copy
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional


SAVED_QUIZ_PREFIX = "savedQuiz_"
GENERATED_QUIZ_PREFIX = "generatedQuiz_"
STARRED_PREFIX = "starredQuestions_"
FOLDER_STATS_PREFIX = "quizStats_"
FILE_STATS_PREFIX = "fileStats_"
FOLDER_HISTORY_PREFIX = "quizHistory_"
FILE_HISTORY_PREFIX = "fileHistory_"
COMPLETED_SCHEDULED_KEY = "completedScheduledQuizzes"
QUESTION_REPORTS_KEY = "questionReports"


def saved_quiz_key(session_id: str) -> str:
    return f"{SAVED_QUIZ_PREFIX}{session_id}"


def generated_quiz_key(quiz_id: str) -> str:
    return f"{GENERATED_QUIZ_PREFIX}{quiz_id}"


def starred_key(folder: str) -> str:
    return f"{STARRED_PREFIX}{folder}"


def folder_stats_key(folder: str) -> str:
    return f"{FOLDER_STATS_PREFIX}{folder}"


def file_stats_key(folder: str, file_name: str) -> str:
    return f"{FILE_STATS_PREFIX}{folder}_{file_name}"


def folder_history_key(folder: str) -> str:
    return f"{FOLDER_HISTORY_PREFIX}{folder}"


def file_history_key(folder: str, file_name: str) -> str:
    return f"{FILE_HISTORY_PREFIX}{folder}_{file_name}"


class StoreUnavailable(Exception):
    """Raised when a persistence operation cannot be completed."""

    def __init__(self, operation: str, key: Optional[str], reason: str):
        self.operation = operation
        self.key = key
        self.reason = reason
        target = f" '{key}'" if key else ""
        super().__init__(f"Store {operation}{target} failed: {reason}")


class PersistentStore(ABC):
    """Generic get/set/delete over string keys holding JSON values."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under key, or default when absent."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store value under key, raising StoreUnavailable on failure."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove key. Returns False if it was not present."""

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """List stored keys starting with prefix."""

    def contains(self, key: str) -> bool:
        return key in self.keys(key)


class MemoryStore(PersistentStore):
    """In-process store. Values are deep-copied through JSON on the way in."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        try:
            self._data[key] = json.loads(json.dumps(value, allow_nan=False))
        except (TypeError, ValueError) as e:
            raise StoreUnavailable("set", key, f"value is not JSON serializable: {e}") from e

    def delete(self, key: str) -> bool:
        if key not in self._data:
            return False
        del self._data[key]
        return True

    def keys(self, prefix: str = "") -> List[str]:
        return [key for key in self._data if key.startswith(prefix)]


class JsonFileStore(PersistentStore):
    """
    Store backed by a single JSON document on disk.

    Every write rewrites the whole document through a temporary file and
    os.replace, so the file on disk is always a complete JSON object.
    """

    def __init__(self, path: str):
        """
        Initialize the store.

        Args:
            path: Location of the JSON data file. Created on first write.
        """
        self.path = Path(path)
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._data: Optional[Dict[str, Any]] = None

    def _load(self) -> Dict[str, Any]:
        if self._data is not None:
            return self._data

        if not self.path.exists():
            self._data = {}
            return self._data

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in data file {self.path}: {e}")
            raise StoreUnavailable("load", None, f"invalid JSON in {self.path}: {e}") from e
        except OSError as e:
            self.logger.error(f"Failed to read data file {self.path}: {e}")
            raise StoreUnavailable("load", None, f"cannot read {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise StoreUnavailable("load", None, f"{self.path} does not contain a JSON object")

        self._data = data
        self.logger.info(f"Loaded {len(data)} keys from {self.path}")
        return self._data

    def _flush(self, data: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False, allow_nan=False)
                os.replace(temp_path, self.path)
            except BaseException:
                if os.path.exists(temp_path):
                    os.unlink(temp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            self.logger.error(f"Failed to write data file {self.path}: {e}")
            raise StoreUnavailable("write", None, str(e)) from e

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            data = self._load()
            if key not in data:
                return default
            return copy.deepcopy(data[key])

    def set(self, key: str, value: Any) -> None:
        try:
            value = json.loads(json.dumps(value, allow_nan=False))
        except (TypeError, ValueError) as e:
            raise StoreUnavailable("set", key, f"value is not JSON serializable: {e}") from e

        with self._lock:
            data = self._load()
            updated = dict(data)
            updated[key] = value
            try:
                self._flush(updated)
            except StoreUnavailable as e:
                raise StoreUnavailable("set", key, e.reason) from e
            self._data = updated

    def delete(self, key: str) -> bool:
        with self._lock:
            data = self._load()
            if key not in data:
                return False
            updated = {k: v for k, v in data.items() if k != key}
            try:
                self._flush(updated)
            except StoreUnavailable as e:
                raise StoreUnavailable("delete", key, e.reason) from e
            self._data = updated
            return True

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return [key for key in self._load() if key.startswith(prefix)]
