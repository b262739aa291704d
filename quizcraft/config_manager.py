"""
Configuration manager for quiz session settings.
"""
import logging
from typing import Optional, Dict, Any
from pathlib import Path

from .models import QuizSettings


SKIP_TIMING_PER_QUESTION = "per_question"
SKIP_TIMING_CUMULATIVE = "cumulative"
SKIP_TIMING_MODES = (SKIP_TIMING_PER_QUESTION, SKIP_TIMING_CUMULATIVE)


class ConfigManager:
    """Holds validated runtime settings for quizzes and storage."""

    # Default configuration values
    DEFAULT_QUESTION_COUNT = None  # Use all questions by default
    DEFAULT_RANDOM_ORDER = False
    DEFAULT_TICK_INTERVAL = 1.0
    DEFAULT_SKIP_TIMING = SKIP_TIMING_PER_QUESTION
    DEFAULT_QUIZ_DIRECTORY = "./quizzes/"
    DEFAULT_DATA_FILE = "./data/quizcraft.json"

    # Validation limits
    MIN_QUESTION_COUNT = 1
    MAX_QUESTION_COUNT = 100
    MIN_TICK_INTERVAL = 0.01
    MAX_TICK_INTERVAL = 60.0

    SYSTEM_DIRECTORIES = ['/bin', '/usr', '/etc', '/sys', '/proc', 'C:\\Windows', 'C:\\Program Files']

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._global_settings = QuizSettings(
            question_count=self.DEFAULT_QUESTION_COUNT,
            random_order=self.DEFAULT_RANDOM_ORDER,
            tick_interval=self.DEFAULT_TICK_INTERVAL,
            skip_timing=self.DEFAULT_SKIP_TIMING
        )
        self._quiz_directory = self.DEFAULT_QUIZ_DIRECTORY
        self._data_file = self.DEFAULT_DATA_FILE

    def _reject(self, error_msg: str, user_message: str) -> Dict[str, Any]:
        self.logger.error(error_msg)
        return {
            'success': False,
            'error': error_msg,
            'user_message': f"❌ {user_message}"
        }

    def _accept(self, message: str, user_message: str) -> Dict[str, Any]:
        self.logger.info(message)
        return {
            'success': True,
            'message': message,
            'user_message': f"✅ {user_message}"
        }

    def get_quiz_settings(self) -> QuizSettings:
        """
        Get a copy of the current quiz settings.

        Returns:
            QuizSettings object with current configuration
        """
        return QuizSettings(
            question_count=self._global_settings.question_count,
            random_order=self._global_settings.random_order,
            tick_interval=self._global_settings.tick_interval,
            skip_timing=self._global_settings.skip_timing
        )

    def set_question_count(self, count: Optional[int]) -> Dict[str, Any]:
        """
        Set the number of questions per quiz.

        Args:
            count: Number of questions, or None to use all questions

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if count is None:
            self._global_settings.question_count = None
            return self._accept(
                "Question count set to use all available questions",
                "Will use all available questions from each quiz"
            )

        if not isinstance(count, int) or isinstance(count, bool):
            return self._reject(
                f"Question count must be an integer, got {type(count).__name__}",
                f"Invalid input: Expected a number, got {type(count).__name__}"
            )

        if count < self.MIN_QUESTION_COUNT:
            return self._reject(
                f"Question count must be at least {self.MIN_QUESTION_COUNT}",
                f"Too few questions: Minimum is {self.MIN_QUESTION_COUNT}"
            )

        if count > self.MAX_QUESTION_COUNT:
            return self._reject(
                f"Question count cannot exceed {self.MAX_QUESTION_COUNT}",
                f"Too many questions: Maximum is {self.MAX_QUESTION_COUNT}"
            )

        self._global_settings.question_count = count
        return self._accept(f"Question count set to {count}", f"Question count set to {count}")

    def get_question_count(self) -> Optional[int]:
        return self._global_settings.question_count

    def set_random_order(self, random_order: bool) -> Dict[str, Any]:
        """
        Set whether questions are presented in random order.

        Args:
            random_order: True for random order, False for file order
        """
        if not isinstance(random_order, bool):
            return self._reject(
                f"Random order must be a boolean, got {type(random_order).__name__}",
                f"Invalid input: Expected true/false, got {type(random_order).__name__}"
            )

        self._global_settings.random_order = random_order
        order_type = "random" if random_order else "sequential"
        return self._accept(
            f"Question order set to {order_type}",
            f"Questions will be presented in {order_type} order"
        )

    def get_random_order(self) -> bool:
        return self._global_settings.random_order

    def set_tick_interval(self, interval: float) -> Dict[str, Any]:
        """
        Set the period of the session timer tick in seconds.

        Args:
            interval: Seconds between ticks (1.0 in normal operation)
        """
        if not isinstance(interval, (int, float)) or isinstance(interval, bool):
            return self._reject(
                f"Tick interval must be a number, got {type(interval).__name__}",
                f"Invalid input: Expected a number, got {type(interval).__name__}"
            )

        if interval < self.MIN_TICK_INTERVAL or interval > self.MAX_TICK_INTERVAL:
            return self._reject(
                f"Tick interval must be between {self.MIN_TICK_INTERVAL} and {self.MAX_TICK_INTERVAL} seconds",
                f"Tick interval must be between {self.MIN_TICK_INTERVAL} and {self.MAX_TICK_INTERVAL} seconds"
            )

        self._global_settings.tick_interval = float(interval)
        return self._accept(
            f"Tick interval set to {interval} seconds",
            f"Timer ticks every {interval} seconds"
        )

    def get_tick_interval(self) -> float:
        return self._global_settings.tick_interval

    def set_skip_timing(self, mode: str) -> Dict[str, Any]:
        """
        Choose what a skipped question records as its time.

        Args:
            mode: 'per_question' records time since the question was shown,
                'cumulative' records the session's elapsed timer
        """
        if mode not in SKIP_TIMING_MODES:
            return self._reject(
                f"Skip timing must be one of {', '.join(SKIP_TIMING_MODES)}, got {mode!r}",
                f"Unknown skip timing mode: {mode}"
            )

        self._global_settings.skip_timing = mode
        return self._accept(f"Skip timing set to {mode}", f"Skipped questions now record {mode} time")

    def get_skip_timing(self) -> str:
        return self._global_settings.skip_timing

    def _validate_path(self, path: str, label: str) -> Dict[str, Any]:
        if not isinstance(path, str):
            return self._reject(
                f"{label} must be a string, got {type(path).__name__}",
                f"Invalid input: Expected a path string, got {type(path).__name__}"
            )

        if not path.strip():
            return self._reject(f"{label} cannot be empty", f"{label} path cannot be empty")

        try:
            normalized_path = str(Path(path).resolve())
        except (OSError, ValueError) as e:
            return self._reject(f"Invalid {label.lower()} path format: {e}", f"Invalid path format: {path}")

        if any(normalized_path.startswith(sys_dir) for sys_dir in self.SYSTEM_DIRECTORIES):
            return self._reject(
                f"Cannot use system directory: {normalized_path}",
                f"Cannot use system directory: {path}"
            )

        return {'success': True, 'path': normalized_path}

    def set_quiz_directory(self, directory: str) -> Dict[str, Any]:
        """
        Set the directory holding the question set folders.

        Args:
            directory: Path to the quiz directory
        """
        checked = self._validate_path(directory, "Quiz directory")
        if not checked['success']:
            return checked

        self._quiz_directory = checked['path']
        return self._accept(
            f"Quiz directory set to {checked['path']}",
            f"Quiz directory set to {checked['path']}"
        )

    def get_quiz_directory(self) -> str:
        return self._quiz_directory

    def set_data_file(self, data_file: str) -> Dict[str, Any]:
        """
        Set the JSON file backing the persistent store.

        Args:
            data_file: Path to the data file
        """
        checked = self._validate_path(data_file, "Data file")
        if not checked['success']:
            return checked

        self._data_file = checked['path']
        return self._accept(f"Data file set to {checked['path']}", f"Data file set to {checked['path']}")

    def get_data_file(self) -> str:
        return self._data_file

    def apply_config(self, quiz_config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply the 'quiz' section of config.json.

        Unknown keys are ignored. Every recognized key is applied through its
        setter; a rejected value keeps the previous setting.

        Args:
            quiz_config: Mapping with any of question_count, random_order,
                tick_interval, skip_timing, quiz_directory, data_file

        Returns:
            Dictionary with overall success and the error of each rejected key
        """
        setters = {
            'question_count': self.set_question_count,
            'random_order': self.set_random_order,
            'tick_interval': self.set_tick_interval,
            'skip_timing': self.set_skip_timing,
            'quiz_directory': self.set_quiz_directory,
            'data_file': self.set_data_file,
        }

        errors = {}
        applied = []
        for key, setter in setters.items():
            if key not in quiz_config:
                continue
            result = setter(quiz_config[key])
            if result['success']:
                applied.append(key)
            else:
                errors[key] = result['error']

        if errors:
            self.logger.warning(f"Ignored {len(errors)} invalid quiz settings: {', '.join(errors)}")

        return {'success': not errors, 'applied': applied, 'errors': errors}

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }
        settings = self._global_settings

        if settings.question_count is not None:
            if (not isinstance(settings.question_count, int) or
                    settings.question_count < self.MIN_QUESTION_COUNT or
                    settings.question_count > self.MAX_QUESTION_COUNT):
                validation_result["issues"].append(f"Invalid question count: {settings.question_count}")

        if not isinstance(settings.random_order, bool):
            validation_result["issues"].append(f"Invalid random order setting: {settings.random_order}")

        if (not isinstance(settings.tick_interval, (int, float)) or
                settings.tick_interval < self.MIN_TICK_INTERVAL or
                settings.tick_interval > self.MAX_TICK_INTERVAL):
            validation_result["issues"].append(f"Invalid tick interval: {settings.tick_interval}")

        if settings.skip_timing not in SKIP_TIMING_MODES:
            validation_result["issues"].append(f"Invalid skip timing: {settings.skip_timing}")

        if not isinstance(self._quiz_directory, str) or not self._quiz_directory.strip():
            validation_result["issues"].append(f"Invalid quiz directory: {self._quiz_directory}")

        if not isinstance(self._data_file, str) or not self._data_file.strip():
            validation_result["issues"].append(f"Invalid data file: {self._data_file}")

        validation_result["valid"] = not validation_result["issues"]
        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        settings = self._global_settings
        question_count_str = (
            str(settings.question_count)
            if settings.question_count is not None
            else "all available"
        )
        order_str = "random" if settings.random_order else "sequential"

        return (
            f"Quiz Settings:\n"
            f"• Questions: {question_count_str}\n"
            f"• Order: {order_str}\n"
            f"• Timer tick: {settings.tick_interval} seconds\n"
            f"• Skip timing: {settings.skip_timing}\n"
            f"• Quiz Directory: {self._quiz_directory}\n"
            f"• Data File: {self._data_file}"
        )
