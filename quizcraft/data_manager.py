"""
Data manager for question set files and question validation.

Question sets live under the quiz directory as <folder>/<file>.json. JSON
files placed directly in the quiz directory belong to the Default folder.
"""
import json
import os
import logging
from typing import Any, Dict, List, Optional
from pathlib import Path

from .models import Choice, Question


DEFAULT_FOLDER = "Default"


class QuestionFormatError(ValueError):
    """Raised when a question record cannot be normalized."""
    pass


class DataManager:
    """Loads, normalizes and validates question sets grouped in folders."""

    MIN_CHOICES = 4
    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

    def __init__(self, quiz_directory: str = "./quizzes/"):
        """
        Initialize DataManager with quiz directory path.

        Args:
            quiz_directory: Directory containing one sub-directory per folder
        """
        self.quiz_directory = Path(quiz_directory)
        self.question_sets: Dict[str, Dict[str, List[Question]]] = {}
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []
        self.sample_created = False

    def load_question_sets(self) -> Dict[str, Dict[str, List[Question]]]:
        """
        Load every question file under the quiz directory.

        Returns:
            Mapping of folder name to a mapping of file name to questions
        """
        self.question_sets.clear()
        self.load_errors.clear()
        self.sample_created = False

        directory_result = self._ensure_quiz_directory()
        if not directory_result['success']:
            self.load_errors.append(directory_result['error'])
            return self.question_sets

        scan_result = self._scan_question_files()
        if not scan_result['success']:
            self.load_errors.append(scan_result['error'])
            return self.question_sets

        json_files = scan_result['files']
        if not json_files:
            self.logger.warning(f"No question files found in {self.quiz_directory}")
            self.load_errors.append(f"No question files found in {self.quiz_directory}")
            return self._create_sample_set()

        successful_loads = 0
        for folder, json_file in json_files:
            load_result = self._load_question_file_safely(folder, json_file)
            if load_result['success']:
                successful_loads += 1
            else:
                self.load_errors.append(f"{folder}/{json_file.name}: {load_result['error']}")

        if successful_loads == 0:
            self.logger.error("No question files could be loaded successfully")
            self.load_errors.append("All question files failed to load")
        else:
            self.logger.info(f"Successfully loaded {successful_loads} question files")

        if self.load_errors:
            self.logger.warning(f"Encountered {len(self.load_errors)} loading errors")

        return self.question_sets

    def normalize_choices(self, raw_choices: Any, correct_answer: Any = None) -> List[Choice]:
        """
        Normalize the choice list of a raw question record.

        Choices may be {text, isCorrect} objects, or plain strings together
        with a correctAnswer given as a letter ("B") or a 1-based number.

        Raises:
            QuestionFormatError: If the choices cannot be normalized
        """
        if not isinstance(raw_choices, list):
            raise QuestionFormatError("'choices' must be an array")

        if all(isinstance(choice, dict) for choice in raw_choices):
            choices = []
            for choice in raw_choices:
                text = choice.get('text')
                if not isinstance(text, str):
                    raise QuestionFormatError("choice 'text' must be a string")
                choices.append(Choice(text=text.strip(), is_correct=bool(choice.get('isCorrect', False))))
            return choices

        if all(isinstance(choice, str) for choice in raw_choices):
            correct_index = self._correct_index(correct_answer, len(raw_choices))
            return [
                Choice(text=text.strip(), is_correct=index == correct_index)
                for index, text in enumerate(raw_choices)
            ]

        raise QuestionFormatError("choices must be all strings or all objects")

    def _correct_index(self, correct_answer: Any, choice_count: int) -> int:
        if isinstance(correct_answer, bool) or correct_answer is None:
            raise QuestionFormatError("plain string choices need a 'correctAnswer'")

        if isinstance(correct_answer, int):
            index = correct_answer - 1
        elif isinstance(correct_answer, str) and correct_answer.strip().isdigit():
            index = int(correct_answer.strip()) - 1
        elif isinstance(correct_answer, str) and len(correct_answer.strip()) == 1:
            index = ord(correct_answer.strip().upper()) - ord('A')
        else:
            raise QuestionFormatError(f"unrecognized correctAnswer {correct_answer!r}")

        if index < 0 or index >= choice_count:
            raise QuestionFormatError(f"correctAnswer {correct_answer!r} is out of range")
        return index

    def validate_question(self, question: Question) -> List[str]:
        """
        Check a normalized question.

        Returns:
            List of problems; empty when the question is valid
        """
        issues = []
        if not question.text.strip():
            issues.append("question text is empty")
        if len(question.choices) < self.MIN_CHOICES:
            issues.append(f"needs at least {self.MIN_CHOICES} choices, has {len(question.choices)}")
        correct_count = sum(1 for choice in question.choices if choice.is_correct)
        if correct_count != 1:
            issues.append(f"needs exactly one correct choice, has {correct_count}")
        texts = [choice.text for choice in question.choices]
        if any(not text for text in texts):
            issues.append("choice text is empty")
        if len(set(texts)) != len(texts):
            issues.append("choice texts are not unique")
        return issues

    def _parse_questions(self, data: Any, folder: str, file_name: str) -> List[Question]:
        """
        Parse a question file into validated Question records.

        Raises:
            QuestionFormatError: If the file structure or any question is invalid
        """
        if isinstance(data, dict):
            records = data.get('questions')
        else:
            records = data

        if not isinstance(records, list):
            raise QuestionFormatError("file must hold a 'questions' array")
        if not records:
            raise QuestionFormatError("question array cannot be empty")

        questions = []
        for index, record in enumerate(records):
            if not isinstance(record, dict):
                raise QuestionFormatError(f"question {index} must be an object")

            text = record.get('question', record.get('text'))
            if not isinstance(text, str):
                raise QuestionFormatError(f"question {index} is missing its 'question' text")

            try:
                choices = self.normalize_choices(
                    record.get('choices', record.get('options')),
                    record.get('correctAnswer')
                )
            except QuestionFormatError as e:
                raise QuestionFormatError(f"question {index}: {e}") from e

            question = Question(
                id=f"{folder}/{file_name}/{index}",
                text=text.strip(),
                choices=choices,
                folder=folder,
                file_name=file_name,
                explanation=record.get('explanation') or None,
                category=record.get('category') or None,
                difficulty=record.get('difficulty') or None,
            )

            issues = self.validate_question(question)
            if issues:
                raise QuestionFormatError(f"question {index}: {'; '.join(issues)}")
            questions.append(question)

        return questions

    def get_folders(self) -> List[str]:
        return sorted(self.question_sets.keys())

    def get_files(self, folder: str) -> List[str]:
        return sorted(self.question_sets.get(folder, {}).keys())

    def get_questions(self, folder: str, file_name: Optional[str] = None) -> Optional[List[Question]]:
        """
        Retrieve questions of a folder, or of one file in it.

        Args:
            folder: Folder name
            file_name: File within the folder; None returns the whole folder in file order

        Returns:
            Ordered list of questions, or None if the folder or file is unknown
        """
        files = self.question_sets.get(folder)
        if files is None:
            return None
        if file_name is not None:
            questions = files.get(file_name)
            return list(questions) if questions is not None else None
        return [question for name in sorted(files) for question in files[name]]

    def quiz_exists(self, folder: str, file_name: Optional[str] = None) -> bool:
        return self.get_questions(folder, file_name) is not None

    def get_question_count(self, folder: str, file_name: Optional[str] = None) -> int:
        questions = self.get_questions(folder, file_name)
        return len(questions) if questions else 0

    def _ensure_quiz_directory(self) -> Dict[str, Any]:
        try:
            if not self.quiz_directory.exists():
                self.quiz_directory.mkdir(parents=True, exist_ok=True)
                self.logger.info(f"Created quiz directory: {self.quiz_directory}")

            if not os.access(self.quiz_directory, os.R_OK):
                return {
                    'success': False,
                    'error': f"Permission denied: Cannot read from {self.quiz_directory}"
                }

            return {'success': True}

        except PermissionError:
            return {
                'success': False,
                'error': f"Permission denied: Cannot access {self.quiz_directory}"
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error accessing {self.quiz_directory}: {e}"
            }

    def _scan_question_files(self) -> Dict[str, Any]:
        """
        Find question files as (folder, path) pairs.
        """
        try:
            files = [(DEFAULT_FOLDER, path) for path in sorted(self.quiz_directory.glob("*.json"))]
            for folder_dir in sorted(p for p in self.quiz_directory.iterdir() if p.is_dir()):
                files.extend((folder_dir.name, path) for path in sorted(folder_dir.glob("*.json")))
            return {'success': True, 'files': files}
        except PermissionError:
            return {
                'success': False,
                'error': f"Permission denied: Cannot read directory {self.quiz_directory}",
                'files': []
            }
        except OSError as e:
            return {
                'success': False,
                'error': f"System error scanning {self.quiz_directory}: {e}",
                'files': []
            }

    def _load_question_file_safely(self, folder: str, json_file: Path) -> Dict[str, Any]:
        """
        Load a single question file, reporting failure instead of raising.
        """
        try:
            file_size = json_file.stat().st_size
            if file_size > self.MAX_FILE_SIZE:
                return {
                    'success': False,
                    'error': f"File too large ({file_size / 1024 / 1024:.1f}MB). "
                             f"Maximum size is {self.MAX_FILE_SIZE / 1024 / 1024}MB"
                }

            with open(json_file, 'r', encoding='utf-8') as f:
                data = json.load(f)

            questions = self._parse_questions(data, folder, json_file.stem)
            self.question_sets.setdefault(folder, {})[json_file.stem] = questions
            self.logger.info(f"Loaded '{folder}/{json_file.stem}' with {len(questions)} questions")
            return {'success': True}

        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {json_file}: {e}")
            return {'success': False, 'error': f"Invalid JSON: {e}"}
        except QuestionFormatError as e:
            self.logger.error(f"Invalid question set in {json_file}: {e}")
            return {'success': False, 'error': str(e)}
        except PermissionError:
            return {'success': False, 'error': "Permission denied"}
        except OSError as e:
            return {'success': False, 'error': f"System error: {e}"}

    def _create_sample_set(self) -> Dict[str, Dict[str, List[Question]]]:
        """
        Write and load a sample question set when the directory is empty.
        """
        sample_data = {
            "questions": [
                {
                    "question": "What is the capital of France?",
                    "choices": ["Berlin", "Paris", "Madrid", "Rome"],
                    "correctAnswer": "B",
                    "explanation": "Paris has been the capital of France since 987."
                },
                {
                    "question": "What is 7 x 8?",
                    "choices": ["54", "56", "58", "64"],
                    "correctAnswer": 2
                },
                {
                    "question": "Which planet is known as the Red Planet?",
                    "choices": [
                        {"text": "Venus", "isCorrect": False},
                        {"text": "Jupiter", "isCorrect": False},
                        {"text": "Mars", "isCorrect": True},
                        {"text": "Mercury", "isCorrect": False}
                    ]
                }
            ]
        }

        sample_dir = self.quiz_directory / "General"
        sample_path = sample_dir / "sample_quiz.json"
        try:
            if not sample_path.exists():
                sample_dir.mkdir(parents=True, exist_ok=True)
                with open(sample_path, 'w', encoding='utf-8') as f:
                    json.dump(sample_data, f, indent=2, ensure_ascii=False)
                self.logger.info(f"Created sample question file: {sample_path}")
        except OSError as e:
            self.logger.error(f"Failed to write sample question file: {e}")
            self.load_errors.append(f"Failed to create sample question file: {e}")

        self.question_sets["General"] = {
            "sample_quiz": self._parse_questions(sample_data, "General", "sample_quiz")
        }
        self.sample_created = True
        return self.question_sets

    def get_load_errors(self) -> List[str]:
        return self.load_errors.copy()

    def has_load_errors(self) -> bool:
        return len(self.load_errors) > 0

    def get_loading_summary(self) -> Dict[str, Any]:
        """
        Summary of the last load operation.
        """
        return {
            'total_folders': len(self.question_sets),
            'total_files': sum(len(files) for files in self.question_sets.values()),
            'has_errors': self.has_load_errors(),
            'error_count': len(self.load_errors),
            'errors': self.get_load_errors(),
            'sample_created': self.sample_created,
            'quiz_directory': str(self.quiz_directory),
            'folders': {folder: self.get_files(folder) for folder in self.get_folders()},
        }
