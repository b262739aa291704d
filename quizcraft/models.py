"""
Core data models for the QuizCraft quiz session engine.

Persisted models use the camelCase field names of the stored JSON documents
in their to_dict()/from_dict() helpers so existing data stays readable.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class Choice:
    """A single answer option of a multiple-choice question."""
    text: str
    is_correct: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {'text': self.text, 'isCorrect': self.is_correct}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Choice':
        return cls(text=data['text'], is_correct=bool(data.get('isCorrect', False)))


@dataclass(frozen=True)
class Question:
    """Represents a single quiz question. Immutable for the life of a session."""
    id: str
    text: str
    choices: List[Choice]
    folder: str
    file_name: Optional[str] = None
    explanation: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None

    @property
    def correct_choice(self) -> Optional[str]:
        """Text of the single correct choice."""
        for choice in self.choices:
            if choice.is_correct:
                return choice.text
        return None

    def is_correct_answer(self, choice_text: Optional[str]) -> bool:
        """A skipped (None) answer never matches, whatever the choices hold."""
        if choice_text is None:
            return False
        correct = self.correct_choice
        return correct is not None and choice_text == correct

    def has_choice(self, choice_text: str) -> bool:
        return any(choice.text == choice_text for choice in self.choices)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'question': self.text,
            'choices': [choice.to_dict() for choice in self.choices],
            'explanation': self.explanation,
            'category': self.category,
            'difficulty': self.difficulty,
            'folder': self.folder,
            'fileName': self.file_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Question':
        return cls(
            id=str(data['id']),
            text=data['question'],
            choices=[Choice.from_dict(choice) for choice in data['choices']],
            folder=data['folder'],
            file_name=data.get('fileName'),
            explanation=data.get('explanation'),
            category=data.get('category'),
            difficulty=data.get('difficulty'),
        )


@dataclass
class QuizSettings:
    """Configuration settings used when assembling a quiz session."""
    question_count: Optional[int] = None
    random_order: bool = False
    tick_interval: float = 1.0
    skip_timing: str = 'per_question'


@dataclass
class QuizSession:
    """
    The mutable state of one quiz attempt.

    Owned exclusively by the QuizController while it is live; a serialized
    copy of it is what gets written as a snapshot.
    """
    questions: List[Question]
    folder: str
    start_timestamp: float
    question_start_timestamp: float
    id: Optional[str] = None
    quiz_id: Optional[str] = None
    source_file_name: Optional[str] = None
    current_index: int = 0
    answers: List[Optional[str]] = field(default_factory=list)
    per_question_times: List[Optional[float]] = field(default_factory=list)
    score: int = 0
    elapsed_timer: int = 0
    paused: bool = False
    answer_revealed: bool = False
    completed: bool = False
    selected_option: Optional[str] = None

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Question:
        return self.questions[self.current_index]

    @property
    def is_last_question(self) -> bool:
        return self.current_index + 1 >= len(self.questions)

    def answered_count(self) -> int:
        """Number of questions with a recorded answer or skip."""
        return sum(1 for t in self.per_question_times if t is not None)

    def count_correct(self) -> int:
        """Recount correct answers from the recorded answers."""
        return sum(
            1 for index, answer in enumerate(self.answers)
            if index < len(self.questions) and self.questions[index].is_correct_answer(answer)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'quizId': self.quiz_id,
            'folder': self.folder,
            'sourceFileName': self.source_file_name,
            'questions': [question.to_dict() for question in self.questions],
            'currentQuestion': self.current_index,
            'userAnswers': list(self.answers),
            'questionTimes': list(self.per_question_times),
            'score': self.score,
            'timer': self.elapsed_timer,
            'startTime': self.start_timestamp,
            'questionStartTime': self.question_start_timestamp,
            'isPaused': self.paused,
            'showAnswer': self.answer_revealed,
            'completed': self.completed,
            'selectedOption': self.selected_option,
            'isScheduledQuiz': self.quiz_id is not None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QuizSession':
        return cls(
            id=data.get('id'),
            quiz_id=data.get('quizId'),
            folder=data['folder'],
            source_file_name=data.get('sourceFileName'),
            questions=[Question.from_dict(q) for q in data['questions']],
            current_index=data['currentQuestion'],
            answers=list(data.get('userAnswers', [])),
            per_question_times=list(data.get('questionTimes', [])),
            score=data['score'],
            elapsed_timer=data.get('timer', 0),
            start_timestamp=data['startTime'],
            question_start_timestamp=data.get('questionStartTime', data['startTime']),
            paused=bool(data.get('isPaused', False)),
            answer_revealed=bool(data.get('showAnswer', False)),
            completed=bool(data.get('completed', False)),
            selected_option=data.get('selectedOption'),
        )


@dataclass(frozen=True)
class SessionResult:
    """Final result tuple of a completed session."""
    result_id: str
    folder: str
    total_questions: int
    correct_answers: int
    incorrect_answers: int
    accuracy: float
    total_time: int
    average_time_per_question: int
    longest_streak: int
    timestamp: float
    file_name: Optional[str] = None
    quiz_id: Optional[str] = None
    answers: List[Optional[str]] = field(default_factory=list)
    question_times: List[Optional[float]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'resultId': self.result_id,
            'folder': self.folder,
            'fileName': self.file_name,
            'quizId': self.quiz_id,
            'totalQuestions': self.total_questions,
            'correctAnswers': self.correct_answers,
            'incorrectAnswers': self.incorrect_answers,
            'accuracy': self.accuracy,
            'totalTime': self.total_time,
            'averageTimePerQuestion': self.average_time_per_question,
            'longestStreak': self.longest_streak,
            'timestamp': self.timestamp,
            'userAnswers': list(self.answers),
            'questionTimes': list(self.question_times),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SessionResult':
        return cls(
            result_id=data['resultId'],
            folder=data['folder'],
            file_name=data.get('fileName'),
            quiz_id=data.get('quizId'),
            total_questions=data['totalQuestions'],
            correct_answers=data['correctAnswers'],
            incorrect_answers=data.get('incorrectAnswers', data['totalQuestions'] - data['correctAnswers']),
            accuracy=data.get('accuracy', 0.0),
            total_time=data['totalTime'],
            average_time_per_question=data.get('averageTimePerQuestion', 0),
            longest_streak=data.get('longestStreak', 0),
            timestamp=data.get('timestamp', 0),
            answers=list(data.get('userAnswers', [])),
            question_times=list(data.get('questionTimes', [])),
        )


@dataclass
class AggregateStats:
    """
    Running statistics for a folder, or for one file inside a folder.

    best_time is None until the first completion (it stands for +infinity).
    """
    total_questions: int = 0
    correct_answers: int = 0
    quizzes_completed: int = 0
    average_time: int = 0
    best_time: Optional[int] = None
    total_time: int = 0
    longest_streak: int = 0
    total_starred: int = 0
    best_score: float = 0.0
    last_quiz_date: Optional[float] = None

    @property
    def accuracy(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return self.correct_answers / self.total_questions * 100

    def to_dict(self, count_key: str = 'quizzesCompleted', date_key: str = 'lastQuizDate') -> Dict[str, Any]:
        return {
            'totalQuestions': self.total_questions,
            'correctAnswers': self.correct_answers,
            count_key: self.quizzes_completed,
            'averageTime': self.average_time,
            'bestTime': self.best_time,
            'totalTime': self.total_time,
            'longestStreak': self.longest_streak,
            'totalStarred': self.total_starred,
            'bestScore': self.best_score,
            date_key: self.last_quiz_date,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'AggregateStats':
        if not data:
            return cls()
        return cls(
            total_questions=data.get('totalQuestions', 0),
            correct_answers=data.get('correctAnswers', 0),
            quizzes_completed=data.get('quizzesCompleted', data.get('attempts', 0)),
            average_time=data.get('averageTime', 0),
            best_time=data.get('bestTime'),
            total_time=data.get('totalTime', 0),
            longest_streak=data.get('longestStreak', 0),
            total_starred=data.get('totalStarred', 0),
            best_score=data.get('bestScore', 0.0),
            last_quiz_date=data.get('lastQuizDate', data.get('lastAttemptDate')),
        )


class ReportStatus(Enum):
    """Review status of a reported question."""
    PENDING = "pending"
    REVIEWED = "reviewed"
    FIXED = "fixed"
    INVALID = "invalid"


@dataclass
class QuestionReport:
    """
    A user report about a problem with a question.

    Statuses written by other tools are kept as the raw string when they
    are not a known ReportStatus.
    """
    question: Dict[str, Any]
    reason: str
    timestamp: str
    status: Union[ReportStatus, str] = ReportStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        return {
            'question': self.question,
            'reason': self.reason,
            'timestamp': self.timestamp,
            'status': self.status.value if isinstance(self.status, ReportStatus) else self.status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QuestionReport':
        status = data.get('status', ReportStatus.PENDING.value)
        if isinstance(status, str):
            status = {item.value: item for item in ReportStatus}.get(status, status)
        return cls(
            question=data.get('question', {}),
            reason=data.get('reason', ''),
            timestamp=data.get('timestamp', ''),
            status=status,
        )
