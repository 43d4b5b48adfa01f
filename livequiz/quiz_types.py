"""Quiz data types and the boundary schema for service payloads.

Every payload coming back from a service goes through one of the `from_dict`
constructors below. Defaults for missing or loosely typed fields are applied
here, once, so the rest of the client only ever sees complete objects.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from livequiz.errors import ValidationError

DEFAULT_TIME_LIMIT = 30
DEFAULT_POINTS = 10
OPTION_SLOTS = 4
MIN_OPTIONS = 2


class LifecycleState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    STARTED = "started"
    FINISHED = "finished"

    @property
    def rank(self) -> int:
        return _STATE_ORDER.index(self)

    def next(self) -> Optional["LifecycleState"]:
        idx = self.rank + 1
        return _STATE_ORDER[idx] if idx < len(_STATE_ORDER) else None


_STATE_ORDER = [
    LifecycleState.CLOSED,
    LifecycleState.OPEN,
    LifecycleState.STARTED,
    LifecycleState.FINISHED,
]


def _as_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _as_ref(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


@dataclass
class Question:
    """A multiple-choice question as authored and as delivered to a session."""
    prompt: str
    options: List[str]
    correct_option_index: int = 0
    time_limit_seconds: int = DEFAULT_TIME_LIMIT
    points: int = DEFAULT_POINTS
    id: Optional[str] = None

    @classmethod
    def blank(cls) -> "Question":
        return cls(prompt="", options=[""] * OPTION_SLOTS)

    @classmethod
    def from_dict(cls, data: dict) -> "Question":
        # builder rows use option1..option4, live payloads use an options list
        options = data.get("options")
        if not isinstance(options, list):
            numbered = [data.get(f"option{i}") for i in range(1, OPTION_SLOTS + 1)]
            options = numbered if any(o is not None for o in numbered) else [""] * OPTION_SLOTS
        options = ["" if o is None else str(o) for o in options]

        correct = data.get("correctAnswer", data.get("correctAnswerIndex", 0))
        try:
            correct = int(correct)
        except (TypeError, ValueError):
            # some payloads carry the correct option's text instead of its index
            correct = options.index(correct) if correct in options else 0

        return cls(
            id=_as_ref(data.get("id")),
            prompt=str(data.get("question") or data.get("questionText") or data.get("text") or ""),
            options=options,
            correct_option_index=correct,
            time_limit_seconds=_as_int(data.get("timeLimit"), DEFAULT_TIME_LIMIT),
            points=_as_int(data.get("points"), DEFAULT_POINTS),
        )

    def validate(self) -> None:
        """Raise ValidationError for input that must never reach the backend."""
        if not self.prompt.strip():
            raise ValidationError("Please enter a question")
        filled = [o for o in self.options if o and o.strip()]
        if len(filled) < MIN_OPTIONS:
            raise ValidationError("Please provide at least 2 options")
        if len(filled) > OPTION_SLOTS:
            raise ValidationError("A question can have at most 4 options")
        if not (0 <= self.correct_option_index < len(self.options)) \
                or not self.options[self.correct_option_index].strip():
            raise ValidationError("The correct answer option cannot be empty")
        if self.time_limit_seconds <= 0:
            raise ValidationError("Time limit must be a positive number of seconds")
        if self.points <= 0:
            raise ValidationError("Points must be a positive number")

    def compacted(self) -> "Question":
        """Copy with empty option slots dropped and the correct index re-pointed."""
        kept = [(i, o.strip()) for i, o in enumerate(self.options) if o and o.strip()]
        new_index = next((n for n, (i, _) in enumerate(kept) if i == self.correct_option_index), 0)
        return Question(
            id=self.id,
            prompt=self.prompt.strip(),
            options=[o for _, o in kept],
            correct_option_index=new_index,
            time_limit_seconds=self.time_limit_seconds,
            points=self.points,
        )

    def to_payload(self) -> dict:
        q = self.compacted()
        return {
            "question": q.prompt,
            "options": q.options,
            "correctAnswer": q.correct_option_index,
            "points": q.points,
            "timeLimit": q.time_limit_seconds,
        }

    def is_correct(self, option_index: Optional[int]) -> bool:
        return option_index is not None and option_index == self.correct_option_index


@dataclass
class SessionSnapshot:
    """One status reading from the viewer/session service.

    `message` is advisory text for display only; nothing branches on it.
    """
    quiz_id: int
    is_open: bool = False
    is_started: bool = False
    is_finished: bool = False
    current_question_ref: Optional[str] = None
    current_question: Optional[Question] = None
    message: str = ""

    @classmethod
    def from_dict(cls, data: dict, quiz_id: int) -> "SessionSnapshot":
        current = data.get("currentQuestion")
        question = None
        if isinstance(current, dict):
            question = Question.from_dict(current)
            ref = question.id
        else:
            ref = _as_ref(current if current is not None else data.get("currentQuestionId"))
            if isinstance(data.get("question"), dict):
                question = Question.from_dict(data["question"])
                question.id = question.id or ref
        return cls(
            quiz_id=int(data.get("quizId") or quiz_id),
            is_open=bool(data.get("isOpen", False)),
            is_started=bool(data.get("isStarted", False)),
            is_finished=bool(data.get("isFinished", False)),
            current_question_ref=ref,
            current_question=question,
            message=str(data.get("message") or ""),
        )

    @classmethod
    def closed(cls, quiz_id: int) -> "SessionSnapshot":
        return cls(quiz_id=quiz_id, message="Not opened for viewers yet")

    @property
    def state(self) -> LifecycleState:
        # finished implies started implies open, so the furthest flag wins
        if self.is_finished:
            return LifecycleState.FINISHED
        if self.is_started:
            return LifecycleState.STARTED
        if self.is_open:
            return LifecycleState.OPEN
        return LifecycleState.CLOSED


@dataclass
class Participant:
    session_id: str
    display_name: str
    connection_status: str = "connected"
    cumulative_score: int = 0

    @property
    def is_connected(self) -> bool:
        return self.connection_status == "connected"

    @classmethod
    def from_dict(cls, data: dict) -> "Participant":
        score = data.get("totalScore", data.get("score", 0))
        try:
            score = max(0, int(score))
        except (TypeError, ValueError):
            score = 0
        return cls(
            session_id=str(data.get("sessionId") or data.get("id") or ""),
            display_name=str(data.get("name") or "Unknown"),
            connection_status=str(data.get("status") or "connected").lower(),
            cumulative_score=score,
        )


@dataclass
class Quiz:
    id: int
    title: str
    description: str = ""
    question_count: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> "Quiz":
        questions = data.get("questions")
        return cls(
            id=int(data["id"]),
            title=str(data.get("title") or "Untitled Quiz"),
            description=str(data.get("description") or ""),
            question_count=len(questions) if isinstance(questions, list) else int(data.get("questionCount", 0) or 0),
        )

    def to_payload(self) -> dict:
        return {"title": self.title, "description": self.description}


@dataclass
class User:
    id: str
    username: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        return cls(
            id=str(data.get("id", "")),
            username=str(data.get("username") or data.get("email") or ""),
            email=str(data.get("email") or ""),
            first_name=str(data.get("firstName") or ""),
            last_name=str(data.get("lastName") or ""),
        )

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.username


@dataclass
class AnswerSubmission:
    """At most one per (participant, question)."""
    question_id: Optional[str]
    answer: str
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_empty(self) -> bool:
        return self.answer == ""

    def to_payload(self, session_token: str) -> dict:
        return {
            "sessionId": session_token,
            "questionId": self.question_id,
            "answer": self.answer,
            "timestamp": int(self.submitted_at.timestamp() * 1000),
        }


@dataclass
class ViewerSession:
    """Identity issued by a successful join. The token, not the name, is used
    for every submission."""
    token: str
    quiz_id: int
    name: str
    joined_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
