"""Clients for the three backend services: auth, quiz builder, viewer/session.

Each method maps to one endpoint. Requests go out only after local
validation passes; payloads coming back are converted through quiz_types.
"""
from __future__ import annotations

from typing import List, Optional, Tuple

from livequiz.api_client import ApiClient, backend_message
from livequiz.common import logger
from livequiz.errors import (
    QuizClientError,
    SessionStateError,
    Unauthorized,
    ValidationError,
)
from livequiz.quiz_types import (
    AnswerSubmission,
    Participant,
    Question,
    Quiz,
    SessionSnapshot,
    User,
)


def _rows(body) -> list:
    """Listing endpoints answer with either a bare list or {"data": [...]}."""
    if isinstance(body, list):
        return body
    if isinstance(body, dict):
        for key in ("data", "items", "viewers", "questions", "quizzes"):
            if isinstance(body.get(key), list):
                return body[key]
    return []


def split_full_name(full_name: str) -> Tuple[str, str]:
    parts = full_name.strip().split(" ", 1)
    first = parts[0] if parts else ""
    last = parts[1].strip() if len(parts) > 1 else ""
    return first, last


class AuthService:
    def __init__(self, api: ApiClient) -> None:
        self.api = api

    async def signup(self, username: str, email: str, password: str, full_name: str) -> User:
        if not username.strip() or not email.strip() or not password:
            raise ValidationError("Username, email and password are required")
        first, last = split_full_name(full_name)
        body = await self.api.post("/api/auth/signup", auth=False, json={
            "username": username.strip(),
            "email": email.strip(),
            "password": password,
            "firstName": first,
            "lastName": last,
        })
        user_data = body.get("user", body) if isinstance(body, dict) else {}
        return User.from_dict(user_data)

    async def login(self, username_or_email: str, password: str) -> Tuple[str, User]:
        """Log in and store the token + user on the shared context."""
        if not username_or_email.strip() or not password:
            raise ValidationError("Please enter your username/email and password")
        body = await self.api.post("/api/auth/login", auth=False, json={
            "usernameOrEmail": username_or_email.strip(),
            "password": password,
        })
        if not isinstance(body, dict) or body.get("success") is False:
            raise Unauthorized(backend_message(body) or "Invalid credentials")
        token = body.get("token") or body.get("accessToken")
        if not token:
            raise Unauthorized(backend_message(body) or "Login response carried no token")
        user = User.from_dict(body.get("user") or {})
        self.api.context.login(token, user)
        return token, user

    async def validate(self) -> bool:
        """Check the stored token. Raises Unauthorized when it is rejected."""
        if not self.api.context.token:
            raise Unauthorized("Not logged in")
        body = await self.api.post("/api/auth/validate")
        if isinstance(body, dict) and body.get("valid") is False:
            raise Unauthorized(backend_message(body))
        return True


class BuilderService:
    """Quiz and question CRUD, scoped to the logged-in owner."""

    def __init__(self, api: ApiClient) -> None:
        self.api = api

    async def list_quizzes(self) -> List[Quiz]:
        body = await self.api.get("/api/quiz")
        return [Quiz.from_dict(row) for row in _rows(body) if isinstance(row, dict) and "id" in row]

    async def get_quiz(self, quiz_id: int) -> Quiz:
        return self._quiz(await self.api.get(f"/api/quiz/{quiz_id}"), f"Quiz {quiz_id} could not be loaded")

    async def create_quiz(self, title: str, description: str = "") -> Quiz:
        if not title.strip():
            raise ValidationError("Please enter a quiz title")
        body = await self.api.post("/api/quiz", json={"title": title.strip(),
                                                       "description": description.strip()})
        return self._quiz(body, "Quiz could not be created")

    async def update_quiz(self, quiz_id: int, title: str, description: str = "") -> Quiz:
        if not title.strip():
            raise ValidationError("Please enter a quiz title")
        body = await self.api.post(f"/api/quiz/{quiz_id}", json={"title": title.strip(),
                                                                  "description": description.strip()})
        return self._quiz(body, f"Quiz {quiz_id} could not be updated")

    async def list_questions(self, quiz_id: int) -> List[Question]:
        body = await self.api.get(f"/api/quiz/{quiz_id}/question")
        return [Question.from_dict(row) for row in _rows(body) if isinstance(row, dict)]

    async def get_question(self, quiz_id: int, question_id: str) -> Question:
        return Question.from_dict(await self.api.get(f"/api/quiz/{quiz_id}/question/{question_id}"))

    async def create_question(self, quiz_id: int, question: Question) -> Question:
        question.validate()
        body = await self.api.post(f"/api/quiz/{quiz_id}/question", json=question.to_payload())
        return self._saved(question, body)

    async def update_question(self, quiz_id: int, question_id: str, question: Question) -> Question:
        if not question_id:
            raise ValidationError(f"Invalid question id: {question_id!r}")
        question.validate()
        body = await self.api.post(f"/api/quiz/{quiz_id}/question/{question_id}",
                                   json=question.to_payload())
        return self._saved(question, body, question_id)

    @staticmethod
    def _quiz(body, fallback: str) -> Quiz:
        if isinstance(body, dict) and body.get("id") is not None:
            try:
                return Quiz.from_dict(body)
            except (TypeError, ValueError):
                logger.warning(f"Unreadable quiz id in response: {body.get('id')!r}")
        raise QuizClientError(backend_message(body) or fallback, detail=body)

    @staticmethod
    def _saved(question: Question, body, question_id: Optional[str] = None) -> Question:
        saved = question.compacted()
        if isinstance(body, dict) and body.get("id") is not None:
            saved.id = str(body["id"])
        elif question_id:
            saved.id = str(question_id)
        return saved


class ViewerService:
    """The viewer/session service: the authority on session lifecycle state."""

    def __init__(self, api: ApiClient) -> None:
        self.api = api

    # ----- observation -----------------------------------------------------

    async def status(self, quiz_id: int) -> SessionSnapshot:
        body = await self.api.post(f"/api/viewer/quiz/{quiz_id}/status", auth=False)
        return SessionSnapshot.from_dict(body if isinstance(body, dict) else {}, quiz_id)

    async def current_question(self, quiz_id: int, question_ref: str) -> Question:
        body = await self.api.get(f"/api/viewer/quiz/{quiz_id}/question/{question_ref}", auth=False)
        question = Question.from_dict(body.get("question", body) if isinstance(body, dict) else {})
        question.id = question.id or question_ref
        return question

    async def list_viewers(self, quiz_id: int) -> List[Participant]:
        body = await self.api.get(f"/api/viewer/quiz/{quiz_id}/viewers", auth=False)
        return [Participant.from_dict(row) for row in _rows(body) if isinstance(row, dict)]

    # ----- viewer commands -------------------------------------------------

    async def join(self, quiz_id: int, name: str) -> str:
        body = await self.api.post(f"/api/viewer/quiz/{quiz_id}/join", auth=False,
                                   json={"quizId": quiz_id, "name": name})
        self._check(body, "Failed to join quiz")
        token = body.get("sessionId") if isinstance(body, dict) else None
        if not token:
            raise QuizClientError(backend_message(body) or "Join response carried no session id")
        return str(token)

    async def submit_answer(self, quiz_id: int, session_token: str,
                            submission: AnswerSubmission) -> dict:
        body = await self.api.post(f"/api/viewer/quiz/{quiz_id}/answer", auth=False,
                                   json=submission.to_payload(session_token))
        self._check(body, "Failed to submit answer")
        return body if isinstance(body, dict) else {}

    # ----- host commands ---------------------------------------------------

    async def open(self, quiz_id: int, title: str) -> dict:
        return self._check(await self.api.post(f"/api/viewer/quiz/{quiz_id}/open",
                                               json={"title": title}), "Failed to open quiz")

    async def start(self, quiz_id: int) -> dict:
        return self._check(await self.api.post(f"/api/viewer/quiz/{quiz_id}/start"),
                           "Failed to start quiz")

    async def advance(self, quiz_id: int, question: Question) -> dict:
        return self._check(await self.api.post(f"/api/viewer/quiz/{quiz_id}/question/{question.id}",
                                               json=question.to_payload()),
                           "Failed to advance question")

    async def finish(self, quiz_id: int) -> dict:
        return self._check(await self.api.post(f"/api/viewer/quiz/{quiz_id}/finish"),
                           "Failed to finish quiz")

    @staticmethod
    def _check(body, fallback: str) -> dict:
        if isinstance(body, dict) and body.get("success") is False:
            message = backend_message(body) or fallback
            logger.info(f"Viewer service refused command: {message}")
            raise SessionStateError(message, detail=body)
        return body if isinstance(body, dict) else {}
