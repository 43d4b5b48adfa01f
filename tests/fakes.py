"""In-memory stand-ins for the backend services.

FakeOracle behaves like the viewer/session service: host commands mutate
one session record and status() reports it, so a HostControl and a
ViewerParticipation can share one instance and talk only through it.
"""
from __future__ import annotations

import asyncio
from typing import List, Optional

from livequiz.errors import NotFoundError, SessionStateError
from livequiz.quiz_types import AnswerSubmission, Participant, Question, SessionSnapshot


def make_question(qid: str, correct: int = 1, time_limit: int = 30, points: int = 10) -> Question:
    return Question(
        id=qid,
        prompt=f"Prompt for {qid}",
        options=["Red", "Green", "Blue", "Yellow"],
        correct_option_index=correct,
        time_limit_seconds=time_limit,
        points=points,
    )


class FakeOracle:
    def __init__(self, quiz_id: int = 42) -> None:
        self.quiz_id = quiz_id
        self.record = {"isOpen": False, "isStarted": False, "isFinished": False,
                       "currentQuestion": None, "message": ""}
        self.live_questions: dict[str, Question] = {}
        self.calls: List[tuple] = []
        self.submissions: List[AnswerSubmission] = []
        self.viewers: List[Participant] = []
        # each status() call consumes one entry; a non-None entry is raised
        self.status_errors: list = []
        self.hold: Optional[asyncio.Event] = None
        self.answer_response: dict = {"success": True}
        self.command_errors: dict = {}
        self._next_token = 0

    # ----- observation -----------------------------------------------------

    async def status(self, quiz_id: int) -> SessionSnapshot:
        self.calls.append(("status", quiz_id))
        snapshot = SessionSnapshot.from_dict(dict(self.record), quiz_id)
        if self.hold is not None:
            await self.hold.wait()
        if self.status_errors:
            error = self.status_errors.pop(0)
            if error is not None:
                raise error
        return snapshot

    async def current_question(self, quiz_id: int, question_ref: str) -> Question:
        self.calls.append(("current_question", question_ref))
        if question_ref not in self.live_questions:
            raise NotFoundError()
        return self.live_questions[question_ref]

    async def list_viewers(self, quiz_id: int) -> List[Participant]:
        self.calls.append(("list_viewers", quiz_id))
        return list(self.viewers)

    # ----- viewer commands -------------------------------------------------

    async def join(self, quiz_id: int, name: str) -> str:
        self.calls.append(("join", name))
        self._next_token += 1
        token = f"sess-{self._next_token}"
        self.viewers.append(Participant(session_id=token, display_name=name))
        return token

    async def submit_answer(self, quiz_id: int, session_token: str, submission: AnswerSubmission) -> dict:
        self.calls.append(("submit_answer", session_token, submission.answer))
        self.submissions.append(submission)
        return dict(self.answer_response)

    # ----- host commands ---------------------------------------------------

    def _raise_for(self, name: str) -> None:
        error = self.command_errors.get(name)
        if error is not None:
            raise error

    async def open(self, quiz_id: int, title: str) -> dict:
        self.calls.append(("open", title))
        self._raise_for("open")
        if self.record["isOpen"]:
            raise SessionStateError("Quiz already open")
        self.record["isOpen"] = True
        self.record["message"] = f"{title} is open"
        return {"success": True}

    async def start(self, quiz_id: int) -> dict:
        self.calls.append(("start", quiz_id))
        self._raise_for("start")
        self.record["isStarted"] = True
        return {"success": True}

    async def advance(self, quiz_id: int, question: Question) -> dict:
        self.calls.append(("advance", question.id, question.to_payload()))
        self._raise_for("advance")
        self.live_questions[question.id] = question
        self.record["currentQuestion"] = question.id
        return {"success": True}

    async def finish(self, quiz_id: int) -> dict:
        self.calls.append(("finish", quiz_id))
        self._raise_for("finish")
        self.record["isFinished"] = True
        return {"success": True}

    # ----- helpers ---------------------------------------------------------

    def set_state(self, *, open_: bool = False, started: bool = False, finished: bool = False,
                  current: Optional[str] = None) -> None:
        self.record.update(isOpen=open_, isStarted=started, isFinished=finished, currentQuestion=current)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


class FakeBuilder:
    def __init__(self, questions: Optional[List[Question]] = None) -> None:
        self.questions = list(questions or [])
        self.calls: List[tuple] = []

    async def list_questions(self, quiz_id: int) -> List[Question]:
        self.calls.append(("list_questions", quiz_id))
        return list(self.questions)


class FakeApi:
    """Records ApiClient calls and answers from a canned queue."""

    def __init__(self, context, responses: Optional[list] = None) -> None:
        self.context = context
        self.responses = list(responses or [])
        self.calls: List[dict] = []

    async def request(self, method: str, path: str, *, json=None, params=None, auth: bool = True):
        self.calls.append({"method": method, "path": path, "json": json, "auth": auth})
        response = self.responses.pop(0) if self.responses else {}
        if isinstance(response, Exception):
            raise response
        return response

    async def get(self, path: str, **kwargs):
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs):
        return await self.request("POST", path, **kwargs)
