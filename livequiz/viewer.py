"""Viewer Participation Surface: join, observe, answer, score.

One ViewerParticipation lives as long as the play screen. It owns two timers
(the status poller and the question countdown) and both are stopped by
close(); anything that resolves after that is dropped.
"""
from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from livequiz.common import SessionContext, logger
from livequiz.config import ClientConfig
from livequiz.countdown import Countdown
from livequiz.errors import QuizClientError, SessionNotJoinableError
from livequiz.lifecycle import (
    LifecycleClient,
    LifecycleEvent,
    QuestionAdvanced,
    SessionFinished,
    SessionStarted,
)
from livequiz.poller import Poller
from livequiz.quiz_types import AnswerSubmission, LifecycleState, Participant, Question, ViewerSession
from livequiz.services import ViewerService
from livequiz.session_log import ParticipationLog
from livequiz.utils import clean_display_name, speed_weighted_score

WAITING = "waiting"
QUESTION = "question"
ANSWERED = "answered"
RESULTS = "results"


@dataclass(frozen=True)
class ViewerResults:
    score: int
    questions_answered: int


class ViewerParticipation:
    def __init__(self, service: ViewerService, context: SessionContext, quiz_id: int, *,
                 config: Optional[ClientConfig] = None,
                 countdown_period: Optional[float] = 1.0,
                 journal: Optional[ParticipationLog] = None,
                 on_change: Optional[Callable[["ViewerParticipation"], Any]] = None) -> None:
        self.service = service
        self.context = context
        self.quiz_id = quiz_id
        self.config = config or ClientConfig()
        self.journal = journal
        self.on_change = on_change

        self.lifecycle = LifecycleClient(service, quiz_id, on_event=self._on_event)
        self.countdown = Countdown(on_tick=self._on_tick, on_expire=self._on_expire,
                                   period=countdown_period)
        self.poller = Poller(self._poll, self.config.start_poll_interval,
                             name=f"viewer-poll-{quiz_id}")

        self.question: Optional[Question] = None
        self.selected: Optional[int] = None
        self.submitted = False
        self.last_award: Optional[int] = None
        # two-tier score: local deltas are optimistic, a server total replaces them
        self.local_score = 0
        self.confirmed_score: Optional[int] = None
        self.questions_seen = 0
        self.participants: List[Participant] = []
        self.results: Optional[ViewerResults] = None
        self.closed = False
        self._missing_ref: Optional[str] = None

    # ----- queries ---------------------------------------------------------

    @property
    def score(self) -> int:
        return self.local_score

    @property
    def session(self) -> Optional[ViewerSession]:
        return self.context.viewer

    @property
    def phase(self) -> str:
        if self.results is not None:
            return RESULTS
        if self.question is None:
            return WAITING
        return ANSWERED if self.submitted else QUESTION

    @property
    def message(self) -> str:
        return self.lifecycle.message

    # ----- join ------------------------------------------------------------

    async def join(self, name: str) -> ViewerSession:
        """Join the quiz as `name`. Only an open, not yet started session accepts joins."""
        name = clean_display_name(name)
        await self.lifecycle.poll()
        state = self.lifecycle.state
        if state is not LifecycleState.OPEN:
            reasons = {
                LifecycleState.CLOSED: "This quiz is not open for viewers yet.",
                LifecycleState.STARTED: "This quiz has already started.",
                LifecycleState.FINISHED: "This quiz has already finished.",
            }
            raise SessionNotJoinableError(reasons[state])

        token = await self.service.join(self.quiz_id, name)
        viewer = ViewerSession(token=token, quiz_id=self.quiz_id, name=name)
        self.context.join(viewer)
        logger.info(f"[Viewer {self.quiz_id}] joined as '{name}'")
        if self.journal is not None:
            self.journal.log_session_start(self.quiz_id, name, self.config.viewer_url)
        await self._notify()
        return viewer

    # ----- timers ----------------------------------------------------------

    def start(self, on_error=None) -> None:
        """Begin polling. The interval is slow until the host starts the quiz."""
        if self.closed:
            return
        if on_error is not None:
            self.poller.on_error = on_error
        self.poller.start()

    def close(self) -> None:
        """Screen teardown: stop both timers and ignore late responses. Idempotent."""
        if self.closed:
            return
        self.closed = True
        self.poller.stop()
        self.countdown.stop()
        self.lifecycle.close()
        logger.info(f"[Viewer {self.quiz_id}] closed")

    def leave(self) -> None:
        ended = self.results is not None
        self.close()
        if self.journal is not None and not ended:
            self.journal.log_session_end("left", self.score, graceful=True)
        self.context.leave()

    # ----- answering -------------------------------------------------------

    async def select(self, option_index: int) -> None:
        if self.phase != QUESTION or self.question is None:
            return
        if 0 <= option_index < len(self.question.options):
            self.selected = option_index
            await self._notify()

    async def submit_answer(self, option_index: Optional[int] = None) -> Optional[int]:
        """Submit once for the current question; `None` is the empty answer.

        Returns the locally computed award, or None when nothing was sent
        (no question, already submitted, or closed).
        """
        if self.closed or self.question is None or self.submitted:
            return None
        if self.context.viewer is None:
            logger.warning(f"[Viewer {self.quiz_id}] submit without a joined session ignored")
            return None

        # claim the submission before any await so a racing expiry is a no-op
        self.submitted = True
        question = self.question
        remaining = self.countdown.stop()
        if option_index is not None and not (0 <= option_index < len(question.options)):
            option_index = None
        self.selected = option_index

        award = speed_weighted_score(question.is_correct(option_index), remaining,
                                     question.time_limit_seconds, question.points,
                                     self.config.minimum_award_fraction)
        self.last_award = award
        self.local_score += award
        answer = question.options[option_index] if option_index is not None else ""
        q_index = self.questions_seen
        logger.info(f"[Viewer {self.quiz_id}] submitting q{q_index} answer={answer!r} "
                    f"remaining={remaining}s award={award}")
        await self._notify()

        submission = AnswerSubmission(question_id=question.id, answer=answer)
        try:
            body = await self.service.submit_answer(self.quiz_id, self.context.viewer.token, submission)
        finally:
            if self.journal is not None:
                self.journal.log_answer_submitted(q_index, option_index, answer, award)

        if self.closed:
            return award
        total = _server_total(body)
        if total is not None:
            if total != self.local_score:
                logger.info(f"[Viewer {self.quiz_id}] server total {total} replaces local {self.local_score}")
            self.confirmed_score = total
            self.local_score = total
            await self._notify()
        return award

    # ----- lifecycle -------------------------------------------------------

    async def _poll(self) -> None:
        # status first: a question that keeps failing to load must not block the finish
        await self.lifecycle.poll()
        if self.closed:
            return
        state = self.lifecycle.state
        if state is LifecycleState.STARTED and self._missing_ref is not None \
                and self._missing_ref == self.lifecycle.current_question_ref:
            await self._load_question(self._missing_ref, None)
        elif state is LifecycleState.OPEN:
            participants = await self.service.list_viewers(self.quiz_id)
            if not self.closed:
                self.participants = participants
                await self._notify()

    async def _on_event(self, event: LifecycleEvent) -> None:
        if isinstance(event, SessionStarted):
            self.poller.set_interval(self.config.live_poll_interval)
            logger.info(f"[Viewer {self.quiz_id}] quiz started")
            await self._notify()
        elif isinstance(event, QuestionAdvanced):
            await self._load_question(event.question_ref, event.question)
        elif isinstance(event, SessionFinished):
            await self._finish()

    async def _load_question(self, ref: str, question: Optional[Question]) -> None:
        if question is None:
            try:
                question = await self.service.current_question(self.quiz_id, ref)
            except QuizClientError:
                self._missing_ref = ref
                raise
        self._missing_ref = None
        if self.closed or ref != self.lifecycle.current_question_ref:
            return

        self.question = question
        self.selected = None
        self.submitted = False
        self.last_award = None
        self.questions_seen += 1
        logger.info(f"[Viewer {self.quiz_id}] question {self.questions_seen} ({ref}): "
                    f"{question.time_limit_seconds}s, {question.points} pts")
        if self.journal is not None:
            self.journal.log_question_received(self.questions_seen, question)
        self.countdown.start(question.time_limit_seconds)
        await self._notify()

    async def _finish(self) -> None:
        self._missing_ref = None
        self.poller.stop()
        self.countdown.stop()
        self.results = ViewerResults(score=self.score, questions_answered=self.questions_seen)
        logger.info(f"[Viewer {self.quiz_id}] finished: score={self.results.score} "
                    f"questions={self.results.questions_answered}")
        if self.journal is not None:
            self.journal.log_session_end("finished", self.results.score)
        await self._notify()

    async def _on_tick(self, remaining: int) -> None:
        await self._notify()

    async def _on_expire(self) -> None:
        if not self.submitted:
            logger.info(f"[Viewer {self.quiz_id}] time is up, sending empty answer")
            try:
                await self.submit_answer(None)
            except QuizClientError as e:
                logger.warning(f"[Viewer {self.quiz_id}] empty answer not delivered: {e.message}")

    async def _notify(self) -> None:
        if self.on_change is None or self.closed:
            return
        result = self.on_change(self)
        if inspect.isawaitable(result):
            await result


def _server_total(body) -> Optional[int]:
    if not isinstance(body, dict):
        return None
    for key in ("totalScore", "score"):
        value = body.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return max(0, int(value))
    return None
