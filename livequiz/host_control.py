"""Host Control Surface: drive one quiz's session forward.

The host owns question order. `questions` is the authored sequence loaded
from the builder service and `advancing_index` points at the next one to
send; the session service only relays whatever question the host pushes.

Every command:
  1. re-polls first, so it is checked against the service's state;
  2. on success records the expected state as optimistic and re-polls again
     (the poll, not the command response, is the source of truth);
  3. on a 401-class failure clears the credentials and calls `on_logout`;
  4. on a state error re-polls to resync before re-raising.
"""
from __future__ import annotations

import functools
import inspect
from typing import Any, Callable, List, Optional

from livequiz.common import SessionContext, logger
from livequiz.errors import (
    AlreadyOpenError,
    ConnectivityError,
    QuizClientError,
    SessionStateError,
    Unauthorized,
)
from livequiz.lifecycle import EventHandler, LifecycleClient, LifecycleEvent, SessionStarted
from livequiz.poller import Poller
from livequiz.quiz_types import LifecycleState, Participant, Question
from livequiz.services import BuilderService, ViewerService


def host_command(method):
    """Apply the uniform 401 and state-error policy to a HostControl command."""

    @functools.wraps(method)
    async def wrapper(self: "HostControl", *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except Unauthorized:
            logger.warning(f"[Host {self.quiz_id}] {method.__name__} unauthorized, forcing logout")
            await self.force_logout()
            raise
        except SessionStateError:
            logger.info(f"[Host {self.quiz_id}] {method.__name__} refused, resyncing state")
            await self._resync()
            raise

    return wrapper


class HostControl:
    def __init__(self, viewer_service: ViewerService, builder: BuilderService,
                 context: SessionContext, quiz_id: int, *, title: str = "",
                 on_event: Optional[EventHandler] = None,
                 on_logout: Optional[Callable[[], Any]] = None,
                 on_change: Optional[Callable[["HostControl"], Any]] = None,
                 poll_interval: float = 2.0,
                 live_poll_interval: float = 1.0) -> None:
        self.service = viewer_service
        self.builder = builder
        self.context = context
        self.quiz_id = quiz_id
        self.title = title
        self.on_logout = on_logout
        self.on_change = on_change
        self.on_event = on_event
        self.live_poll_interval = live_poll_interval
        self.lifecycle = LifecycleClient(viewer_service, quiz_id, on_event=self._on_event)
        self.questions: List[Question] = []
        self.advancing_index = 0
        self.participants: List[Participant] = []
        self.poller = Poller(self.tick, poll_interval, name=f"host-poll-{quiz_id}")

    # ----- queries ---------------------------------------------------------

    @property
    def view_state(self) -> LifecycleState:
        return self.lifecycle.view_state

    @property
    def remaining_questions(self) -> int:
        return max(0, len(self.questions) - self.advancing_index)

    @property
    def current_question(self) -> Optional[Question]:
        if self.advancing_index == 0:
            return None
        return self.questions[self.advancing_index - 1]

    def can_open(self) -> bool:
        return self.view_state is LifecycleState.CLOSED

    def can_start(self) -> bool:
        return self.view_state is LifecycleState.OPEN

    def can_advance(self) -> bool:
        return self.view_state is LifecycleState.STARTED and self.remaining_questions > 0

    def can_finish(self) -> bool:
        return self.view_state is LifecycleState.STARTED and self.remaining_questions == 0

    # ----- polling ---------------------------------------------------------

    async def refresh(self) -> LifecycleState:
        await self.lifecycle.poll()
        return self.view_state

    async def tick(self) -> None:
        """One poll cycle: lifecycle status, then the participant list while a
        session is live."""
        await self.refresh()
        if self.view_state in (LifecycleState.OPEN, LifecycleState.STARTED):
            await self.list_participants()
        await self._notify()

    def start_polling(self, on_error=None) -> None:
        self.poller.on_error = on_error
        self.poller.start()

    def close(self) -> None:
        """Screen teardown: stop polling and ignore any late responses."""
        self.poller.stop()
        self.lifecycle.close()

    # ----- commands --------------------------------------------------------

    @host_command
    async def open_session(self, title: Optional[str] = None) -> LifecycleState:
        title = title or self.title or f"Quiz {self.quiz_id}"
        await self.refresh()
        if self.view_state is not LifecycleState.CLOSED:
            raise AlreadyOpenError(f"Quiz {self.quiz_id} is already {self.view_state.value}.")
        await self.service.open(self.quiz_id, title)
        logger.info(f"[Host {self.quiz_id}] opened '{title}'")
        self.lifecycle.mark_optimistic(LifecycleState.OPEN)
        await self._confirm()
        return self.view_state

    @host_command
    async def start_session(self) -> LifecycleState:
        await self.refresh()
        self._require(LifecycleState.OPEN, "start")
        await self.load_questions()
        await self.service.start(self.quiz_id)
        self.advancing_index = 0
        logger.info(f"[Host {self.quiz_id}] started with {len(self.questions)} questions")
        self.lifecycle.mark_optimistic(LifecycleState.STARTED)
        await self._confirm()
        return self.view_state

    @host_command
    async def advance_question(self) -> Question:
        await self.refresh()
        self._require(LifecycleState.STARTED, "advance")
        if self.remaining_questions == 0:
            raise SessionStateError("No more questions available")
        question = self.questions[self.advancing_index]
        await self.service.advance(self.quiz_id, question)
        self.advancing_index += 1
        logger.info(f"[Host {self.quiz_id}] advanced to question "
                    f"{self.advancing_index}/{len(self.questions)} (id={question.id})")
        await self._confirm()
        return question

    @host_command
    async def finish_session(self) -> LifecycleState:
        await self.refresh()
        self._require(LifecycleState.STARTED, "finish")
        if self.remaining_questions > 0:
            raise SessionStateError(f"{self.remaining_questions} question(s) have not been shown yet")
        await self.service.finish(self.quiz_id)
        logger.info(f"[Host {self.quiz_id}] finished")
        self.lifecycle.mark_optimistic(LifecycleState.FINISHED)
        await self._confirm()
        return self.view_state

    @host_command
    async def load_questions(self) -> List[Question]:
        self.questions = await self.builder.list_questions(self.quiz_id)
        return self.questions

    @host_command
    async def list_participants(self) -> List[Participant]:
        self.participants = await self.service.list_viewers(self.quiz_id)
        return self.participants

    async def force_logout(self) -> None:
        self.close()
        self.context.clear_credentials()
        if self.on_logout is not None:
            result = self.on_logout()
            if inspect.isawaitable(result):
                await result

    # ----- internals -------------------------------------------------------

    def _require(self, state: LifecycleState, action: str) -> None:
        if self.view_state is not state:
            raise SessionStateError(f"Cannot {action} quiz {self.quiz_id}: it is "
                                    f"{self.view_state.value}, not {state.value}.")

    async def _confirm(self) -> None:
        """Re-poll after a command. If the poll fails the optimistic state stays
        on screen until the next successful poll."""
        try:
            await self.refresh()
        except ConnectivityError:
            logger.info(f"[Host {self.quiz_id}] verification pending, keeping optimistic state")

    async def _on_event(self, event: LifecycleEvent) -> None:
        if isinstance(event, SessionStarted):
            self.poller.set_interval(self.live_poll_interval)
        if self.on_event is None:
            return
        result = self.on_event(event)
        if inspect.isawaitable(result):
            await result

    async def _notify(self) -> None:
        if self.on_change is None or self.lifecycle.closed:
            return
        result = self.on_change(self)
        if inspect.isawaitable(result):
            await result

    async def _resync(self) -> None:
        try:
            await self.refresh()
        except QuizClientError as e:
            logger.info(f"[Host {self.quiz_id}] resync failed: {e.message}")
