"""Locally observed session lifecycle, driven by status polls.

    CLOSED -> OPEN -> STARTED -> (question, question, ...) -> FINISHED

The viewer/session service owns the real state. This module only watches
it, and keeps the local view monotonic:

- a poll that claims an earlier state than the one already seen is ignored
  (FINISHED in particular is terminal);
- a poll that jumps ahead (OPEN straight to FINISHED after missed polls) is
  walked one state at a time, so listeners see every transition in order;
- results of an older poll arriving after a newer one are dropped;
- after close(), nothing is applied and nothing is dispatched.
"""
from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol

from livequiz.common import logger
from livequiz.quiz_types import LifecycleState, Question, SessionSnapshot


@dataclass(frozen=True)
class LifecycleEvent:
    quiz_id: int


@dataclass(frozen=True)
class SessionOpened(LifecycleEvent):
    pass


@dataclass(frozen=True)
class SessionStarted(LifecycleEvent):
    pass


@dataclass(frozen=True)
class QuestionAdvanced(LifecycleEvent):
    question_ref: str
    question: Optional[Question] = None


@dataclass(frozen=True)
class SessionFinished(LifecycleEvent):
    pass


_ENTERED = {
    LifecycleState.OPEN: SessionOpened,
    LifecycleState.STARTED: SessionStarted,
    LifecycleState.FINISHED: SessionFinished,
}


class StatusSource(Protocol):
    async def status(self, quiz_id: int) -> SessionSnapshot: ...


EventHandler = Callable[[LifecycleEvent], Any]


class LifecycleClient:
    """Observer of one quiz's session.

    Two tiers of state:
      confirmed  - the last snapshot accepted from the service (monotonic)
      optimistic - set by a host command that has succeeded but has not yet
                   been confirmed by a poll; cleared by the next accepted
                   poll, whatever it says
    `view_state` is what screens should display.
    """

    def __init__(self, source: StatusSource, quiz_id: int,
                 on_event: Optional[EventHandler] = None) -> None:
        self.source = source
        self.quiz_id = quiz_id
        self.on_event = on_event
        self.state = LifecycleState.CLOSED
        self.snapshot: Optional[SessionSnapshot] = None
        self.optimistic: Optional[LifecycleState] = None
        self.current_question_ref: Optional[str] = None
        self.closed = False
        self._issued = 0
        self._applied = 0

    # ----- queries ---------------------------------------------------------

    @property
    def view_state(self) -> LifecycleState:
        if self.optimistic is not None and self.optimistic.rank > self.state.rank:
            return self.optimistic
        return self.state

    @property
    def is_terminal(self) -> bool:
        return self.state is LifecycleState.FINISHED

    @property
    def message(self) -> str:
        return self.snapshot.message if self.snapshot else ""

    # ----- polling ---------------------------------------------------------

    async def poll(self) -> Optional[SessionSnapshot]:
        """Fetch a snapshot and apply it. Errors from the source propagate.

        Returns the snapshot if it was applied, None if it was discarded
        (stale, or the client was closed while the request was in flight).
        """
        if self.closed:
            return None
        self._issued += 1
        seq = self._issued
        snapshot = await self.source.status(self.quiz_id)

        if self.closed:
            logger.debug(f"[Lifecycle {self.quiz_id}] discarding poll #{seq} after close")
            return None
        if seq < self._applied:
            logger.warning(f"[Lifecycle {self.quiz_id}] discarding stale poll #{seq} "
                           f"(already applied #{self._applied})")
            return None
        self._applied = seq

        events = self.observe(snapshot)
        for event in events:
            if self.closed:
                break
            await self._dispatch(event)
        return snapshot

    def observe(self, snapshot: SessionSnapshot) -> List[LifecycleEvent]:
        """Fold one snapshot into local state and return the resulting events."""
        self.optimistic = None
        target = snapshot.state

        if target.rank < self.state.rank:
            logger.warning(f"[Lifecycle {self.quiz_id}] ignoring backward transition "
                           f"{self.state.value} -> {target.value}")
            return []

        self.snapshot = snapshot
        events: List[LifecycleEvent] = []
        while self.state is not target:
            self.state = self.state.next()
            logger.info(f"[Lifecycle {self.quiz_id}] entered {self.state.value}")
            events.append(_ENTERED[self.state](quiz_id=self.quiz_id))

        # a question seen only on the way to FINISHED is never played
        if self.state is LifecycleState.STARTED:
            ref = snapshot.current_question_ref
            if ref and ref != self.current_question_ref:
                self.current_question_ref = ref
                logger.info(f"[Lifecycle {self.quiz_id}] question advanced to {ref}")
                events.append(QuestionAdvanced(quiz_id=self.quiz_id, question_ref=ref,
                                               question=snapshot.current_question))
        return events

    # ----- host-side optimism ----------------------------------------------

    def mark_optimistic(self, state: LifecycleState) -> None:
        """Record a command's expected outcome until a poll confirms or denies it."""
        if self.closed or state.rank <= self.state.rank:
            return
        self.optimistic = state

    def close(self) -> None:
        """Stop applying results. Idempotent."""
        if not self.closed:
            logger.debug(f"[Lifecycle {self.quiz_id}] closed")
        self.closed = True

    async def _dispatch(self, event: LifecycleEvent) -> None:
        if self.on_event is None:
            return
        result = self.on_event(event)
        if inspect.isawaitable(result):
            await result
