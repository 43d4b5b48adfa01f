"""Tests for LifecycleClient: monotonic state, event order, stale and late polls."""

import asyncio

import pytest

from livequiz.errors import ConnectivityError
from livequiz.lifecycle import (
    LifecycleClient,
    QuestionAdvanced,
    SessionFinished,
    SessionOpened,
    SessionStarted,
)
from livequiz.quiz_types import LifecycleState, SessionSnapshot


def snap(open_=False, started=False, finished=False, current=None, quiz_id=42):
    return SessionSnapshot.from_dict({"isOpen": open_, "isStarted": started, "isFinished": finished,
                                      "currentQuestion": current}, quiz_id)


class ScriptedSource:
    """Returns the queued snapshots in order; raises queued exceptions."""

    def __init__(self, *items):
        self.items = list(items)

    async def status(self, quiz_id):
        item = self.items.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class GatedSource:
    """Each status() call waits on its own future, resolved by the test."""

    def __init__(self):
        self.pending = []

    async def status(self, quiz_id):
        future = asyncio.get_running_loop().create_future()
        self.pending.append(future)
        return await future


def run_polls(client, count):
    async def go():
        for _ in range(count):
            await client.poll()
    asyncio.run(go())


class TestTransitions:
    def test_starts_closed(self):
        client = LifecycleClient(ScriptedSource(), 42)
        assert client.state is LifecycleState.CLOSED
        assert client.view_state is LifecycleState.CLOSED

    def test_forward_path_emits_each_event(self):
        events = []
        source = ScriptedSource(snap(open_=True),
                                snap(open_=True, started=True),
                                snap(open_=True, started=True, current="q1"),
                                snap(open_=True, started=True, finished=True, current="q1"))
        client = LifecycleClient(source, 42, on_event=events.append)
        run_polls(client, 4)

        assert [type(e) for e in events] == [SessionOpened, SessionStarted, QuestionAdvanced, SessionFinished]
        assert events[2].question_ref == "q1"
        assert client.state is LifecycleState.FINISHED
        assert client.is_terminal

    def test_jump_is_walked_one_state_at_a_time(self):
        events = []
        source = ScriptedSource(snap(open_=True, started=True, finished=True))
        client = LifecycleClient(source, 42, on_event=events.append)
        run_polls(client, 1)
        assert [type(e) for e in events] == [SessionOpened, SessionStarted, SessionFinished]

    def test_question_only_seen_on_the_way_to_finished_is_not_announced(self):
        events = []
        source = ScriptedSource(snap(open_=True, started=True, finished=True, current="q9"))
        client = LifecycleClient(source, 42, on_event=events.append)
        run_polls(client, 1)
        assert not any(isinstance(e, QuestionAdvanced) for e in events)

    def test_same_question_reported_twice_is_one_event(self):
        events = []
        live = snap(open_=True, started=True, current="q1")
        client = LifecycleClient(ScriptedSource(live, live), 42, on_event=events.append)
        run_polls(client, 2)
        assert sum(isinstance(e, QuestionAdvanced) for e in events) == 1

    def test_async_event_handler_is_awaited(self):
        seen = []

        async def handler(event):
            await asyncio.sleep(0)
            seen.append(event)

        client = LifecycleClient(ScriptedSource(snap(open_=True)), 42, on_event=handler)
        run_polls(client, 1)
        assert len(seen) == 1


class TestMonotonic:
    def test_backward_claim_keeps_finished(self):
        source = ScriptedSource(snap(open_=True, started=True, finished=True),
                                snap(open_=True, started=True, finished=False),
                                snap())
        client = LifecycleClient(source, 42)
        run_polls(client, 3)
        assert client.state is LifecycleState.FINISHED

    @pytest.mark.parametrize("sequence", [
        ["open", "closed", "started", "open", "finished", "started"],
        ["started", "closed", "closed", "open"],
        ["finished", "closed"],
        ["open", "open", "closed", "finished"],
    ])
    def test_state_never_moves_backwards(self, sequence):
        shapes = {
            "closed": snap(),
            "open": snap(open_=True),
            "started": snap(open_=True, started=True),
            "finished": snap(open_=True, started=True, finished=True),
        }
        client = LifecycleClient(ScriptedSource(*[shapes[s] for s in sequence]), 42)
        ranks = []

        async def go():
            for _ in sequence:
                await client.poll()
                ranks.append(client.state.rank)

        asyncio.run(go())
        assert ranks == sorted(ranks)

    def test_failed_poll_propagates_and_keeps_state(self):
        client = LifecycleClient(ScriptedSource(snap(open_=True), ConnectivityError()), 42)
        run_polls(client, 1)
        with pytest.raises(ConnectivityError):
            run_polls(client, 1)
        assert client.state is LifecycleState.OPEN


class TestOptimistic:
    def test_optimistic_state_shown_until_next_poll(self):
        client = LifecycleClient(ScriptedSource(snap()), 42)
        client.mark_optimistic(LifecycleState.OPEN)
        assert client.view_state is LifecycleState.OPEN
        assert client.state is LifecycleState.CLOSED

        # remote says still closed: remote wins
        run_polls(client, 1)
        assert client.optimistic is None
        assert client.view_state is LifecycleState.CLOSED

    def test_optimistic_behind_confirmed_is_ignored(self):
        client = LifecycleClient(ScriptedSource(snap(open_=True, started=True)), 42)
        run_polls(client, 1)
        client.mark_optimistic(LifecycleState.OPEN)
        assert client.optimistic is None


class TestOrderingAndTeardown:
    def test_older_poll_resolving_late_is_discarded(self):
        events = []

        async def scenario():
            source = GatedSource()
            client = LifecycleClient(source, 42, on_event=events.append)
            client.observe(snap(open_=True, started=True))
            poll_a = asyncio.create_task(client.poll())
            await asyncio.sleep(0)
            poll_b = asyncio.create_task(client.poll())
            await asyncio.sleep(0)

            source.pending[1].set_result(snap(open_=True, started=True, current="q2"))
            assert await poll_b is not None
            source.pending[0].set_result(snap(open_=True, started=True, current="q1"))
            assert await poll_a is None
            return client

        client = asyncio.run(scenario())
        assert client.current_question_ref == "q2"
        assert [e.question_ref for e in events if isinstance(e, QuestionAdvanced)] == ["q2"]

    def test_poll_resolving_after_close_has_no_effect(self):
        events = []

        async def scenario():
            source = GatedSource()
            client = LifecycleClient(source, 42, on_event=events.append)
            task = asyncio.create_task(client.poll())
            await asyncio.sleep(0)
            client.close()
            source.pending[0].set_result(snap(open_=True, started=True, current="q1"))
            assert await task is None
            return client

        client = asyncio.run(scenario())
        assert client.state is LifecycleState.CLOSED
        assert client.snapshot is None
        assert events == []

    def test_poll_after_close_does_not_call_source(self):
        source = ScriptedSource()
        client = LifecycleClient(source, 42)
        client.close()
        assert asyncio.run(client.poll()) is None
