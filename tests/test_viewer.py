"""Tests for ViewerParticipation: joining, the one-answer rule, scoring, teardown.

Countdowns run with period=None so the tests move time with tick().
"""

import asyncio

import pytest

from livequiz.common import SessionContext
from livequiz.config import ClientConfig
from livequiz.errors import ConnectivityError, SessionNotJoinableError, ValidationError
from livequiz.host_control import HostControl
from livequiz.quiz_types import LifecycleState
from livequiz.session_log import ParticipationLog, load_history
from livequiz.viewer import ANSWERED, QUESTION, RESULTS, WAITING, ViewerParticipation
from tests.fakes import FakeBuilder, FakeOracle, make_question


@pytest.fixture
def oracle():
    return FakeOracle(quiz_id=42)


def make_viewer(oracle, **kwargs):
    return ViewerParticipation(oracle, SessionContext(), 42, countdown_period=None, **kwargs)


async def tick(viewer, seconds):
    for _ in range(seconds):
        await viewer.countdown.tick()


async def joined_with_question(oracle, viewer, question):
    """Join while open, then have the host start and push `question`."""
    oracle.set_state(open_=True)
    await viewer.join("ana")
    oracle.set_state(open_=True, started=True)
    await oracle.advance(42, question)
    await viewer.lifecycle.poll()


class TestJoin:
    def test_join_open_session(self, oracle):
        oracle.set_state(open_=True)
        viewer = make_viewer(oracle)
        session = asyncio.run(viewer.join("  ana  "))
        assert session.token == "sess-1"
        assert session.name == "ana"
        assert viewer.context.viewer is session
        assert viewer.context.remembered_name == "ana"
        assert viewer.phase == WAITING

    def test_join_started_session_is_rejected(self, oracle):
        oracle.set_state(open_=True, started=True)
        viewer = make_viewer(oracle)
        with pytest.raises(SessionNotJoinableError):
            asyncio.run(viewer.join("ana"))
        assert oracle.count("join") == 0
        assert viewer.context.viewer is None

    def test_join_closed_session_is_rejected(self, oracle):
        viewer = make_viewer(oracle)
        with pytest.raises(SessionNotJoinableError, match="not open"):
            asyncio.run(viewer.join("ana"))

    def test_empty_name_never_reaches_the_service(self, oracle):
        oracle.set_state(open_=True)
        viewer = make_viewer(oracle)
        with pytest.raises(ValidationError):
            asyncio.run(viewer.join("   "))
        assert oracle.calls == []


class TestQuestions:
    def test_question_fetched_by_reference(self, oracle):
        viewer = make_viewer(oracle)
        asyncio.run(joined_with_question(oracle, viewer, make_question("q1", time_limit=20)))
        assert viewer.question.id == "q1"
        assert ("current_question", "q1") in oracle.calls
        assert viewer.countdown.remaining == 20
        assert viewer.phase == QUESTION
        assert viewer.questions_seen == 1

    def test_failed_fetch_is_retried_on_next_poll(self, oracle):
        viewer = make_viewer(oracle)

        fetch = oracle.current_question

        async def dropped(quiz_id, ref):
            raise ConnectivityError()

        async def go():
            oracle.set_state(open_=True)
            await viewer.join("ana")
            await oracle.advance(42, make_question("q1"))
            oracle.set_state(open_=True, started=True, current="q1")
            oracle.current_question = dropped
            with pytest.raises(ConnectivityError):
                await viewer._poll()
            assert viewer.question is None
            oracle.current_question = fetch
            await viewer._poll()

        asyncio.run(go())
        assert viewer.question.id == "q1"
        assert viewer.questions_seen == 1

    def test_finish_is_seen_while_question_fetch_keeps_failing(self, oracle):
        viewer = make_viewer(oracle)

        fetches = []

        async def dropped(quiz_id, ref):
            fetches.append(ref)
            raise ConnectivityError()

        async def go():
            oracle.set_state(open_=True)
            await viewer.join("ana")
            await oracle.advance(42, make_question("q1"))
            oracle.set_state(open_=True, started=True, current="q1")
            oracle.current_question = dropped
            for _ in range(3):
                with pytest.raises(ConnectivityError):
                    await viewer._poll()
            oracle.set_state(open_=True, started=True, finished=True, current="q1")
            await viewer._poll()
            await viewer._poll()

        asyncio.run(go())
        # one failed fetch per poll while live, none once finished
        assert fetches == ["q1"] * 3
        assert viewer.phase == RESULTS
        assert viewer.lifecycle.state is LifecycleState.FINISHED
        assert viewer.results.questions_answered == 0

    def test_new_question_clears_selection_and_submission(self, oracle):
        viewer = make_viewer(oracle)

        async def go():
            await joined_with_question(oracle, viewer, make_question("q1"))
            await viewer.select(2)
            await viewer.submit_answer(2)
            assert viewer.phase == ANSWERED
            await oracle.advance(42, make_question("q2"))
            await viewer.lifecycle.poll()

        asyncio.run(go())
        assert viewer.question.id == "q2"
        assert viewer.selected is None
        assert viewer.submitted is False
        assert viewer.phase == QUESTION


class TestSubmission:
    def test_timeout_sends_exactly_one_empty_answer(self, oracle):
        viewer = make_viewer(oracle)

        async def go():
            await joined_with_question(oracle, viewer, make_question("q1", time_limit=5))
            await tick(viewer, 5)
            # late manual attempt after expiry is a no-op
            return await viewer.submit_answer(1)

        assert asyncio.run(go()) is None
        assert len(oracle.submissions) == 1
        assert oracle.submissions[0].answer == ""
        assert oracle.submissions[0].question_id == "q1"
        assert viewer.score == 0

    def test_second_submission_is_a_no_op(self, oracle):
        viewer = make_viewer(oracle)

        async def go():
            await joined_with_question(oracle, viewer, make_question("q1"))
            first = await viewer.submit_answer(1)
            second = await viewer.submit_answer(0)
            await tick(viewer, 30)
            return first, second

        first, second = asyncio.run(go())
        assert first == 10
        assert second is None
        assert len(oracle.submissions) == 1
        assert oracle.submissions[0].answer == "Green"

    def test_submission_uses_session_token(self, oracle):
        viewer = make_viewer(oracle)
        asyncio.run(joined_with_question(oracle, viewer, make_question("q1")))
        asyncio.run(viewer.submit_answer(1))
        assert ("submit_answer", "sess-1", "Green") in oracle.calls

    def test_submit_without_question_does_nothing(self, oracle):
        viewer = make_viewer(oracle)
        assert asyncio.run(viewer.submit_answer(0)) is None
        assert oracle.submissions == []


class TestScoring:
    def test_correct_at_half_time(self, oracle):
        viewer = make_viewer(oracle)

        async def go():
            await joined_with_question(oracle, viewer, make_question("q1", correct=1, time_limit=30, points=10))
            await tick(viewer, 15)
            return await viewer.submit_answer(1)

        assert asyncio.run(go()) == 5
        assert viewer.score == 5

    def test_incorrect_scores_zero(self, oracle):
        viewer = make_viewer(oracle)

        async def go():
            await joined_with_question(oracle, viewer, make_question("q1", correct=1))
            await tick(viewer, 3)
            return await viewer.submit_answer(0)

        assert asyncio.run(go()) == 0
        assert viewer.score == 0

    def test_last_second_correct_answer_gets_minimum_award(self, oracle):
        viewer = make_viewer(oracle)

        async def go():
            await joined_with_question(oracle, viewer, make_question("q1", correct=1))
            await tick(viewer, 29)
            return await viewer.submit_answer(1)

        assert asyncio.run(go()) == 1

    def test_server_total_replaces_local_score(self, oracle):
        oracle.answer_response = {"success": True, "totalScore": 42}
        viewer = make_viewer(oracle)

        async def go():
            await joined_with_question(oracle, viewer, make_question("q1", correct=1))
            return await viewer.submit_answer(1)

        assert asyncio.run(go()) == 10
        assert viewer.confirmed_score == 42
        assert viewer.score == 42

    def test_failed_submission_still_counts_as_submitted(self, oracle):
        viewer = make_viewer(oracle)

        async def failing_submit(*args):
            raise ConnectivityError()

        async def go():
            await joined_with_question(oracle, viewer, make_question("q1"))
            oracle.submit_answer = failing_submit
            with pytest.raises(ConnectivityError):
                await viewer.submit_answer(1)
            return await viewer.submit_answer(1)

        assert asyncio.run(go()) is None
        assert viewer.submitted


class TestTeardown:
    def test_poll_resolving_after_close_changes_nothing(self, oracle):
        changes = []
        viewer = make_viewer(oracle, on_change=changes.append)

        async def go():
            oracle.set_state(open_=True)
            await viewer.join("ana")
            before = len(changes)
            await oracle.advance(42, make_question("q1"))
            oracle.set_state(open_=True, started=True, current="q1")
            oracle.hold = asyncio.Event()
            task = asyncio.create_task(viewer.lifecycle.poll())
            await asyncio.sleep(0)
            viewer.close()
            oracle.hold.set()
            result = await task
            return before, result

        before, result = asyncio.run(go())
        assert result is None
        assert len(changes) == before
        assert viewer.question is None
        assert viewer.lifecycle.state is LifecycleState.OPEN
        assert not viewer.countdown.running
        assert not viewer.poller.running

    def test_close_stops_running_countdown(self, oracle):
        viewer = make_viewer(oracle)

        async def go():
            await joined_with_question(oracle, viewer, make_question("q1"))
            viewer.close()
            await tick(viewer, 30)

        asyncio.run(go())
        assert oracle.submissions == []

    def test_leave_clears_viewer_session(self, oracle, tmp_path):
        journal = ParticipationLog(base_dir=tmp_path)
        viewer = make_viewer(oracle, journal=journal)
        oracle.set_state(open_=True)
        asyncio.run(viewer.join("ana"))
        viewer.leave()
        assert viewer.context.viewer is None
        assert viewer.closed
        assert load_history(journal.path).end_reason == "left"


class TestEndToEnd:
    def test_host_and_viewer_through_one_session(self, oracle, tmp_path):
        q1 = make_question("q1", correct=1, time_limit=30, points=10)
        q2 = make_question("q2", correct=0, time_limit=30, points=10)
        host_context = SessionContext(token="host-token")
        host = HostControl(oracle, FakeBuilder([q1, q2]), host_context, 42, title="Colours")
        journal = ParticipationLog(base_dir=tmp_path)
        viewer = make_viewer(oracle, journal=journal, config=ClientConfig())

        async def scenario():
            await host.open_session()
            await viewer.join("ana")
            await host.start_session()

            await host.advance_question()
            await viewer.lifecycle.poll()
            assert viewer.question.id == "q1"
            await tick(viewer, 10)
            assert await viewer.submit_answer(1) == 6

            await host.advance_question()
            await viewer.lifecycle.poll()
            assert viewer.question.id == "q2"
            await tick(viewer, 30)

            await host.finish_session()
            await viewer.lifecycle.poll()

        asyncio.run(scenario())
        assert viewer.phase == RESULTS
        assert viewer.results.score == 6
        assert viewer.results.questions_answered == 2
        assert [s.answer for s in oracle.submissions] == ["Green", ""]
        assert not viewer.poller.running

        history = load_history(journal.path)
        assert history.ended
        assert history.final_score == 6
        assert history.unanswered() == [2]
