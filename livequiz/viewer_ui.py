"""
Viewer TUI for livequiz.

JoinScreen -> PlayScreen. The play screen owns one ViewerParticipation and
renders whatever phase it is in: waiting room, live question, answered,
results. Leaving the screen stops its poller and countdown.
"""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table
from textual import work
from textual.app import App, ComposeResult
from textual.containers import Container, Vertical
from textual.screen import Screen
from textual.widgets import Button, DataTable, Footer, Header, Input, Static

from livequiz.api_client import ApiClient
from livequiz.common import SessionContext, configure_logging, logger
from livequiz.config import ClientConfig
from livequiz.errors import ConnectivityError, NotFoundError, QuizClientError
from livequiz.quiz_types import LifecycleState
from livequiz.services import ViewerService
from livequiz.session_log import ParticipationHistory, ParticipationLog, load_history
from livequiz.utils import _viewer_validate, format_participant_row, rank_participants
from livequiz.viewer import ANSWERED, QUESTION, RESULTS, WAITING, ViewerParticipation
from livequiz.widgets.basic_widgets import BorderedInputButtonContainer, BorderedInputContainer
from livequiz.widgets.plot_widgets import ScoreHistoryPlot
from livequiz.widgets.quiz_question_widget import LABELS, QuizQuestionWidget

THEME = "flexoki"


class JoinScreen(Screen):
    """Quiz code + display name."""

    CSS = """
    #join-container {
        align: center middle;
        content-align: center middle;
    }

    BorderedInputContainer, BorderedInputButtonContainer {
        border: round $accent;
        border_title_align: center;
        max-width: 60;
    }

    .hidden {
        display: none;
    }

    .error-message {
        color: red;
        text-align: center;
        margin-top: 2;
        max-width: 60;
    }
    """

    BINDINGS = [
        ("enter", "attempt_join", "Join"),
    ]

    def __init__(self, message: str = "") -> None:
        super().__init__()
        self.message = message

    def compose(self) -> ComposeResult:
        app = self.app
        quiz_code = str(app.launch_quiz_id or "")
        name = app.launch_name or app.context.remembered_name
        yield Header(show_clock=True)
        with Vertical(id="join-container"):
            yield BorderedInputContainer(border_title="Quiz Code", input_placeholder="42",
                                         value=quiz_code, id="quiz-code")
            yield BorderedInputButtonContainer(input_title="Your Name", input_placeholder="janedoe",
                                               button_title="Join", value=name, id="name-inputs")
            yield Static("", classes="error-message hidden")
        yield Footer()

    def on_mount(self) -> None:
        self.title = "livequiz"
        self.sub_title = "Join a quiz"
        if self.message:
            self._show_error(self.message)

    @work(exclusive=True, group="join")
    async def action_attempt_join(self) -> None:
        vals = {
            "quiz_id": self.query_one("#quiz-code", BorderedInputContainer).value,
            "name": self.query_one("#name-inputs", BorderedInputButtonContainer).value,
        }
        ok, msg = _viewer_validate(vals)
        if not ok:
            self._show_error(msg)
            return
        self.query_one(".error-message").add_class("hidden")
        self.sub_title = "Joining..."

        app = self.app
        participation = ViewerParticipation(app.viewer, app.context, vals["quiz_id"], config=app.config,
                                            countdown_period=1.0, journal=ParticipationLog())
        try:
            await participation.join(vals["name"])
        except QuizClientError as e:
            participation.close()
            logger.info(f"[Viewer Join] failed: {e.message}")
            self.sub_title = "Join a quiz"
            self._show_error(e.message)
            return

        self.app.switch_screen(PlayScreen(participation))

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "name-inputs-button":
            self.action_attempt_join()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.action_attempt_join()

    def _show_error(self, msg: str) -> None:
        err = self.query_one(".error-message", Static)
        err.update(f"[b]* {msg} *[/b]")
        err.remove_class("hidden")


class PlayScreen(Screen):
    """Waiting room, live questions and the final results for one session."""

    CSS = """
    #main-container {
        layout: grid;
        grid-size: 2;
        grid-columns: 6fr 4fr;
        height: 100%;
        width: 100%;
    }

    #quiz-question-grid {
        layout: grid;
        grid-size: 4;
        grid-columns: 1fr 1fr 1fr 1fr;
        grid-rows: auto 8fr 3;
        grid-gutter: 0 1;
        height: 100%;
        width: 100%;
        background: $background;
    }

    #quiz-question-widget {
        height: 100%;
        width: 100%;
        border: round $accent;
    }

    #question-log {
        column-span: 4;
        height: 100%;
        min-height: 4;
        padding-left: 2;
        padding-top: 1;
        border: round $accent;
        overflow: hidden;
    }

    #quiz-question-grid Button {
        width: 100%;
        height: 3;
        min-width: 5;
        background: $background;
        outline: round $accent;
    }

    #timer-widget {
        column-span: 4;
        width: 100%;
        layout: grid;
        grid-size: 2;
        grid-gutter: 1;
        grid-columns: auto auto;
        align: center middle;
    }

    #timer-display.warning {
        color: $warning;
        text-style: bold;
    }

    #timer-display.expired {
        color: $error;
    }

    #quiz-question-grid Button.selected-option {
        background: $primary 30%;
        color: $text;
    }

    #question-log.incorrect {
        background: $error 30%;
    }

    #question-log.correct {
        background: $success 30%;
    }

    #side-panel {
        border: round $accent;
        border-title-align: center;
    }

    #score-card {
        height: auto;
        padding: 1 2;
        text-style: bold;
    }

    #waiting-room {
        height: 1fr;
    }

    #score-history {
        height: 1fr;
    }

    .hidden {
        display: none;
    }
    """

    BINDINGS = [
        ("a", "choose(0)", "A"),
        ("b", "choose(1)", "B"),
        ("c", "choose(2)", "C"),
        ("d", "choose(3)", "D"),
        ("l", "leave", "Leave"),
    ]

    def __init__(self, participation: ViewerParticipation) -> None:
        super().__init__()
        self.participation = participation
        self._shown_question = 0
        self._shown_submitted = False
        self._shown_results = False
        self._waiting_text: Optional[str] = None
        self._participant_rows: list = []

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Container(id="main-container"):
            yield QuizQuestionWidget(id="quiz-question-widget")
            with Vertical(id="side-panel"):
                yield Static("", id="score-card")
                yield DataTable(id="waiting-room", cursor_type="none")
                yield ScoreHistoryPlot(id="score-history", classes="hidden")
        yield Footer()

    def on_mount(self) -> None:
        p = self.participation
        name = p.session.name if p.session else "viewer"
        self.title = f"{name} | Quiz #{p.quiz_id}"
        self.query_one("#side-panel").border_title = "Waiting Room"
        self.query_one("#waiting-room", DataTable).add_columns("", "Name", "Score")
        p.on_change = self._sync
        p.start(on_error=self._on_poll_error)
        self._sync(p)

    def on_unmount(self) -> None:
        self.participation.close()

    # ----- rendering -------------------------------------------------------

    def _sync(self, p: ViewerParticipation) -> None:
        widget = self.query_one(QuizQuestionWidget)
        phase = p.phase

        if phase == RESULTS:
            if not self._shown_results:
                self._shown_results = True
                widget.show_results(p.results.score, p.results.questions_answered)
                self.sub_title = "Quiz finished - press L to leave"
        elif phase == WAITING:
            text = p.message or ("The quiz has started, get ready..." if p.lifecycle.state is LifecycleState.STARTED
                                 else "Waiting for the host to start the quiz...")
            if text != self._waiting_text:
                self._waiting_text = text
                widget.show_waiting(text)
        else:
            if p.questions_seen != self._shown_question:
                self._shown_question = p.questions_seen
                self._shown_submitted = False
                widget.show_question(p.question, index=p.questions_seen)
                self._show_side_panel("Score History")
            if phase == QUESTION:
                widget.timer.set_remaining(p.countdown.remaining)
                widget.mark_selected(p.selected)
            elif phase == ANSWERED and not self._shown_submitted:
                self._shown_submitted = True
                widget.timer.set_remaining(p.countdown.remaining)
                widget.mark_submitted(p.selected, p.last_award)
                self.query_one("#score-history", ScoreHistoryPlot).append_total(p.score)

        self._render_score(p)
        self._render_waiting_room(p)

    def _render_score(self, p: ViewerParticipation) -> None:
        text = f"Score: {p.score}"
        if p.confirmed_score is not None and p.confirmed_score == p.score:
            text += "  ✓"
        if p.questions_seen:
            text += f"   |   Questions: {p.questions_seen}"
        self.query_one("#score-card", Static).update(text)

    def _render_waiting_room(self, p: ViewerParticipation) -> None:
        rows = [format_participant_row(x) for x in rank_participants(p.participants)]
        if rows == self._participant_rows:
            return
        self._participant_rows = rows
        table = self.query_one("#waiting-room", DataTable)
        table.clear()
        for row in rows:
            table.add_row(*row)

    def _show_side_panel(self, title: str) -> None:
        self.query_one("#waiting-room").add_class("hidden")
        self.query_one("#score-history").remove_class("hidden")
        self.query_one("#side-panel").border_title = title

    def _on_poll_error(self, error: QuizClientError) -> None:
        if isinstance(error, ConnectivityError):
            self.sub_title = error.message
            self.notify(error.message, severity="warning", timeout=2)
            return
        if isinstance(error, NotFoundError):
            # terminal for this screen: stop polling, keep what is shown
            self.participation.close()
        self.notify(error.message, severity="error")

    # ----- answering -------------------------------------------------------

    def on_quiz_question_widget_answer_chosen(self, message: QuizQuestionWidget.AnswerChosen) -> None:
        self.submit(message.option_index)

    def action_choose(self, option_index: int) -> None:
        if self.participation.phase == QUESTION:
            self.submit(option_index)

    @work(exclusive=False, group="answers")
    async def submit(self, option_index: int) -> None:
        p = self.participation
        await p.select(option_index)
        try:
            award = await p.submit_answer(option_index)
        except QuizClientError as e:
            self.notify(f"Answer not delivered: {e.message}", severity="error")
            return
        if award is not None:
            logger.info(f"[Viewer UI] answered {LABELS[option_index]} for +{award}")
        self.sub_title = ""

    def action_leave(self) -> None:
        self.participation.leave()
        self.app.switch_screen(JoinScreen())


class ViewerUIApp(App):

    BINDINGS = [
        ("ctrl+t", "toggle_dark", "Toggle dark mode"),
        ("q", "quit", "Quit"),
    ]

    def __init__(self, config: ClientConfig, quiz_id: Optional[int] = None, name: str = "") -> None:
        super().__init__()
        self.config = config
        self.context = SessionContext()
        self.launch_quiz_id = quiz_id
        self.launch_name = name
        self._api = ApiClient(config.viewer_url, self.context, config.request_timeout)
        self.viewer = ViewerService(self._api)

    def action_toggle_dark(self) -> None:
        self.theme = THEME if self.theme != THEME else "textual-dark"

    def on_mount(self) -> None:
        self.theme = THEME
        self.push_screen(JoinScreen())

    def on_unmount(self) -> None:
        self._api.close()


def print_history(history: ParticipationHistory, console: Optional[Console] = None) -> None:
    console = console or Console()
    status = f"ended ({history.end_reason})" if history.ended else "did not end cleanly"
    console.print(f"[bold]Quiz #{history.quiz_id}[/bold] as [cyan]{history.name}[/cyan]: {status}")
    table = Table("Q", "Question", "Answer", "Points")
    for idx, q in sorted(history.questions.items()):
        answer = q.answer_value or "[dim](no answer)[/dim]"
        table.add_row(str(idx), q.text, answer, str(q.awarded))
    console.print(table)
    final = history.final_score if history.final_score is not None else history.total_awarded
    console.print(f"Final score: [bold]{final}[/bold]")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="livequiz viewer client")
    parser.add_argument("--quiz", "-q", type=int, help="Quiz code to pre-fill")
    parser.add_argument("--name", "-n", default="", help="Display name to pre-fill")
    parser.add_argument("--viewer-url", help="Viewer/session service URL (overrides LIVEQUIZ_VIEWER_URL)")
    parser.add_argument("--history", nargs="?", const="", metavar="LOG",
                        help="Print a past session from its participation log (latest if no path) and exit")
    parser.add_argument("--debug", action="store_true", help="Verbose logging to logs/viewer.log")
    args = parser.parse_args(argv)

    if args.history is not None:
        history = load_history(Path(args.history) if args.history else None)
        if history is None:
            Console().print("No participation logs found.")
            return
        print_history(history)
        return

    configure_logging("viewer", debug=args.debug)
    config = ClientConfig.from_env().with_overrides(viewer_url=args.viewer_url)
    logger.info(f"Using viewer service {config.viewer_url}")
    ViewerUIApp(config, quiz_id=args.quiz, name=args.name).run()


if __name__ == "__main__":
    main()
