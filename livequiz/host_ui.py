"""
Host TUI for livequiz.

Screens:
  LoginScreen     - log in, or sign up then log in
  DashboardScreen - the host's quizzes with their live status; create a quiz
                    and author its questions
  SessionScreen   - run one quiz: open, start, advance, finish; watch the
                    participants join and score

Every 401 from any service clears the credentials, which sends the app back
to the login screen.
"""
from __future__ import annotations

import argparse
from typing import Optional

from textual import work
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.css.query import NoMatches
from textual.screen import Screen
from textual.widgets import Button, DataTable, Footer, Header, Input, Static, TabbedContent, TabPane

from livequiz.api_client import ApiClient
from livequiz.common import SessionContext, configure_logging, logger
from livequiz.config import ClientConfig
from livequiz.errors import ConnectivityError, NotFoundError, QuizClientError, Unauthorized
from livequiz.host_control import HostControl
from livequiz.lifecycle import (
    LifecycleEvent,
    QuestionAdvanced,
    SessionFinished,
    SessionOpened,
    SessionStarted,
)
from livequiz.quiz_editor import NewQuizScreen, QuestionEditor
from livequiz.quiz_types import LifecycleState, Quiz
from livequiz.services import AuthService, BuilderService, ViewerService
from livequiz.utils import _login_validate, format_participant_row, generate_option_labels, rank_participants
from livequiz.widgets.activity_log import ActivityLog
from livequiz.widgets.basic_widgets import BorderedInputContainer
from livequiz.widgets.plot_widgets import ScoreboardPlot

THEME = "flexoki"
NOT_OPENED = "Not opened for viewers yet"

STATE_LABELS = {
    LifecycleState.CLOSED: NOT_OPENED,
    LifecycleState.OPEN: "Open - waiting for viewers",
    LifecycleState.STARTED: "Live",
    LifecycleState.FINISHED: "Finished",
}


class ErrorReportingMixin:
    """Surface-level error policy shared by the host screens."""

    def report_error(self, error: QuizClientError, source: str = "System") -> None:
        if isinstance(error, Unauthorized):
            # clearing credentials returns the app to the login screen
            if self.app.context.is_authenticated:
                self.app.context.clear_credentials()
            return
        severity = "warning" if isinstance(error, ConnectivityError) else "error"
        self.notify(error.message, severity=severity)
        try:
            self.query_one(ActivityLog).append_event(source, f"[red]{error.message}[/red]", kind="error")
        except NoMatches:
            logger.debug(f"No activity log on {type(self).__name__} for: {error.message}")


class LoginScreen(Screen):
    """Log in with username/email + password; signup mode adds email and full name."""

    CSS = """
    #login-container {
        align: center middle;
        content-align: center middle;
    }

    BorderedInputContainer {
        border: round $accent;
        border_title_align: center;
        max-width: 60;
    }

    #login-buttons {
        max-width: 60;
        height: 3;
    }

    #login-buttons Button {
        width: 1fr;
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
        ("enter", "attempt_login", "Submit"),
        ("ctrl+s", "toggle_signup", "Login / Sign up"),
    ]

    def __init__(self, message: str = "") -> None:
        super().__init__()
        self.message = message
        self.signup = False

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Vertical(id="login-container"):
            yield BorderedInputContainer(border_title="Username or Email", input_placeholder="janedoe",
                                         id="username")
            yield BorderedInputContainer(border_title="Password", password=True, id="password")
            yield BorderedInputContainer(border_title="Email", input_placeholder="jane@example.com",
                                         id="email", classes="signup-only hidden")
            yield BorderedInputContainer(border_title="Full Name", input_placeholder="Jane Doe",
                                         id="full-name", classes="signup-only hidden")
            with Horizontal(id="login-buttons"):
                yield Button("Log In", id="login-btn", variant="primary")
                yield Button("Create an account", id="mode-btn")
            yield Static("", classes="error-message hidden")
        yield Footer()

    def on_mount(self) -> None:
        self.title = "livequiz host"
        self.sub_title = "Log in"
        if self.message:
            self._show_error(self.message)

    def action_toggle_signup(self) -> None:
        self.signup = not self.signup
        for widget in self.query(".signup-only"):
            widget.set_class(not self.signup, "hidden")
        self.query_one("#login-btn", Button).label = "Sign Up" if self.signup else "Log In"
        self.query_one("#mode-btn", Button).label = "I have an account" if self.signup else "Create an account"
        self.sub_title = "Sign up" if self.signup else "Log in"

    @work(exclusive=True, group="login")
    async def action_attempt_login(self) -> None:
        vals = self._get_values()
        ok, msg = _login_validate(vals)
        if not ok:
            self._show_error(msg)
            return
        self.query_one(".error-message").add_class("hidden")

        auth: AuthService = self.app.auth
        try:
            if self.signup:
                self.sub_title = "Creating account..."
                await auth.signup(vals["username"], vals["email"], vals["password"], vals["full_name"])
                logger.info(f"[Host Login] account created for {vals['username']}")
            self.sub_title = "Logging in..."
            await auth.login(vals["username"], vals["password"])
        except QuizClientError as e:
            logger.info(f"[Host Login] failed: {e.message}")
            self.sub_title = "Login failed"
            self._show_error(e.message)
            return

        self.app.switch_screen(DashboardScreen())

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "login-btn":
            self.action_attempt_login()
        elif event.button.id == "mode-btn":
            self.action_toggle_signup()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.action_attempt_login()

    def _get_values(self) -> dict:
        return {
            "signup": self.signup,
            "username": self.query_one("#username", BorderedInputContainer).value,
            "password": self.query_one("#password-input", Input).value,
            "email": self.query_one("#email", BorderedInputContainer).value,
            "full_name": self.query_one("#full-name", BorderedInputContainer).value,
        }

    def _show_error(self, msg: str) -> None:
        err = self.query_one(".error-message", Static)
        err.update(f"[b]* {msg} *[/b]")
        err.remove_class("hidden")


class DashboardScreen(ErrorReportingMixin, Screen):
    """The host's quizzes, with each one's session status."""

    CSS = """
    #dashboard {
        layout: grid;
        grid-size: 1 2;
        grid-rows: 7fr 3fr;
        height: 100%;
    }
    #quiz-panel {
        border: round $accent;
        border-title-align: center;
    }
    #quiz-table {
        height: 1fr;
    }
    #quiz-controls {
        height: 3;
    }
    #quiz-controls Button {
        width: 1fr;
    }
    """

    BINDINGS = [
        ("r", "refresh", "Refresh"),
        ("n", "new_quiz", "New quiz"),
        ("enter", "host_session", "Host selected quiz"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self.quizzes: list[Quiz] = []

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Container(id="dashboard"):
            with Vertical(id="quiz-panel"):
                yield DataTable(id="quiz-table", cursor_type="row")
                with Horizontal(id="quiz-controls"):
                    yield Button("New Quiz", id="new-quiz", variant="primary")
                    yield Button("Add Question", id="add-question")
                    yield Button("Host Session", id="host-session", variant="success")
                    yield Button("Refresh", id="refresh")
                    yield Button("Log Out", id="logout", variant="error")
            yield ActivityLog(id="activity")
        yield Footer()

    def on_mount(self) -> None:
        user = self.app.context.user
        self.title = f"Hosting as {user.display_name}" if user else "livequiz host"
        self.query_one("#quiz-panel").border_title = "My Quizzes"
        table = self.query_one("#quiz-table", DataTable)
        table.add_columns("ID", "Title", "Questions", "Status")
        self.check_session()

    @work(exclusive=True, group="validate")
    async def check_session(self) -> None:
        try:
            await self.app.auth.validate()
        except QuizClientError as e:
            logger.info(f"[Dashboard] token check failed: {e.message}")
            self.report_error(e, "Auth")

    def on_screen_resume(self) -> None:
        self.action_refresh()

    @work(exclusive=True, group="quizzes")
    async def action_refresh(self) -> None:
        try:
            self.quizzes = await self.app.builder.list_quizzes()
            statuses = [await self._status_label(q.id) for q in self.quizzes]
        except QuizClientError as e:
            self.report_error(e, "Quizzes")
            return

        table = self.query_one("#quiz-table", DataTable)
        table.clear()
        for quiz, status in zip(self.quizzes, statuses):
            table.add_row(quiz.id, quiz.title, quiz.question_count, status, key=str(quiz.id))
        self.query_one(ActivityLog).append_event("System", f"Loaded {len(self.quizzes)} quizzes", kind="sys")

    async def _status_label(self, quiz_id: int) -> str:
        try:
            snapshot = await self.app.viewer.status(quiz_id)
        except Unauthorized:
            raise
        except QuizClientError as e:
            logger.debug(f"[Dashboard] status for quiz {quiz_id} unavailable: {e.message}")
            return NOT_OPENED
        return snapshot.message or STATE_LABELS[snapshot.state]

    def selected_quiz(self) -> Optional[Quiz]:
        table = self.query_one("#quiz-table", DataTable)
        if not self.quizzes or table.cursor_row is None:
            return None
        if 0 <= table.cursor_row < len(self.quizzes):
            return self.quizzes[table.cursor_row]
        return None

    @work(exclusive=True, group="authoring")
    async def action_new_quiz(self) -> None:
        form = await self.app.push_screen_wait(NewQuizScreen())
        if form is None:
            return
        try:
            quiz = await self.app.builder.create_quiz(form.title, form.description)
        except QuizClientError as e:
            self.report_error(e, "New Quiz")
            return
        self.query_one(ActivityLog).append_event("Host", f"Created quiz [b]{quiz.title}[/b] (#{quiz.id})",
                                                 kind="host")
        self.app.context.pending_question_count = form.question_count
        await self._author_questions(quiz)
        self.action_refresh()

    async def _author_questions(self, quiz: Quiz) -> None:
        """Collect and save questions until the pending count reaches zero or the host cancels."""
        context: SessionContext = self.app.context
        total = context.pending_question_count
        while context.pending_question_count > 0:
            number = total - context.pending_question_count + 1
            question = await self.app.push_screen_wait(
                QuestionEditor(heading=f"{quiz.title}: question {number} of {total}"))
            if question is None:
                self.query_one(ActivityLog).append_event(
                    "Host", f"Authoring paused with {context.pending_question_count} question(s) left", kind="sys")
                return
            try:
                saved = await self.app.builder.create_question(quiz.id, question)
            except QuizClientError as e:
                self.report_error(e, "Question")
                if isinstance(e, Unauthorized):
                    return
                continue
            context.question_saved()
            logger.info(f"[Dashboard] saved question {saved.id} for quiz {quiz.id}")
            self.query_one(ActivityLog).append_event("Host", f"Saved question {number}: {saved.prompt}", kind="host")

    @work(exclusive=True, group="authoring")
    async def add_question(self, quiz: Quiz) -> None:
        self.app.context.pending_question_count = 1
        await self._author_questions(quiz)
        self.action_refresh()

    def action_host_session(self) -> None:
        quiz = self.selected_quiz()
        if quiz is None:
            self.notify("Select a quiz first.", severity="warning")
            return
        self.app.push_screen(SessionScreen(quiz))

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = event.button.id or ""
        if bid == "new-quiz":
            self.action_new_quiz()
        elif bid == "refresh":
            self.action_refresh()
        elif bid == "host-session":
            self.action_host_session()
        elif bid == "add-question":
            quiz = self.selected_quiz()
            if quiz is None:
                self.notify("Select a quiz first.", severity="warning")
            else:
                self.add_question(quiz)
        elif bid == "logout":
            logger.info("[Dashboard] host logged out")
            self.app.context.clear_credentials()


class SessionScreen(ErrorReportingMixin, Screen):
    """Live control of one quiz. Polls the session status while mounted."""

    CSS = """
    #session-container {
        layout: grid;
        grid-size: 2 2;
        grid-rows: 7fr 3fr;
        grid-columns: 6fr 4fr;
        height: 100%;
    }
    #left-column {
        border: round $accent;
        border-title-align: center;
    }
    #session-status {
        height: auto;
        padding: 0 1;
        text-style: bold;
    }
    #question-progress {
        height: auto;
        padding: 0 1;
        color: $text-muted;
    }
    #question-table {
        height: 1fr;
    }
    #session-controls {
        height: 3;
    }
    #session-controls Button {
        width: 1fr;
    }
    #right-tabs {
        border: round $accent;
    }
    #activity {
        column-span: 2;
    }
    .hidden {
        display: none;
    }
    """

    BINDINGS = [
        ("escape", "back", "Back"),
        ("o", "command('open')", "Open"),
        ("s", "command('start')", "Start"),
        ("n", "command('next')", "Next question"),
        ("f", "command('finish')", "Finish"),
    ]

    def __init__(self, quiz: Quiz) -> None:
        super().__init__()
        self.quiz = quiz
        self.control: Optional[HostControl] = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Container(id="session-container"):
            with Vertical(id="left-column"):
                yield Static("", id="session-status")
                yield Static("", id="question-progress")
                yield DataTable(id="question-table", cursor_type="row")
                with Horizontal(id="session-controls"):
                    yield Button("Open", id="open-session", variant="primary")
                    yield Button("Start", id="start-session", variant="success")
                    yield Button("Next Question", id="next-question", variant="success")
                    yield Button("Finish", id="finish-session", variant="warning")
                    yield Button("Edit Question", id="edit-question")
                    yield Button("Back", id="back")
            with TabbedContent(initial="participants", id="right-tabs"):
                with TabPane("Participants", id="participants"):
                    yield DataTable(id="participants-table", cursor_type="row")
                with TabPane("Scores", id="scores"):
                    yield ScoreboardPlot(id="score-plot")
            yield ActivityLog(id="activity")
        yield Footer()

    def on_mount(self) -> None:
        self.title = f"Quiz #{self.quiz.id}: {self.quiz.title}"
        self.query_one("#left-column").border_title = "Session"
        self.query_one("#question-table", DataTable).add_columns("#", "Question", "Options", "Answer", "Time", "Pts")
        self.query_one("#participants-table", DataTable).add_columns("", "Name", "Score")

        app = self.app
        self.control = HostControl(app.viewer, app.builder, app.context, self.quiz.id, title=self.quiz.title,
                                   on_event=self._on_lifecycle_event, on_change=self._on_control_change,
                                   poll_interval=app.config.start_poll_interval,
                                   live_poll_interval=app.config.live_poll_interval)
        self.control.start_polling(on_error=self._on_poll_error)
        self._render_state()
        self.load_questions()

    def on_unmount(self) -> None:
        if self.control is not None:
            self.control.close()

    # ----- polling callbacks -----------------------------------------------

    def _on_lifecycle_event(self, event: LifecycleEvent) -> None:
        log = self.query_one(ActivityLog)
        if isinstance(event, SessionOpened):
            log.append_event("Session", "Open: viewers can join now", kind="state")
        elif isinstance(event, SessionStarted):
            log.append_event("Session", "Started", kind="state")
        elif isinstance(event, QuestionAdvanced):
            log.append_event("Session", f"Question {event.question_ref} is live", kind="state")
        elif isinstance(event, SessionFinished):
            log.append_event("Session", "Finished", kind="state")

    def _on_control_change(self, control: HostControl) -> None:
        self._render_state()
        self._render_participants()

    def _on_poll_error(self, error: QuizClientError) -> None:
        if isinstance(error, NotFoundError):
            self.control.close()
        self.report_error(error, "Poll")

    # ----- rendering -------------------------------------------------------

    def _render_state(self) -> None:
        control = self.control
        if control is None:
            return
        state = control.view_state
        status = STATE_LABELS[state]
        if control.lifecycle.optimistic is not None:
            status += " (verification pending)"
        if control.lifecycle.message:
            status += f"  | {control.lifecycle.message}"
        self.query_one("#session-status", Static).update(status)

        if control.questions:
            progress = f"{control.advancing_index}/{len(control.questions)} questions shown"
        else:
            progress = "No questions loaded"
        self.query_one("#question-progress", Static).update(progress)

        self.query_one("#open-session", Button).disabled = not control.can_open()
        self.query_one("#start-session", Button).disabled = not control.can_start()
        self.query_one("#next-question", Button).disabled = not control.can_advance()
        self.query_one("#finish-session", Button).disabled = not control.can_finish()
        self.query_one("#edit-question", Button).disabled = state is not LifecycleState.CLOSED

    def _render_questions(self) -> None:
        table = self.query_one("#question-table", DataTable)
        table.clear()
        for i, q in enumerate(self.control.questions, start=1):
            labels = generate_option_labels(len(q.options))
            correct = labels[q.correct_option_index] if 0 <= q.correct_option_index < len(labels) else "?"
            marker = "▶ " if i == self.control.advancing_index else ""
            table.add_row(f"{marker}{i}", q.prompt, len(q.options), correct, f"{q.time_limit_seconds}s", q.points)

    def _render_participants(self) -> None:
        participants = rank_participants(self.control.participants)
        table = self.query_one("#participants-table", DataTable)
        table.clear()
        for p in participants:
            table.add_row(*format_participant_row(p))
        self.query_one("#score-plot", ScoreboardPlot).set_participants(participants)
        self.query_one("#right-tabs", TabbedContent).border_title = f"{len(participants)} joined"

    # ----- commands --------------------------------------------------------

    @work(exclusive=True, group="questions")
    async def load_questions(self) -> None:
        try:
            await self.control.load_questions()
        except QuizClientError as e:
            self.report_error(e, "Questions")
            return
        self._render_questions()
        self._render_state()

    @work(exclusive=True, group="host-command")
    async def action_command(self, name: str) -> None:
        control = self.control
        log = self.query_one(ActivityLog)
        try:
            if name == "open":
                await control.open_session(self.quiz.title)
                log.append_event("Host", f"Opened [b]{self.quiz.title}[/b] for viewers", kind="host")
            elif name == "start":
                await control.start_session()
                log.append_event("Host", f"Started with {len(control.questions)} questions", kind="host")
                self._render_questions()
            elif name == "next":
                question = await control.advance_question()
                log.append_event("Host", f"Sent question {control.advancing_index}: {question.prompt}", kind="host")
                self._render_questions()
            elif name == "finish":
                await control.finish_session()
                log.append_event("Host", "Finished the quiz", kind="host")
        except QuizClientError as e:
            self.report_error(e, "Host")
        self._render_state()

    @work(exclusive=True, group="authoring")
    async def edit_selected_question(self) -> None:
        table = self.query_one("#question-table", DataTable)
        questions = self.control.questions
        if not questions or table.cursor_row is None or not (0 <= table.cursor_row < len(questions)):
            self.notify("Select a question first.", severity="warning")
            return
        index = table.cursor_row
        edited = await self.app.push_screen_wait(
            QuestionEditor(questions[index], heading=f"Edit question {index + 1}"))
        if edited is None:
            return
        try:
            saved = await self.app.builder.update_question(self.quiz.id, edited.id, edited)
        except QuizClientError as e:
            self.report_error(e, "Question")
            return
        questions[index] = saved
        self._render_questions()
        self.query_one(ActivityLog).append_event("Host", f"Updated question {index + 1}", kind="host")

    def action_back(self) -> None:
        self.app.pop_screen()

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = event.button.id or ""
        commands = {
            "open-session": "open",
            "start-session": "start",
            "next-question": "next",
            "finish-session": "finish",
        }
        if bid in commands:
            self.action_command(commands[bid])
        elif bid == "edit-question":
            self.edit_selected_question()
        elif bid == "back":
            self.action_back()


class HostUIApp(App):

    BINDINGS = [
        ("d", "toggle_dark", "Toggle dark mode"),
        ("q", "quit", "Quit"),
    ]

    def __init__(self, config: ClientConfig) -> None:
        super().__init__()
        self.config = config
        self.context = SessionContext()
        self._apis = [
            ApiClient(config.auth_url, self.context, config.request_timeout),
            ApiClient(config.builder_url, self.context, config.request_timeout),
            ApiClient(config.viewer_url, self.context, config.request_timeout),
        ]
        self.auth = AuthService(self._apis[0])
        self.builder = BuilderService(self._apis[1])
        self.viewer = ViewerService(self._apis[2])

    def action_toggle_dark(self) -> None:
        self.theme = THEME if self.theme != THEME else "textual-dark"

    def on_mount(self) -> None:
        self.theme = THEME
        self.context.on_cleared.append(self._credentials_cleared)
        self.push_screen(LoginScreen())

    def on_unmount(self) -> None:
        for api in self._apis:
            api.close()

    def _credentials_cleared(self) -> None:
        self.return_to_login("You have been logged out.")

    def return_to_login(self, message: str = "") -> None:
        # screen_stack[0] is the default screen, [1] the first pushed screen
        while len(self.screen_stack) > 2:
            self.pop_screen()
        self.switch_screen(LoginScreen(message))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="livequiz host client")
    parser.add_argument("--api-url", help="Auth + builder service URL (overrides LIVEQUIZ_API_URL)")
    parser.add_argument("--viewer-url", help="Viewer/session service URL (overrides LIVEQUIZ_VIEWER_URL)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging to logs/host.log")
    args = parser.parse_args(argv)

    configure_logging("host", debug=args.debug)
    config = ClientConfig.from_env().with_overrides(api_url=args.api_url, viewer_url=args.viewer_url)
    logger.info(f"Using auth={config.auth_url} builder={config.builder_url} viewer={config.viewer_url}")
    HostUIApp(config).run()


if __name__ == "__main__":
    main()
