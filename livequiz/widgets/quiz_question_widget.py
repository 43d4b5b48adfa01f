from typing import List, Optional

from textual.widgets import Button, Static, RichLog
from textual.containers import Container, Horizontal
from textual.app import ComposeResult
from textual.message import Message
from textual.widget import Widget
from rich.text import Text

from livequiz.common import logger
from livequiz.quiz_types import OPTION_SLOTS, Question
from livequiz.utils import generate_option_labels
from livequiz.widgets.timedisplay import TimeDisplay

LABELS = generate_option_labels(OPTION_SLOTS)


class QuizQuestionWidget(Widget):
    """Question panel for the viewer: timer, prompt, and A-D answer buttons.

    The widget only renders. Pressing an option posts `AnswerChosen`; the
    screen decides whether that becomes a submission.

        widget.show_waiting("Waiting for the host to start...")
        widget.show_question(question, index=2)
        widget.timer.set_remaining(12)
        widget.mark_submitted(selected=1, award=7)
        widget.show_results(score=16, questions=3)
    """

    class AnswerChosen(Message):
        def __init__(self, option_index: int) -> None:
            self.option_index = option_index
            super().__init__()

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.question: Optional[Question] = None
        self.index: Optional[int] = None
        self.locked = True

    def compose(self) -> ComposeResult:
        with Container(id="quiz-question-grid"):
            with Horizontal(id="timer-widget"):
                yield Static("Time Remaining", id="timer-label")
                yield TimeDisplay(id="timer-display")

            yield RichLog(id="question-log", wrap=True, markup=True, highlight=False, min_width=1)

            for label in LABELS:
                yield Button(label, id=f"option-{label.lower()}", disabled=True)

    # --- accessors ---

    @property
    def timer(self) -> TimeDisplay:
        return self.query_one("#timer-display", TimeDisplay)

    @property
    def log(self) -> RichLog:
        return self.query_one("#question-log", RichLog)

    def _option_buttons(self) -> List[Button]:
        return [self.query_one(f"#option-{label.lower()}", Button) for label in LABELS]

    # --- events ---

    def on_button_pressed(self, event: Button.Pressed) -> None:
        buttons = self._option_buttons()
        if event.button not in buttons:
            return
        event.stop()
        if self.locked:
            logger.debug("Option pressed while answers are locked, ignoring.")
            return
        self.post_message(self.AnswerChosen(buttons.index(event.button)))

    # --- public API ---

    def show_waiting(self, msg: str = "Waiting for the quiz to start...") -> None:
        self.question = None
        self.locked = True
        self.timer.clear()
        self._set_log_class(None)
        self._render_banner(msg)
        self._reset_buttons(0)

    def show_question(self, question: Question, index: Optional[int] = None) -> None:
        self.question = question
        self.index = index
        self.locked = False
        self._set_log_class(None)
        self.timer.reset(question.time_limit_seconds)
        self._render_question()
        self._reset_buttons(len(question.options))

    def mark_selected(self, selected: Optional[int]) -> None:
        for i, btn in enumerate(self._option_buttons()):
            btn.set_class(i == selected, "selected-option")

    def mark_submitted(self, selected: Optional[int], award: Optional[int]) -> None:
        """Lock input and show the outcome of this question's one submission."""
        self.locked = True
        self.mark_selected(selected)
        for btn in self._option_buttons():
            btn.disabled = True
        if selected is None:
            self.log.write("[bold red]Time's up! No answer was submitted.[/bold red]")
            self._set_log_class("incorrect")
        elif award:
            self.log.write(f"[bold green]Correct! +{award} points[/bold green]")
            self._set_log_class("correct")
        else:
            self.log.write(f"[bold red]Answer {LABELS[selected]} was not correct.[/bold red]")
            self._set_log_class("incorrect")

    def show_results(self, score: int, questions: int) -> None:
        self.question = None
        self.locked = True
        self.timer.clear()
        self._set_log_class(None)
        self._reset_buttons(0)

        accent = self.app.get_css_variables().get("accent", "green")
        parts = [Text("Quiz Finished!\n\n")]
        for title, value in (("Your Score", score), ("Questions Answered", questions)):
            heading = Text(title)
            heading.stylize(f"bold underline {accent}")
            parts.append(heading)
            parts.append(Text.from_markup(f": [b]{value}[/b]\n"))
        self.log.clear()
        self.log.write(Text.assemble(*parts))

    # --- internals ---

    def _render_banner(self, msg: str) -> None:
        log = self.log
        log.clear()
        t_msg = Text(msg, justify="left", overflow="fold", no_wrap=False)
        accent = self.app.get_css_variables().get("accent", "pink")
        t_msg.stylize(f"bold underline {accent}")
        log.write(t_msg)

    def _render_question(self) -> None:
        log = self.log
        log.clear()
        q = self.question
        if q is None:
            return

        theme_vars = self.app.get_css_variables()
        header = f"Question {self.index}" if self.index is not None else "Question"
        header += f"  ({q.points} pts)"
        rich_header = Text(f"{header}\n", justify="left", overflow="fold", no_wrap=False)
        rich_header.stylize(f"bold underline {theme_vars.get('accent', 'pink')}")
        log.write(rich_header)

        rich_prompt = Text(f"{q.prompt}\n\n", justify="left", overflow="fold", no_wrap=False)
        rich_prompt.stylize(f"bold {theme_vars.get('primary', 'cyan')}")
        log.write(rich_prompt)

        for label, opt in zip(LABELS, q.options):
            log.write(f"[b]{label}.[/b] {opt}")
        log.write("")

    def _reset_buttons(self, live: int) -> None:
        for i, btn in enumerate(self._option_buttons()):
            btn.remove_class("selected-option")
            btn.label = LABELS[i] if i < live else ""
            btn.disabled = i >= live

    def _set_log_class(self, name: Optional[str]) -> None:
        for cls in ("correct", "incorrect"):
            self.log.set_class(cls == name, cls)
