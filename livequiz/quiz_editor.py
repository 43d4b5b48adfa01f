"""Quiz authoring modals for hosts: a new-quiz form and a single-question editor.

Both screens only collect and validate input. They dismiss with the result
(or None on cancel); the caller talks to the builder service.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Static

from livequiz.common import logger
from livequiz.errors import ValidationError
from livequiz.quiz_types import DEFAULT_POINTS, DEFAULT_TIME_LIMIT, OPTION_SLOTS, Question
from livequiz.utils import generate_option_labels

LABELS = generate_option_labels(OPTION_SLOTS)
MAX_PLANNED_QUESTIONS = 50


@dataclass
class NewQuizForm:
    title: str
    description: str
    question_count: int


def _positive_int(raw: str, field: str, default: int) -> int:
    raw = raw.strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{field} must be a whole number") from None
    if value <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    return value


EDITOR_CSS = """
#editor {
    width: 80;
    height: auto;
    max-height: 90%;
    border: double $accent;
    background: $surface;
    padding: 1 2;
}
#editor-title {
    text-style: bold;
    content-align: center middle;
    width: 100%;
    margin-bottom: 1;
}
.answer-row {
    height: auto;
}
.answer-label {
    width: 3;
    content-align: right middle;
    height: 3;
}
.answer-input {
    width: 1fr;
}
.correct-btn {
    width: 7;
    min-width: 7;
}
.correct-btn.selected {
    background: $success;
}
.number-row Input {
    width: 1fr;
}
#editor-buttons {
    height: 3;
    margin-top: 1;
}
#editor-buttons Button {
    margin: 0 1;
}
#editor-status {
    color: $error;
    height: auto;
}
"""


class NewQuizScreen(ModalScreen[Optional[NewQuizForm]]):
    """Title, description and how many questions to author right away."""

    DEFAULT_CSS = "NewQuizScreen { align: center middle; }\n" + EDITOR_CSS

    def compose(self) -> ComposeResult:
        with Vertical(id="editor"):
            yield Static("New Quiz", id="editor-title")
            yield Input(placeholder="Quiz title", id="quiz-title")
            yield Input(placeholder="Description (optional)", id="quiz-description")
            yield Input(placeholder="Number of questions to add now (e.g. 5)", id="quiz-count")
            yield Static("", id="editor-status")
            with Horizontal(id="editor-buttons"):
                yield Button("Create", id="save-btn", variant="success")
                yield Button("Cancel", id="cancel-btn", variant="error")

    def on_mount(self) -> None:
        self.query_one("#quiz-title", Input).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "cancel-btn":
            self.dismiss(None)
        elif event.button.id == "save-btn":
            self._submit()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._submit()

    def _submit(self) -> None:
        title = self.query_one("#quiz-title", Input).value.strip()
        try:
            if not title:
                raise ValidationError("Please enter a quiz title")
            count = _positive_int(self.query_one("#quiz-count", Input).value, "Number of questions", 1)
            if count > MAX_PLANNED_QUESTIONS:
                raise ValidationError(f"At most {MAX_PLANNED_QUESTIONS} questions at a time")
        except ValidationError as e:
            self.query_one("#editor-status", Static).update(e.message)
            return
        description = self.query_one("#quiz-description", Input).value.strip()
        self.dismiss(NewQuizForm(title=title, description=description, question_count=count))


class QuestionEditor(ModalScreen[Optional[Question]]):
    """Edit one question. Validation failures stay on screen and never reach
    the builder service."""

    DEFAULT_CSS = "QuestionEditor { align: center middle; }\n" + EDITOR_CSS

    def __init__(self, question: Optional[Question] = None, *, heading: str = "Question") -> None:
        super().__init__()
        self.question = question or Question.blank()
        self.heading = heading
        self.correct_index = self.question.correct_option_index

    def compose(self) -> ComposeResult:
        q = self.question
        options = list(q.options) + [""] * (OPTION_SLOTS - len(q.options))
        with VerticalScroll(id="editor"):
            yield Static(self.heading, id="editor-title")
            yield Input(value=q.prompt, placeholder="Question text", id="q-prompt")
            for i, label in enumerate(LABELS):
                with Horizontal(classes="answer-row"):
                    yield Static(f"{label}.", classes="answer-label")
                    yield Input(value=options[i], placeholder=f"Option {label}",
                                id=f"q-option-{i}", classes="answer-input")
                    yield Button("✓", id=f"q-correct-{i}", classes="correct-btn")
            with Horizontal(classes="number-row answer-row"):
                yield Input(value=str(q.time_limit_seconds), placeholder=f"Time limit (default {DEFAULT_TIME_LIMIT}s)",
                            id="q-time")
                yield Input(value=str(q.points), placeholder=f"Points (default {DEFAULT_POINTS})", id="q-points")
            yield Static("", id="editor-status")
            with Horizontal(id="editor-buttons"):
                yield Button("Save", id="save-btn", variant="success")
                yield Button("Cancel", id="cancel-btn", variant="error")

    def on_mount(self) -> None:
        self._mark_correct()
        self.query_one("#q-prompt", Input).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = event.button.id or ""
        if bid == "cancel-btn":
            self.dismiss(None)
        elif bid == "save-btn":
            self._submit()
        elif bid.startswith("q-correct-"):
            self.correct_index = int(bid.removeprefix("q-correct-"))
            self._mark_correct()

    def _mark_correct(self) -> None:
        for i in range(OPTION_SLOTS):
            self.query_one(f"#q-correct-{i}", Button).set_class(i == self.correct_index, "selected")

    def collect(self) -> Question:
        """Build a Question from the form. Raises ValidationError."""
        question = Question(
            id=self.question.id,
            prompt=self.query_one("#q-prompt", Input).value,
            options=[self.query_one(f"#q-option-{i}", Input).value for i in range(OPTION_SLOTS)],
            correct_option_index=self.correct_index,
            time_limit_seconds=_positive_int(self.query_one("#q-time", Input).value,
                                             "Time limit", DEFAULT_TIME_LIMIT),
            points=_positive_int(self.query_one("#q-points", Input).value, "Points", DEFAULT_POINTS),
        )
        question.validate()
        return question

    def _submit(self) -> None:
        try:
            question = self.collect()
        except ValidationError as e:
            logger.debug(f"Question form rejected: {e.message}")
            self.query_one("#editor-status", Static).update(e.message)
            return
        self.dismiss(question)
