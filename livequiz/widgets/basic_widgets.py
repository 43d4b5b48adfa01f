from textual.widgets import Input, Button
from textual.containers import HorizontalGroup
from textual.app import ComposeResult


class BorderedInputContainer(HorizontalGroup):
    """A single Input with a border title. The Input id is `<id>-input`."""

    def __init__(self, *,
                 border_title: str,
                 input_placeholder: str | None = None,
                 password: bool = False,
                 value: str = "",
                 **kwargs) -> None:
        super().__init__(**kwargs)
        self._title = border_title
        self.input_placeholder = input_placeholder
        self.password = password
        self.initial_value = value

    def compose(self) -> ComposeResult:
        yield Input(value=self.initial_value, placeholder=self.input_placeholder,
                    password=self.password, id=f"{self.id}-input")

    def on_mount(self) -> None:
        self.border_title = self._title
        self.border_title_align = "center"
        self.border_title_style = "bold"
        self.query_one(f"#{self.id}-input", Input).styles.width = "1fr"

    @property
    def value(self) -> str:
        return self.query_one(f"#{self.id}-input", Input).value.strip()


class BorderedTwoInputContainer(HorizontalGroup):
    """Two Inputs side by side (4:1) under one border title."""

    def __init__(self, *,
                 border_title: str,
                 input1_placeholder: str | None = None,
                 input2_placeholder: str | None = None,
                 **kwargs) -> None:
        super().__init__(**kwargs)
        self._title = border_title
        self.input1_placeholder = input1_placeholder
        self.input2_placeholder = input2_placeholder

    def compose(self) -> ComposeResult:
        yield Input(placeholder=self.input1_placeholder, id=f"{self.id}-input1")
        yield Input(placeholder=self.input2_placeholder, id=f"{self.id}-input2")

    def on_mount(self) -> None:
        self.border_title = self._title
        self.query_one(f"#{self.id}-input1", Input).styles.width = "4fr"
        self.query_one(f"#{self.id}-input2", Input).styles.width = "1fr"

    @property
    def values(self) -> tuple[str, str]:
        return (self.query_one(f"#{self.id}-input1", Input).value.strip(),
                self.query_one(f"#{self.id}-input2", Input).value.strip())


class BorderedInputButtonContainer(HorizontalGroup):
    """Input plus an action button; the button id is `<id>-button`."""

    def __init__(self, *,
                 input_title: str,
                 input_placeholder: str | None = None,
                 button_title: str,
                 value: str = "",
                 **kwargs) -> None:
        super().__init__(**kwargs)
        self.input_title = input_title
        self.input_placeholder = input_placeholder
        self.button_title = button_title
        self.initial_value = value

    def compose(self) -> ComposeResult:
        yield Input(value=self.initial_value, placeholder=self.input_placeholder, id=f"{self.id}-input")
        yield Button(self.button_title, id=f"{self.id}-button", variant="primary")

    def on_mount(self) -> None:
        self.border_title = self.input_title
        self.border_title_align = "center"
        self.border_title_style = "bold"
        self.query_one(f"#{self.id}-input", Input).styles.width = "4fr"
        self.query_one(f"#{self.id}-button", Button).styles.width = "1fr"

    @property
    def value(self) -> str:
        return self.query_one(f"#{self.id}-input", Input).value.strip()
