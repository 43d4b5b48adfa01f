from __future__ import annotations

from collections import deque
from datetime import datetime

from textual.widgets import RichLog
from textual.events import Resize
from rich.text import Text
from rich.errors import MarkupError

from livequiz.common import logger

_KIND_STYLES = {
    "host": "bold magenta",
    "state": "bold cyan",
    "error": "bold red",
    "sys": "bold yellow",
}


class ActivityLog(RichLog):
    """Scrollable, timestamped feed of session activity (state changes, commands, errors)."""
    wrap = True
    markup = True
    auto_scroll = True
    min_width = 1

    DEFAULT_CSS = """
    ActivityLog {
        border: solid $boost 50%;
        background: $boost 10%;
        height: 1fr;
        width: 1fr;
    }
    """

    MAX_LINES = 200

    def on_mount(self) -> None:
        self.history = deque(maxlen=self.MAX_LINES)

    def append_event(self, source: str, msg: str, kind: str | None = None) -> None:
        prefix = Text(datetime.now().strftime("[%H:%M:%S] "), style="dim")
        prefix.append(source, style=_KIND_STYLES.get(kind, "bold green"))
        prefix.append(": ")

        try:
            body = Text.from_markup(msg)
        except MarkupError as e:
            logger.error(f"Error parsing markup in activity message: {e}")
            body = Text(msg)

        line = Text.assemble(prefix, body)
        self.history.append(line)
        self.write(line, expand=True, shrink=True)

    def on_resize(self, _: Resize) -> None:
        # reflow at the new width
        self.clear()
        for line in self.history:
            self.write(line, expand=True, shrink=True)
