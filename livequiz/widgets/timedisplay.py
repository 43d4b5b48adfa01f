from textual.widgets import Static
from textual.reactive import reactive

WARN_SECONDS = 5


class TimeDisplay(Static):
    """Shows the question countdown as MM:SS.

    It keeps no clock of its own: the viewer's Countdown owns time and pushes
    each whole second here through set_remaining().
    """

    duration: int = reactive(0)
    remaining: int = reactive(0)

    def on_mount(self) -> None:
        self._render_remaining()

    # ----- public API -------------------------------------------------------

    def reset(self, seconds: int) -> None:
        self.duration = max(0, int(seconds))
        self.remaining = self.duration

    def set_remaining(self, seconds: int) -> None:
        self.remaining = max(0, int(seconds))

    def clear(self) -> None:
        self.duration = 0
        self.remaining = 0
        self.update("--:--")

    # ----- internals --------------------------------------------------------

    def watch_remaining(self, value: int) -> None:
        self._render_remaining()

    def _render_remaining(self) -> None:
        minutes, seconds = divmod(self.remaining, 60)
        self.set_class(0 < self.remaining <= WARN_SECONDS, "warning")
        self.set_class(self.duration > 0 and self.remaining == 0, "expired")
        self.update(f"{minutes:02d}:{seconds:02d}")
