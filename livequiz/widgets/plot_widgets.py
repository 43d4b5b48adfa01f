from textual_plotext import PlotextPlot
from textual.reactive import reactive

from livequiz.quiz_types import Participant
from livequiz.utils import rank_participants

MAX_BARS = 10


class _BasePlot(PlotextPlot):
    _pending: bool = False

    def replot(self) -> None:
        if self._pending:
            return
        self._pending = True

        def _do():
            self._pending = False
            self._draw()
            self.refresh()

        # run after the *next* refresh/layout
        self.call_after_refresh(_do)

    def on_resize(self) -> None:
        self.replot()


class ScoreboardPlot(_BasePlot):
    """Bar chart of the top participants' cumulative scores."""
    names = reactive(tuple(), init=False)
    scores = reactive(tuple(), init=False)

    def on_mount(self) -> None:
        self.names = tuple()
        self.scores = tuple()
        self.replot()

    def set_participants(self, participants: list[Participant]) -> None:
        top = rank_participants(participants)[:MAX_BARS]
        self.names = tuple(p.display_name for p in top)
        self.scores = tuple(p.cumulative_score for p in top)

    def watch_names(self, _old: tuple, new: tuple) -> None:
        self.replot()

    def watch_scores(self, _old: tuple, new: tuple) -> None:
        self.replot()

    def _draw(self) -> None:
        plt = self.plt
        plt.clear_data()
        plt.title("Scores")
        plt.ylabel("Points")
        if not self.names:
            return
        plt.bar(list(self.names), list(self.scores))
        plt.ylim(0, max(self.scores) + 1)


class ScoreHistoryPlot(_BasePlot):
    """Viewer's running total after each question."""
    totals = reactive(tuple(), init=False)

    def on_mount(self) -> None:
        self.totals = tuple()
        self.replot()

    def append_total(self, total: int) -> None:
        self.totals = (*self.totals, max(0, int(total)))

    def watch_totals(self, _old, _new) -> None:
        self.replot()

    def _draw(self) -> None:
        plt = self.plt
        plt.clear_data()
        n = len(self.totals)
        xs = list(range(1, n + 1))
        if xs:
            plt.plot(xs, list(self.totals), marker="hd")
        plt.title("Score by Question")
        plt.xlabel("Question #")
        plt.ylabel("Total")
        plt.xlim(0, max(1, n + 1))
        plt.xticks(list(range(0, max(2, n + 2))))
