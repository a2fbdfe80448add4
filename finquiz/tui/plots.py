from typing import Dict

from textual.reactive import reactive
from textual_plotext import PlotextPlot

from finquiz.results import CategoryStat


class CategoryPlot(PlotextPlot):
    """Percent correct per category on the results screen."""

    labels = reactive(tuple(), init=False)
    percents = reactive(tuple(), init=False)
    _pending: bool = False

    def on_mount(self) -> None:
        self.replot()

    def on_resize(self) -> None:
        self.replot()

    def set_categories(self, categories: Dict[str, CategoryStat]) -> None:
        self.labels = tuple(name.replace("_", " ") for name in categories)
        self.percents = tuple(round(stat.percentage, 1) for stat in categories.values())

    def watch_labels(self, _old, _new) -> None:
        self.replot()

    def watch_percents(self, _old, _new) -> None:
        self.replot()

    def replot(self) -> None:
        if self._pending:
            return
        self._pending = True

        def _do():
            self._pending = False
            self._draw()
            self.refresh()

        # wait for layout so the plot knows its size
        self.call_after_refresh(_do)

    def _draw(self) -> None:
        plt = self.plt
        plt.clear_data()
        plt.title("Correct by category (%)")
        if not self.labels:
            return
        plt.bar(list(self.labels), list(self.percents))
        plt.ylim(0, 100)
