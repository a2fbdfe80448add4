from typing import List, Optional

from rich.text import Text
from textual.app import ComposeResult
from textual.containers import Container, Horizontal
from textual.message import Message
from textual.reactive import reactive
from textual.widget import Widget
from textual.widgets import Button, Input, RichLog, Static

from finquiz.game_types import RoundResult
from finquiz.snapshot import ActiveRound

LABELS = ["A", "B", "C", "D"]
WARN_SECONDS = 10


class TimeDisplay(Static):
    """Countdown label (MM:SS) for the active round.

    The RoundTimer owns the countdown; this widget only renders the remaining
    seconds it is handed.
    """

    remaining: int = reactive(0)

    def on_mount(self) -> None:
        self._render_remaining()

    def show(self, seconds: int) -> None:
        self.remaining = max(0, int(seconds))

    def watch_remaining(self, value: int) -> None:
        self._render_remaining()

    def _render_remaining(self) -> None:
        minutes, seconds = divmod(self.remaining, 60)
        self.set_class(self.remaining <= WARN_SECONDS, "warning")
        self.update(f"{minutes:02d}:{seconds:02d}")


class RoundWidget(Widget):
    """Question text, answer buttons and submit for the active round.

    Posts `RoundWidget.AnswerChosen` when an option is picked (or free text is
    typed for questions without options) and `RoundWidget.SubmitPressed` on
    submit; the app forwards both to the orchestrator.
    """

    class AnswerChosen(Message):
        def __init__(self, answer: str) -> None:
            self.answer = answer
            super().__init__()

    class SubmitPressed(Message):
        pass

    selected: Optional[int] = reactive(None)

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._options: List[str] = []

    def compose(self) -> ComposeResult:
        with Container(id="round-grid"):
            with Horizontal(id="timer-widget"):
                yield Static("", id="round-header")
                yield TimeDisplay(id="timer-display")
            yield RichLog(id="question-log", wrap=True, markup=True, highlight=False, min_width=1)
            for label in LABELS:
                yield Button(label, id=f"option-{label.lower()}", disabled=True)
            yield Input(placeholder="Type your answer", id="free-answer")
            yield Button("Submit", id="submit", variant="primary", disabled=True)

    # --- Convenience accessors ---

    @property
    def timer(self) -> TimeDisplay:
        return self.query_one("#timer-display", TimeDisplay)

    @property
    def question_log(self) -> RichLog:
        return self.query_one("#question-log", RichLog)

    def _option_buttons(self) -> List[Button]:
        return [self.query_one(f"#option-{label.lower()}", Button) for label in LABELS]

    # --- Public API ---

    def show_round(self, active: ActiveRound, max_rounds: int, score: int, seconds: int) -> None:
        question = active.payload.question
        self._options = list(question.options or [])[:len(LABELS)]
        self.selected = None

        self.query_one("#round-header", Static).update(
            f"Round {active.round_number}/{max_rounds} · {active.payload.round_type} · Score {score}"
        )
        self.timer.show(seconds)

        log = self.question_log
        log.clear()
        theme_vars = self.app.get_css_variables()
        if question.scenario_data:
            log.write(Text(str(question.scenario_data), style="italic"))
            log.write("")
        prompt = Text(question.question_text, justify="left", overflow="fold", no_wrap=False)
        prompt.stylize(f"bold {theme_vars.get('primary', 'cyan')}")
        log.write(prompt)
        log.write("")
        for i, opt in enumerate(self._options):
            log.write(f"[b]{LABELS[i]}.[/b] {opt}")

        free = self.query_one("#free-answer", Input)
        free.value = ""
        free.display = not self._options
        for btn in self._option_buttons():
            btn.remove_class("selected-option")
        self.unlock()

    def select_index(self, index: int) -> None:
        if index >= len(self._options) or self.query_one("#submit", Button).disabled:
            return
        self.selected = index
        for i, btn in enumerate(self._option_buttons()):
            btn.set_class(i == index, "selected-option")
        self.post_message(self.AnswerChosen(self._options[index]))

    def lock(self) -> None:
        """Disable input while a submission is in flight or after it resolved."""
        for btn in self._option_buttons():
            btn.disabled = True
        self.query_one("#free-answer", Input).disabled = True
        self.query_one("#submit", Button).disabled = True

    def unlock(self) -> None:
        for i, btn in enumerate(self._option_buttons()):
            btn.disabled = i >= len(self._options)
        self.query_one("#free-answer", Input).disabled = False
        self.query_one("#submit", Button).disabled = False

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        if event.button.id == "submit":
            self.post_message(self.SubmitPressed())
            return
        buttons = self._option_buttons()
        if event.button in buttons:
            self.select_index(buttons.index(event.button))

    def on_input_changed(self, event: Input.Changed) -> None:
        event.stop()
        self.post_message(self.AnswerChosen(event.value.strip()))

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.post_message(self.SubmitPressed())


def render_round_result(result: RoundResult, round_number: int) -> Text:
    """Feedback text shown between rounds."""
    if result.is_correct:
        text = Text(f"Round {round_number}: Correct! +{result.points_earned} points\n", style="bold green")
    else:
        text = Text(f"Round {round_number}: Incorrect.\n", style="bold red")
        if result.correct_answer:
            text.append(f"The answer was: {result.correct_answer}\n")
    if result.explanation:
        text.append(f"\n{result.explanation}\n", style="italic")
    text.append(f"\nTotal score: {result.total_score} · Rounds completed: {result.rounds_completed}")
    return text
