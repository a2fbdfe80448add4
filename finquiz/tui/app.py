"""
Textual front end for finquiz.
Renders whichever phase the orchestrator is in and forwards player input.
"""
from __future__ import annotations

from typing import Optional

from rich.text import Text
from textual import work
from textual.app import App, ComposeResult
from textual.containers import Vertical
from textual.widgets import Button, ContentSwitcher, Footer, Header, Static

from finquiz.common import logger
from finquiz.errors import AnswerValidationError
from finquiz.orchestrator import GameOrchestrator
from finquiz.results import ResultsSummary
from finquiz.state_machine import GamePhase
from finquiz.tui.plots import CategoryPlot
from finquiz.tui.widgets import RoundWidget, render_round_result
from finquiz.ws_client import WSClient

THEME = "flexoki"


class FinQuizApp(App):
    """Single-player quiz client."""

    CSS = """
    #views { height: 1fr; }
    .view { padding: 1 2; height: 100%; }
    .view Button { margin: 1 1 0 0; }

    #round-grid {
        layout: grid;
        grid-size: 4;
        grid-columns: 1fr 1fr 1fr 1fr;
        grid-rows: 3 1fr 3 3;
        grid-gutter: 0 1;
        height: 100%;
    }
    #timer-widget { column-span: 4; height: 3; }
    #round-header { width: 1fr; content-align: left middle; }
    #timer-display { width: auto; content-align: right middle; text-style: bold; }
    #timer-display.warning { color: $error; }
    #question-log {
        column-span: 4;
        border: round $accent;
        padding-left: 1;
    }
    #round-grid Button { width: 100%; }
    #round-grid Button.selected-option { background: $primary 30%; }
    #free-answer { column-span: 3; }
    #submit { column-span: 4; }
    #category-plot { height: 14; }
    #error-text { color: $error; }
    """

    BINDINGS = [
        ("1", "choose(0)", "A"),
        ("2", "choose(1)", "B"),
        ("3", "choose(2)", "C"),
        ("4", "choose(3)", "D"),
        ("enter", "submit", "Submit"),
        ("n", "next", "Next"),
        ("escape", "leave", "Leave game"),
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        orchestrator: GameOrchestrator,
        user_id: str,
        ws_client: Optional[WSClient] = None,
    ) -> None:
        super().__init__()
        self.orchestrator = orchestrator
        self.user_id = user_id
        self.ws_client = ws_client
        self.summary: Optional[ResultsSummary] = None
        self.submit_error: Optional[str] = None

    # -----------------------------------------------------------------------------
    # Layout
    # -----------------------------------------------------------------------------
    def compose(self) -> ComposeResult:
        yield Header()
        with ContentSwitcher(initial="loading", id="views"):
            with Vertical(id="loading", classes="view"):
                yield Static("Loading your game...", id="loading-text")
            with Vertical(id="dashboard", classes="view"):
                yield Static("", id="dashboard-text")
                yield Button("Start new game", id="start-game", variant="primary")
            with Vertical(id="playing", classes="view"):
                yield RoundWidget(id="round")
                yield Static("", id="submit-error")
            with Vertical(id="round-result", classes="view"):
                yield Static("", id="result-text")
                yield Button("Next", id="next", variant="primary")
            with Vertical(id="completed", classes="view"):
                yield Static("", id="summary-text")
                yield CategoryPlot(id="category-plot")
                yield Button("Play again", id="play-again", variant="primary")
                yield Button("Dashboard", id="to-dashboard")
            with Vertical(id="error", classes="view"):
                yield Static("", id="error-text")
                yield Button("Retry", id="retry", variant="primary")
                yield Button("Dashboard", id="error-dashboard")
        yield Footer()

    # -----------------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------------
    def on_mount(self) -> None:
        self.theme = THEME
        self.title = "finquiz"
        self.sub_title = f"Player: {self.user_id}"
        self.orchestrator.machine.add_listener(self._on_phase_changed)
        self.orchestrator.coordinator.on_tick = self._on_tick
        self.orchestrator.coordinator.on_submit_failed = self._on_submit_failed
        if self.ws_client is not None:
            self.run_worker(self.ws_client.start(), name="websocket-client", group="session")
        self.resolve_game()

    def on_unmount(self) -> None:
        self.orchestrator.coordinator.cancel_round()
        if self.ws_client is not None:
            self.ws_client.stop()

    # -----------------------------------------------------------------------------
    # Workers (orchestrator calls)
    # -----------------------------------------------------------------------------
    @work(exclusive=True, group="game")
    async def resolve_game(self) -> None:
        if self.ws_client is not None:
            await self.ws_client.wait_until_connected(timeout=5.0)
        await self.orchestrator.resolve(self.user_id)
        await self._refresh_view()

    @work(exclusive=True, group="game")
    async def start_game(self) -> None:
        await self.orchestrator.start_new_game(self.user_id)
        await self._refresh_view()

    @work(group="game")
    async def submit_answer(self) -> None:
        self.query_one(RoundWidget).lock()
        # a failure reopens the round through _on_submit_failed
        await self.orchestrator.submit_answer()

    @work(exclusive=True, group="game")
    async def advance(self) -> None:
        await self.orchestrator.advance()
        await self._refresh_view()

    @work(exclusive=True, group="game")
    async def retry(self) -> None:
        session = self.orchestrator.snapshot.session
        if session is not None and session.is_resumable:
            await self.orchestrator.retry_round()
        else:
            await self.orchestrator.resolve(self.user_id)
        await self._refresh_view()

    @work(exclusive=True, group="game")
    async def leave(self) -> None:
        await self.orchestrator.abandon()
        await self._refresh_view()

    # -----------------------------------------------------------------------------
    # Input
    # -----------------------------------------------------------------------------
    def on_button_pressed(self, event: Button.Pressed) -> None:
        button_id = event.button.id
        if button_id in ("start-game", "play-again"):
            self.start_game()
        elif button_id == "next":
            self.advance()
        elif button_id == "retry":
            self.retry()
        elif button_id in ("to-dashboard", "error-dashboard"):
            self.orchestrator.back_to_dashboard()
            self.resolve_game()

    def on_round_widget_answer_chosen(self, message: RoundWidget.AnswerChosen) -> None:
        try:
            self.orchestrator.select_answer(message.answer)
        except AnswerValidationError as exc:
            logger.warning(f"[TUI] {exc}")

    def on_round_widget_submit_pressed(self, message: RoundWidget.SubmitPressed) -> None:
        self.submit_answer()

    def action_choose(self, index: int) -> None:
        if self.orchestrator.phase is GamePhase.PLAYING:
            self.query_one(RoundWidget).select_index(index)

    def action_submit(self) -> None:
        if self.orchestrator.phase is GamePhase.PLAYING:
            self.submit_answer()

    def action_next(self) -> None:
        if self.orchestrator.phase is GamePhase.ROUND_RESULT:
            self.advance()

    def action_leave(self) -> None:
        if self.orchestrator.phase in (GamePhase.PLAYING, GamePhase.ROUND_RESULT):
            self.leave()

    # -----------------------------------------------------------------------------
    # Orchestrator -> UI
    # -----------------------------------------------------------------------------
    def _on_phase_changed(self, old: GamePhase, new: GamePhase) -> None:
        logger.debug(f"[TUI] phase {old.value} -> {new.value}")
        self.query_one("#views", ContentSwitcher).current = new.value.replace("_", "-")
        orch = self.orchestrator
        if new is GamePhase.ROUND_RESULT and orch.last_result and orch.current_round:
            self.query_one("#result-text", Static).update(
                render_round_result(orch.last_result, orch.current_round.round_number)
            )
            label = "See results" if orch.last_result.session_complete else "Next round"
            self.query_one("#next", Button).label = label
        elif new is GamePhase.ERROR:
            self.query_one("#error-text", Static).update(f"Something went wrong: {orch.error}")

    def _on_tick(self, remaining: int) -> None:
        self.query_one(RoundWidget).timer.show(remaining)

    def _on_submit_failed(self, round_number: int, reason: str) -> None:
        # covers timed auto-submits too, which run outside any worker
        self.submit_error = f"Could not submit round {round_number}: {reason}. Press Submit to retry."
        self.query_one("#submit-error", Static).update(self.submit_error)
        self.query_one(RoundWidget).unlock()

    async def _refresh_view(self) -> None:
        orch = self.orchestrator
        phase = orch.phase
        if phase is GamePhase.PLAYING and orch.current_round is not None:
            session = orch.snapshot.session
            timer = orch.coordinator.timer
            self.submit_error = None
            self.query_one("#submit-error", Static).update("")
            self.query_one(RoundWidget).show_round(
                orch.current_round,
                max_rounds=session.max_rounds if session else orch.max_rounds,
                score=session.total_score if session else 0,
                seconds=timer.remaining if timer else orch.coordinator.round_seconds,
            )
        elif phase is GamePhase.DASHBOARD:
            await self._show_dashboard()
        elif phase is GamePhase.COMPLETED:
            await self._show_summary()

    async def _show_dashboard(self) -> None:
        text = self.query_one("#dashboard-text", Static)
        if self.orchestrator.error:
            text.update(Text(f"Could not start a game: {self.orchestrator.error}", style="bold red"))
            return
        view = await self.orchestrator.load_dashboard(self.user_id)
        if view is None:
            return
        lines = Text("Financial literacy quiz\n\n", style="bold")
        if view.stats is not None:
            s = view.stats
            lines.append(
                f"Best score: {s.best_score}   Accuracy: {round(s.accuracy_rate)}%   "
                f"Games completed: {s.completed_sessions}   Average score: {round(s.average_score)}\n"
            )
        else:
            lines.append("No games played yet.\n")
        text.update(lines)

    async def _show_summary(self) -> None:
        summary = await self.orchestrator.load_results()
        if summary is None:
            return
        self.summary = summary
        body = Text("Game complete!\n\n", style="bold")
        body.append(f"Total score: {summary.total_score} / {summary.max_possible}  ({summary.tier})\n")
        body.append(
            f"Accuracy: {round(summary.accuracy)}%   Avg time: {round(summary.average_time)}s   "
            f"Perfect rounds: {summary.perfect_rounds}   Rounds: {summary.rounds_completed}\n\n"
        )
        body.append("By category\n", style="bold underline")
        for name, stat in summary.categories.items():
            body.append(
                f"  {name.replace('_', ' ')}: {stat.correct}/{stat.total} correct "
                f"({round(stat.percentage)}%)\n"
            )
        self.query_one("#summary-text", Static).update(body)
        self.query_one(CategoryPlot).set_categories(summary.categories)
