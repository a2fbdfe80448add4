"""Game orchestration for one player on one client.

This module performs no transport I/O of its own; the `GameBackend` it is
given talks to the scoring service. The orchestrator wires the state machine,
the submission coordinator, the round timer and the results aggregator
together and is the only object a front end needs.

Every entry point takes the player or session explicitly (`user_id`), so the
whole flow can be driven from a test with an in-memory backend and a manual
clock.
"""

from __future__ import annotations

import asyncio
from typing import List, Optional

from .backend import GameBackend
from .common import logger
from .errors import BackendFailure, InvalidTransition
from .game_types import DashboardView, LeaderboardEntry, RoundResult
from .journal import GameJournal
from .results import (
    PERFECT_ROUND_SECONDS, POINTS_PER_ROUND, ResultsAggregator, ResultsSummary,
)
from .round_timer import ROUND_SECONDS, Scheduler
from .snapshot import ActiveRound, SessionSnapshot
from .state_machine import GamePhase, SessionStateMachine
from .submission import AnswerSubmissionCoordinator

MAX_ROUNDS = 10


class GameOrchestrator:
    """
    Drives a single player's game.

    Responsibilities:
    - Land on the right phase when the client opens (`resolve`).
    - Start games, run the round loop, advance between rounds.
    - Leave or pause a game (`abandon`) without leaking a live timer.
    - Build the dashboard and results view models.
    """

    def __init__(
        self,
        backend: GameBackend,
        max_rounds: int = MAX_ROUNDS,
        round_seconds: int = ROUND_SECONDS,
        points_per_round: int = POINTS_PER_ROUND,
        perfect_seconds: float = PERFECT_ROUND_SECONDS,
        scheduler: Optional[Scheduler] = None,
        journal: Optional[GameJournal] = None,
    ) -> None:
        self.backend = backend
        self.max_rounds = max_rounds
        self.journal = journal

        self.snapshot = SessionSnapshot()
        self.machine = SessionStateMachine(backend, self.snapshot)
        self.coordinator = AnswerSubmissionCoordinator(
            backend,
            self.snapshot,
            self.machine,
            round_seconds=round_seconds,
            scheduler=scheduler,
            journal=journal,
        )
        self.aggregator = ResultsAggregator(points_per_round, perfect_seconds)

    # ---------- Convenience accessors ----------

    @property
    def phase(self) -> GamePhase:
        return self.machine.phase

    @property
    def error(self) -> Optional[str]:
        return self.machine.error

    @property
    def current_round(self) -> Optional[ActiveRound]:
        return self.snapshot.current

    @property
    def last_result(self) -> Optional[RoundResult]:
        return self.machine.last_result

    # ---------- Lifecycle ----------

    async def resolve(self, user_id: str) -> GamePhase:
        """Open the client for `user_id`: dashboard, resumed game, or results."""
        self.coordinator.cancel_round()
        phase = await self.machine.resolve(user_id)
        if phase is GamePhase.PLAYING:
            self._journal_start(user_id)
            await self.coordinator.start_round()
        return self.machine.phase

    async def start_new_game(self, user_id: str, max_rounds: Optional[int] = None) -> Optional[str]:
        rounds = max_rounds or self.max_rounds
        session_id = await self.machine.start_new_game(user_id, rounds)
        if session_id is None:
            return None
        logger.info(f"[Orchestrator] New game {session_id} for {user_id} ({rounds} rounds)")
        self._journal_start(user_id)
        await self.coordinator.start_round()
        return session_id

    async def play_again(self, user_id: str) -> Optional[str]:
        return await self.start_new_game(user_id)

    async def retry_round(self) -> Optional[ActiveRound]:
        """Try again to load a round after the service failed to start one."""
        if self.machine.phase is not GamePhase.ERROR or self.snapshot.session is None:
            raise InvalidTransition("nothing to retry")
        return await self.coordinator.start_round()

    # ---------- Round actions ----------

    def select_answer(self, answer: Optional[str]) -> None:
        self.coordinator.select_answer(answer)

    async def submit_answer(self) -> Optional[RoundResult]:
        """Manual submit of the selected answer (also the retry after a failure)."""
        if self.machine.phase is not GamePhase.PLAYING:
            return None
        return await self.coordinator.submit_current()

    async def advance(self) -> GamePhase:
        """'Next' on the round result: next round, or the results summary."""
        await self.coordinator.advance()
        return self.machine.phase

    async def abandon(self) -> None:
        """Leave the game in progress. The session is paused so it can be resumed."""
        self.coordinator.cancel_round()
        session = self.snapshot.session
        if session is not None and session.is_resumable:
            try:
                await self.backend.pause_session(session.id)
            except BackendFailure as exc:
                # the session stays active on the service; resolve() still finds it
                logger.warning(f"[Orchestrator] Could not pause {session.id}: {exc.reason}")
            if self.journal:
                self.journal.log_session_end("abandoned", graceful=True)
        self.snapshot.clear()
        self.machine.back_to_dashboard()

    def back_to_dashboard(self) -> None:
        """Explicit 'back' from the results screen."""
        self.coordinator.cancel_round()
        self.snapshot.clear()
        self.machine.back_to_dashboard()

    async def finish_early(self) -> None:
        """End the current game now; unplayed rounds count as not attempted."""
        session = self.snapshot.session
        if session is None:
            raise InvalidTransition("no session loaded")
        self.coordinator.cancel_round()
        try:
            await self.backend.complete_session(session.id)
        except BackendFailure as exc:
            self.machine.fail(exc.reason)
            return
        if self.journal:
            self.journal.log_session_end("finished early")
        self.snapshot.clear()
        self.machine.back_to_dashboard()

    # ---------- View models ----------

    async def load_results(self) -> Optional[ResultsSummary]:
        """Fetch the finished session's rounds and summarize them."""
        session = self.snapshot.session
        if self.machine.phase is not GamePhase.COMPLETED or session is None:
            raise InvalidTransition("results are only available for a completed session")
        try:
            rounds = await self.backend.get_session_rounds(session.id)
        except BackendFailure as exc:
            self.machine.fail(exc.reason)
            return None
        summary = self.aggregator.summarize(session, rounds)
        logger.info(
            f"[Orchestrator] Results for {session.id}: score={summary.total_score} "
            f"accuracy={summary.accuracy:.0f}% tier={summary.tier}"
        )
        return summary

    async def load_dashboard(self, user_id: str) -> Optional[DashboardView]:
        try:
            stats, history = await asyncio.gather(
                self.backend.get_user_stats(user_id),
                self.backend.get_game_history(user_id),
            )
        except BackendFailure as exc:
            self.machine.fail(exc.reason)
            return None
        current = self.snapshot.session if self.snapshot.session and self.snapshot.session.is_resumable else None
        return DashboardView(current_session=current, stats=stats, history=list(history))

    async def leaderboard(self, limit: int = 10) -> List[LeaderboardEntry]:
        try:
            return await self.backend.get_leaderboard(limit)
        except BackendFailure as exc:
            logger.warning(f"[Orchestrator] Leaderboard unavailable: {exc.reason}")
            return []

    # ---------- internals ----------

    def _journal_start(self, user_id: str) -> None:
        session = self.snapshot.session
        if self.journal and session is not None:
            self.journal.log_session_start(session.id, user_id, session.max_rounds)
