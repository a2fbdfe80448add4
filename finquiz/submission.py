"""Round loop: start a round, submit its answer exactly once, advance.

The coordinator owns the active RoundTimer. Two things can submit a round:
the player (manual submit) and the timer (expiry). Both go through
`submit()`, which claims the round in the snapshot before its first await,
so whichever runs first wins and the other becomes a no-op. Only one
`submit_answer` call reaches the scoring service per round.

Ordering:
  - round N+1 is never requested while round N's submission is unresolved;
  - the snapshot merge of a result happens before the RoundResult phase;
  - a result or tick for a round that is no longer current is dropped.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from .backend import GameBackend
from .common import logger
from .errors import AnswerValidationError, BackendFailure, InvalidTransition, StaleRoundError
from .game_types import RoundResult
from .journal import GameJournal
from .round_timer import ROUND_SECONDS, RoundTimer, Scheduler
from .snapshot import ActiveRound, RoundState, SessionSnapshot
from .state_machine import GamePhase, SessionStateMachine


class AnswerSubmissionCoordinator:

    def __init__(
        self,
        backend: GameBackend,
        snapshot: SessionSnapshot,
        machine: SessionStateMachine,
        round_seconds: int = ROUND_SECONDS,
        scheduler: Optional[Scheduler] = None,
        journal: Optional[GameJournal] = None,
    ) -> None:
        self._backend = backend
        self._snapshot = snapshot
        self._machine = machine
        self.round_seconds = round_seconds
        self._scheduler = scheduler
        self._journal = journal

        self.timer: Optional[RoundTimer] = None
        self.last_error: Optional[str] = None
        # the auto-submit started by a timer expiry, kept so it can be awaited
        self.auto_submit_task: Optional[asyncio.Task] = None
        # front ends hook this to redraw the countdown
        self.on_tick = None
        # front ends hook this to show why a submit (manual or timed) failed
        self.on_submit_failed = None
        # set while a start_round request is in flight
        self._starting = False

    # ---------- Rounds ----------

    async def start_round(self, round_type: Optional[str] = None) -> Optional[ActiveRound]:
        """Ask the service for the next round and arm a fresh timer for it."""
        session_id = self._snapshot.session_id
        if session_id is None:
            raise InvalidTransition("no session loaded")

        current = self._snapshot.current
        if current is not None and current.state is not RoundState.SUBMITTED:
            # N+1 waits until N is resolved
            logger.warning(
                f"[Coordinator] Round {current.round_number} is {current.state.value}; not starting another"
            )
            return None

        if self._starting:
            logger.debug("[Coordinator] A round is already being started; ignoring")
            return None

        self.cancel_round()
        self._starting = True
        try:
            payload = await self._backend.start_round(session_id, round_type)
        except BackendFailure as exc:
            self._machine.fail(exc.reason)
            return None
        finally:
            self._starting = False

        if self._snapshot.session_id != session_id:
            logger.warning("[Coordinator] Session changed while round was loading; dropping it")
            return None
        try:
            active = self._snapshot.begin_round(payload)
        except StaleRoundError as exc:
            logger.warning(f"[Coordinator] Discarding round payload: {exc}")
            self._machine.fail(f"scoring service returned a stale round ({exc})")
            return None

        logger.info(
            f"[Coordinator] Round {active.round_number} started "
            f"({payload.round_type}, question {payload.question.id})"
        )
        if self._journal:
            self._journal.log_round_started(active.round_number, payload.round_type, payload.question.id)

        self.last_error = None
        self._machine.enter_playing()
        self._arm_timer(active.round_number)
        return active

    def cancel_round(self) -> None:
        """Cancel the active round's countdown (round superseded or player left)."""
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None

    def select_answer(self, answer: Optional[str]) -> None:
        current = self._snapshot.current
        if current is None:
            return
        options = current.payload.question.options
        if answer and options and answer not in options:
            raise AnswerValidationError(f"{answer!r} is not one of the options")
        self._snapshot.select(answer)

    # ---------- Submission ----------

    async def submit(
        self,
        session_id: str,
        round_number: int,
        answer: Optional[str],
        time_taken: float,
        auto: bool = False,
    ) -> Optional[RoundResult]:
        """Submit one answer. Returns the result, or None if nothing was applied."""
        if session_id != self._snapshot.session_id or round_number != self._snapshot.current_round_number:
            logger.warning(
                f"[Coordinator] Ignoring submit for stale round {round_number} of session {session_id}"
            )
            return None

        # claim before the first await
        if not self._snapshot.claim_submission(round_number):
            logger.debug(f"[Coordinator] Round {round_number} already submitting/submitted; ignoring")
            return None

        if self.timer is not None and self.timer.round_number == round_number:
            self.timer.stop()

        answer = answer or ""
        time_taken = float(min(max(time_taken, 0), self.round_seconds))
        logger.info(
            f"[Coordinator] Submitting round {round_number} answer={answer!r} "
            f"time_taken={time_taken:.0f}s auto={auto}"
        )
        if self._journal:
            self._journal.log_answer_submitted(round_number, answer, time_taken, auto=auto)

        try:
            result = await self._backend.submit_answer(session_id, round_number, answer, time_taken)
        except BackendFailure as exc:
            # reopen the round; the timer stays stopped until the player retries
            self._snapshot.release_submission(round_number, time_taken)
            self.last_error = exc.reason
            logger.error(f"[Coordinator] Submit for round {round_number} failed: {exc.reason}")
            if self.on_submit_failed is not None:
                self.on_submit_failed(round_number, exc.reason)
            return None

        try:
            self._snapshot.merge_result(round_number, answer, time_taken, result)
        except StaleRoundError as exc:
            logger.warning(f"[Coordinator] Discarding result: {exc}")
            return None

        if self._journal:
            self._journal.log_result_received(round_number, result)
        self.last_error = None
        self._machine.show_round_result(result)
        return result

    async def submit_current(self, auto: bool = False) -> Optional[RoundResult]:
        """Submit the active round with whatever answer is selected."""
        current = self._snapshot.current
        session_id = self._snapshot.session_id
        if current is None or session_id is None:
            return None

        if current.failed_elapsed is not None:
            time_taken = current.failed_elapsed
        elif self.timer is not None and self.timer.round_number == current.round_number:
            time_taken = self.timer.elapsed
        else:
            time_taken = float(self.round_seconds)
        return await self.submit(
            session_id, current.round_number, current.pending_answer, time_taken, auto=auto
        )

    async def advance(self) -> Optional[ActiveRound]:
        """Leave the round result: to Completed on the last round, else the next round."""
        if self._machine.phase is not GamePhase.ROUND_RESULT:
            raise InvalidTransition(f"cannot advance from {self._machine.phase.value}")

        result = self._machine.last_result
        if result is not None and result.session_complete:
            self.cancel_round()
            self._machine.complete()
            if self._journal:
                self._journal.log_session_end("completed")
            return None
        return await self.start_round()

    # ---------- Timer wiring ----------

    def _arm_timer(self, round_number: int) -> None:
        self.cancel_round()
        self.timer = RoundTimer(
            round_number,
            budget=self.round_seconds,
            on_expire=self._on_timer_expired,
            on_tick=self._on_timer_tick,
            scheduler=self._scheduler,
        )
        self.timer.start()

    def _on_timer_tick(self, remaining: int) -> None:
        if self.on_tick is not None:
            self.on_tick(remaining)

    def _on_timer_expired(self, round_number: int) -> None:
        if round_number != self._snapshot.current_round_number:
            logger.debug(f"[Coordinator] Expiry for stale round {round_number} ignored")
            return
        loop = asyncio.get_running_loop()
        self.auto_submit_task = loop.create_task(self.submit_current(auto=True))
