"""Per-round countdown.

One RoundTimer exists per active round. It ticks once a second from the
round budget down to zero and calls `on_expire` at most once. Cancelling it
(next round started, player left) drops any tick that is already queued.

Scheduling goes through a `Scheduler`: anything with an asyncio-style
`call_later(delay, callback)` returning a handle with `cancel()`. The running
event loop is the default; tests pass a manual clock.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, Protocol

from .common import logger

ROUND_SECONDS = 60
TICK_SECONDS = 1.0


class Handle(Protocol):
    def cancel(self) -> Any: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> Handle: ...


class RoundTimer:
    """Cooperative countdown bound to a single round number."""

    def __init__(
        self,
        round_number: int,
        budget: int = ROUND_SECONDS,
        on_expire: Optional[Callable[[int], None]] = None,
        on_tick: Optional[Callable[[int], None]] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.round_number = round_number
        self.budget = budget
        self.remaining = budget
        self.on_expire = on_expire
        self.on_tick = on_tick
        self._scheduler = scheduler
        self._handle: Optional[Handle] = None
        self._running = False
        self._fired = False
        self._cancelled = False

    # ----- public API -------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def elapsed(self) -> float:
        """Seconds used so far, clamped to [0, budget]."""
        return float(min(max(self.budget - self.remaining, 0), self.budget))

    def start(self) -> None:
        """Start the countdown from the full budget. A timer only runs once."""
        if self._running or self._fired or self._cancelled:
            return
        if self._scheduler is None:
            self._scheduler = asyncio.get_running_loop()
        self.remaining = self.budget
        self._running = True
        logger.debug(f"[RoundTimer] round {self.round_number} started ({self.budget}s)")
        self._schedule()

    def stop(self) -> None:
        """Freeze the countdown (answer submitted). Remaining time is kept."""
        self._running = False
        self._cancel_handle()

    def cancel(self) -> None:
        """Stop for good; any tick already queued becomes a no-op."""
        if not self._cancelled:
            logger.debug(f"[RoundTimer] round {self.round_number} cancelled at {self.remaining}s")
        self._cancelled = True
        self.stop()

    # ----- internals --------------------------------------------------------

    def _schedule(self) -> None:
        self._handle = self._scheduler.call_later(TICK_SECONDS, self._tick)

    def _cancel_handle(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _tick(self) -> None:
        self._handle = None
        if not self._running or self._cancelled:
            return

        self.remaining = max(0, self.remaining - 1)
        if self.on_tick:
            self.on_tick(self.remaining)
            if not self._running or self._cancelled:
                return

        if self.remaining > 0:
            self._schedule()
            return

        # hit zero: stop first so a slow submit can never see a second expiry
        self._running = False
        if self._fired:
            return
        self._fired = True
        logger.info(f"[RoundTimer] round {self.round_number} expired")
        if self.on_expire:
            self.on_expire(self.round_number)
