"""Which screen the player is on, and the transitions between them.

Phases follow a game through Dashboard -> Playing -> RoundResult -> ... ->
Completed. `resolve()` is the entry action: it asks the scoring service for
the player's current session and lands on the matching phase, so a player who
closes the client mid-game comes back to the same game. It is safe to call as
often as the front end likes.

The machine performs no round I/O; the submission coordinator drives rounds
and reports results back through `show_round_result()`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from .backend import GameBackend
from .common import logger
from .errors import BackendFailure, InvalidTransition
from .game_types import GameSession, RoundResult, SessionStatus
from .snapshot import SessionSnapshot


class GamePhase(Enum):
    DASHBOARD = "dashboard"
    LOADING = "loading"
    PLAYING = "playing"
    ROUND_RESULT = "round_result"
    COMPLETED = "completed"
    ERROR = "error"


# LOADING is reachable from everywhere: resolve() may be re-run at any time
_TRANSITIONS: Dict[GamePhase, Set[GamePhase]] = {
    GamePhase.LOADING: {GamePhase.DASHBOARD, GamePhase.PLAYING, GamePhase.COMPLETED, GamePhase.ERROR},
    GamePhase.DASHBOARD: {GamePhase.LOADING, GamePhase.PLAYING, GamePhase.ERROR},
    GamePhase.PLAYING: {GamePhase.LOADING, GamePhase.ROUND_RESULT, GamePhase.DASHBOARD, GamePhase.ERROR},
    GamePhase.ROUND_RESULT: {GamePhase.LOADING, GamePhase.PLAYING, GamePhase.COMPLETED,
                             GamePhase.DASHBOARD, GamePhase.ERROR},
    GamePhase.COMPLETED: {GamePhase.LOADING, GamePhase.DASHBOARD, GamePhase.PLAYING, GamePhase.ERROR},
    GamePhase.ERROR: {GamePhase.LOADING, GamePhase.DASHBOARD, GamePhase.PLAYING},
}

PhaseListener = Callable[[GamePhase, GamePhase], None]


class SessionStateMachine:

    def __init__(self, backend: GameBackend, snapshot: SessionSnapshot) -> None:
        self._backend = backend
        self._snapshot = snapshot
        self.phase: GamePhase = GamePhase.LOADING
        self.error: Optional[str] = None
        self.last_result: Optional[RoundResult] = None
        self._listeners: List[PhaseListener] = []

    @property
    def session_id(self) -> Optional[str]:
        return self._snapshot.session_id

    def add_listener(self, listener: PhaseListener) -> None:
        """Call `listener(old, new)` after every phase change."""
        self._listeners.append(listener)

    # ---------- Entry actions ----------

    async def resolve(self, user_id: str) -> GamePhase:
        """Fetch the player's current session and move to the matching phase."""
        self._transition(GamePhase.LOADING)
        self.error = None
        self.last_result = None

        try:
            session = await self._backend.get_current_session(user_id)
        except BackendFailure as exc:
            self._snapshot.clear()
            self.fail(exc.reason)
            return self.phase

        if session is None:
            logger.info(f"[StateMachine] No current session for user {user_id}")
            self._snapshot.clear()
            self._transition(GamePhase.DASHBOARD)
            return self.phase

        self._snapshot.load(session)
        if session.status is SessionStatus.COMPLETED:
            self._transition(GamePhase.COMPLETED)
            return self.phase

        if session.status is SessionStatus.PAUSED:
            try:
                await self._backend.resume_session(session.id)
            except BackendFailure as exc:
                self.fail(exc.reason)
                return self.phase
            session.status = SessionStatus.ACTIVE
            logger.info(f"[StateMachine] Resumed paused session {session.id}")

        self._transition(GamePhase.PLAYING)
        return self.phase

    async def start_new_game(self, user_id: str, max_rounds: int) -> Optional[str]:
        """Create a session. Returns its id, or None after reporting the failure."""
        if self.phase not in (GamePhase.DASHBOARD, GamePhase.ERROR, GamePhase.COMPLETED):
            raise InvalidTransition(f"cannot start a new game from {self.phase.value}")

        try:
            session_id = await self._backend.create_session(user_id, max_rounds)
        except BackendFailure as exc:
            # stay where we are; the caller decides whether to try again
            self.error = exc.reason
            logger.error(f"[StateMachine] Could not create session: {exc.reason}")
            return None

        now = datetime.now(timezone.utc).isoformat(timespec="seconds")
        self._snapshot.load(GameSession(
            id=session_id,
            user_id=user_id,
            status=SessionStatus.ACTIVE,
            max_rounds=max_rounds,
            started_at=now,
        ))
        self.error = None
        self.last_result = None
        self._transition(GamePhase.PLAYING)
        return session_id

    # ---------- Transitions driven by play ----------

    def enter_playing(self) -> None:
        self.last_result = None
        if self.phase is not GamePhase.PLAYING:
            self._transition(GamePhase.PLAYING)

    def show_round_result(self, result: RoundResult) -> None:
        self.last_result = result
        self._transition(GamePhase.ROUND_RESULT)

    def complete(self) -> None:
        """Leave the final round's feedback for the summary."""
        if self.phase is not GamePhase.ROUND_RESULT or not (
            self.last_result and self.last_result.session_complete
        ):
            raise InvalidTransition("the session is not complete yet")
        self._transition(GamePhase.COMPLETED)

    def back_to_dashboard(self) -> None:
        self.last_result = None
        self._transition(GamePhase.DASHBOARD)

    def fail(self, reason: str) -> None:
        logger.error(f"[StateMachine] {self.phase.value} -> error: {reason}")
        self.error = reason
        self._transition(GamePhase.ERROR)

    # ---------- internals ----------

    def _transition(self, new: GamePhase) -> None:
        old = self.phase
        if new is old:
            return
        if new not in _TRANSITIONS[old]:
            raise InvalidTransition(f"{old.value} -> {new.value}")
        self.phase = new
        logger.debug(f"[StateMachine] {old.value} -> {new.value}")
        for listener in list(self._listeners):
            listener(old, new)
