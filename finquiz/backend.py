"""Contract between the orchestration core and the scoring service.

The scoring service owns the question bank, grading and every persisted
session/round record. Implementations raise `BackendFailure` for any failure;
"no current session" is not a failure and is returned as None.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from .game_types import (
    GameSession, LeaderboardEntry, PlayerStats, RoundPayload, RoundResult, SessionRound,
)


class GameBackend(ABC):

    # ---------- Session lifecycle ----------

    @abstractmethod
    async def get_current_session(self, user_id: str) -> Optional[GameSession]:
        """Return the user's current (non-abandoned) session, or None."""

    @abstractmethod
    async def create_session(self, user_id: str, max_rounds: int) -> str:
        """Create a session and return its id."""

    @abstractmethod
    async def complete_session(self, session_id: str) -> None:
        """Mark a session completed ahead of its last round."""

    @abstractmethod
    async def pause_session(self, session_id: str) -> None:
        ...

    @abstractmethod
    async def resume_session(self, session_id: str) -> None:
        ...

    # ---------- Rounds ----------

    @abstractmethod
    async def start_round(self, session_id: str, round_type: Optional[str] = None) -> RoundPayload:
        """Allocate the next round (rounds_completed + 1) and return its question."""

    @abstractmethod
    async def submit_answer(
        self, session_id: str, round_number: int, answer: str, time_taken: float
    ) -> RoundResult:
        """Grade an answer. The returned result is the only scoring authority."""

    @abstractmethod
    async def get_session_rounds(self, session_id: str) -> List[SessionRound]:
        """All rounds of a session ordered by round_number ascending."""

    # ---------- Reporting ----------

    @abstractmethod
    async def get_user_stats(self, user_id: str) -> Optional[PlayerStats]:
        ...

    @abstractmethod
    async def get_game_history(self, user_id: str, limit: int = 10) -> List[GameSession]:
        """Most recent sessions first."""

    @abstractmethod
    async def get_leaderboard(self, limit: int = 10) -> List[LeaderboardEntry]:
        """Completed sessions ordered by total_score descending."""
