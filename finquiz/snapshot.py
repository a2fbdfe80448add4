"""In-memory view of the session currently being played.

The snapshot only stores values the scoring service has confirmed. The user's
answer selection lives on the active round as `pending_answer` until the
service's RoundResult replaces it with the graded record.

Only the orchestration core mutates a snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from .common import logger
from .errors import StaleRoundError
from .game_types import GameSession, RoundPayload, RoundResult, SessionRound, SessionStatus


class RoundState(Enum):
    OPEN = "open"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class ActiveRound:
    payload: RoundPayload
    state: RoundState = RoundState.OPEN
    pending_answer: Optional[str] = None
    result: Optional[RoundResult] = None
    # elapsed seconds recorded by a failed submit; a manual retry reuses it
    failed_elapsed: Optional[float] = None

    @property
    def round_number(self) -> int:
        return self.payload.round_number


class SessionSnapshot:
    def __init__(self) -> None:
        self.session: Optional[GameSession] = None
        self.rounds: Dict[int, SessionRound] = {}
        self.current: Optional[ActiveRound] = None

    # ---------- Lifecycle ----------

    def load(self, session: GameSession) -> None:
        """Adopt a session fetched from the service and drop any previous state."""
        logger.debug(f"[Snapshot] Loading session {session.id} ({session.status.value})")
        self.session = session
        self.rounds = {}
        self.current = None

    def clear(self) -> None:
        self.session = None
        self.rounds = {}
        self.current = None

    @property
    def session_id(self) -> Optional[str]:
        return self.session.id if self.session else None

    @property
    def current_round_number(self) -> Optional[int]:
        return self.current.round_number if self.current else None

    def ordered_rounds(self) -> List[SessionRound]:
        return [self.rounds[n] for n in sorted(self.rounds)]

    # ---------- Rounds ----------

    def begin_round(self, payload: RoundPayload) -> ActiveRound:
        """Make `payload` the active round, superseding any previous one."""
        if self.session is None or payload.session_id != self.session.id:
            raise StaleRoundError(payload.round_number, self.current_round_number)
        if payload.round_number in self.rounds:
            # already graded; the service handed back a finished round
            raise StaleRoundError(payload.round_number, self.current_round_number)

        expected = self.session.rounds_completed + 1
        if payload.round_number != expected:
            logger.warning(
                f"[Snapshot] Service allocated round {payload.round_number}, expected {expected}"
            )
        self.current = ActiveRound(payload=payload)
        return self.current

    def select(self, answer: Optional[str]) -> None:
        if self.current is None or self.current.state is not RoundState.OPEN:
            return
        self.current.pending_answer = answer

    def claim_submission(self, round_number: int) -> bool:
        """Move the active round to SUBMITTING. False if it is not claimable.

        Synchronous on purpose: callers claim before their first await so a
        timer expiry and a manual submit in the same tick cannot both win.
        """
        current = self.current
        if current is None or current.round_number != round_number:
            return False
        if current.state is not RoundState.OPEN:
            return False
        current.state = RoundState.SUBMITTING
        return True

    def release_submission(self, round_number: int, elapsed: Optional[float] = None) -> None:
        """Reopen a round whose submission failed."""
        current = self.current
        if current is None or current.round_number != round_number:
            return
        if current.state is RoundState.SUBMITTING:
            current.state = RoundState.OPEN
            current.failed_elapsed = elapsed

    def merge_result(
        self, round_number: int, answer: str, time_taken: float, result: RoundResult
    ) -> SessionRound:
        """Apply the service's result to the session and record the graded round."""
        current = self.current
        if self.session is None or current is None or current.round_number != round_number:
            raise StaleRoundError(round_number, self.current_round_number)
        if current.state is not RoundState.SUBMITTING:
            raise StaleRoundError(round_number, self.current_round_number)

        session = self.session
        if result.rounds_completed != session.rounds_completed + 1:
            logger.warning(
                f"[Snapshot] rounds_completed went {session.rounds_completed} -> "
                f"{result.rounds_completed}; keeping the service value"
            )
        if result.total_score < session.total_score:
            logger.warning(
                f"[Snapshot] total_score decreased {session.total_score} -> {result.total_score}; "
                f"keeping the service value"
            )

        session.total_score = result.total_score
        session.rounds_completed = min(result.rounds_completed, session.max_rounds)
        if result.session_complete:
            session.status = SessionStatus.COMPLETED
            session.completed_at = session.completed_at or _now_iso()

        payload = current.payload
        record = SessionRound(
            id=f"{session.id}:{round_number}",
            session_id=session.id,
            round_number=round_number,
            round_type=payload.round_type,
            question_id=payload.question.id,
            question_data=payload.question.to_dict(),
            user_answer=answer,
            correct_answer=result.correct_answer,
            is_correct=result.is_correct,
            points_earned=result.points_earned,
            time_taken=time_taken,
            completed_at=_now_iso(),
        )
        self.rounds[round_number] = record

        current.state = RoundState.SUBMITTED
        current.result = result
        current.pending_answer = None
        return record
