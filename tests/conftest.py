import asyncio
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from finquiz.backend import GameBackend
from finquiz.errors import BackendFailure
from finquiz.game_types import (
    GameSession, LeaderboardEntry, PlayerStats, Question, RoundPayload, RoundResult,
    SessionRound, SessionStatus,
)
from finquiz.orchestrator import GameOrchestrator

CATEGORIES = ["budgeting", "investing"]
OPTIONS = ["Pay yourself first", "Spend it all", "Borrow more", "Ignore it"]
CORRECT = OPTIONS[0]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class FakeBackend(GameBackend):
    """In-memory scoring service.

    Questions alternate budgeting/investing, the first option is always right,
    and an empty answer is graded wrong. `fail_next[op] = reason` makes the
    next call to `op` raise BackendFailure. `submit_gate`, when set, holds
    submit_answer until the event is set; `yield_on_start` makes start_round
    suspend once before answering.
    """

    def __init__(self, points: int = 10):
        self.points = points
        self.sessions: Dict[str, GameSession] = {}
        self.rounds: Dict[str, Dict[int, SessionRound]] = {}
        self.calls: Counter = Counter()
        self.submitted: List[dict] = []
        self.fail_next: Dict[str, str] = {}
        self.submit_gate: Optional[asyncio.Event] = None
        self.yield_on_start = False
        self.stats: Optional[PlayerStats] = None
        self.leaders: List[LeaderboardEntry] = []
        self._ids = 0

    # ---------- helpers for tests ----------

    def add_session(self, user_id: str = "u1", **fields) -> GameSession:
        self._ids += 1
        session = GameSession(id=f"s{self._ids}", user_id=user_id, started_at=_now(), **fields)
        self.sessions[session.id] = session
        self.rounds[session.id] = {}
        return session

    def _enter(self, op: str) -> None:
        self.calls[op] += 1
        reason = self.fail_next.pop(op, None)
        if reason is not None:
            raise BackendFailure(op, reason)

    def _session(self, op: str, session_id: str) -> GameSession:
        try:
            return self.sessions[session_id]
        except KeyError:
            raise BackendFailure(op, f"session {session_id} not found") from None

    # ---------- GameBackend ----------

    async def get_current_session(self, user_id):
        self._enter("get_current_session")
        mine = [s for s in self.sessions.values() if s.user_id == user_id]
        return mine[-1] if mine else None

    async def create_session(self, user_id, max_rounds):
        self._enter("create_session")
        return self.add_session(user_id, max_rounds=max_rounds).id

    async def complete_session(self, session_id):
        self._enter("complete_session")
        session = self._session("complete_session", session_id)
        session.status = SessionStatus.COMPLETED
        session.completed_at = _now()

    async def pause_session(self, session_id):
        self._enter("pause_session")
        self._session("pause_session", session_id).status = SessionStatus.PAUSED

    async def resume_session(self, session_id):
        self._enter("resume_session")
        self._session("resume_session", session_id).status = SessionStatus.ACTIVE

    async def start_round(self, session_id, round_type=None):
        self._enter("start_round")
        if self.yield_on_start:
            await asyncio.sleep(0)
        session = self._session("start_round", session_id)
        number = session.rounds_completed + 1
        category = round_type or CATEGORIES[(number - 1) % len(CATEGORIES)]
        question = Question(
            id=f"q{number}",
            category=category,
            question_text=f"Question {number} about {category}?",
            options=list(OPTIONS),
            explanation="Save before you spend.",
        )
        self.rounds[session_id][number] = SessionRound(
            id=f"{session_id}-r{number}",
            session_id=session_id,
            round_number=number,
            round_type=category,
            question_id=question.id,
        )
        return RoundPayload(session_id=session_id, round_number=number,
                            round_type=category, question=question)

    async def submit_answer(self, session_id, round_number, answer, time_taken):
        self._enter("submit_answer")
        self.submitted.append({
            "session_id": session_id,
            "round_number": round_number,
            "answer": answer,
            "time_taken": time_taken,
        })
        if self.submit_gate is not None:
            await self.submit_gate.wait()

        session = self._session("submit_answer", session_id)
        correct = answer == CORRECT
        points = self.points if correct else 0
        record = self.rounds[session_id][round_number]
        record.user_answer = answer
        record.correct_answer = CORRECT
        record.is_correct = correct
        record.points_earned = points
        record.time_taken = time_taken
        record.completed_at = _now()

        session.total_score += points
        session.rounds_completed += 1
        complete = session.rounds_completed >= session.max_rounds
        if complete:
            session.status = SessionStatus.COMPLETED
            session.completed_at = _now()
        return RoundResult(
            is_correct=correct,
            points_earned=points,
            correct_answer=CORRECT,
            explanation="Save before you spend.",
            total_score=session.total_score,
            rounds_completed=session.rounds_completed,
            session_complete=complete,
        )

    async def get_session_rounds(self, session_id):
        self._enter("get_session_rounds")
        rounds = self.rounds.get(session_id, {})
        return [rounds[n] for n in sorted(rounds)]

    async def get_user_stats(self, user_id):
        self._enter("get_user_stats")
        return self.stats

    async def get_game_history(self, user_id, limit=10):
        self._enter("get_game_history")
        mine = [s for s in self.sessions.values() if s.user_id == user_id]
        return list(reversed(mine))[:limit]

    async def get_leaderboard(self, limit=10):
        self._enter("get_leaderboard")
        return self.leaders[:limit]


class ManualHandle:
    def __init__(self, when: float, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Logical clock for RoundTimer: callbacks run only from advance()."""

    def __init__(self):
        self.now = 0.0
        self._queue: List[ManualHandle] = []

    def call_later(self, delay, callback):
        handle = ManualHandle(self.now + delay, callback)
        self._queue.append(handle)
        return handle

    @property
    def pending(self) -> List[ManualHandle]:
        return [h for h in self._queue if not h.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self.pending if h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self._queue.remove(handle)
            self.now = handle.when
            handle.callback()
        self.now = target
        self._queue = self.pending


@pytest.fixture()
def backend():
    return FakeBackend()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def game(backend, scheduler):
    return GameOrchestrator(backend, max_rounds=3, round_seconds=60, scheduler=scheduler)
