"""End-of-game statistics.

Everything here is a pure function of the data passed in: no service calls,
no caching. Summaries are recomputed from the round history each time the
results screen asks for them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from .game_types import GameSession, SessionRound, SessionStatus

POINTS_PER_ROUND = 10
PERFECT_ROUND_SECONDS = 30

# (inclusive lower bound in percent, label), best first
PERFORMANCE_TIERS = [
    (90, "Excellent"),
    (75, "Good"),
    (60, "Fair"),
]
LOWEST_TIER = "Needs Improvement"


@dataclass
class CategoryStat:
    category: str
    correct: int = 0
    total: int = 0

    @property
    def percentage(self) -> float:
        return self.correct / self.total * 100 if self.total else 0.0

    def to_dict(self) -> dict:
        return {"correct": self.correct, "total": self.total}


@dataclass
class ResultsSummary:
    session_id: str
    total_score: int
    rounds_completed: int
    max_rounds: int
    max_possible: int
    accuracy: float
    average_time: float
    perfect_rounds: int
    tier: str
    categories: Dict[str, CategoryStat] = field(default_factory=dict)
    rounds: List[SessionRound] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "total_score": self.total_score,
            "rounds_completed": self.rounds_completed,
            "max_rounds": self.max_rounds,
            "max_possible": self.max_possible,
            "accuracy": round(self.accuracy, 1),
            "average_time": round(self.average_time, 1),
            "perfect_rounds": self.perfect_rounds,
            "tier": self.tier,
            "categories": {name: c.to_dict() for name, c in self.categories.items()},
        }


@dataclass
class HistorySummary:
    total_sessions: int = 0
    completed_sessions: int = 0
    total_score: int = 0
    best_score: int = 0
    average_score: float = 0.0


# ---------- Round statistics ----------

def completed_rounds(rounds: Iterable[SessionRound]) -> List[SessionRound]:
    return [r for r in rounds if r.is_completed]


def accuracy(rounds: Iterable[SessionRound]) -> float:
    """Percent of completed rounds answered correctly; 0 with none completed."""
    done = completed_rounds(rounds)
    if not done:
        return 0.0
    correct = sum(1 for r in done if r.is_correct)
    return correct / len(done) * 100


def average_time(rounds: Iterable[SessionRound]) -> float:
    done = completed_rounds(rounds)
    if not done:
        return 0.0
    return sum(r.time_taken or 0 for r in done) / len(done)


def perfect_rounds(rounds: Iterable[SessionRound], within: float = PERFECT_ROUND_SECONDS) -> int:
    """Correct answers given within `within` seconds."""
    return sum(
        1 for r in completed_rounds(rounds)
        if r.is_correct and (r.time_taken or 0) <= within
    )


def category_breakdown(rounds: Iterable[SessionRound]) -> Dict[str, CategoryStat]:
    """Correct/total per round_type, in the order categories first appear."""
    categories: Dict[str, CategoryStat] = {}
    for r in rounds:
        stat = categories.setdefault(r.round_type, CategoryStat(category=r.round_type))
        stat.total += 1
        if r.is_correct:
            stat.correct += 1
    return categories


def performance_tier(score: int, max_possible: int) -> str:
    if max_possible <= 0:
        return LOWEST_TIER
    # integer comparison so 90/100 lands exactly on the boundary
    for threshold, label in PERFORMANCE_TIERS:
        if score * 100 >= threshold * max_possible:
            return label
    return LOWEST_TIER


# ---------- Across sessions ----------

def summarize_history(sessions: Iterable[GameSession]) -> HistorySummary:
    """Best and average final score over a player's completed sessions."""
    sessions = list(sessions)
    finished = [s for s in sessions if s.status is SessionStatus.COMPLETED]
    summary = HistorySummary(
        total_sessions=len(sessions),
        completed_sessions=len(finished),
        total_score=sum(s.total_score for s in finished),
    )
    if finished:
        summary.best_score = max(s.total_score for s in finished)
        summary.average_score = summary.total_score / len(finished)
    return summary


class ResultsAggregator:
    """Builds the results-screen view model for one session."""

    def __init__(
        self,
        points_per_round: int = POINTS_PER_ROUND,
        perfect_seconds: float = PERFECT_ROUND_SECONDS,
    ) -> None:
        self.points_per_round = points_per_round
        self.perfect_seconds = perfect_seconds

    def max_possible(self, session: GameSession) -> int:
        return session.max_rounds * self.points_per_round

    def summarize(self, session: GameSession, rounds: List[SessionRound]) -> ResultsSummary:
        rounds = sorted(rounds, key=lambda r: r.round_number)
        total_score = session.total_score
        max_possible = self.max_possible(session)
        return ResultsSummary(
            session_id=session.id,
            total_score=total_score,
            rounds_completed=session.rounds_completed,
            max_rounds=session.max_rounds,
            max_possible=max_possible,
            accuracy=accuracy(rounds),
            average_time=average_time(rounds),
            perfect_rounds=perfect_rounds(rounds, self.perfect_seconds),
            tier=performance_tier(total_score, max_possible),
            categories=category_breakdown(rounds),
            rounds=rounds,
        )
