"""Game data types exchanged with the scoring service."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class SessionStatus(Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass
class Question:
    """A question as delivered by the scoring service.

    The core never grades against `correct_answer`; it is usually absent from
    the payload sent before submission and only forwarded when present.
    """
    id: str
    category: str
    question_text: str
    difficulty: str = "medium"
    question_type: str = "multiple_choice"
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    explanation: str = ""
    points_value: int = 10
    scenario_data: Optional[Any] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category": self.category,
            "difficulty": self.difficulty,
            "question_text": self.question_text,
            "question_type": self.question_type,
            "options": self.options,
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
            "points_value": self.points_value,
            "scenario_data": self.scenario_data,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Question":
        return cls(
            id=str(data.get("id", "")),
            category=data.get("category", ""),
            difficulty=data.get("difficulty", "medium"),
            question_text=data["question_text"],
            question_type=data.get("question_type", "multiple_choice"),
            options=data.get("options"),
            correct_answer=data.get("correct_answer"),
            explanation=data.get("explanation") or "",
            points_value=int(data.get("points_value", 10)),
            scenario_data=data.get("scenario_data"),
        )


@dataclass
class GameSession:
    id: str
    user_id: str
    status: SessionStatus = SessionStatus.ACTIVE
    total_score: int = 0
    rounds_completed: int = 0
    max_rounds: int = 10
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_resumable(self) -> bool:
        return self.status in (SessionStatus.ACTIVE, SessionStatus.PAUSED)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status.value,
            "total_score": self.total_score,
            "rounds_completed": self.rounds_completed,
            "max_rounds": self.max_rounds,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GameSession":
        return cls(
            id=str(data["id"]),
            user_id=str(data["user_id"]),
            status=SessionStatus(data.get("status", "active")),
            total_score=int(data.get("total_score") or 0),
            rounds_completed=int(data.get("rounds_completed") or 0),
            max_rounds=int(data.get("max_rounds") or 10),
            started_at=data.get("started_at"),
            completed_at=data.get("completed_at"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass
class SessionRound:
    """One attempted round; `completed_at` is set exactly once, at submission."""
    id: str
    session_id: str
    round_number: int
    round_type: str
    question_data: Any = None
    question_id: Optional[str] = None
    user_answer: Optional[str] = None
    correct_answer: Optional[str] = None
    is_correct: bool = False
    points_earned: int = 0
    time_taken: Optional[float] = None
    completed_at: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "round_number": self.round_number,
            "round_type": self.round_type,
            "question_id": self.question_id,
            "question_data": self.question_data,
            "user_answer": self.user_answer,
            "correct_answer": self.correct_answer,
            "is_correct": self.is_correct,
            "points_earned": self.points_earned,
            "time_taken": self.time_taken,
            "completed_at": self.completed_at,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionRound":
        time_taken = data.get("time_taken")
        return cls(
            id=str(data.get("id", "")),
            session_id=str(data["session_id"]),
            round_number=int(data["round_number"]),
            round_type=data.get("round_type") or "general",
            question_id=data.get("question_id"),
            question_data=data.get("question_data"),
            user_answer=data.get("user_answer"),
            correct_answer=data.get("correct_answer"),
            is_correct=bool(data.get("is_correct", False)),
            points_earned=int(data.get("points_earned") or 0),
            time_taken=None if time_taken is None else float(time_taken),
            completed_at=data.get("completed_at"),
            created_at=data.get("created_at"),
        )


@dataclass
class RoundPayload:
    """The next round allocated by the scoring service."""
    session_id: str
    round_number: int
    round_type: str
    question: Question

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "round_number": self.round_number,
            "round_type": self.round_type,
            "question": self.question.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RoundPayload":
        question = Question.from_dict(data["question"])
        return cls(
            session_id=str(data["session_id"]),
            round_number=int(data["round_number"]),
            round_type=data.get("round_type") or question.category,
            question=question,
        )


@dataclass
class RoundResult:
    """Authoritative outcome of one submitted answer."""
    is_correct: bool
    points_earned: int
    correct_answer: Optional[str]
    explanation: str
    total_score: int
    rounds_completed: int
    session_complete: bool = False

    def to_dict(self) -> dict:
        return {
            "is_correct": self.is_correct,
            "points_earned": self.points_earned,
            "correct_answer": self.correct_answer,
            "explanation": self.explanation,
            "total_score": self.total_score,
            "rounds_completed": self.rounds_completed,
            "session_complete": self.session_complete,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RoundResult":
        return cls(
            is_correct=bool(data.get("is_correct", False)),
            points_earned=int(data.get("points_earned") or 0),
            correct_answer=data.get("correct_answer"),
            explanation=data.get("explanation") or "",
            total_score=int(data.get("total_score") or 0),
            rounds_completed=int(data.get("rounds_completed") or 0),
            session_complete=bool(data.get("session_complete", False)),
        )


@dataclass
class PlayerStats:
    """Per-user totals as reported by the scoring service."""
    total_sessions: int = 0
    completed_sessions: int = 0
    total_score: int = 0
    average_score: float = 0.0
    best_score: int = 0
    total_rounds: int = 0
    accuracy_rate: float = 0.0

    def to_dict(self) -> dict:
        return {
            "total_sessions": self.total_sessions,
            "completed_sessions": self.completed_sessions,
            "total_score": self.total_score,
            "average_score": round(self.average_score, 1),
            "best_score": self.best_score,
            "total_rounds": self.total_rounds,
            "accuracy_rate": round(self.accuracy_rate, 1),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PlayerStats":
        return cls(
            total_sessions=int(data.get("total_sessions") or 0),
            completed_sessions=int(data.get("completed_sessions") or 0),
            total_score=int(data.get("total_score") or 0),
            average_score=float(data.get("average_score") or 0.0),
            best_score=int(data.get("best_score") or 0),
            total_rounds=int(data.get("total_rounds") or 0),
            accuracy_rate=float(data.get("accuracy_rate") or 0.0),
        )


@dataclass
class LeaderboardEntry:
    username: str
    total_score: int
    completed_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "LeaderboardEntry":
        # the service may nest the profile the way its join returns it
        profile: Dict[str, Any] = data.get("profiles") or {}
        return cls(
            username=data.get("username") or profile.get("username", "unknown"),
            total_score=int(data.get("total_score") or 0),
            completed_at=data.get("completed_at"),
        )


@dataclass
class DashboardView:
    """What the dashboard shows: the resumable session (if any) and totals."""
    current_session: Optional[GameSession] = None
    stats: Optional[PlayerStats] = None
    history: List[GameSession] = field(default_factory=list)
