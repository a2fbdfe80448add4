"""GameBackend that talks to the scoring service over the WebSocket transport.

Each operation is one request frame; the service replies with a `reply`
frame carrying `data`, or an `error` frame carrying `detail`. Any failure
surfaces as BackendFailure(operation, reason) with the service's wording.
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional

from .backend import GameBackend
from .common import logger
from .errors import BackendFailure
from .game_types import (
    GameSession, LeaderboardEntry, PlayerStats, RoundPayload, RoundResult, SessionRound,
)
from .ws_client import RequestError, WSClient

# message types understood by the scoring service
OP_CURRENT_SESSION = "session.current"
OP_CREATE_SESSION = "session.create"
OP_COMPLETE_SESSION = "session.complete"
OP_PAUSE_SESSION = "session.pause"
OP_RESUME_SESSION = "session.resume"
OP_START_ROUND = "round.start"
OP_SUBMIT_ANSWER = "answer.submit"
OP_SESSION_ROUNDS = "session.rounds"
OP_USER_STATS = "stats.get"
OP_HISTORY = "session.history"
OP_LEADERBOARD = "leaderboard.get"


class WSGameBackend(GameBackend):

    def __init__(self, client: WSClient):
        self.client = client

    async def _call(self, op: str, **params: Any) -> Any:
        logger.debug(f"[WSGameBackend] -> {op} {params}")
        try:
            return await self.client.request(op, **params)
        except RequestError as exc:
            raise BackendFailure(op, exc.detail) from exc
        except ConnectionError as exc:
            raise BackendFailure(op, str(exc)) from exc
        except asyncio.TimeoutError as exc:
            raise BackendFailure(op, "scoring service did not answer in time") from exc

    def _require(self, op: str, data: Any) -> Any:
        if data is None:
            raise BackendFailure(op, "empty reply from scoring service")
        return data

    def _parse(self, op: str, parser, data: Any):
        try:
            return parser(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise BackendFailure(op, f"malformed reply: {exc}") from exc

    # ---------- Session lifecycle ----------

    async def get_current_session(self, user_id: str) -> Optional[GameSession]:
        data = await self._call(OP_CURRENT_SESSION, user_id=user_id)
        if not data:
            return None
        return self._parse(OP_CURRENT_SESSION, GameSession.from_dict, data)

    async def create_session(self, user_id: str, max_rounds: int) -> str:
        data = self._require(
            OP_CREATE_SESSION,
            await self._call(OP_CREATE_SESSION, user_id=user_id, max_rounds=max_rounds),
        )
        # the service answers with the bare id or {"session_id": ...}
        if isinstance(data, dict):
            return self._parse(OP_CREATE_SESSION, lambda d: str(d["session_id"]), data)
        return str(data)

    async def complete_session(self, session_id: str) -> None:
        await self._call(OP_COMPLETE_SESSION, session_id=session_id)

    async def pause_session(self, session_id: str) -> None:
        await self._call(OP_PAUSE_SESSION, session_id=session_id)

    async def resume_session(self, session_id: str) -> None:
        await self._call(OP_RESUME_SESSION, session_id=session_id)

    # ---------- Rounds ----------

    async def start_round(self, session_id: str, round_type: Optional[str] = None) -> RoundPayload:
        data = self._require(
            OP_START_ROUND,
            await self._call(OP_START_ROUND, session_id=session_id, round_type=round_type),
        )
        return self._parse(OP_START_ROUND, RoundPayload.from_dict, data)

    async def submit_answer(
        self, session_id: str, round_number: int, answer: str, time_taken: float
    ) -> RoundResult:
        data = self._require(
            OP_SUBMIT_ANSWER,
            await self._call(
                OP_SUBMIT_ANSWER,
                session_id=session_id,
                round_number=round_number,
                user_answer=answer,
                time_taken=time_taken,
            ),
        )
        return self._parse(OP_SUBMIT_ANSWER, RoundResult.from_dict, data)

    async def get_session_rounds(self, session_id: str) -> List[SessionRound]:
        data = await self._call(OP_SESSION_ROUNDS, session_id=session_id) or []
        rounds = self._parse(OP_SESSION_ROUNDS, lambda d: [SessionRound.from_dict(r) for r in d], data)
        return sorted(rounds, key=lambda r: r.round_number)

    # ---------- Reporting ----------

    async def get_user_stats(self, user_id: str) -> Optional[PlayerStats]:
        data = await self._call(OP_USER_STATS, user_id=user_id)
        if not data:
            return None
        # some deployments return a one-row list
        if isinstance(data, list):
            data = data[0]
        return self._parse(OP_USER_STATS, PlayerStats.from_dict, data)

    async def get_game_history(self, user_id: str, limit: int = 10) -> List[GameSession]:
        data = await self._call(OP_HISTORY, user_id=user_id, limit=limit) or []
        return self._parse(OP_HISTORY, lambda d: [GameSession.from_dict(s) for s in d], data)

    async def get_leaderboard(self, limit: int = 10) -> List[LeaderboardEntry]:
        data = await self._call(OP_LEADERBOARD, limit=limit) or []
        return self._parse(OP_LEADERBOARD, lambda d: [LeaderboardEntry.from_dict(e) for e in d], data)
