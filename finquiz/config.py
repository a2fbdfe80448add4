"""Client settings read from the environment."""

import os
from typing import Optional


def _optional_float(raw: Optional[str]) -> Optional[float]:
    if raw is None or raw.strip() == "":
        return None
    return float(raw)


class Settings:
    SERVER_URL: str
    USER_ID: str
    MAX_ROUNDS: int
    ROUND_SECONDS: int
    POINTS_PER_ROUND: int
    PERFECT_SECONDS: int
    REQUEST_TIMEOUT: Optional[float]
    LOG_FILE: str
    JOURNAL_DIR: str

    def __init__(self):
        self.SERVER_URL = os.getenv("FINQUIZ_SERVER_URL", "ws://127.0.0.1:8000/ws")
        self.USER_ID = os.getenv("FINQUIZ_USER_ID", "player1")
        self.MAX_ROUNDS = int(os.getenv("FINQUIZ_MAX_ROUNDS", "10"))
        self.ROUND_SECONDS = int(os.getenv("FINQUIZ_ROUND_SECONDS", "60"))
        self.POINTS_PER_ROUND = int(os.getenv("FINQUIZ_POINTS_PER_ROUND", "10"))
        self.PERFECT_SECONDS = int(os.getenv("FINQUIZ_PERFECT_SECONDS", "30"))
        # No timeout unless asked for; a hung call leaves the UI waiting
        self.REQUEST_TIMEOUT = _optional_float(os.getenv("FINQUIZ_REQUEST_TIMEOUT"))
        self.LOG_FILE = os.getenv("FINQUIZ_LOG_FILE", "logs/client.log")
        self.JOURNAL_DIR = os.getenv("FINQUIZ_JOURNAL_DIR", ".")
        self._validate()

    def _validate(self):
        if not self.SERVER_URL.startswith(("ws://", "wss://")):
            raise RuntimeError("FINQUIZ_SERVER_URL must be a ws:// or wss:// URL")
        if self.MAX_ROUNDS < 1:
            raise RuntimeError("FINQUIZ_MAX_ROUNDS must be at least 1")
        if self.ROUND_SECONDS < 1:
            raise RuntimeError("FINQUIZ_ROUND_SECONDS must be at least 1")
        if self.POINTS_PER_ROUND < 1:
            raise RuntimeError("FINQUIZ_POINTS_PER_ROUND must be at least 1")
        if self.REQUEST_TIMEOUT is not None and self.REQUEST_TIMEOUT <= 0:
            raise RuntimeError("FINQUIZ_REQUEST_TIMEOUT must be positive when set")
