# finquiz/journal.py
# =============================================================================
# Play journal
#
# - Writes human-readable, machine-parsable logs to game_journal/
# - Filenames: YYYYMMDD_HHMMSS.game.log
# - Line format: [event-type] {JSON payload}
#
# Event types:
#   [session-start]    : session id, user id, max rounds
#   [round-started]    : round number, category, question id
#   [answer-submitted] : round number, answer, time taken, auto (timer) flag
#   [result-received]  : authoritative result from the scoring service
#   [session-end]      : completed / abandoned, graceful flag
#
# The scoring service is the record of truth; the journal only helps explain
# what a client saw and sent when a game ends unexpectedly.
# =============================================================================

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .game_types import RoundResult

JOURNAL_DIR_NAME = "game_journal"
JOURNAL_SUFFIX = ".game.log"

_EVENT_LINE_RE = re.compile(r"^\[(?P<event>[^\]]+)\]\s+(?P<payload>{.*})$")


class GameJournal:
    """Append-only journal for a single client run."""

    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self.base_dir = Path(base_dir) if base_dir is not None else Path.cwd()
        self.journal_dir = self.base_dir / JOURNAL_DIR_NAME
        self.journal_dir.mkdir(parents=True, exist_ok=True)

        ts = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        self.path = self.journal_dir / f"{ts}{JOURNAL_SUFFIX}"

    # ---- low-level writer -------------------------------------------------

    def _write(self, event: str, payload: Dict[str, Any]) -> None:
        record = {
            "ts": datetime.now().isoformat(timespec="seconds"),
            **payload,
        }
        line = f"[{event}] {json.dumps(record, ensure_ascii=False)}\n"
        with self.path.open("a", encoding="utf-8") as f:
            f.write(line)

    # ---- high-level API ---------------------------------------------------

    def log_session_start(self, session_id: str, user_id: str, max_rounds: int) -> None:
        self._write(
            "session-start",
            {"session_id": session_id, "user_id": user_id, "max_rounds": max_rounds},
        )

    def log_round_started(self, round_number: int, round_type: str, question_id: str) -> None:
        self._write(
            "round-started",
            {"round_number": round_number, "round_type": round_type, "question_id": question_id},
        )

    def log_answer_submitted(
        self, round_number: int, answer: str, time_taken: float, auto: bool = False
    ) -> None:
        self._write(
            "answer-submitted",
            {"round_number": round_number, "answer": answer, "time_taken": time_taken, "auto": auto},
        )

    def log_result_received(self, round_number: int, result: RoundResult) -> None:
        self._write("result-received", {"round_number": round_number, **result.to_dict()})

    def log_session_end(self, reason: str, graceful: bool = True) -> None:
        """Call when a game completes or the player leaves it.

        A journal without this line was cut short (crash, killed process).
        """
        self._write("session-end", {"reason": reason, "graceful": graceful})


# ---- reading back -----------------------------------------------------------


@dataclass
class JournalSummary:
    path: Path
    session_id: Optional[str] = None
    ended: bool = False
    graceful: bool = False
    events: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def results(self) -> List[Dict[str, Any]]:
        return [e for e in self.events if e["event"] == "result-received"]


def parse_journal(path: Path) -> JournalSummary:
    summary = JournalSummary(path=path)
    with path.open("r", encoding="utf-8") as f:
        for raw in f:
            m = _EVENT_LINE_RE.match(raw.strip())
            if not m:
                continue
            try:
                payload = json.loads(m.group("payload"))
            except json.JSONDecodeError:
                # a line cut off by a crash
                continue
            event = m.group("event")
            summary.events.append({"event": event, **payload})
            if event == "session-start":
                summary.session_id = payload.get("session_id")
                summary.ended = False
                summary.graceful = False
            elif event == "session-end":
                summary.ended = True
                summary.graceful = bool(payload.get("graceful", False))
    return summary


def load_latest_journal(base_dir: Optional[Path] = None) -> Optional[JournalSummary]:
    """Parse the newest journal under `base_dir`, or None if there is none."""
    base = Path(base_dir) if base_dir is not None else Path.cwd()
    journal_dir = base / JOURNAL_DIR_NAME
    if not journal_dir.exists():
        return None
    files = sorted(journal_dir.glob(f"*{JOURNAL_SUFFIX}"))
    if not files:
        return None
    return parse_journal(files[-1])
