# finquiz/__main__.py
# Entry point for the Textual client.
# Server URL and player come from FINQUIZ_* env vars; CLI args override them:
#   python -m finquiz ws://127.0.0.1:8000/ws alice

import sys

from .common import logger, setup_logging
from .config import Settings
from .journal import GameJournal, load_latest_journal
from .orchestrator import GameOrchestrator
from .tui import FinQuizApp
from .ws_backend import WSGameBackend
from .ws_client import WSClient


def main():
    settings = Settings()
    server = settings.SERVER_URL
    user = settings.USER_ID

    # Optional CLI overrides: python -m finquiz ws://ip:8000/ws alice
    if len(sys.argv) >= 2: server = sys.argv[1]
    if len(sys.argv) >= 3: user = sys.argv[2]

    log_path = setup_logging(settings.LOG_FILE)
    logger.info(f"[Main] finquiz starting: server={server} user={user} log={log_path}")

    previous = load_latest_journal(settings.JOURNAL_DIR)
    if previous is not None and previous.session_id and not previous.graceful:
        logger.warning(
            f"[Main] Last run of session {previous.session_id} did not end cleanly "
            f"({len(previous.results)} results journaled in {previous.path})"
        )

    client = WSClient(server, request_timeout=settings.REQUEST_TIMEOUT)
    orchestrator = GameOrchestrator(
        WSGameBackend(client),
        max_rounds=settings.MAX_ROUNDS,
        round_seconds=settings.ROUND_SECONDS,
        points_per_round=settings.POINTS_PER_ROUND,
        perfect_seconds=settings.PERFECT_SECONDS,
        journal=GameJournal(settings.JOURNAL_DIR),
    )
    FinQuizApp(orchestrator, user_id=user, ws_client=client).run()


if __name__ == "__main__":
    main()
