# finquiz/common.py
# Shared logger for the client core and the TUI.
#
# The TUI owns the terminal, so nothing may log to stdout/stderr while it runs;
# setup_logging() points the root logger at a file under logs/ instead.

import logging
from pathlib import Path

LOG_FORMAT = '%(asctime)s %(levelname)s %(message)s'

logger = logging.getLogger("finquiz")


def setup_logging(log_file: str = "logs/client.log", level: int = logging.INFO) -> Path:
    """Send all log records to `log_file`. Returns the resolved log path."""
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    # force=True so a second call (tests, re-launch) replaces earlier handlers
    logging.basicConfig(
        filename=str(path),
        level=level,
        format=LOG_FORMAT,
        filemode='a',
        force=True,
    )
    logger.setLevel(logging.DEBUG)
    logger.debug("Logger configured from common.")
    return path
