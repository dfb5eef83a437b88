"""Logging setup for projlens: one log directory per run, rich console output."""

import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class RunLogger:
    """Owns the log directory of one background process run.

    Each run gets its own directory under ``base_dir`` holding
    ``background.log``, which receives every record at DEBUG and above.
    """

    def __init__(self, base_dir: str | Path = "logs"):
        """Initialize the run logger.

        Args:
            base_dir: Base directory for all run directories (default: "logs")
        """
        self.run_id = self._generate_run_id()
        self.base_dir = Path(base_dir)
        self.run_dir = self.base_dir / self.run_id
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.log_path = self.run_dir / "background.log"

        self.handler = logging.FileHandler(self.log_path, encoding="utf-8")
        self.handler.setLevel(logging.DEBUG)
        self.handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))

    def _generate_run_id(self) -> str:
        """Generate a unique run ID with timestamp and short UUID.

        Returns:
            Run ID in format: YYYYMMDD_HHMMSS_<short-uuid>
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        short_uuid = str(uuid.uuid4())[:8]
        return f"{timestamp}_{short_uuid}"

    def close(self) -> None:
        """Detach the file handler from the root logger and close it."""
        logging.getLogger().removeHandler(self.handler)
        self.handler.close()


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str | Path] = "logs",
) -> Optional[RunLogger]:
    """Configure the root logger.

    Console output goes through rich at ``level``. If ``log_dir`` is set, a
    per-run file log is added as well.

    Call this once, before the first log record is emitted.

    Returns:
        The RunLogger owning the file log, or None when file logging is off.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = RichHandler(level=level, show_path=False, rich_tracebacks=True)
    console.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(console)

    # websockets logs every handshake at INFO
    logging.getLogger("websockets").setLevel(logging.WARNING)

    if log_dir is None:
        return None

    run_logger = RunLogger(base_dir=log_dir)
    root.addHandler(run_logger.handler)
    logging.getLogger(__name__).info("Logging to %s", run_logger.log_path)
    return run_logger
