"""Background process entry point.

Wires the worker channel, the task queue, the command router and the UI
bridge together and serves the UI until shutdown is requested.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from .config import AppConfig, load_config
from .desktop_bridge import DesktopBridge
from .errors import ProjlensError
from .history import ProjectStateHistory
from .logging_utils import setup_logging
from .menu import ExportMenuState
from .ports import WorkerChannel
from .router import CommandRouter
from .shutdown import install_signal_handlers
from .task_queue import TaskQueue
from .types import ProjectState
from .worker import WorkerProcess

logger = logging.getLogger(__name__)

# How long to let queued commands finish once shutdown starts (seconds)
_DRAIN_TIMEOUT = 5.0


class BackgroundApp:
    """Owns the process-lifetime objects of the background process."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.history = ProjectStateHistory()
        self.export_menu = ExportMenuState()
        self.worker: Optional[WorkerChannel] = None
        self.task_queue: Optional[TaskQueue] = None
        self.router: Optional[CommandRouter] = None

    async def init(self, worker: Optional[WorkerChannel] = None) -> None:
        """Start the worker and build the queue and router.

        Args:
            worker: An already attached worker channel. When omitted the
                worker configured in ``config.worker`` is spawned.

        Raises:
            ProjlensError: If no worker is configured or it fails to start.
        """
        if worker is None:
            worker_config = self.config.worker
            if not worker_config.path:
                raise ProjlensError("No worker configured; pass --worker or set worker.path")
            worker = await WorkerProcess.create(
                worker_config.path, worker_config.args, cwd=worker_config.cwd
            )
        self.worker = worker
        self.task_queue = TaskQueue()
        self.router = CommandRouter(
            worker, self.task_queue, self.export_menu, ui_config=self.config.ui
        )

    @property
    def state(self) -> Optional[ProjectState]:
        """The most recent project state, if any."""
        return self.history.current

    async def run(self) -> None:
        """Initialize, serve the UI until shutdown, then stop the worker."""
        await self.init()
        assert self.router is not None

        bridge = DesktopBridge(
            self.router.dispatch,
            host=self.config.bridge.host,
            port=self.config.bridge.port,
        )
        self.export_menu.add_listener(bridge.send_export_enabled)
        try:
            await bridge.serve_forever()
        finally:
            await self.close()

    async def close(self) -> None:
        """Give queued commands a moment to finish, then stop the worker."""
        if self.task_queue is not None and self.task_queue.is_busy:
            try:
                await asyncio.wait_for(self.task_queue.join(), timeout=_DRAIN_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning(
                    "Queue still busy after %.0fs; %d command(s) dropped",
                    _DRAIN_TIMEOUT,
                    self.task_queue.pending_count,
                )
        if isinstance(self.worker, WorkerProcess):
            await self.worker.close()


def main() -> int:
    """Main entry point for the projlens CLI.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = argparse.ArgumentParser(
        description="projlens - background process serving project analysis to the UI"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a YAML or JSON config file",
    )
    parser.add_argument(
        "--worker",
        type=str,
        default=None,
        help="Worker executable or Python script (overrides worker.path)",
    )
    parser.add_argument("--host", type=str, default=None, help="UI bridge host")
    parser.add_argument("--port", type=int, default=None, help="UI bridge port")
    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Base directory for per-run logs (overrides logging.log_dir)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log debug output to the console",
    )
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ProjlensError as exc:
        print(f"projlens: {exc}", file=sys.stderr)
        return 2

    if args.worker:
        config.worker.path = args.worker
    if args.host:
        config.bridge.host = args.host
    if args.port is not None:
        config.bridge.port = args.port
    if args.log_dir:
        config.logging.log_dir = args.log_dir

    level = logging.DEBUG if args.verbose else getattr(logging, config.logging.level, logging.INFO)
    run_logger = setup_logging(level=level, log_dir=config.logging.log_dir)
    install_signal_handlers()

    app = BackgroundApp(config)
    try:
        asyncio.run(app.run())
    except ProjlensError as exc:
        logger.error("%s", exc)
        return 1
    finally:
        if run_logger is not None:
            run_logger.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
