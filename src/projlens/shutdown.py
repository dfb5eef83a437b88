"""Process-wide shutdown coordination for the background process.

Provides a shutdown signal the serve loop checks, so Ctrl+C, SIGTERM or a
window close all end up on the same clean path: stop accepting UI
connections, stop the worker, exit.

Uses a threading.Event so signal handlers and other threads can request
shutdown, and a watchdog thread that force-kills the process if graceful
shutdown stalls (for instance on a worker that ignores terminate).
"""

import os
import signal
import threading
import time

# Global shutdown event - checked by the serve loop
_shutdown_event = threading.Event()

# Grace period before force-kill (seconds)
_WATCHDOG_GRACE_SECONDS = 10.0


def request_shutdown() -> None:
    """Signal all components to shut down.

    Starts a watchdog that will force-kill the process if graceful
    shutdown doesn't complete within the grace period.
    """
    if _shutdown_event.is_set():
        return  # Already shutting down

    _shutdown_event.set()

    watchdog = threading.Thread(
        target=_watchdog_thread,
        args=(_WATCHDOG_GRACE_SECONDS,),
        daemon=True,
        name="shutdown-watchdog",
    )
    watchdog.start()


def is_shutting_down() -> bool:
    """Check if shutdown has been requested.

    Use this in loops:
        while not is_shutting_down():
            ...
    """
    return _shutdown_event.is_set()


def reset() -> None:
    """Reset the shutdown state. Only for tests."""
    _shutdown_event.clear()


def install_signal_handlers() -> None:
    """Route SIGINT and SIGTERM to request_shutdown()."""
    def _handler(signum: int, frame: object) -> None:
        request_shutdown()

    signal.signal(signal.SIGINT, _handler)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, _handler)


def _watchdog_thread(timeout: float) -> None:
    """Force-terminate the process if graceful shutdown stalls.

    Args:
        timeout: Grace period in seconds before force-exit.
    """
    time.sleep(timeout)
    if _shutdown_event.is_set():
        os._exit(130)  # 130 = 128 + SIGINT
