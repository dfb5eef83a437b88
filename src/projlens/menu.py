"""Export menu state shared with the host window."""

import logging
from typing import Callable, List

logger = logging.getLogger(__name__)


class ExportMenuState:
    """Whether the host's export menu item is enabled.

    The host window owns the real menu; it registers a listener and mirrors
    the flag whenever it changes.
    """

    def __init__(self, enabled: bool = False) -> None:
        self._enabled = enabled
        self._listeners: List[Callable[[bool], None]] = []

    @property
    def export_enabled(self) -> bool:
        return self._enabled

    def add_listener(self, listener: Callable[[bool], None]) -> None:
        self._listeners.append(listener)

    def set_export_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        for listener in list(self._listeners):
            try:
                listener(enabled)
            except Exception:
                logger.exception("Export menu listener failed")
