"""Interfaces the router depends on.

The router only talks to Protocols, so the worker process, the UI transport
and the host menu can be swapped for fakes in tests.
"""

from typing import Any, Protocol

from .types import Message, Status, WorkerRequest, WorkerResponse


class WorkerChannel(Protocol):
    """Request/response access to the analysis worker."""

    @property
    def connected(self) -> bool: ...

    async def send(self, request: WorkerRequest) -> WorkerResponse: ...


class ReplyChannel(Protocol):
    """Where the outcome of a command is sent back to."""

    def send(self, message: Message, status: Status, payload: Any) -> None: ...


class ExportMenu(Protocol):
    """Host menu capability toggled by the export commands."""

    def set_export_enabled(self, enabled: bool) -> None: ...
