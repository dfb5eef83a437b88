"""Routing of UI commands onto worker round trips.

Each command kind has exactly one route: how its parameters are extracted,
and how the worker's reply is turned into a success or failure signal.
Commands that need the worker are pushed onto the shared TaskQueue so the
worker only ever sees one request at a time; the remaining commands
(configuration, export menu toggles) are answered immediately.

Every queued command produces at most one signal. A reply that fails the
route's success condition yields a failure signal, except for list-symbols
which has no failure path. When the round trip itself raises (the worker
died, the pipe broke), no signal is sent; the queue logs the error and
moves on to the next command.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from .errors import InvalidCommandError, UnknownCommandError
from .ports import ExportMenu, ReplyChannel, WorkerChannel
from .task_queue import TaskQueue
from .types import Message, Status, WorkerRequest, WorkerResponse

logger = logging.getLogger(__name__)

Outcome = Tuple[Status, Any]


def success(reply: ReplyChannel, message: Message, payload: Any) -> None:
    """Send a success signal for ``message``."""
    reply.send(message, Status.SUCCESS, payload)


# ─── Reply interpretation ─────────────────────────────────────────────


def _truthy(value: Any) -> bool:
    """Truthiness as the worker's JavaScript side defines it.

    None, False, zero, NaN and the empty string are falsy; empty lists and
    objects are not.
    """
    if value is None or isinstance(value, bool):
        return bool(value)
    if isinstance(value, (int, float)):
        return value != 0 and value == value
    if isinstance(value, str):
        return value != ""
    return True


def interpret_load_project(response: WorkerResponse) -> Optional[Outcome]:
    if _truthy(response.err):
        logger.info("Got error message while loading the project: %s", response.err)
        return Status.FAILURE, response.err
    logger.info("The project was successfully loaded")
    return Status.SUCCESS, None


def interpret_available(response: WorkerResponse) -> Optional[Outcome]:
    """Used by get-previous-state and transition-to-state."""
    if _truthy(response.available):
        return Status.SUCCESS, response.available
    return Status.FAILURE, response.available


def interpret_symbols(response: WorkerResponse) -> Optional[Outcome]:
    # No failure signal when the symbols are missing.
    if _truthy(response.symbols):
        return Status.SUCCESS, response.symbols
    return None


def interpret_data(response: WorkerResponse) -> Optional[Outcome]:
    """Used by get-metadata and get-data."""
    if _truthy(response.data):
        return Status.SUCCESS, response.data
    return Status.FAILURE, None


def interpret_ack(response: WorkerResponse) -> Optional[Outcome]:
    return Status.SUCCESS, True


# ─── Parameter extraction ─────────────────────────────────────────────


def no_params(params: Any) -> Dict[str, Any]:
    return {}


def load_project_params(params: Any) -> Dict[str, Any]:
    """Extract ``tsconfig`` and ``showLibs`` for load-project."""
    if not isinstance(params, dict):
        raise InvalidCommandError("load-project expects an object with 'tsconfig'")
    tsconfig = params.get("tsconfig")
    if not isinstance(tsconfig, str) or not tsconfig:
        raise InvalidCommandError("load-project requires a non-empty 'tsconfig' path")
    return {"tsconfig": tsconfig, "showLibs": bool(params.get("showLibs", False))}


def id_params(params: Any) -> Dict[str, Any]:
    """Extract the state/symbol identifier, sent either bare or as ``{"id": ...}``."""
    if isinstance(params, dict):
        params = params.get("id")
    if not isinstance(params, str):
        raise InvalidCommandError("Expected a string identifier")
    return {"id": params}


@dataclass(frozen=True)
class Route:
    """How one queued command kind is sent and how its reply is read."""
    message: Message
    description: str
    params: Callable[[Any], Dict[str, Any]]
    interpret: Callable[[WorkerResponse], Optional[Outcome]]


WORKER_ROUTES: Dict[Message, Route] = {
    route.message: route
    for route in (
        Route(Message.LOAD_PROJECT, "Loading project", load_project_params, interpret_load_project),
        Route(Message.PREV_STATE, "Requesting previous state", no_params, interpret_available),
        Route(
            Message.DIRECT_STATE_TRANSITION,
            "Requesting direct state transition",
            id_params,
            interpret_available,
        ),
        Route(Message.GET_SYMBOLS, "Requesting symbols", no_params, interpret_symbols),
        Route(Message.GET_METADATA, "Requesting metadata", id_params, interpret_data),
        Route(Message.GET_DATA, "Requesting data", no_params, interpret_data),
        Route(Message.TOGGLE_LIBS, "Toggling libraries", no_params, interpret_ack),
    )
}


def parse_message(kind: Any) -> Message:
    """Resolve a command kind given as a Message or its string value.

    Raises:
        UnknownCommandError: If ``kind`` names no known command.
    """
    if isinstance(kind, Message):
        return kind
    try:
        return Message(kind)
    except ValueError:
        raise UnknownCommandError(f"Unknown command: {kind!r}") from None


class CommandRouter:
    """Turns UI commands into worker tasks and worker replies into signals."""

    def __init__(
        self,
        worker: WorkerChannel,
        queue: TaskQueue,
        export_menu: ExportMenu,
        ui_config: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._worker = worker
        self._queue = queue
        self._export_menu = export_menu
        self._ui_config: Dict[str, Any] = dict(ui_config or {})

    def dispatch(self, reply: ReplyChannel, kind: Any, params: Any = None) -> None:
        """Handle one command from the UI.

        Returns as soon as the command is queued (or answered, for commands
        that bypass the worker).

        Args:
            reply: Channel the command's signal is sent back on.
            kind: Command kind, a Message or its string value.
            params: Command parameters as sent by the UI.

        Raises:
            UnknownCommandError: If ``kind`` is not a known command.
            InvalidCommandError: If ``params`` are malformed. Nothing is
                queued in that case.
        """
        message = parse_message(kind)

        if message is Message.CONFIG:
            success(reply, message, self._ui_config)
        elif message is Message.ENABLE_EXPORT:
            self._set_export_enabled(reply, message, True)
        elif message is Message.DISABLE_EXPORT:
            self._set_export_enabled(reply, message, False)
        else:
            self._enqueue(reply, WORKER_ROUTES[message], params)

    def _set_export_enabled(self, reply: ReplyChannel, message: Message, enabled: bool) -> None:
        self._export_menu.set_export_enabled(enabled)
        logger.info("Export %s", "enabled" if enabled else "disabled")
        success(reply, message, True)

    def _enqueue(self, reply: ReplyChannel, route: Route, params: Any) -> None:
        request = WorkerRequest(topic=route.message, params=route.params(params))

        if route.message is Message.LOAD_PROJECT:
            if not self._worker.connected:
                logger.warning("The worker process is not ready yet")
            else:
                logger.info("The worker process is connected")
        logger.info("%s. Forwarding to the worker process.", route.description)

        async def task() -> None:
            response = await self._worker.send(request)
            logger.debug("Got %s response: %r", route.message.value, response)
            outcome = route.interpret(response)
            if outcome is None:
                logger.info("No signal for %s response", route.message.value)
                return
            status, payload = outcome
            reply.send(route.message, status, payload)

        self._queue.push(task)
