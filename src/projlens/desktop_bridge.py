"""WebSocket bridge between the UI process and the background process.

The UI connects over WebSocket and sends commands; every command is answered
with exactly one signal on the same connection once it has been handled.

Protocol:
    All messages are JSON objects with a "type" field.
    Client → Server: {"type": <command>, "data": <params>}, or {"type": "ping"}
    Server → Client:
        signal:   {"type": <command>, "status": "success"|"failure", "data": ...}
        connected, pong, error, export-enabled
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Callable, Optional, Set

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from .config import DEFAULT_WS_PORT
from .errors import ProjlensError
from .ports import ReplyChannel
from .shutdown import is_shutting_down
from .types import Message, Signal, Status

logger = logging.getLogger(__name__)

CommandHandler = Callable[[ReplyChannel, str, Any], None]


class BridgeClient:
    """Reply channel bound to one WebSocket connection.

    Outgoing messages go through a per-connection outbox drained by a single
    writer, so the client receives them in the order they were sent.
    """

    def __init__(self, websocket: ServerConnection) -> None:
        self._websocket = websocket
        self._outbox: asyncio.Queue[Optional[str]] = asyncio.Queue()

    def send(self, message: Message, status: Status, payload: Any) -> None:
        """Send a command's signal back to this client."""
        self.send_json(Signal(message, status, payload).to_dict())

    def send_json(self, data: dict[str, Any]) -> None:
        self._outbox.put_nowait(json.dumps(data))

    def close(self) -> None:
        """Stop the writer once everything queued so far is sent."""
        self._outbox.put_nowait(None)

    async def run_writer(self) -> None:
        while True:
            msg_str = await self._outbox.get()
            if msg_str is None:
                return
            try:
                await self._websocket.send(msg_str)
            except ConnectionClosed:
                logger.debug("Client went away; dropping outgoing messages")
                return


class DesktopBridge:
    """WebSocket server that feeds UI commands into a command handler.

    Runs on the caller's event loop; :meth:`serve_forever` returns once
    shutdown has been requested.
    """

    def __init__(
        self,
        handler: CommandHandler,
        host: str = "127.0.0.1",
        port: int = DEFAULT_WS_PORT,
    ) -> None:
        self._handler = handler
        self._host = host
        self._port = port
        self._clients: Set[BridgeClient] = set()
        self._running = False

        # State snapshot for new client connections
        self._export_enabled: Optional[bool] = None

    @property
    def is_running(self) -> bool:
        """Check if the bridge is serving."""
        return self._running

    @property
    def client_count(self) -> int:
        """Number of connected clients."""
        return len(self._clients)

    async def serve_forever(self) -> None:
        """Start the WebSocket server and run until shutdown is requested."""
        async with serve(self._handle_client, self._host, self._port):
            self._running = True
            logger.info("UI bridge listening on ws://%s:%d", self._host, self._port)
            try:
                while not is_shutting_down():
                    await asyncio.sleep(0.1)
            finally:
                self._running = False
        logger.info("UI bridge stopped")

    async def _handle_client(self, websocket: ServerConnection) -> None:
        """Handle a new WebSocket client connection."""
        client = BridgeClient(websocket)
        writer = asyncio.create_task(client.run_writer(), name="bridge-writer")
        self._clients.add(client)
        logger.info("UI client connected (%d total)", len(self._clients))
        try:
            self._send_state_snapshot(client)
            async for message in websocket:
                self._handle_raw_message(client, message)
        except ConnectionClosed:
            logger.debug("UI client connection closed abruptly")
        finally:
            self._clients.discard(client)
            client.close()
            await writer
            logger.info("UI client disconnected (%d remaining)", len(self._clients))

    def _send_state_snapshot(self, client: BridgeClient) -> None:
        """Send current state to a newly connected client."""
        client.send_json({
            "type": "connected",
            "data": {"port": self._port, "timestamp": time.time()},
        })
        if self._export_enabled is not None:
            client.send_json({"type": "export-enabled", "data": self._export_enabled})

    def _handle_raw_message(self, client: BridgeClient, message: str | bytes) -> None:
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed message from UI client")
            client.send_json({"type": "error", "data": {"message": "Malformed JSON"}})
            return
        if not isinstance(data, dict):
            client.send_json({"type": "error", "data": {"message": "Expected a JSON object"}})
            return
        self._handle_client_message(client, data)

    def _handle_client_message(self, client: BridgeClient, data: dict[str, Any]) -> None:
        """Route one decoded message from a client."""
        msg_type = data.get("type", "")
        if msg_type == "ping":
            client.send_json({"type": "pong", "data": {"timestamp": time.time()}})
            return

        try:
            self._handler(client, msg_type, data.get("data"))
        except ProjlensError as exc:
            logger.warning("Rejected command %r: %s", msg_type, exc)
            client.send_json({
                "type": "error",
                "data": {"command": msg_type, "message": str(exc)},
            })

    def broadcast(self, message: dict[str, Any]) -> None:
        """Send a message to all connected clients."""
        for client in list(self._clients):
            client.send_json(message)

    def send_export_enabled(self, enabled: bool) -> None:
        """Tell every client whether the export menu item is enabled."""
        self._export_enabled = enabled
        self.broadcast({"type": "export-enabled", "data": enabled})
