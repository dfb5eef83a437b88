"""Tests for the projlens UI bridge (WebSocket server)."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

from websockets.exceptions import ConnectionClosed

from fakes import FakeWebSocket
from projlens.config import DEFAULT_WS_PORT
from projlens.desktop_bridge import BridgeClient, DesktopBridge
from projlens.errors import InvalidCommandError, UnknownCommandError
from projlens.types import Message, Status


def _sent(mock_ws):
    return [json.loads(c.args[0]) for c in mock_ws.send.call_args_list]


def _drain(client: BridgeClient, mock_ws):
    """Flush a client's outbox into ``mock_ws`` and return what was sent."""
    async def scenario():
        client.close()
        await client.run_writer()

    asyncio.run(scenario())
    return _sent(mock_ws)


class TestDesktopBridgeInit:
    """Test DesktopBridge initialization."""

    def test_init_defaults(self):
        bridge = DesktopBridge(MagicMock())
        assert bridge._port == DEFAULT_WS_PORT
        assert bridge._host == "127.0.0.1"
        assert bridge.is_running is False
        assert bridge.client_count == 0

    def test_init_custom_port(self):
        bridge = DesktopBridge(MagicMock(), port=9999)
        assert bridge._port == 9999


class TestBridgeClient:
    """Per-connection reply channel."""

    def test_signal_wire_shape(self):
        mock_ws = AsyncMock()
        client = BridgeClient(mock_ws)
        client.send(Message.LOAD_PROJECT, Status.FAILURE, "tsconfig not found")
        assert _drain(client, mock_ws) == [
            {"type": "load-project", "status": "failure", "data": "tsconfig not found"},
        ]

    def test_messages_sent_in_order(self):
        mock_ws = AsyncMock()
        client = BridgeClient(mock_ws)
        client.send(Message.GET_DATA, Status.SUCCESS, 1)
        client.send(Message.GET_DATA, Status.SUCCESS, 2)
        client.send_json({"type": "pong", "data": {}})
        sent = _drain(client, mock_ws)
        assert [m["data"] for m in sent] == [1, 2, {}]

    def test_writer_stops_when_connection_closed(self):
        mock_ws = AsyncMock()
        mock_ws.send.side_effect = ConnectionClosed(None, None)
        client = BridgeClient(mock_ws)
        client.send(Message.GET_DATA, Status.SUCCESS, 1)
        client.send(Message.GET_DATA, Status.SUCCESS, 2)

        async def scenario():
            await asyncio.wait_for(client.run_writer(), timeout=1.0)

        asyncio.run(scenario())
        assert mock_ws.send.call_count == 1


class TestClientMessages:
    """Routing of decoded client messages."""

    def test_ping_gets_pong(self):
        handler = MagicMock()
        bridge = DesktopBridge(handler)
        mock_ws = AsyncMock()
        client = BridgeClient(mock_ws)
        bridge._handle_client_message(client, {"type": "ping"})
        sent = _drain(client, mock_ws)
        assert sent[0]["type"] == "pong"
        assert "timestamp" in sent[0]["data"]
        handler.assert_not_called()

    def test_command_forwarded_to_handler(self):
        handler = MagicMock()
        bridge = DesktopBridge(handler)
        client = BridgeClient(AsyncMock())
        bridge._handle_client_message(
            client, {"type": "load-project", "data": {"tsconfig": "a.json"}}
        )
        handler.assert_called_once_with(client, "load-project", {"tsconfig": "a.json"})

    def test_command_without_data(self):
        handler = MagicMock()
        bridge = DesktopBridge(handler)
        client = BridgeClient(AsyncMock())
        bridge._handle_client_message(client, {"type": "get-data"})
        handler.assert_called_once_with(client, "get-data", None)

    def test_unknown_command_reported(self):
        handler = MagicMock(side_effect=UnknownCommandError("Unknown command: 'nope'"))
        bridge = DesktopBridge(handler)
        mock_ws = AsyncMock()
        client = BridgeClient(mock_ws)
        bridge._handle_client_message(client, {"type": "nope"})
        sent = _drain(client, mock_ws)
        assert sent == [{
            "type": "error",
            "data": {"command": "nope", "message": "Unknown command: 'nope'"},
        }]

    def test_invalid_params_reported(self):
        handler = MagicMock(side_effect=InvalidCommandError("Expected a string identifier"))
        bridge = DesktopBridge(handler)
        mock_ws = AsyncMock()
        client = BridgeClient(mock_ws)
        bridge._handle_client_message(client, {"type": "get-metadata", "data": 5})
        sent = _drain(client, mock_ws)
        assert sent[0]["type"] == "error"
        assert sent[0]["data"]["command"] == "get-metadata"

    def test_malformed_json(self):
        handler = MagicMock()
        bridge = DesktopBridge(handler)
        mock_ws = AsyncMock()
        client = BridgeClient(mock_ws)
        bridge._handle_raw_message(client, "{not json")
        sent = _drain(client, mock_ws)
        assert sent == [{"type": "error", "data": {"message": "Malformed JSON"}}]
        handler.assert_not_called()

    def test_non_object_message(self):
        handler = MagicMock()
        bridge = DesktopBridge(handler)
        mock_ws = AsyncMock()
        client = BridgeClient(mock_ws)
        bridge._handle_raw_message(client, "[1, 2]")
        sent = _drain(client, mock_ws)
        assert sent[0]["type"] == "error"
        handler.assert_not_called()


class TestExportState:
    """Export menu state is pushed to clients."""

    def test_broadcast_reaches_all_clients(self):
        bridge = DesktopBridge(MagicMock())
        ws_a, ws_b = AsyncMock(), AsyncMock()
        a, b = BridgeClient(ws_a), BridgeClient(ws_b)
        bridge._clients.update({a, b})
        bridge.send_export_enabled(True)
        expected = [{"type": "export-enabled", "data": True}]
        assert _drain(a, ws_a) == expected
        assert _drain(b, ws_b) == expected

    def test_broadcast_no_clients_is_noop(self):
        bridge = DesktopBridge(MagicMock())
        bridge.broadcast({"type": "test", "data": {}})

    def test_snapshot_includes_export_state(self):
        bridge = DesktopBridge(MagicMock(), port=19160)
        bridge.send_export_enabled(False)
        mock_ws = AsyncMock()
        client = BridgeClient(mock_ws)
        bridge._send_state_snapshot(client)
        sent = _drain(client, mock_ws)
        assert sent[0]["type"] == "connected"
        assert sent[0]["data"]["port"] == 19160
        assert sent[1] == {"type": "export-enabled", "data": False}

    def test_snapshot_without_export_state(self):
        bridge = DesktopBridge(MagicMock())
        mock_ws = AsyncMock()
        client = BridgeClient(mock_ws)
        bridge._send_state_snapshot(client)
        assert [m["type"] for m in _drain(client, mock_ws)] == ["connected"]


class TestHandleClient:
    """Full connection lifecycle against a fake socket."""

    def test_connection_registers_and_unregisters(self):
        handler = MagicMock()
        bridge = DesktopBridge(handler)

        async def scenario():
            ws = FakeWebSocket([json.dumps({"type": "ping"})])
            task = asyncio.create_task(bridge._handle_client(ws))
            await asyncio.sleep(0.01)
            assert bridge.client_count == 1
            ws.hang_up.set()
            await task
            return ws

        ws = asyncio.run(scenario())
        assert bridge.client_count == 0
        assert [m["type"] for m in ws.sent] == ["connected", "pong"]
