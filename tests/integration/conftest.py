"""Integration test fixtures and utilities.

Provides shared fixtures for:
- Relay server lifecycle on a free local port
- WebSocket client helpers for sending and awaiting JSON events
"""

import asyncio
import contextlib
import json
import logging
import socket
from collections.abc import AsyncIterator
from typing import Any

import pytest_asyncio
from websockets.asyncio.client import ClientConnection, connect

from src.relay.config import HTTPConfig, RelayConfig, TransportConfig, WebSocketConfig
from src.relay.dispatcher import EventDispatcher
from src.relay.server import serve

logger = logging.getLogger(__name__)


def get_free_port() -> int:
    """Get a free TCP port for binding.

    The port is freed immediately after discovery, so there's a small race
    window, which is acceptable for tests.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.listen(1)
        port: int = s.getsockname()[1]
    return port


class RelayServerHandle:
    """Running relay server plus the dispatcher whose state tests inspect."""

    def __init__(self, port: int, dispatcher: EventDispatcher) -> None:
        self.port = port
        self.dispatcher = dispatcher

    @property
    def url(self) -> str:
        return f"ws://127.0.0.1:{self.port}"


@pytest_asyncio.fixture
async def relay_server() -> AsyncIterator[RelayServerHandle]:
    """Start the relay (WebSocket only) and stop it after the test."""
    port = get_free_port()
    config = RelayConfig(
        transport=TransportConfig(websocket=WebSocketConfig(host="127.0.0.1", port=port)),
        http=HTTPConfig(enabled=False),
        graceful_shutdown_timeout_s=1,
    )
    dispatcher = EventDispatcher(chat_config=config.chat)
    task = asyncio.create_task(serve(config, dispatcher))

    handle = RelayServerHandle(port, dispatcher)
    # Wait until the port accepts connections
    for _ in range(50):
        try:
            _, writer = await asyncio.open_connection("127.0.0.1", port)
            writer.close()
            await writer.wait_closed()
            break
        except OSError:
            await asyncio.sleep(0.05)

    yield handle

    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task


async def recv_json(ws: ClientConnection, timeout_s: float = 2.0) -> dict[str, Any]:
    """Receive one JSON event."""
    raw = await asyncio.wait_for(ws.recv(), timeout=timeout_s)
    data: dict[str, Any] = json.loads(raw)
    return data


async def send_json(ws: ClientConnection, payload: dict[str, Any]) -> None:
    await ws.send(json.dumps(payload))


async def open_client(url: str) -> tuple[ClientConnection, str]:
    """Connect and read the session_start greeting.

    Returns:
        Client connection and the connection id assigned by the relay
    """
    ws = await connect(url)
    greeting = await recv_json(ws)
    assert greeting["type"] == "session_start"
    return ws, greeting["session_id"]


async def wait_for(predicate: Any, timeout_s: float = 2.0) -> None:
    """Poll a zero-argument predicate until true."""
    deadline = asyncio.get_running_loop().time() + timeout_s
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise TimeoutError("condition not met")
        await asyncio.sleep(0.01)
