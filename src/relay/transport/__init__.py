"""Transport layer for relay client connections.

Provides the connection abstraction, the WebSocket implementation and the
connection hub used for addressing.
"""

from src.relay.transport.base import Transport, TransportSession
from src.relay.transport.hub import ConnectionHub
from src.relay.transport.websocket_transport import (
    WebSocketSession,
    WebSocketTransport,
)

__all__ = [
    "ConnectionHub",
    "Transport",
    "TransportSession",
    "WebSocketSession",
    "WebSocketTransport",
]
