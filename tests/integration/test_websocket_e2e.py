"""End-to-End WebSocket relay tests.

Tests the complete flow over real sockets:
1. Start relay server
2. Connect host and listener clients
3. Verify presence and room-stats notifications
4. Relay offer/answer/ICE between the two
5. Chat broadcast
6. Disconnect cleanup and room removal
"""

import asyncio
import logging

import pytest

from tests.integration.conftest import (
    RelayServerHandle,
    open_client,
    recv_json,
    send_json,
    wait_for,
)

logger = logging.getLogger(__name__)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_host_listener_scenario(relay_server: RelayServerHandle) -> None:
    """Host joins, listener joins, listener leaves, host leaves."""
    registry = relay_server.dispatcher.registry

    host, host_id = await open_client(relay_server.url)
    await send_json(host, {"type": "join", "room": "r1", "role": "host"})
    assert await recv_json(host) == {
        "type": "room-stats",
        "room": "r1",
        "hostConnected": True,
        "listeners": 0,
        "total": 1,
    }

    listener, listener_id = await open_client(relay_server.url)
    await send_json(listener, {"type": "join", "room": "r1", "role": "listener"})

    assert await recv_json(host) == {"type": "peer-joined", "id": listener_id, "role": "listener"}
    expected_stats = {
        "type": "room-stats",
        "room": "r1",
        "hostConnected": True,
        "listeners": 1,
        "total": 2,
    }
    assert await recv_json(host) == expected_stats
    assert await recv_json(listener) == expected_stats

    await listener.close()

    assert await recv_json(host) == {"type": "peer-left", "id": listener_id}
    assert await recv_json(host) == {
        "type": "room-stats",
        "room": "r1",
        "hostConnected": True,
        "listeners": 0,
        "total": 1,
    }

    await host.close()
    await wait_for(lambda: registry.get("r1") is None)
    assert host_id not in relay_server.dispatcher.hub.members("r1")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_signaling_round_trip(relay_server: RelayServerHandle) -> None:
    """Offer, answer and ICE reach the addressed peer tagged with the sender."""
    host, host_id = await open_client(relay_server.url)
    listener, listener_id = await open_client(relay_server.url)

    await send_json(host, {"type": "join", "room": "r1", "role": "host"})
    await recv_json(host)  # room-stats
    await send_json(listener, {"type": "join", "room": "r1", "role": "listener"})
    await recv_json(host)  # peer-joined
    await recv_json(host)  # room-stats
    await recv_json(listener)  # room-stats

    offer = {"type": "offer", "sdp": "v=0"}
    await send_json(host, {"type": "webrtc-offer", "to": listener_id, "sdp": offer, "room": "r1"})
    assert await recv_json(listener) == {
        "type": "webrtc-offer",
        "from": host_id,
        "sdp": offer,
        "room": "r1",
    }

    await send_json(listener, {"type": "webrtc-answer", "to": host_id, "sdp": "ans", "room": "r1"})
    assert await recv_json(host) == {
        "type": "webrtc-answer",
        "from": listener_id,
        "sdp": "ans",
        "room": "r1",
    }

    candidate = {"candidate": "candidate:0 1 UDP 1 10.0.0.1 9 typ host", "sdpMLineIndex": 0}
    await send_json(
        listener, {"type": "webrtc-ice", "to": host_id, "candidate": candidate, "room": "r1"}
    )
    assert await recv_json(host) == {
        "type": "webrtc-ice",
        "from": listener_id,
        "candidate": candidate,
        "room": "r1",
    }

    await host.close()
    await listener.close()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_relay_to_unknown_target_is_silent(relay_server: RelayServerHandle) -> None:
    """Nothing comes back for an unknown target and the connection stays usable."""
    client, _ = await open_client(relay_server.url)
    await send_json(client, {"type": "join", "room": "r1", "role": "listener"})
    await recv_json(client)  # room-stats

    await send_json(client, {"type": "webrtc-offer", "to": "ws-000000000000", "sdp": "x"})
    await send_json(client, {"type": "chat-message", "room": "r1", "text": "still here"})

    assert await recv_json(client) == {
        "type": "chat-message",
        "user": "Usuario",
        "text": "still here",
    }
    await client.close()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_chat_and_malformed_frames(relay_server: RelayServerHandle) -> None:
    """Malformed frames and blank chat are dropped; valid chat is truncated."""
    a, _ = await open_client(relay_server.url)
    b, _ = await open_client(relay_server.url)
    await send_json(a, {"type": "join", "room": "r1", "role": "listener"})
    await recv_json(a)
    await send_json(b, {"type": "join", "room": "r1", "role": "listener"})
    await recv_json(a)  # peer-joined
    await recv_json(a)  # room-stats
    await recv_json(b)  # room-stats

    await a.send("this is not json")
    await send_json(a, {"type": "join", "room": "r1", "role": "superuser"})
    await send_json(a, {"type": "chat-message", "room": "r1", "text": "    "})
    await send_json(a, {"type": "chat-message", "room": "r1", "text": "w" * 400})

    for ws in (a, b):
        event = await recv_json(ws)
        assert event["type"] == "chat-message"
        assert event["text"] == "w" * 300

    # Nothing else was queued
    with pytest.raises(asyncio.TimeoutError):
        await recv_json(a, timeout_s=0.2)

    await a.close()
    await b.close()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_concurrent_listener_joins(relay_server: RelayServerHandle) -> None:
    """Many listeners joining at once produce an exact final count."""
    clients = [await open_client(relay_server.url) for _ in range(10)]

    await asyncio.gather(
        *(send_json(ws, {"type": "join", "room": "busy", "role": "listener"}) for ws, _ in clients)
    )

    presence = relay_server.dispatcher.presence
    await wait_for(lambda: (s := presence.stats("busy")) is not None and s.listeners == 10)

    await asyncio.gather(*(ws.close() for ws, _ in clients))
    await wait_for(lambda: relay_server.dispatcher.registry.get("busy") is None)
