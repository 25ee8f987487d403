"""WebSocket message protocol definitions.

Defines Pydantic models for WebSocket message serialization/deserialization.
Every frame is a JSON object carrying a ``type`` discriminator.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from src.relay.rooms import RoomStats

Role = Literal["host", "listener"]


# ============================================================================
# Client → Server
# ============================================================================


class JoinMessage(BaseModel):
    """Client → Server: Join a room as host or listener."""

    type: Literal["join"] = "join"
    room: str = Field(..., description="Room name (opaque, not validated)")
    role: Role = Field(..., description="Participant role")


class OfferMessage(BaseModel):
    """Client → Server: Session description offer for one peer."""

    type: Literal["webrtc-offer"] = "webrtc-offer"
    to: str = Field(..., description="Target connection id")
    sdp: Any = Field(default=None, description="Opaque session description")
    room: str | None = Field(default=None, description="Room the negotiation belongs to")


class AnswerMessage(BaseModel):
    """Client → Server: Session description answer for one peer."""

    type: Literal["webrtc-answer"] = "webrtc-answer"
    to: str = Field(..., description="Target connection id")
    sdp: Any = Field(default=None, description="Opaque session description")
    room: str | None = Field(default=None, description="Room the negotiation belongs to")


class IceCandidateMessage(BaseModel):
    """Client → Server: Connectivity candidate for one peer."""

    type: Literal["webrtc-ice"] = "webrtc-ice"
    to: str = Field(..., description="Target connection id")
    candidate: Any = Field(default=None, description="Opaque connectivity candidate")
    room: str | None = Field(default=None, description="Room the negotiation belongs to")


class ChatMessage(BaseModel):
    """Client → Server: Chat text for a room.

    ``text`` is left untyped; the chat relay coerces and trims it.
    """

    type: Literal["chat-message"] = "chat-message"
    room: str | None = Field(default=None, description="Target room")
    text: Any = Field(default=None, description="Raw chat text")


SignalingMessage = OfferMessage | AnswerMessage | IceCandidateMessage

# Union type for all client → server messages
ClientMessage = JoinMessage | OfferMessage | AnswerMessage | IceCandidateMessage | ChatMessage

CLIENT_MESSAGE_TYPES: dict[str, type[BaseModel]] = {
    "join": JoinMessage,
    "webrtc-offer": OfferMessage,
    "webrtc-answer": AnswerMessage,
    "webrtc-ice": IceCandidateMessage,
    "chat-message": ChatMessage,
}


# ============================================================================
# Server → Client
# ============================================================================


class SessionStartMessage(BaseModel):
    """Server → Client: Session start notification carrying the connection id."""

    type: Literal["session_start"] = "session_start"
    session_id: str = Field(..., description="Unique connection identifier")


class PeerJoinedMessage(BaseModel):
    """Server → Client: Another participant joined the room."""

    type: Literal["peer-joined"] = "peer-joined"
    id: str = Field(..., description="Connection id of the joiner")
    role: Role


class PeerLeftMessage(BaseModel):
    """Server → Client: A participant left the room."""

    type: Literal["peer-left"] = "peer-left"
    id: str = Field(..., description="Connection id of the leaver")


class RoomStatsMessage(BaseModel):
    """Server → Client: Room occupancy snapshot."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["room-stats"] = "room-stats"
    room: str
    host_connected: bool = Field(..., alias="hostConnected")
    listeners: int = Field(..., ge=0)
    total: int = Field(..., ge=0)

    @classmethod
    def from_stats(cls, stats: RoomStats) -> "RoomStatsMessage":
        return cls(
            room=stats.room,
            host_connected=stats.host_connected,
            listeners=stats.listeners,
            total=stats.total,
        )


class RelayedSignalMessage(BaseModel):
    """Server → Client: Signaling message forwarded from another connection.

    Carries ``sdp`` for offers/answers and ``candidate`` for ICE; the unused
    field is omitted from the wire form.
    """

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["webrtc-offer", "webrtc-answer", "webrtc-ice"]
    sender: str = Field(..., alias="from", description="Sender connection id")
    sdp: Any = None
    candidate: Any = None
    room: str | None = None

    def to_wire(self) -> str:
        exclude = {"candidate"} if self.type != "webrtc-ice" else {"sdp"}
        return self.model_dump_json(by_alias=True, exclude=exclude)


class ChatBroadcastMessage(BaseModel):
    """Server → Client: Chat text delivered to a whole room."""

    type: Literal["chat-message"] = "chat-message"
    user: str
    text: str


# Union type for all server → client messages
ServerMessage = (
    SessionStartMessage
    | PeerJoinedMessage
    | PeerLeftMessage
    | RoomStatsMessage
    | RelayedSignalMessage
    | ChatBroadcastMessage
)


def encode_server_message(message: ServerMessage) -> str:
    """Serialize a server message to its JSON wire form."""
    if isinstance(message, RelayedSignalMessage):
        return message.to_wire()
    return message.model_dump_json(by_alias=True)
