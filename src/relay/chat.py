"""Room chat broadcast."""

import logging
from typing import Any

from src.relay.config import ChatConfig
from src.relay.transport.hub import ConnectionHub
from src.relay.transport.websocket_protocol import ChatBroadcastMessage

logger = logging.getLogger(__name__)


def clean_chat_text(raw_text: Any, max_length: int = 300) -> str:
    """Coerce, trim and truncate chat text. Missing text becomes ""."""
    if raw_text is None:
        return ""
    return str(raw_text).strip()[:max_length]


class ChatRelay:
    """Broadcasts short text messages to every connection in a room.

    Messages carry a fixed display name; the author's connection is not
    tracked. Empty text or a missing room drops the message silently.
    """

    def __init__(self, hub: ConnectionHub, config: ChatConfig | None = None) -> None:
        self.hub = hub
        self.config = config or ChatConfig()

    def send(self, room: str | None, raw_text: Any) -> bool:
        """Broadcast chat text to ``room``, sender included.

        Returns:
            True if a message was broadcast
        """
        text = clean_chat_text(raw_text, self.config.max_length)
        if not room or not text:
            self.hub.metrics.record_chat(False)
            logger.debug("Chat message dropped", extra={"room": room})
            return False

        self.hub.broadcast(room, ChatBroadcastMessage(user=self.config.display_name, text=text))
        self.hub.metrics.record_chat(True)
        return True
