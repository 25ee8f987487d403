"""Point-to-point relay of WebRTC negotiation messages.

Offers, answers and ICE candidates are forwarded to the connection named in
``to`` with the sender's id attached as ``from``. Room membership is not
checked and content is never inspected.

Delivery is fire-and-forget by policy: no acknowledgement, no retry, and a
message for an unknown or closed connection is dropped without telling the
sender.
"""

import logging

from src.relay.transport.hub import ConnectionHub
from src.relay.transport.websocket_protocol import (
    IceCandidateMessage,
    RelayedSignalMessage,
    SignalingMessage,
)

logger = logging.getLogger(__name__)


class SignalingRouter:
    """Stateless router for signaling messages."""

    def __init__(self, hub: ConnectionHub) -> None:
        self.hub = hub

    def relay(self, sender_id: str, message: SignalingMessage) -> bool:
        """Forward a signaling message to its addressed connection.

        Args:
            sender_id: Connection id of the sender
            message: Offer, answer or ICE candidate

        Returns:
            True if the message was queued for the target
        """
        if isinstance(message, IceCandidateMessage):
            outbound = RelayedSignalMessage(
                type=message.type,
                sender=sender_id,
                candidate=message.candidate,
                room=message.room,
            )
        else:
            outbound = RelayedSignalMessage(
                type=message.type,
                sender=sender_id,
                sdp=message.sdp,
                room=message.room,
            )

        delivered = self.hub.send_to(message.to, outbound)
        self.hub.metrics.record_signal(delivered)

        if delivered:
            logger.debug(
                "Signal relayed",
                extra={"session_id": sender_id, "target": message.to, "type": message.type},
            )
        else:
            logger.debug(
                "Signal dropped, target not connected",
                extra={"session_id": sender_id, "target": message.to, "type": message.type},
            )
        return delivered
