"""Inbound datagram classification and dispatch.

How it works
------------
1. Decode the datagram; malformed payloads are logged and dropped.
2. Drop anything whose ``sender`` is this node (our own broadcasts come back).
3. Dispatch by type:

   * ``presence`` from an unknown node adds it to the roster and unicasts an
     ``ack`` straight back, so the announcer learns about us too.
   * ``ack`` from an unknown node adds it to the roster; no reply.
   * ``chat`` is kept only if it belongs to the active room or is addressed
     to this node.

Discovery is a one-way handshake per peer: once known, a peer stays known.
"""

from __future__ import annotations

from typing import Any, Callable

from loguru import logger

from lanchat.mesh.history import MessageLog
from lanchat.mesh.protocol import (
    DEFAULT_PORT,
    Ack,
    ChatMessage,
    Presence,
    ProtocolError,
    UnknownMessageType,
    decode_message,
    encode_message,
)
from lanchat.mesh.roster import Roster
from lanchat.mesh.transport import TransportError


class MessageRouter:
    """Applies inbound messages to the roster and the message log.

    Parameters
    ----------
    local_identity:
        This node's address.
    roster:
        Roster of known peers (mutated on discovery).
    history:
        Message log (appended to for accepted chats).
    transport:
        Anything with an ``async send(payload, port, address)`` method.
    current_room:
        Zero-argument callable returning the active room name.
    port:
        Port that acks are sent to (default 8888).
    """

    def __init__(
        self,
        local_identity: str,
        roster: Roster,
        history: MessageLog,
        transport: Any,
        current_room: Callable[[], str],
        port: int = DEFAULT_PORT,
    ):
        self.local_identity = local_identity
        self.roster = roster
        self.history = history
        self.transport = transport
        self._current_room = current_room
        self.port = port

    async def handle_datagram(self, data: bytes, sender_address: str) -> None:
        """Process one received datagram."""
        try:
            msg = decode_message(data)
        except UnknownMessageType as exc:
            logger.debug(f"[LanChat/Router] ignoring datagram from {sender_address}: {exc}")
            return
        except ProtocolError as exc:
            logger.warning(f"[LanChat/Router] malformed datagram from {sender_address}: {exc}")
            return

        if msg.sender == self.local_identity:
            return  # our own broadcast echoed back

        logger.debug(f"[LanChat/Router] received {msg.type.value} from {msg.sender} ({sender_address})")

        if isinstance(msg, Presence):
            await self._on_presence(msg)
        elif isinstance(msg, Ack):
            self._on_ack(msg)
        elif isinstance(msg, ChatMessage):
            self._on_chat(msg)

    # -- per-type handlers ---------------------------------------------------

    async def _on_presence(self, msg: Presence) -> None:
        if not self.roster.add(msg.sender):
            return
        logger.info(f"[LanChat/Router] new node discovered: {msg.sender}")
        await self._send_ack(msg.sender)

    def _on_ack(self, msg: Ack) -> None:
        if self.roster.add(msg.sender):
            logger.info(f"[LanChat/Router] node acknowledged: {msg.sender}")

    def _on_chat(self, msg: ChatMessage) -> None:
        is_private = msg.receiver == self.local_identity
        if msg.room != self._current_room() and not is_private:
            logger.debug(
                f"[LanChat/Router] dropped chat from {msg.sender} "
                f"(room={msg.room!r} receiver={msg.receiver!r})"
            )
            return
        self.history.append(msg, is_private=is_private)

    async def _send_ack(self, target: str) -> None:
        payload = encode_message(Ack(sender=self.local_identity))
        try:
            await self.transport.send(payload, self.port, target)
        except TransportError as exc:
            logger.warning(f"[LanChat/Router] error sending acknowledgment to {target}: {exc}")
            return
        logger.debug(f"[LanChat/Router] acknowledgment sent to {target}")
