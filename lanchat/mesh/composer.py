"""Outbound chat composition and fan-out.

Room messages are unicast to every peer in the roster, one datagram per
peer; no broadcast datagram is used for chat.  Direct messages go to the
single target only.  Either way the message is echoed into the local log
straight away, whatever happens on the wire.
"""

from __future__ import annotations

from typing import Any, Callable

from loguru import logger

from lanchat.mesh.history import MessageLog
from lanchat.mesh.protocol import DEFAULT_PORT, ChatMessage, encode_message, utc_now
from lanchat.mesh.roster import Roster
from lanchat.mesh.transport import TransportError


class OutboundComposer:
    """Builds chat messages and sends them to their destinations."""

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
        # destination -> outcome of the most recent send_chat() call
        self.last_results: dict[str, bool] = {}

    async def send_chat(self, content: str, target: str | None = None) -> ChatMessage | None:
        """Compose and send a chat message.

        With *target* set the message is private to that node; otherwise it
        goes to the active room.  Blank content is ignored and ``None`` is
        returned.
        """
        if not content or not content.strip():
            return None

        if target is not None:
            msg = ChatMessage(
                sender=self.local_identity,
                content=content,
                receiver=target,
                timestamp=utc_now(),
            )
            destinations = [target]
        else:
            msg = ChatMessage(
                sender=self.local_identity,
                content=content,
                room=self._current_room(),
                timestamp=utc_now(),
            )
            destinations = sorted(self.roster.snapshot())

        payload = encode_message(msg)
        logger.debug(f"[LanChat/Composer] sending message to {', '.join(destinations) or '(nobody)'}")

        results: dict[str, bool] = {}
        for dest in destinations:
            try:
                await self.transport.send(payload, self.port, dest)
            except TransportError as exc:
                logger.warning(f"[LanChat/Composer] error sending message to {dest}: {exc}")
                results[dest] = False
                continue
            results[dest] = True
            logger.debug(f"[LanChat/Composer] message sent to {dest}")
        self.last_results = results

        self.history.append(msg, is_private=target is not None)
        return msg
