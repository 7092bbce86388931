"""Presence announcements sent to the subnet broadcast address."""

from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from lanchat.mesh.protocol import BROADCAST_ADDRESS, DEFAULT_PORT, Presence, encode_message
from lanchat.mesh.transport import TransportError


class PresenceBroadcaster:
    """Announces this node so that peers add it to their rosters.

    Announcing again is harmless: receivers deduplicate by sender.
    """

    def __init__(
        self,
        local_identity: str,
        transport: Any,
        port: int = DEFAULT_PORT,
        broadcast_address: str = BROADCAST_ADDRESS,
    ):
        self.local_identity = local_identity
        self.transport = transport
        self.port = port
        self.broadcast_address = broadcast_address
        self._announcer: asyncio.Task | None = None

    async def announce_presence(self) -> bool:
        """Broadcast one presence datagram; returns ``False`` if it failed."""
        payload = encode_message(Presence(sender=self.local_identity))
        try:
            await self.transport.send(payload, self.port, self.broadcast_address)
        except TransportError as exc:
            logger.warning(f"[LanChat/Presence] error broadcasting presence: {exc}")
            return False
        logger.info(
            f"[LanChat/Presence] presence broadcast sent to "
            f"{self.broadcast_address}:{self.port}"
        )
        return True

    # -- periodic re-announcement --------------------------------------------

    @property
    def announcing(self) -> bool:
        return self._announcer is not None and not self._announcer.done()

    def start_announcing(self, interval: float) -> None:
        """Re-announce every *interval* seconds until ``stop_announcing()``."""
        if not self.announcing:
            self._announcer = asyncio.create_task(
                self._announce_loop(interval), name="lanchat-presence"
            )
            logger.debug(f"[LanChat/Presence] re-announcing every {interval:g}s")

    def stop_announcing(self) -> None:
        if self._announcer is not None:
            self._announcer.cancel()
            self._announcer = None

    async def _announce_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.announce_presence()
