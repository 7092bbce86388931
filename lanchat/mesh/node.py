"""Chat node: owns the protocol state and the transport lifecycle.

``ChatNode`` ties the pieces together:

* resolves the local identity and binds the UDP transport on ``start()``;
* feeds received datagrams through a single-consumer queue into the
  ``MessageRouter`` so roster and log mutations never interleave;
* exposes read-only snapshots of the roster and the message log, plus
  ``announce_presence()`` / ``send_chat()`` for a front end.

Usage::

    async with ChatNode(config.node) as node:
        await node.send_chat("hello")
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable

from loguru import logger

from lanchat.config.schema import NodeConfig
from lanchat.mesh.composer import OutboundComposer
from lanchat.mesh.diagnostics import DiagnosticsBuffer
from lanchat.mesh.history import ChatEntry, EntryListener, MessageLog
from lanchat.mesh.identity import IdentityError, resolve_local_address
from lanchat.mesh.presence import PresenceBroadcaster
from lanchat.mesh.protocol import ChatMessage
from lanchat.mesh.roster import PeerListener, Roster
from lanchat.mesh.router import MessageRouter
from lanchat.mesh.transport import TransportError, UDPTransport


class SetupError(Exception):
    """Raised when the node cannot start (no identity, or bind failed)."""


class ChatNode:
    """A single participant in the LAN chat.

    Parameters
    ----------
    config:
        Node settings (port, room, broadcast address, ...).
    transport:
        Transport adapter; defaults to a ``UDPTransport`` on
        ``config.bind_host``.
    identity_resolver:
        Zero-argument callable returning the local address; used when
        ``config.node_address`` is empty.
    diagnostics:
        Buffer collecting human-readable log lines for the front end.
    """

    def __init__(
        self,
        config: NodeConfig | None = None,
        *,
        transport: Any | None = None,
        identity_resolver: Callable[[], str] = resolve_local_address,
        diagnostics: DiagnosticsBuffer | None = None,
    ):
        self.config = config or NodeConfig()
        self.transport = transport or UDPTransport(host=self.config.bind_host)
        self._identity_resolver = identity_resolver
        self.diagnostics = diagnostics or DiagnosticsBuffer()

        self.local_identity: str = ""
        self._room = self.config.room
        self.history = MessageLog()
        self.roster: Roster | None = None
        self.router: MessageRouter | None = None
        self.presence: PresenceBroadcaster | None = None
        self.composer: OutboundComposer | None = None

        self._peer_listeners: list[PeerListener] = []
        self._inbox: asyncio.Queue[tuple[bytes, str]] | None = None
        self._dispatch_task: asyncio.Task | None = None
        self._running = False

        self.transport.on_message(self._enqueue)
        self.transport.on_error(self._on_transport_error)

    # -- read-only views -----------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def current_room(self) -> str:
        return self._room

    @property
    def peers(self) -> frozenset[str]:
        """Snapshot of the known peers."""
        if self.roster is None:
            return frozenset()
        return self.roster.snapshot()

    @property
    def messages(self) -> tuple[ChatEntry, ...]:
        """Snapshot of the message log."""
        return self.history.snapshot()

    def on_peer_added(self, listener: PeerListener) -> None:
        """Register a callback for newly discovered peers."""
        self._peer_listeners.append(listener)
        if self.roster is not None:
            self.roster.on_added(listener)

    def on_message(self, listener: EntryListener) -> None:
        """Register a callback for every entry added to the message log."""
        self.history.on_append(listener)

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Resolve identity, bind the transport and announce presence.

        Raises ``SetupError`` if the identity cannot be resolved or the port
        cannot be bound; anything acquired so far is released first.
        """
        if self._running:
            return
        self.diagnostics.install()
        try:
            self.local_identity = self.config.node_address or self._identity_resolver()
        except IdentityError as exc:
            logger.error(f"[LanChat/Node] setup error: {exc}")
            self.diagnostics.remove()
            raise SetupError(f"unable to determine local address: {exc}") from exc
        logger.info(f"[LanChat/Node] device IP: {self.local_identity}")

        self._build_components()

        try:
            await self.transport.bind(self.config.port)
        except TransportError as exc:
            logger.error(f"[LanChat/Node] setup error: {exc}")
            self.transport.close()
            self.diagnostics.remove()
            raise SetupError(f"unable to set up network: {exc}") from exc

        self._inbox = asyncio.Queue()
        self._dispatch_task = asyncio.create_task(self._dispatch_loop(), name="lanchat-dispatch")
        self._dispatch_task.add_done_callback(self._on_dispatch_done)
        self._running = True
        logger.info(
            f"[LanChat/Node] started: node={self.local_identity} "
            f"port={self.config.port} room={self._room}"
        )

        await self.announce_presence()
        if self.config.announce_interval > 0:
            self.presence.start_announcing(self.config.announce_interval)

    async def stop(self) -> None:
        """Stop dispatching and close the transport."""
        was_running = self._running
        self._running = False
        if self.presence is not None:
            self.presence.stop_announcing()
        if self._dispatch_task is not None:
            self._dispatch_task.cancel()
            try:
                await self._dispatch_task
            except asyncio.CancelledError:
                pass
            self._dispatch_task = None
        self._inbox = None
        self.transport.close()
        if was_running:
            logger.info("[LanChat/Node] stopped")
        self.diagnostics.remove()

    async def __aenter__(self) -> "ChatNode":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    def _build_components(self) -> None:
        # The roster outlives a stop/start cycle unless the identity changed.
        if self.roster is None or self.roster.local_identity != self.local_identity:
            self.roster = Roster(self.local_identity)
            for listener in self._peer_listeners:
                self.roster.on_added(listener)
        self.router = MessageRouter(
            local_identity=self.local_identity,
            roster=self.roster,
            history=self.history,
            transport=self.transport,
            current_room=lambda: self._room,
            port=self.config.port,
        )
        self.presence = PresenceBroadcaster(
            local_identity=self.local_identity,
            transport=self.transport,
            port=self.config.port,
            broadcast_address=self.config.broadcast_address,
        )
        self.composer = OutboundComposer(
            local_identity=self.local_identity,
            roster=self.roster,
            history=self.history,
            transport=self.transport,
            current_room=lambda: self._room,
            port=self.config.port,
        )

    # -- receiving -----------------------------------------------------------

    def _enqueue(self, data: bytes, address: str) -> None:
        if self._inbox is not None:
            self._inbox.put_nowait((data, address))

    async def _dispatch_loop(self) -> None:
        assert self._inbox is not None and self.router is not None
        inbox, router = self._inbox, self.router
        while True:
            data, address = await inbox.get()
            try:
                await router.handle_datagram(data, address)
            except Exception as exc:
                logger.error(f"[LanChat/Node] error handling datagram from {address}: {exc}")
            finally:
                inbox.task_done()

    def _on_transport_error(self, exc: Exception) -> None:
        logger.error(f"[LanChat/Node] socket error: {exc}")

    def _on_dispatch_done(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"[LanChat/Node] receive dispatch stopped: {task.exception()!r}")

    async def drain(self) -> None:
        """Wait until every datagram received so far has been dispatched."""
        if self._inbox is not None:
            await self._inbox.join()

    # -- outbound operations -------------------------------------------------

    async def announce_presence(self) -> bool:
        """Broadcast a presence announcement."""
        if not self._running or self.presence is None:
            logger.warning("[LanChat/Node] cannot announce presence: node not started")
            return False
        return await self.presence.announce_presence()

    async def refresh(self) -> bool:
        """Re-announce presence on operator request."""
        logger.info("[LanChat/Node] manually refreshing connections")
        return await self.announce_presence()

    async def send_chat(self, content: str, target: str | None = None) -> ChatMessage | None:
        """Send to the active room, or privately to *target* when given."""
        if not self._running or self.composer is None:
            logger.warning("[LanChat/Node] cannot send: node not started")
            return None
        return await self.composer.send_chat(content, target)

    def join_room(self, room: str) -> None:
        """Switch the active room; later room messages use and accept it."""
        room = room.strip()
        if not room:
            raise ValueError("room name must not be empty")
        if room != self._room:
            logger.info(f"[LanChat/Node] switched room: {self._room} -> {room}")
            self._room = room
