"""UDP transport adapter for LAN chat datagrams.

One non-blocking socket per node, bound on the well-known port with
``SO_BROADCAST`` enabled so presence announcements can reach the whole
subnet.  A background loop reads datagrams off the socket and hands them
to registered callbacks; the transport itself knows nothing about the
chat protocol.
"""

from __future__ import annotations

import asyncio
import ipaddress
import socket
from typing import Callable

from loguru import logger

# Callback types
DatagramHandler = Callable[[bytes, str], None]
ErrorHandler = Callable[[Exception], None]

MAX_DATAGRAM = 65535


class TransportError(Exception):
    """Raised when the socket cannot be bound or a datagram cannot be sent."""


class UDPTransport:
    """Broadcast-capable UDP endpoint.

    Parameters
    ----------
    host:
        Interface to bind on (default ``"0.0.0.0"``).
    """

    def __init__(self, host: str = "0.0.0.0"):
        self.host = host
        self._sock: socket.socket | None = None
        self._listener: asyncio.Task | None = None
        self._message_handlers: list[DatagramHandler] = []
        self._error_handlers: list[ErrorHandler] = []

    # -- handler registration ------------------------------------------------

    def on_message(self, handler: DatagramHandler) -> None:
        """Register a callback invoked with ``(payload, remote_address)``."""
        self._message_handlers.append(handler)

    def on_error(self, handler: ErrorHandler) -> None:
        """Register a callback invoked for socket-level receive errors."""
        self._error_handlers.append(handler)

    # -- lifecycle -----------------------------------------------------------

    @property
    def is_bound(self) -> bool:
        return self._sock is not None

    @property
    def bound_port(self) -> int | None:
        """The local port actually bound (useful when binding port 0)."""
        if self._sock is None:
            return None
        return self._sock.getsockname()[1]

    async def bind(self, port: int) -> None:
        """Bind the socket on *port*; raises ``TransportError`` on failure."""
        if self._sock is not None:
            raise TransportError("transport already bound")
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, port))
            sock.setblocking(False)
        except OSError as exc:
            sock.close()
            raise TransportError(f"cannot bind {self.host}:{port}: {exc}") from exc
        self._sock = sock
        self._listener = asyncio.create_task(
            self._listen_loop(sock), name="lanchat-udp-listener"
        )
        logger.info(f"[LanChat/Transport] listening on {self.host}:{self.bound_port}")

    def close(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            self._listener = None
        if self._sock is not None:
            self._sock.close()
            self._sock = None
            logger.info("[LanChat/Transport] closed")

    # -- sending -------------------------------------------------------------

    async def send(self, payload: bytes, port: int, address: str) -> None:
        """Send one datagram to ``address:port``.

        *address* must be an IPv4 literal; no name resolution is done.
        Raises ``TransportError`` if the socket is not bound, the address is
        not usable, or the OS rejects the datagram.
        """
        if self._sock is None:
            raise TransportError("transport is not bound")
        try:
            ipaddress.IPv4Address(address)
        except ValueError as exc:
            raise TransportError(f"not an IPv4 address: {address!r}") from exc
        loop = asyncio.get_running_loop()
        try:
            await loop.sock_sendto(self._sock, payload, (address, port))
        except (OSError, OverflowError) as exc:
            raise TransportError(f"send to {address}:{port} failed: {exc}") from exc

    # -- receiving -----------------------------------------------------------

    async def _listen_loop(self, sock: socket.socket) -> None:
        loop = asyncio.get_running_loop()
        while self._sock is sock:
            try:
                data, addr = await loop.sock_recvfrom(sock, MAX_DATAGRAM)
            except OSError as exc:
                if self._sock is not sock:
                    break
                self._dispatch_error(exc)
                await asyncio.sleep(0.1)
                continue
            self._dispatch_message(data, addr[0])

    def _dispatch_message(self, data: bytes, address: str) -> None:
        for handler in self._message_handlers:
            try:
                handler(data, address)
            except Exception as exc:
                logger.error(f"[LanChat/Transport] handler error: {exc}")

    def _dispatch_error(self, exc: Exception) -> None:
        for handler in self._error_handlers:
            try:
                handler(exc)
            except Exception as handler_exc:
                logger.error(f"[LanChat/Transport] error handler failed: {handler_exc}")
