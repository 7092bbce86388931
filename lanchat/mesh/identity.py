"""Local identity resolution.

A node is known on the network by its IPv4 address, so the address of the
outbound LAN interface doubles as the node identity.
"""

from __future__ import annotations

import ipaddress
import socket

from loguru import logger


class IdentityError(Exception):
    """Raised when no usable local IPv4 address can be determined."""


def resolve_local_address(
    probe_host: str = "10.255.255.255",
    *,
    allow_loopback: bool = False,
) -> str:
    """Return the IPv4 address of the interface that routes to *probe_host*.

    Connecting a UDP socket sends nothing; it only makes the OS pick the
    source address it would use for that destination.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        sock.connect((probe_host, 1))
        address = sock.getsockname()[0]
    except OSError as exc:
        raise IdentityError(f"no network interface available: {exc}") from exc
    finally:
        sock.close()

    try:
        ip = ipaddress.IPv4Address(address)
    except ValueError as exc:
        raise IdentityError(f"unexpected local address {address!r}") from exc
    if ip.is_unspecified or (ip.is_loopback and not allow_loopback):
        raise IdentityError(f"no LAN address available (got {address})")
    logger.debug(f"[LanChat/Identity] resolved local address {address}")
    return address
