"""Roster of known peers.

A peer is identified by its network address string.  Entries are created on
first sighting (a presence announcement or an ack) and never removed for the
lifetime of the process.
"""

from __future__ import annotations

from typing import Callable, Iterator

from loguru import logger

# Callback type: receives the address of a newly added peer.
PeerListener = Callable[[str], None]


class Roster:
    """Set of peer identities, excluding this node's own identity.

    Parameters
    ----------
    local_identity:
        This node's address.  It is never admitted to the roster.
    """

    def __init__(self, local_identity: str):
        self.local_identity = local_identity
        self._peers: set[str] = set()
        self._listeners: list[PeerListener] = []

    def on_added(self, listener: PeerListener) -> None:
        """Register a callback invoked once per newly added peer."""
        self._listeners.append(listener)

    def add(self, node: str) -> bool:
        """Insert *node*; return ``True`` only if it was not already known."""
        if not node or node == self.local_identity or node in self._peers:
            return False
        self._peers.add(node)
        for listener in self._listeners:
            try:
                listener(node)
            except Exception as exc:
                logger.error(f"[LanChat/Roster] listener error: {exc}")
        return True

    def snapshot(self) -> frozenset[str]:
        """Return an immutable copy of the current membership."""
        return frozenset(self._peers)

    def __contains__(self, node: object) -> bool:
        return node in self._peers

    def __len__(self) -> int:
        return len(self._peers)

    def __iter__(self) -> Iterator[str]:
        # Iterate over a copy so callers may add peers while looping.
        return iter(sorted(self._peers))
