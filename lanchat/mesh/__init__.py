"""LAN chat protocol engine.

Peers on the same broadcast domain find each other with UDP presence
announcements and exchange room or direct messages without any server.
"""

from lanchat.mesh.history import ChatEntry, MessageLog
from lanchat.mesh.node import ChatNode, SetupError
from lanchat.mesh.protocol import Ack, ChatMessage, MsgType, Presence
from lanchat.mesh.roster import Roster

__all__ = [
    "Ack",
    "ChatEntry",
    "ChatMessage",
    "ChatNode",
    "MessageLog",
    "MsgType",
    "Presence",
    "Roster",
    "SetupError",
]
