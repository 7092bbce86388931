"""Wire-level protocol for LAN chat datagrams.

Every datagram carries exactly one UTF-8 JSON object.  The ``type`` field
selects the variant:

    {"type": "presence", "sender": "192.168.1.10"}
    {"type": "ack",      "sender": "192.168.1.11"}
    {"type": "chat",     "sender": "192.168.1.10", "content": "hi",
     "room": "public", "receiver": null,
     "timestamp": "2024-05-01T12:00:00.000Z"}

``room`` and ``receiver`` are mutually exclusive: a chat is either posted to
a room or addressed to one node.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

# Well-known UDP port shared by every node.
DEFAULT_PORT = 8888
# IPv4 limited-broadcast address used for presence announcements.
BROADCAST_ADDRESS = "255.255.255.255"


class MsgType(str, Enum):
    """Recognised datagram types."""

    # Discovery announcement, sent to the broadcast address
    PRESENCE = "presence"
    # Unicast reply to a presence announcement
    ACK = "ack"
    # Room or direct chat message
    CHAT = "chat"


class ProtocolError(Exception):
    """Raised when a datagram cannot be decoded into a message."""


class UnknownMessageType(ProtocolError):
    """Raised for a well-formed object whose ``type`` is not recognised."""


def utc_now() -> datetime:
    """Current UTC time truncated to the millisecond precision of the wire."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def format_timestamp(ts: datetime) -> str:
    """Render *ts* as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    text = ts.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass(frozen=True)
class Presence:
    """Discovery announcement."""

    sender: str
    type: MsgType = field(default=MsgType.PRESENCE, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "sender": self.sender}


@dataclass(frozen=True)
class Ack:
    """Reply to a presence announcement; ends the discovery handshake."""

    sender: str
    type: MsgType = field(default=MsgType.ACK, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "sender": self.sender}


@dataclass(frozen=True)
class ChatMessage:
    """One chat message, either room-scoped or addressed to a single node."""

    sender: str
    content: str
    room: str | None = None
    receiver: str | None = None
    timestamp: datetime = field(default_factory=utc_now)
    type: MsgType = field(default=MsgType.CHAT, init=False)

    def __post_init__(self) -> None:
        if self.room is not None and self.receiver is not None:
            raise ProtocolError("chat message cannot have both room and receiver")

    @property
    def is_direct(self) -> bool:
        return self.receiver is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "sender": self.sender,
            "content": self.content,
            "room": self.room,
            "receiver": self.receiver,
            "timestamp": format_timestamp(self.timestamp),
        }


Message = Union[Presence, Ack, ChatMessage]


# -- serialisation -----------------------------------------------------------

def encode_message(msg: Message) -> bytes:
    """Serialise a message to UTF-8 JSON bytes."""
    return json.dumps(msg.to_dict(), ensure_ascii=False).encode("utf-8")


def decode_message(data: bytes) -> Message:
    """Deserialise one datagram payload.

    Raises ``UnknownMessageType`` when the ``type`` tag is not recognised and
    ``ProtocolError`` for anything else that is not a valid message.
    """
    try:
        obj = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ProtocolError(f"invalid payload: {exc}") from exc
    if not isinstance(obj, dict):
        raise ProtocolError("payload is not a JSON object")

    kind = obj.get("type")
    if not isinstance(kind, str) or kind not in _KNOWN_TYPES:
        raise UnknownMessageType(f"unknown message type {kind!r}")
    sender = _required_str(obj, "sender")
    if not sender:
        raise ProtocolError("empty sender")

    if kind == MsgType.PRESENCE.value:
        return Presence(sender=sender)
    if kind == MsgType.ACK.value:
        return Ack(sender=sender)

    # chat
    content = _required_str(obj, "content")
    room = _optional_str(obj, "room")
    receiver = _optional_str(obj, "receiver")
    raw_ts = obj.get("timestamp")
    if raw_ts is None:
        timestamp = utc_now()
    elif isinstance(raw_ts, str):
        try:
            timestamp = parse_timestamp(raw_ts)
        except ValueError as exc:
            raise ProtocolError(f"bad timestamp {raw_ts!r}") from exc
    else:
        raise ProtocolError("timestamp must be a string")
    return ChatMessage(
        sender=sender,
        content=content,
        room=room,
        receiver=receiver,
        timestamp=timestamp,
    )


_KNOWN_TYPES = frozenset(t.value for t in MsgType)


def _required_str(obj: dict[str, Any], key: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str):
        raise ProtocolError(f"missing or invalid field {key!r}")
    return value


def _optional_str(obj: dict[str, Any], key: str) -> str | None:
    value = obj.get(key)
    if value is not None and not isinstance(value, str):
        raise ProtocolError(f"field {key!r} must be a string or null")
    return value
