"""Append-only log of accepted chat messages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator

from loguru import logger

from lanchat.mesh.protocol import ChatMessage


@dataclass(frozen=True)
class ChatEntry:
    """A chat message as shown to the user."""

    message: ChatMessage
    is_private: bool = False

    @property
    def sender(self) -> str:
        return self.message.sender

    @property
    def content(self) -> str:
        return self.message.content

    def render(self) -> str:
        suffix = " (Private)" if self.is_private else ""
        return f"{self.sender}: {self.content}{suffix}"


EntryListener = Callable[[ChatEntry], None]


class MessageLog:
    """Ordered chat history; entries are only ever appended."""

    def __init__(self) -> None:
        self._entries: list[ChatEntry] = []
        self._listeners: list[EntryListener] = []

    def on_append(self, listener: EntryListener) -> None:
        """Register a callback invoked for every appended entry."""
        self._listeners.append(listener)

    def append(self, message: ChatMessage, *, is_private: bool = False) -> ChatEntry:
        entry = ChatEntry(message=message, is_private=is_private)
        self._entries.append(entry)
        for listener in self._listeners:
            try:
                listener(entry)
            except Exception as exc:
                logger.error(f"[LanChat/History] listener error: {exc}")
        return entry

    def snapshot(self) -> tuple[ChatEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ChatEntry]:
        return iter(tuple(self._entries))
