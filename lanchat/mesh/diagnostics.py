"""Human-readable diagnostics buffer.

A loguru sink that keeps the most recent log lines emitted by the
``lanchat`` package so a front end can show them next to the chat.
"""

from __future__ import annotations

from collections import deque
from typing import Any

from loguru import logger


class DiagnosticsBuffer:
    """Bounded buffer of ``[ISO time] message`` lines.

    Parameters
    ----------
    max_lines:
        Number of lines retained; older lines are discarded.
    level:
        Minimum log level captured (default ``"INFO"``).
    """

    def __init__(self, max_lines: int = 200, level: str = "INFO"):
        self.max_lines = max(1, max_lines)
        self.level = level
        self._lines: deque[str] = deque(maxlen=self.max_lines)
        self._sink_id: int | None = None

    def install(self) -> None:
        """Attach the buffer to loguru (idempotent)."""
        if self._sink_id is None:
            self._sink_id = logger.add(
                self._write,
                level=self.level,
                filter=_only_lanchat,
                format="{message}",
            )

    def remove(self) -> None:
        if self._sink_id is not None:
            logger.remove(self._sink_id)
            self._sink_id = None

    def _write(self, message: Any) -> None:
        record = message.record
        stamp = record["time"].isoformat(timespec="milliseconds")
        self._lines.append(f"[{stamp}] {record['message']}")

    def lines(self, last: int | None = None) -> list[str]:
        items = list(self._lines)
        if last is not None:
            items = items[-last:] if last > 0 else []
        return items

    def __len__(self) -> int:
        return len(self._lines)


def _only_lanchat(record: dict[str, Any]) -> bool:
    return (record["name"] or "").startswith("lanchat")
