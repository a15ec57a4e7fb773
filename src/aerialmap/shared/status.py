"""Status reporting surface for the display.

Statuses are purely observational: a key maps to the latest (level, message)
pair and nothing in the display ever reads them back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class StatusLevel(IntEnum):
    OK = 0
    WARN = 1
    ERROR = 2


_LOG_LEVELS = {
    StatusLevel.OK: logging.DEBUG,
    StatusLevel.WARN: logging.WARNING,
    StatusLevel.ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class StatusEntry:
    """Latest status reported under one key."""

    level: StatusLevel
    message: str


class StatusSink(Protocol):
    def set_status(self, level: StatusLevel, key: str, message: str) -> None:
        """Report the current state for a status key."""


class StatusBoard:
    """In-memory status sink.

    Keeps the latest entry per key, logs every change and forwards it to
    registered listeners.
    """

    def __init__(self) -> None:
        self._entries: dict[str, StatusEntry] = {}
        self._listeners: list[Callable[[str, StatusEntry], None]] = []

    def set_status(self, level: StatusLevel, key: str, message: str) -> None:
        key = str(getattr(key, 'value', key))
        entry = StatusEntry(level=StatusLevel(level), message=message)
        if self._entries.get(key) == entry:
            return
        self._entries[key] = entry
        logger.log(_LOG_LEVELS[entry.level], '[%s] %s: %s', key, entry.level.name, message)

        for listener in self._listeners:
            try:
                listener(key, entry)
            except Exception:
                logger.exception('Status listener failed for key %s', key)

    def get(self, key: str) -> StatusEntry | None:
        return self._entries.get(str(getattr(key, 'value', key)))

    def add_listener(self, listener: Callable[[str, StatusEntry], None]) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[str, StatusEntry], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def clear(self) -> None:
        self._entries.clear()

    @property
    def entries(self) -> dict[str, StatusEntry]:
        return dict(self._entries)

    @property
    def worst_level(self) -> StatusLevel:
        """Highest level among all current entries (OK when empty)."""
        return max((e.level for e in self._entries.values()), default=StatusLevel.OK)
