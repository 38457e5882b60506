"""Bounded most-recent-first activity log and transient notices."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from pybreakerbot.models.activity import ActivityEntry, ActivityKind, Notice

_logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 50


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ActivityLog:
    """Ring of recent events, newest first.

    :meth:`add` is the only mutator. Once full, adding an entry silently
    drops the oldest one.
    """

    def __init__(
        self,
        *,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._entries: deque[ActivityEntry] = deque(maxlen=capacity)
        self._clock = clock

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def add(self, text: str, kind: ActivityKind = ActivityKind.INFO) -> ActivityEntry:
        entry = ActivityEntry(text=text, kind=kind, created_at=self._clock())
        self._entries.appendleft(entry)
        return entry

    def entries(self) -> list[ActivityEntry]:
        """Entries newest first."""
        return list(self._entries)

    def latest(self) -> ActivityEntry | None:
        return self._entries[0] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)


class NoticeBoard:
    """Latest user-visible notice; it disappears after *ttl* seconds."""

    def __init__(self, *, ttl: float = 3.0, clock: Callable[[], datetime] = _utcnow) -> None:
        self._ttl = timedelta(seconds=ttl)
        self._clock = clock
        self._current: Notice | None = None
        self._listeners: list[Callable[[Notice], None]] = []

    def add_listener(self, listener: Callable[[Notice], None]) -> None:
        self._listeners.append(listener)

    def post(self, message: str, *, is_error: bool = False) -> Notice:
        notice = Notice(message=message, is_error=is_error, created_at=self._clock())
        self._current = notice
        for listener in list(self._listeners):
            try:
                listener(notice)
            except Exception:
                _logger.debug("Notice listener failed", exc_info=True)
        return notice

    def current(self) -> Notice | None:
        notice = self._current
        if notice is None:
            return None
        if self._clock() - notice.created_at >= self._ttl:
            self._current = None
            return None
        return notice
