"""In-memory device state store.

This is the only component allowed to mutate :class:`DeviceState`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from pybreakerbot.models.device import DeviceState
from pybreakerbot.state.events import StateEvent, StateSource

_logger = logging.getLogger(__name__)

StateListener = Callable[[DeviceState, StateEvent], None]


class DeviceStateStore:
    """Owns the canonical :class:`DeviceState`.

    Merge semantics are simple: keys in a patch overwrite, absent keys are
    left untouched. Predicted transitions (e.g. the door closing a few
    seconds after an open command) are scheduled as cancellable timer
    handles keyed by field; any authoritative or optimistic update that
    mentions a field cancels the predictions outstanding for it.
    """

    def __init__(self, *, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._state = DeviceState()
        self._predictions: dict[str, list[asyncio.TimerHandle]] = {}
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> DeviceState:
        """Copy of the current device view."""
        return self._state.model_copy()

    def get(self, field: str) -> Any:
        return getattr(self._state, field)

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def apply(self, event: StateEvent) -> dict[str, Any]:
        """Apply a normalized state event and return the fields that changed."""
        if event.source is not StateSource.PREDICTED:
            for field in event.data:
                self.cancel_predictions(field)

        changed: dict[str, Any] = {}
        for field, value in event.data.items():
            before = getattr(self._state, field)
            setattr(self._state, field, value)
            after = getattr(self._state, field)
            if after != before:
                changed[field] = after

        if event.data:
            _logger.debug("State %s patch=%s changed=%s", event.source.value, event.data, changed)
            self._notify(event)
        return changed

    def apply_optimistic(self, patch: dict[str, Any]) -> dict[str, Any]:
        return self.apply(StateEvent(source=StateSource.OPTIMISTIC, data=patch))

    def schedule_prediction(self, field: str, value: Any, delay: float) -> asyncio.TimerHandle:
        """Predict that *field* becomes *value* after *delay* seconds."""
        loop = self._loop or asyncio.get_running_loop()
        handle: asyncio.TimerHandle | None = None

        def _fire() -> None:
            pending = self._predictions.get(field)
            if pending is not None and handle in pending:
                pending.remove(handle)
                if not pending:
                    self._predictions.pop(field, None)
            self.apply(StateEvent(source=StateSource.PREDICTED, data={field: value}))

        handle = loop.call_later(delay, _fire)
        self._predictions.setdefault(field, []).append(handle)
        return handle

    def pending_predictions(self, field: str) -> int:
        return len(self._predictions.get(field, []))

    def cancel_predictions(self, field: str | None = None) -> int:
        """Cancel outstanding predictions for *field* (or all fields)."""
        fields = [field] if field is not None else list(self._predictions)
        cancelled = 0
        for name in fields:
            for handle in self._predictions.pop(name, []):
                handle.cancel()
                cancelled += 1
        if cancelled:
            _logger.debug("Cancelled %d predicted transition(s) for %s", cancelled, field or "all fields")
        return cancelled

    def reset(self) -> None:
        """Drop every prediction and return to safe defaults."""
        self.cancel_predictions()
        self._state = DeviceState()

    def _notify(self, event: StateEvent) -> None:
        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot, event)
            except Exception:
                _logger.debug("State listener failed", exc_info=True)
