"""Security lockout state machine.

``NORMAL -> LOCKED`` only happens on an authoritative status message
carrying ``lockout: true``. ``LOCKED -> NORMAL`` happens on a verified
``clear_lockout`` (applied optimistically) or a later authoritative
``lockout: false``. Locking is an overlay; the card state is left alone.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from pybreakerbot.models.device import DeviceState, LockoutMode
from pybreakerbot.state.events import StateEvent, StateSource

_logger = logging.getLogger(__name__)

TransitionListener = Callable[[LockoutMode, LockoutMode], None]


class LockoutMonitor:
    """Tracks :class:`LockoutMode` from state-store notifications."""

    def __init__(self) -> None:
        self._mode = LockoutMode.NORMAL
        self._listeners: list[TransitionListener] = []

    @property
    def mode(self) -> LockoutMode:
        return self._mode

    @property
    def is_locked(self) -> bool:
        return self._mode is LockoutMode.LOCKED

    def add_listener(self, listener: TransitionListener) -> None:
        self._listeners.append(listener)

    def observe(self, state: DeviceState, event: StateEvent) -> LockoutMode:
        """State-store listener; returns the mode after *event*."""
        if "lockout" not in event.data:
            return self._mode

        target = state.lockout_mode
        if target is self._mode:
            return self._mode

        if target is LockoutMode.LOCKED and not event.source.is_authoritative:
            # Never locked locally.
            _logger.debug("Ignoring non-authoritative lockout=true from %s", event.source.value)
            return self._mode

        if target is LockoutMode.NORMAL and event.source is StateSource.PREDICTED:
            return self._mode

        previous = self._mode
        self._mode = target
        _logger.info("Lockout mode %s -> %s (%s)", previous.value, target.value, event.source.value)
        for listener in list(self._listeners):
            try:
                listener(previous, target)
            except Exception:
                _logger.debug("Lockout listener failed", exc_info=True)
        return self._mode

    def reset(self) -> None:
        self._mode = LockoutMode.NORMAL
