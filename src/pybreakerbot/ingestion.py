"""Status reconciliation.

Translates inbound ``<ns>/status`` and ``<ns>/log`` payloads into
state-store events and activity-log entries. The device is trusted as
authoritative; nothing beyond type coercion is validated here.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from pybreakerbot.exceptions import MalformedMessageError
from pybreakerbot.models.activity import ActivityEntry, ActivityKind
from pybreakerbot.models.device import LogEvent, StatusUpdate
from pybreakerbot.state.activity import ActivityLog
from pybreakerbot.state.events import StateEvent, StateSource
from pybreakerbot.state.store import DeviceStateStore

_logger = logging.getLogger(__name__)


class StatusReconciler:
    """Applies device-reported status and log events to local state."""

    def __init__(
        self,
        *,
        store: DeviceStateStore,
        activity: ActivityLog,
        status_topic: str,
        log_topic: str,
    ) -> None:
        self._store = store
        self._activity = activity
        self._status_topic = status_topic
        self._log_topic = log_topic

    def apply_status_update(self, partial: StatusUpdate | Mapping[str, Any]) -> dict[str, Any]:
        """Overwrite every field present in *partial*; returns the changed fields."""
        update = partial if isinstance(partial, StatusUpdate) else self._parse(StatusUpdate, partial)
        event = StateEvent(source=StateSource.MQTT, data=update.to_patch(), raw=update.raw)
        return self._store.apply(event)

    def apply_log_event(self, raw: LogEvent | Mapping[str, Any]) -> ActivityEntry:
        """Translate a device log payload into an activity entry."""
        event = raw if isinstance(raw, LogEvent) else self._parse(LogEvent, raw)
        kind = ActivityKind.SUCCESS if event.success else ActivityKind.ERROR
        return self._activity.add(event.text, kind)

    def handle_message(self, topic: str, payload: dict[str, Any]) -> bool:
        """Dispatch a decoded message by topic; returns whether it was consumed.

        Raises :class:`MalformedMessageError` when the payload has the wrong shape.
        """
        if topic == self._status_topic:
            self.apply_status_update(self._parse(StatusUpdate, payload, topic=topic))
            return True
        if topic == self._log_topic:
            self.apply_log_event(self._parse(LogEvent, payload, topic=topic))
            return True
        _logger.debug("Ignoring message on unexpected topic=%s", topic)
        return False

    @staticmethod
    def _parse(model: type[Any], payload: Mapping[str, Any], *, topic: str = "") -> Any:
        if not isinstance(payload, Mapping):
            raise MalformedMessageError(f"Expected JSON object, got {type(payload).__name__}", topic=topic)
        try:
            return model.model_validate(dict(payload))
        except ValidationError as exc:
            raise MalformedMessageError(
                f"Payload does not match {model.__name__}: {exc.error_count()} error(s)",
                topic=topic,
            ) from exc
