"""Async broker transport.

Wraps the threaded :class:`MqttRuntime` behind an asyncio API and funnels
every callback into one ordered inbound queue, so status and log messages
are applied strictly in arrival order by a single consumer.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

from pybreakerbot._mqtt import BrokerEndpoint, MqttRuntime, build_client_id
from pybreakerbot.config import BreakerBotConfig
from pybreakerbot.exceptions import BreakerBotError, TransportUnavailableError
from pybreakerbot.models.commands import Action, CommandPayload

_logger = logging.getLogger(__name__)


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class TransportEventKind(StrEnum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    MESSAGE = "message"
    ERROR = "error"


@dataclass(frozen=True)
class TransportEvent:
    """One item of the inbound stream."""

    kind: TransportEventKind
    topic: str | None = None
    payload: dict[str, Any] | None = None
    error: BaseException | None = None
    reason: str = ""


class RuntimeLike(Protocol):
    @property
    def is_running(self) -> bool: ...

    def start(self) -> None: ...

    def publish(self, topic: str, payload: str) -> bool: ...

    def subscribe(self, topics: Iterable[str]) -> None: ...

    def stop(self) -> None: ...


RuntimeFactory = Callable[..., RuntimeLike]

_STREAM_END = object()


class MqttTransport:
    """One broker connection per dashboard session.

    Usage::

        transport = MqttTransport(config)
        await transport.connect()
        async for event in transport.messages():
            ...
    """

    def __init__(
        self,
        config: BreakerBotConfig,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        runtime_factory: RuntimeFactory = MqttRuntime,
        on_connected: Callable[[], None] | None = None,
        on_disconnected: Callable[[str], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
    ) -> None:
        self._config = config
        self._loop = loop
        self._runtime_factory = runtime_factory
        self._runtime: RuntimeLike | None = None
        self._endpoint = BrokerEndpoint.parse(config.broker_url)
        self._client_id = build_client_id(config.client_id_prefix)
        self._subscriptions: set[str] = {config.status_topic, config.log_topic}
        self._state = ConnectionState.DISCONNECTED
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._stream_taken = False
        self._on_connected_cb = on_connected
        self._on_disconnected_cb = on_disconnected
        self._on_error_cb = on_error

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def endpoint(self) -> BrokerEndpoint:
        return self._endpoint

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> MqttTransport:
        """Start the runtime; the handshake completes in the background."""
        if self._runtime is not None and self._runtime.is_running:
            return self
        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        self._state = ConnectionState.CONNECTING
        runtime = self._runtime_factory(
            loop=loop,
            endpoint=self._endpoint,
            client_id=self._client_id,
            subscriptions=sorted(self._subscriptions),
            on_connected=self._handle_connected,
            on_disconnected=self._handle_disconnected,
            on_message=self._handle_message,
            on_error=self._handle_error,
            keepalive=self._config.keepalive,
            reconnect_delay=self._config.reconnect_delay,
            username=self._config.username,
            password=self._config.password,
            tls_insecure=self._config.mqtt_tls_insecure,
            logger=_logger,
        )
        # Assigned first: the connected callback may run while start() is in the executor.
        self._runtime = runtime
        try:
            await loop.run_in_executor(None, runtime.start)
        except Exception:
            self._runtime = None
            self._state = ConnectionState.DISCONNECTED
            raise
        return self

    async def disconnect(self) -> None:
        """Stop the runtime and end the inbound stream."""
        runtime = self._runtime
        self._runtime = None
        self._state = ConnectionState.DISCONNECTED
        if runtime is not None:
            loop = self._loop or asyncio.get_running_loop()
            try:
                await loop.run_in_executor(None, runtime.stop)
            except Exception:
                _logger.debug("MQTT runtime stop failed", exc_info=True)
        self._queue.put_nowait(_STREAM_END)

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def publish(self, topic: str, payload: str | Mapping[str, Any]) -> None:
        """Publish *payload* (JSON-encoded when a mapping).

        Raises :class:`TransportUnavailableError` when not connected.
        """
        runtime = self._runtime
        if runtime is None or not self.is_connected:
            raise TransportUnavailableError(topic=topic)
        body = payload if isinstance(payload, str) else json.dumps(dict(payload), separators=(",", ":"))
        if not runtime.publish(topic, body):
            raise TransportUnavailableError(topic=topic)
        _logger.debug("Published topic=%s payload=%s", topic, body)

    def publish_command(self, action: Action) -> None:
        self.publish(self._config.cmd_topic, CommandPayload(action=action).to_json())

    def subscribe(self, topics: Iterable[str]) -> None:
        new_topics = set(topics) - self._subscriptions
        if not new_topics:
            return
        self._subscriptions |= new_topics
        if self._runtime is not None:
            self._runtime.subscribe(sorted(new_topics))

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    async def messages(self) -> AsyncIterator[TransportEvent]:
        """Iterate inbound events in arrival order until :meth:`disconnect`.

        The stream can only be consumed once.
        """
        if self._stream_taken:
            raise BreakerBotError("Transport message stream already consumed")
        self._stream_taken = True
        while True:
            item = await self._queue.get()
            if item is _STREAM_END:
                return
            yield item

    def _handle_connected(self) -> None:
        if self._runtime is None:
            return
        self._state = ConnectionState.CONNECTED
        _logger.info("Connected to %s as %s", self._endpoint.url, self._client_id)
        self._queue.put_nowait(TransportEvent(kind=TransportEventKind.CONNECTED))
        try:
            # Seed the local view from the device instead of defaults.
            self.publish_command(Action.GET_STATUS)
        except TransportUnavailableError:
            _logger.debug("Initial status probe could not be sent", exc_info=True)
        self._fire(self._on_connected_cb)

    def _handle_disconnected(self, reason: str) -> None:
        if self._runtime is None:
            return
        self._state = ConnectionState.DISCONNECTED
        _logger.info(
            "Disconnected from %s (%s); retrying every %ss",
            self._endpoint.url,
            reason,
            self._config.reconnect_delay,
        )
        self._queue.put_nowait(TransportEvent(kind=TransportEventKind.DISCONNECTED, reason=reason))
        self._fire(self._on_disconnected_cb, reason)

    def _handle_message(self, topic: str, payload: dict[str, Any]) -> None:
        self._queue.put_nowait(TransportEvent(kind=TransportEventKind.MESSAGE, topic=topic, payload=payload))

    def _handle_error(self, error: BaseException) -> None:
        self._queue.put_nowait(TransportEvent(kind=TransportEventKind.ERROR, error=error))
        self._fire(self._on_error_cb, error)

    @staticmethod
    def _fire(callback: Callable[..., None] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            _logger.debug("Transport lifecycle callback failed", exc_info=True)
