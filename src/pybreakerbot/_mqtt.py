"""Internal MQTT endpoint parsing, payload decoding and runtime."""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, cast
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt

from pybreakerbot.exceptions import ConfigError, MalformedMessageError

_DEFAULT_PORTS: dict[str, int] = {
    "mqtt": 1883,
    "tcp": 1883,
    "mqtts": 8883,
    "ssl": 8883,
    "ws": 80,
    "wss": 443,
}


@dataclass(frozen=True)
class BrokerEndpoint:
    """Where and how to reach the broker."""

    host: str
    port: int
    transport: str = "tcp"
    path: str = "/mqtt"
    tls: bool = False

    @classmethod
    def parse(cls, url: str) -> BrokerEndpoint:
        """Parse ``mqtt://``, ``mqtts://``, ``ws://`` or ``wss://`` URLs.

        A bare ``host[:port]`` is treated as plain TCP.
        """
        value = url.strip()
        if not value:
            raise ConfigError("Broker URL is empty")
        if "://" not in value:
            value = f"mqtt://{value}"

        parts = urlsplit(value)
        scheme = parts.scheme.lower()
        if scheme not in _DEFAULT_PORTS:
            raise ConfigError(f"Unsupported broker scheme: {scheme!r}")
        if not parts.hostname:
            raise ConfigError(f"Broker URL has no host: {url!r}")

        try:
            port = parts.port or _DEFAULT_PORTS[scheme]
        except ValueError as exc:
            raise ConfigError(f"Invalid broker port in {url!r}") from exc

        websockets = scheme in {"ws", "wss"}
        return cls(
            host=parts.hostname,
            port=port,
            transport="websockets" if websockets else "tcp",
            path=(parts.path or "/mqtt") if websockets else "/mqtt",
            tls=scheme in {"mqtts", "ssl", "wss"},
        )

    @property
    def url(self) -> str:
        if self.transport == "websockets":
            scheme = "wss" if self.tls else "ws"
            return f"{scheme}://{self.host}:{self.port}{self.path}"
        scheme = "mqtts" if self.tls else "mqtt"
        return f"{scheme}://{self.host}:{self.port}"


def build_client_id(prefix: str) -> str:
    """Randomized per-session client id, e.g. ``breakerbot_web_3fa9c1``."""
    return f"{prefix}_{secrets.token_hex(3)}"


def decode_payload(payload: bytes | str, *, topic: str = "") -> dict[str, Any]:
    """Decode a JSON object payload.

    Raises :class:`MalformedMessageError` for non-UTF-8 bytes, invalid JSON
    or JSON that is not an object.
    """
    try:
        text = payload.decode("utf-8") if isinstance(payload, (bytes, bytearray)) else payload
        parsed = json.loads(text)
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedMessageError(f"Payload is not valid JSON: {exc}", topic=topic) from exc
    if not isinstance(parsed, dict):
        raise MalformedMessageError(f"Payload decoded to {type(parsed).__name__}, expected object", topic=topic)
    return parsed


class MqttRuntime:
    """Threaded paho-mqtt runtime that hands callbacks to an asyncio loop.

    paho's network thread owns connecting and reconnecting. The first
    attempt uses ``connect_async`` so an unreachable broker is retried the
    same way as a dropped connection: on a fixed delay, forever.
    """

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        endpoint: BrokerEndpoint,
        client_id: str,
        subscriptions: Iterable[str],
        on_connected: Callable[[], None],
        on_disconnected: Callable[[str], None],
        on_message: Callable[[str, dict[str, Any]], None],
        on_error: Callable[[BaseException], None],
        keepalive: int = 60,
        reconnect_delay: float = 5.0,
        username: str | None = None,
        password: str | None = None,
        tls_insecure: bool = False,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._endpoint = endpoint
        self._client_id = client_id
        self._subscriptions = tuple(subscriptions)
        self._on_connected = on_connected
        self._on_disconnected = on_disconnected
        self._on_message = on_message
        self._on_error = on_error
        self._keepalive = keepalive
        self._reconnect_delay = max(1, int(reconnect_delay))
        self._username = username
        self._password = password
        self._tls_insecure = tls_insecure
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the network loop is active (connected or retrying)."""
        return self._running

    @property
    def client_id(self) -> str:
        return self._client_id

    def start(self) -> None:
        """Begin connecting; returns immediately."""
        self.stop()
        endpoint = self._endpoint
        self._logger.debug(
            "MQTT runtime start requested url=%s client_id=%s topics=%s",
            endpoint.url,
            self._client_id,
            self._subscriptions,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=self._client_id,
            clean_session=True,
            protocol=mqtt.MQTTv311,
            transport=endpoint.transport,
        )
        client.enable_logger(self._logger)
        if endpoint.transport == "websockets":
            client.ws_set_options(path=endpoint.path)
        if endpoint.tls:
            client.tls_set()
            if self._tls_insecure:
                client.tls_insecure_set(True)
        if self._username:
            client.username_pw_set(self._username, self._password)
        client.reconnect_delay_set(min_delay=self._reconnect_delay, max_delay=self._reconnect_delay)

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect refused: %s", reason_code)
                return
            self._logger.debug("MQTT connected reason=%s", reason_code)
            for topic in self._subscriptions:
                self._logger.debug("MQTT subscribing topic=%s", topic)
                c.subscribe(topic, qos=0)
            self._loop.call_soon_threadsafe(self._on_connected)

        def on_connect_fail(_c: mqtt.Client, _userdata: Any) -> None:
            self._logger.warning(
                "MQTT connection to %s failed; retrying in %ss",
                endpoint.url,
                self._reconnect_delay,
            )

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                parsed = decode_payload(msg.payload, topic=msg.topic)
            except MalformedMessageError as exc:
                self._logger.debug("MQTT payload parse failure topic=%s", msg.topic, exc_info=True)
                self._loop.call_soon_threadsafe(self._on_error, exc)
                return
            self._logger.debug("Received PUBLISH topic=%s parsed=%s", msg.topic, parsed)
            self._loop.call_soon_threadsafe(self._on_message, msg.topic, parsed)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)
                self._loop.call_soon_threadsafe(self._on_disconnected, str(reason_code))

        client.on_connect = on_connect
        client.on_connect_fail = on_connect_fail
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect_async(endpoint.host, endpoint.port, keepalive=self._keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def publish(self, topic: str, payload: str) -> bool:
        """Queue a QoS 0 publish; returns ``False`` when paho rejects it."""
        client = self._client
        if client is None:
            return False
        info = client.publish(topic, payload, qos=0)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            self._logger.debug("MQTT publish rejected topic=%s rc=%s", topic, info.rc)
            return False
        return True

    def subscribe(self, topics: Iterable[str]) -> None:
        new_topics = [topic for topic in topics if topic not in self._subscriptions]
        self._subscriptions = self._subscriptions + tuple(new_topics)
        client = self._client
        if client is None:
            return
        for topic in new_topics:
            client.subscribe(topic, qos=0)

    def stop(self) -> None:
        """Stop and disconnect the current client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")
