"""Client configuration for pybreakerbot."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pybreakerbot.exceptions import ConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class Timings:
    """Fixed delays used by the dashboard engine.

    These mirror the behaviour of the shipped dashboard and are only
    overridden in tests.
    """

    door_open_after: float = 1.0
    door_close_after: float = 5.0
    toggle_debounce: float = 0.6
    notice_ttl: float = 3.0


@dataclasses.dataclass(frozen=True)
class BreakerBotConfig:
    """Client configuration.

    Parameters
    ----------
    broker_url : str
        Broker endpoint, e.g. ``"wss://broker.example.com:8884/mqtt"``
        or ``"mqtt://10.0.0.5:1883"``.
    namespace : str
        Topic prefix. Commands go to ``<namespace>/cmd``; status and
        log events arrive on ``<namespace>/status`` and ``<namespace>/log``.
    standard_secret : str or None
        Short operational PIN that unlocks ``open_door``.
    privileged_secret : str or None
        Administrative code for ``enable_card`` and ``clear_lockout``.
    access_code : str or None
        Dashboard access code checked by :class:`pybreakerbot.session.SessionGuard`.
    client_id_prefix : str
        Prefix of the randomized per-session MQTT client id.
    username, password : str or None
        Optional broker credentials.
    keepalive : int
        MQTT keepalive in seconds.
    mqtt_tls_insecure : bool
        Skip broker certificate verification for ``mqtts://``/``wss://``
        endpoints (self-signed lab brokers).
    reconnect_delay : float
        Fixed delay between reconnection attempts. There is no retry cap.
    log_capacity : int
        Number of activity entries kept in memory.
    session_file : str or None
        Where the authenticated flag is persisted. ``None`` keeps it in memory.
    timings : Timings
        Door prediction, debounce and notice delays.
    """

    broker_url: str
    namespace: str = "breakerbot"
    standard_secret: str | None = None
    privileged_secret: str | None = None
    access_code: str | None = None
    client_id_prefix: str = "breakerbot_web"
    username: str | None = None
    password: str | None = None
    keepalive: int = 60
    mqtt_tls_insecure: bool = False
    reconnect_delay: float = 5.0
    log_capacity: int = 50
    session_file: str | None = None
    timings: Timings = dataclasses.field(default_factory=Timings)

    @property
    def cmd_topic(self) -> str:
        return f"{self.namespace}/cmd"

    @property
    def status_topic(self) -> str:
        return f"{self.namespace}/status"

    @property
    def log_topic(self) -> str:
        return f"{self.namespace}/log"

    def validate(self) -> None:
        """Raise :class:`ConfigError` when the configuration cannot gate commands."""
        if not self.broker_url or not self.broker_url.strip():
            raise ConfigError("broker_url is required")
        if not self.standard_secret:
            raise ConfigError("standard_secret is required (set BREAKERBOT_STANDARD_SECRET)")
        if not self.privileged_secret:
            raise ConfigError("privileged_secret is required (set BREAKERBOT_PRIVILEGED_SECRET)")
        if self.standard_secret == self.privileged_secret:
            raise ConfigError("standard_secret and privileged_secret must differ")
        if self.reconnect_delay <= 0:
            raise ConfigError("reconnect_delay must be positive")
        if self.log_capacity <= 0:
            raise ConfigError("log_capacity must be positive")

    @classmethod
    def from_env(cls, **overrides: Any) -> BreakerBotConfig:
        """Create configuration from environment variables.

        Reads ``BREAKERBOT_BROKER_URL`` and the optional ``BREAKERBOT_*``
        variables. Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        BreakerBotConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "BREAKERBOT_BROKER_URL": "broker_url",
            "BREAKERBOT_NAMESPACE": "namespace",
            "BREAKERBOT_STANDARD_SECRET": "standard_secret",
            "BREAKERBOT_PRIVILEGED_SECRET": "privileged_secret",
            "BREAKERBOT_ACCESS_CODE": "access_code",
            "BREAKERBOT_CLIENT_ID_PREFIX": "client_id_prefix",
            "BREAKERBOT_USERNAME": "username",
            "BREAKERBOT_PASSWORD": "password",
            "BREAKERBOT_SESSION_FILE": "session_file",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        keepalive_env = env.get("BREAKERBOT_KEEPALIVE")
        if keepalive_env is not None and "keepalive" not in overrides:
            config_kwargs["keepalive"] = int(keepalive_env)

        delay_env = env.get("BREAKERBOT_RECONNECT_DELAY")
        if delay_env is not None and "reconnect_delay" not in overrides:
            config_kwargs["reconnect_delay"] = float(delay_env)

        if "mqtt_tls_insecure" not in overrides:
            config_kwargs["mqtt_tls_insecure"] = _env_bool(env.get("BREAKERBOT_TLS_INSECURE"), False)

        config_kwargs.update(overrides)

        if not config_kwargs.get("broker_url"):
            raise ConfigError("BREAKERBOT_BROKER_URL is not set")

        return cls(**config_kwargs)
