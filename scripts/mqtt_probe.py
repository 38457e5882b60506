#!/usr/bin/env python3
"""Passive MQTT probe for BreakerBot status/log observation.

This script reuses the pybreakerbot broker settings to:
1) connect to the broker from BREAKERBOT_BROKER_URL,
2) subscribe to <ns>/status and <ns>/log,
3) optionally publish a single get_status request,
4) print every decoded payload with its inter-arrival gap.

Use this to verify whether the device publishes periodically or only
in reaction to commands. It never sends gated commands.
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

import paho.mqtt.client as mqtt  # noqa: E402

from pybreakerbot import BreakerBotConfig, BreakerBotError  # noqa: E402
from pybreakerbot._mqtt import BrokerEndpoint, build_client_id, decode_payload  # noqa: E402
from pybreakerbot.models.commands import Action, CommandPayload  # noqa: E402

_LOG = logging.getLogger("mqtt_probe")


@dataclass
class ProbeStats:
    started_at: float
    total_messages: int = 0
    status_messages: int = 0
    log_messages: int = 0
    malformed: int = 0
    first_message_at: float | None = None
    last_message_at: float | None = None
    last_idle_report_at: float | None = None

    def on_message(self, now: float) -> float | None:
        previous = self.last_message_at
        self.total_messages += 1
        if self.first_message_at is None:
            self.first_message_at = now
        self.last_message_at = now
        return None if previous is None else now - previous


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Passive MQTT probe for BreakerBot status and log topics.",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--idle-report-seconds",
        type=int,
        default=60,
        help="Print idle notice each N seconds without messages.",
    )
    parser.add_argument(
        "--request-status",
        action="store_true",
        help="Publish one get_status command after subscribing.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Pretty-print decoded JSON payloads.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _print_summary(stats: ProbeStats) -> None:
    runtime = time.time() - stats.started_at
    print("[probe] Summary")
    print(f"[probe]   runtime_s       : {runtime:.1f}")
    print(f"[probe]   total_messages  : {stats.total_messages}")
    print(f"[probe]   status_messages : {stats.status_messages}")
    print(f"[probe]   log_messages    : {stats.log_messages}")
    print(f"[probe]   malformed       : {stats.malformed}")
    if stats.first_message_at is not None:
        first_message = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(stats.first_message_at))
        print(f"[probe]   first_message   : {first_message}")
    if stats.last_message_at is not None:
        last_message = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(stats.last_message_at))
        print(f"[probe]   last_message    : {last_message}")


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = BreakerBotConfig.from_env(client_id_prefix="breakerbot_probe")
        endpoint = BrokerEndpoint.parse(config.broker_url)
    except BreakerBotError as exc:
        print(f"[probe] Configuration error: {exc}", file=sys.stderr)
        return 2

    client_id = build_client_id(config.client_id_prefix)
    topics = (config.status_topic, config.log_topic)
    print("[probe] MQTT settings")
    print(f"[probe]   broker   : {endpoint.url}")
    print(f"[probe]   topics   : {', '.join(topics)}")
    print(f"[probe]   clientId : {client_id}")

    stats = ProbeStats(started_at=time.time())
    should_stop = False

    def stop_handler(_signum: int, _frame: Any) -> None:
        nonlocal should_stop
        should_stop = True

    signal.signal(signal.SIGINT, stop_handler)
    signal.signal(signal.SIGTERM, stop_handler)

    mqtt_client = mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=client_id,
        protocol=mqtt.MQTTv311,
        transport=endpoint.transport,
    )
    mqtt_client.enable_logger(_LOG)
    if endpoint.transport == "websockets":
        mqtt_client.ws_set_options(path=endpoint.path)
    if endpoint.tls:
        mqtt_client.tls_set()
        if config.mqtt_tls_insecure:
            mqtt_client.tls_insecure_set(True)
    if config.username:
        mqtt_client.username_pw_set(config.username, config.password)

    def on_connect(
        client: mqtt.Client,
        _userdata: Any,
        _flags: mqtt.ConnectFlags,
        reason_code: mqtt.ReasonCode,
        _properties: mqtt.Properties | None,
    ) -> None:
        if reason_code.is_failure:
            print(f"[probe] MQTT connect failed: {reason_code}", file=sys.stderr)
            client.disconnect()
            return
        print(f"[probe] Connected. Subscribing to {', '.join(topics)}")
        for topic in topics:
            client.subscribe(topic, qos=0)
        if args.request_status:
            client.publish(config.cmd_topic, CommandPayload(action=Action.GET_STATUS).to_json(), qos=0)
            print("[probe] Requested status")

    def on_disconnect(
        _client: mqtt.Client,
        _userdata: Any,
        _disconnect_flags: mqtt.DisconnectFlags,
        reason_code: mqtt.ReasonCode,
        _properties: mqtt.Properties | None,
    ) -> None:
        if not should_stop:
            print(f"[probe] Disconnected: {reason_code}")

    def on_message(_client: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
        now = time.time()
        delta = stats.on_message(now)
        ts_text = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(now))
        gap_text = "first" if delta is None else f"{delta:.1f}s"
        print(f"[probe] msg#{stats.total_messages} at {ts_text} gap={gap_text} topic={msg.topic} bytes={len(msg.payload)}")

        if msg.topic == config.status_topic:
            stats.status_messages += 1
        elif msg.topic == config.log_topic:
            stats.log_messages += 1

        try:
            parsed_payload = decode_payload(msg.payload, topic=msg.topic)
        except BreakerBotError as exc:
            stats.malformed += 1
            print(f"[probe] malformed: {exc}")
            return
        if args.json:
            print(json.dumps(parsed_payload, indent=2, ensure_ascii=False, sort_keys=True))
        else:
            print(json.dumps(parsed_payload, ensure_ascii=False, sort_keys=True))

    mqtt_client.on_connect = on_connect
    mqtt_client.on_disconnect = on_disconnect
    mqtt_client.on_message = on_message

    print("[probe] Connecting...")
    try:
        mqtt_client.connect(endpoint.host, endpoint.port, keepalive=config.keepalive)
        mqtt_client.loop_start()

        while not should_stop:
            now = time.time()

            if args.duration > 0 and (now - stats.started_at) >= args.duration:
                print(f"[probe] Reached --duration={args.duration}s, stopping.")
                break

            if args.idle_report_seconds > 0:
                last_activity = stats.last_message_at or stats.started_at
                idle_seconds = now - last_activity
                last_report = stats.last_idle_report_at or stats.started_at
                should_report = (
                    idle_seconds >= args.idle_report_seconds and (now - last_report) >= args.idle_report_seconds
                )
                if should_report:
                    print(f"[probe] idle_for={idle_seconds:.1f}s without inbound messages")
                    stats.last_idle_report_at = now

            time.sleep(1.0)

    except OSError as exc:  # pragma: no cover - network/system interaction
        print(f"[probe] Connect failed: {exc}", file=sys.stderr)
        return 2
    finally:
        should_stop = True
        try:
            mqtt_client.disconnect()
        finally:
            mqtt_client.loop_stop()

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
