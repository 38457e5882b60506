from __future__ import annotations

import asyncio

import pytest
from helpers import FakeRuntime, make_factory, settle

from pybreakerbot.config import BreakerBotConfig
from pybreakerbot.exceptions import BreakerBotError, TransportUnavailableError
from pybreakerbot.transport import ConnectionState, MqttTransport, TransportEvent, TransportEventKind


async def _collect(transport: MqttTransport, sink: list[TransportEvent]) -> None:
    async for event in transport.messages():
        sink.append(event)


@pytest.mark.asyncio
async def test_connect_subscribes_and_probes_status(config: BreakerBotConfig) -> None:
    transport = MqttTransport(config, runtime_factory=make_factory())
    assert transport.state is ConnectionState.DISCONNECTED

    await transport.connect()
    await settle(lambda: transport.is_connected)

    runtime = FakeRuntime.instances[0]
    assert set(runtime.subscriptions) == {"breakerbot/status", "breakerbot/log"}
    assert runtime.published == [("breakerbot/cmd", {"action": "get_status"})]
    assert runtime.kwargs["client_id"] == transport.client_id
    assert runtime.kwargs["reconnect_delay"] == 5.0
    await transport.disconnect()


@pytest.mark.asyncio
async def test_connecting_until_broker_accepts(config: BreakerBotConfig) -> None:
    transport = MqttTransport(config, runtime_factory=make_factory(auto_connect=False))

    await transport.connect()

    assert transport.state is ConnectionState.CONNECTING
    with pytest.raises(TransportUnavailableError):
        transport.publish("breakerbot/cmd", {"action": "toggle_fan"})
    await transport.disconnect()


@pytest.mark.asyncio
async def test_events_arrive_in_order_and_stream_ends_on_disconnect(config: BreakerBotConfig) -> None:
    transport = MqttTransport(config, runtime_factory=make_factory())
    events: list[TransportEvent] = []
    consumer = asyncio.create_task(_collect(transport, events))

    await transport.connect()
    await settle(lambda: transport.is_connected)
    runtime = FakeRuntime.instances[0]
    runtime.deliver("breakerbot/status", {"door": "OPEN"})
    runtime.deliver("breakerbot/status", {"card": "DISABLED"})
    runtime.drop()
    await transport.disconnect()
    await asyncio.wait_for(consumer, timeout=1.0)

    assert [event.kind for event in events] == [
        TransportEventKind.CONNECTED,
        TransportEventKind.MESSAGE,
        TransportEventKind.MESSAGE,
        TransportEventKind.DISCONNECTED,
    ]
    assert events[1].payload == {"door": "OPEN"}
    assert events[2].payload == {"card": "DISABLED"}
    assert transport.state is ConnectionState.DISCONNECTED
    assert runtime.stopped is True


@pytest.mark.asyncio
async def test_drop_marks_disconnected_and_reconnect_restores(config: BreakerBotConfig) -> None:
    dropped: list[str] = []
    transport = MqttTransport(config, runtime_factory=make_factory(), on_disconnected=dropped.append)
    await transport.connect()
    await settle(lambda: transport.is_connected)
    runtime = FakeRuntime.instances[0]

    runtime.drop("connection reset")
    assert transport.state is ConnectionState.DISCONNECTED
    assert dropped == ["connection reset"]
    with pytest.raises(TransportUnavailableError):
        transport.publish("breakerbot/cmd", "{}")

    runtime.on_connected()
    assert transport.is_connected
    # Every (re)connect re-seeds state from the device.
    assert runtime.actions() == ["get_status", "get_status"]
    await transport.disconnect()


@pytest.mark.asyncio
async def test_rejected_publish_is_unavailable(config: BreakerBotConfig) -> None:
    transport = MqttTransport(config, runtime_factory=make_factory(accept_publish=False))
    await transport.connect()
    await settle(lambda: transport.is_connected)

    with pytest.raises(TransportUnavailableError) as excinfo:
        transport.publish("breakerbot/cmd", {"action": "toggle_fan"})

    assert excinfo.value.topic == "breakerbot/cmd"
    await transport.disconnect()


@pytest.mark.asyncio
async def test_message_stream_is_not_restartable(config: BreakerBotConfig) -> None:
    transport = MqttTransport(config, runtime_factory=make_factory())
    events: list[TransportEvent] = []
    consumer = asyncio.create_task(_collect(transport, events))
    await asyncio.sleep(0)

    with pytest.raises(BreakerBotError):
        async for _event in transport.messages():
            pass

    await transport.disconnect()
    await asyncio.wait_for(consumer, timeout=1.0)


@pytest.mark.asyncio
async def test_subscribe_adds_topics(config: BreakerBotConfig) -> None:
    transport = MqttTransport(config, runtime_factory=make_factory())
    await transport.connect()

    transport.subscribe({"breakerbot/status", "breakerbot/diag"})

    assert FakeRuntime.instances[0].subscriptions.count("breakerbot/diag") == 1
    assert FakeRuntime.instances[0].subscriptions.count("breakerbot/status") == 1
    await transport.disconnect()
