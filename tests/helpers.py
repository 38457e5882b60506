"""Shared fakes for driving the client without a broker."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Iterable
from typing import Any

STANDARD = "1234"
PRIVILEGED = "ADMIN-7781"


class FakeRuntime:
    """In-process stand-in for the paho runtime.

    Records publishes and lets tests inject broker callbacks on the loop.
    """

    instances: list[FakeRuntime] = []

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_connected: Callable[[], None],
        on_disconnected: Callable[[str], None],
        on_message: Callable[[str, dict[str, Any]], None],
        on_error: Callable[[BaseException], None],
        subscriptions: Iterable[str],
        auto_connect: bool = True,
        accept_publish: bool = True,
        **kwargs: Any,
    ) -> None:
        self.loop = loop
        self.on_connected = on_connected
        self.on_disconnected = on_disconnected
        self.on_message = on_message
        self.on_error = on_error
        self.subscriptions = list(subscriptions)
        self.auto_connect = auto_connect
        self.accept_publish = accept_publish
        self.kwargs = kwargs
        self.published: list[tuple[str, dict[str, Any]]] = []
        self.started = False
        self.stopped = False
        FakeRuntime.instances.append(self)

    @property
    def is_running(self) -> bool:
        return self.started and not self.stopped

    def start(self) -> None:
        self.started = True
        if self.auto_connect:
            self.loop.call_soon_threadsafe(self.on_connected)

    def publish(self, topic: str, payload: str) -> bool:
        if not self.accept_publish:
            return False
        self.published.append((topic, json.loads(payload)))
        return True

    def subscribe(self, topics: Iterable[str]) -> None:
        self.subscriptions.extend(topics)

    def stop(self) -> None:
        self.stopped = True

    # Test helpers -----------------------------------------------------

    def deliver(self, topic: str, payload: dict[str, Any]) -> None:
        self.on_message(topic, payload)

    def drop(self, reason: str = "keepalive timeout") -> None:
        self.on_disconnected(reason)

    def actions(self) -> list[str]:
        return [body["action"] for topic, body in self.published if topic.endswith("/cmd")]


def make_factory(**overrides: Any) -> Callable[..., FakeRuntime]:
    def _factory(**kwargs: Any) -> FakeRuntime:
        return FakeRuntime(**kwargs, **overrides)

    return _factory


async def settle(predicate: Callable[[], bool] | None = None, *, timeout: float = 1.0) -> None:
    """Let the pump drain; optionally wait until *predicate* holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while True:
        await asyncio.sleep(0.01)
        if predicate is None or predicate():
            return
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached before timeout")


