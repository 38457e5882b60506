from __future__ import annotations

import json
from pathlib import Path

import pytest
from helpers import FakeRuntime, make_factory, settle

from pybreakerbot.config import BreakerBotConfig
from pybreakerbot.exceptions import ConfigError, NotAuthenticatedError
from pybreakerbot.models.device import DoorState
from pybreakerbot.session import AppContext, SessionGuard
from pybreakerbot.transport import ConnectionState


def test_login_accepts_only_the_access_code() -> None:
    guard = SessionGuard("CBMA")

    assert guard.login("cbma") is False
    assert guard.is_authenticated is False
    assert guard.login("CBMA") is True
    assert guard.is_authenticated is True


def test_login_without_configured_code() -> None:
    with pytest.raises(ConfigError):
        SessionGuard(None).login("anything")


def test_flag_survives_reload_and_logout_clears_it(tmp_path: Path) -> None:
    store = tmp_path / "state" / "session.json"
    SessionGuard("CBMA", store_path=store).login("CBMA")

    assert json.loads(store.read_text(encoding="utf-8"))["authenticated"] is True
    reloaded = SessionGuard("CBMA", store_path=store)
    assert reloaded.is_authenticated is True

    reloaded.logout()
    assert store.exists() is False
    assert SessionGuard("CBMA", store_path=store).is_authenticated is False


def test_unreadable_session_file_is_ignored(tmp_path: Path) -> None:
    store = tmp_path / "session.json"
    store.write_text("{not json", encoding="utf-8")

    assert SessionGuard("CBMA", store_path=store).is_authenticated is False


@pytest.mark.asyncio
async def test_context_requires_login(config: BreakerBotConfig) -> None:
    ctx = AppContext(config, runtime_factory=make_factory())

    with pytest.raises(NotAuthenticatedError):
        await ctx.start()

    assert ctx.client is None
    assert FakeRuntime.instances == []


@pytest.mark.e2e
@pytest.mark.asyncio
async def test_context_session_lifecycle(config: BreakerBotConfig) -> None:
    ctx = AppContext(config, runtime_factory=make_factory())
    assert ctx.guard.login("CBMA")

    client = await ctx.start()
    assert await ctx.start() is client
    await settle(lambda: client.connection_state is ConnectionState.CONNECTED)
    runtime = FakeRuntime.instances[0]
    runtime.deliver("breakerbot/status", {"door": "OPEN"})
    await settle(lambda: client.state.door is DoorState.OPEN)

    await ctx.logout()

    assert ctx.client is None
    assert ctx.guard.is_authenticated is False
    assert runtime.stopped is True
    assert client.state.door is DoorState.CLOSED
    with pytest.raises(NotAuthenticatedError):
        await ctx.start()
