"""High-level async client for a BreakerBot access-control device."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from pybreakerbot._mqtt import MqttRuntime
from pybreakerbot._redact import redact_for_log
from pybreakerbot.config import BreakerBotConfig
from pybreakerbot.exceptions import (
    BreakerBotError,
    MalformedMessageError,
    TransportUnavailableError,
    WrongSecretError,
)
from pybreakerbot.gate import CommandGate, classify
from pybreakerbot.ingestion import StatusReconciler
from pybreakerbot.models.activity import ActivityEntry, ActivityKind, Notice
from pybreakerbot.models.commands import (
    SUCCESS_TEXT,
    Action,
    CommandResult,
    GateClass,
    PendingChallenge,
    Toggleable,
)
from pybreakerbot.models.device import CardState, DeviceState, DoorState, LockoutMode
from pybreakerbot.state.activity import ActivityLog, NoticeBoard
from pybreakerbot.state.lockout import LockoutMonitor
from pybreakerbot.state.store import DeviceStateStore, StateListener
from pybreakerbot.transport import ConnectionState, MqttTransport, RuntimeFactory, TransportEvent, TransportEventKind

_logger = logging.getLogger(__name__)

_NOTICE_EXECUTED = "Command executed successfully"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class BreakerBotClient:
    """Async client for one dashboard session.

    Owns the broker transport, the local device view, the command gate,
    the lockout monitor and the activity log. Every inbound message is
    applied by a single consumer task in arrival order.

    Usage::

        async with BreakerBotClient(config) as client:
            client.request_action(Action.OPEN_DOOR)
            client.submit_secret("1234")
    """

    def __init__(
        self,
        config: BreakerBotConfig,
        *,
        runtime_factory: RuntimeFactory = MqttRuntime,
        clock: Callable[[], datetime] = _utcnow,
        on_notice: Callable[[Notice], None] | None = None,
    ) -> None:
        self._config = config
        self._runtime_factory = runtime_factory
        self._loop: asyncio.AbstractEventLoop | None = None
        self._transport: MqttTransport | None = None
        self._pump_task: asyncio.Task[None] | None = None
        self._has_connected = False

        self._store = DeviceStateStore()
        self._activity = ActivityLog(capacity=config.log_capacity, clock=clock)
        self._notices = NoticeBoard(ttl=config.timings.notice_ttl, clock=clock)
        self._gate = CommandGate(
            standard_secret=config.standard_secret,
            privileged_secret=config.privileged_secret,
        )
        self._reconciler = StatusReconciler(
            store=self._store,
            activity=self._activity,
            status_topic=config.status_topic,
            log_topic=config.log_topic,
        )
        self._lockout = LockoutMonitor()
        self._store.add_listener(self._lockout.observe)
        self._lockout.add_listener(self._on_lockout_transition)
        self._loading: dict[Toggleable, asyncio.TimerHandle] = {}
        if on_notice is not None:
            self._notices.add_listener(on_notice)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> BreakerBotClient:
        self._config.validate()
        self._loop = asyncio.get_running_loop()
        _logger.debug("Starting dashboard session config=%s", redact_for_log(self._config))
        self._transport = MqttTransport(
            self._config,
            loop=self._loop,
            runtime_factory=self._runtime_factory,
        )
        self._pump_task = self._loop.create_task(self._pump())
        try:
            await self._transport.connect()
        except BaseException:
            await self.__aexit__(None, None, None)
            raise
        return self

    async def __aexit__(self, *exc: Any) -> None:
        transport = self._transport
        self._transport = None
        if transport is not None:
            await transport.disconnect()
        task = self._pump_task
        self._pump_task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        for handle in self._loading.values():
            handle.cancel()
        self._loading.clear()
        self._gate.cancel()
        self._store.reset()
        self._lockout.reset()
        self._loop = None

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def state(self) -> DeviceState:
        return self._store.state

    @property
    def connection_state(self) -> ConnectionState:
        if self._transport is None:
            return ConnectionState.DISCONNECTED
        return self._transport.state

    @property
    def activity(self) -> list[ActivityEntry]:
        """Activity log, newest first."""
        return self._activity.entries()

    @property
    def pending(self) -> PendingChallenge | None:
        return self._gate.pending

    @property
    def notice(self) -> Notice | None:
        return self._notices.current()

    @property
    def lockout_mode(self) -> LockoutMode:
        return self._lockout.mode

    @property
    def client_id(self) -> str | None:
        return self._transport.client_id if self._transport is not None else None

    def is_loading(self, device: Toggleable | str) -> bool:
        return Toggleable(device) in self._loading

    def add_state_listener(self, listener: StateListener) -> Callable[[], None]:
        return self._store.add_listener(listener)

    # ------------------------------------------------------------------
    # Command surface
    # ------------------------------------------------------------------

    def request_action(self, action: Action | str) -> PendingChallenge | CommandResult:
        """Request *action*.

        Gated actions return the new :class:`PendingChallenge` (replacing any
        earlier one); direct actions are published at once and return their
        :class:`CommandResult`.
        """
        action = Action(action)
        if action is Action.TOGGLE_FAN:
            return self.toggle_direct(Toggleable.FAN)
        if action is Action.TOGGLE_LIGHTS:
            return self.toggle_direct(Toggleable.LIGHTS)
        challenge = self._gate.request_action(action)
        if challenge is None:
            return self._execute(action)
        _logger.debug("Challenge opened for %s (%s)", action.value, classify(action).value)
        return challenge

    def submit_secret(self, secret: str) -> CommandResult:
        """Verify *secret* for the pending challenge and execute it.

        Raises :class:`WrongSecretError` on mismatch; the challenge stays
        pending so the user can retry or cancel.
        """
        try:
            challenge = self._gate.verify(secret)
        except WrongSecretError as exc:
            self._activity.add(str(exc), ActivityKind.ERROR)
            self._notices.post(str(exc), is_error=True)
            raise
        return self._execute(challenge.action, notice=_NOTICE_EXECUTED)

    def confirm_pending(self) -> CommandResult:
        """Execute a pending confirmation-only action (``disable_card``)."""
        challenge = self._gate.confirm()
        return self._execute(challenge.action, notice=_NOTICE_EXECUTED)

    def cancel_pending(self) -> PendingChallenge | None:
        cancelled = self._gate.cancel()
        if cancelled is not None:
            _logger.debug("Challenge for %s cancelled", cancelled.action.value)
            self._activity.add(f"{cancelled.action.value} cancelled", ActivityKind.INFO)
        return cancelled

    def toggle_direct(self, device: Toggleable | str) -> CommandResult:
        """Flip the fan or lights; ignored while the previous toggle is settling."""
        device = Toggleable(device)
        action = device.action
        if device in self._loading:
            _logger.debug("Toggle for %s ignored; still loading", device.value)
            return CommandResult(action=action, published=False, message="Busy")
        loop = self._loop or asyncio.get_running_loop()
        self._loading[device] = loop.call_later(
            self._config.timings.toggle_debounce,
            self._loading.pop,
            device,
            None,
        )
        return self._execute(action)

    def report_error(self, error: BreakerBotError) -> None:
        """Surface a non-fatal error from a front end (e.g. unsupported voice input)."""
        _logger.info("Reported error: %s", error)
        self._notices.post(str(error), is_error=True)
        self._activity.add(str(error), ActivityKind.ERROR)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _execute(self, action: Action, *, notice: str | None = None) -> CommandResult:
        transport = self._transport
        try:
            if transport is None:
                raise TransportUnavailableError()
            transport.publish_command(action)
        except TransportUnavailableError as exc:
            _logger.info("Command %s not sent: %s", action.value, exc)
            self._notices.post(str(exc), is_error=True)
            self._activity.add(f"{exc} ({action.value} not sent)", ActivityKind.ERROR)
            return CommandResult(action=action, published=False, message=str(exc))

        self._apply_optimistic(action)
        text = SUCCESS_TEXT[action]
        kind = ActivityKind.INFO if classify(action) is GateClass.DIRECT else ActivityKind.SUCCESS
        self._activity.add(text, kind)
        if notice is not None:
            self._notices.post(notice)
        return CommandResult(action=action, published=True, message=text)

    def _apply_optimistic(self, action: Action) -> None:
        timings = self._config.timings
        if action is Action.OPEN_DOOR:
            self._store.apply_optimistic({"door": DoorState.OPENING})
            self._store.schedule_prediction("door", DoorState.OPEN, timings.door_open_after)
            self._store.schedule_prediction("door", DoorState.CLOSED, timings.door_close_after)
        elif action is Action.DISABLE_CARD:
            self._store.apply_optimistic({"card": CardState.DISABLED})
        elif action is Action.ENABLE_CARD:
            self._store.apply_optimistic({"card": CardState.ACTIVE})
        elif action is Action.CLEAR_LOCKOUT:
            self._store.apply_optimistic({"lockout": False})
        elif action is Action.TOGGLE_FAN:
            self._store.apply_optimistic({"fan": not self._store.get("fan")})
        elif action is Action.TOGGLE_LIGHTS:
            self._store.apply_optimistic({"lights": not self._store.get("lights")})

    def _on_lockout_transition(self, previous: LockoutMode, current: LockoutMode) -> None:
        if current is LockoutMode.LOCKED:
            self._activity.add("Security lockout engaged", ActivityKind.ERROR)
            self._notices.post("Security lockout engaged", is_error=True)

    async def _pump(self) -> None:
        """Single consumer of the transport's inbound stream."""
        transport = self._transport
        if transport is None:
            return
        async for event in transport.messages():
            self._dispatch(event)

    def _dispatch(self, event: TransportEvent) -> None:
        if event.kind is TransportEventKind.CONNECTED:
            text = "Reconnected to device" if self._has_connected else "Dashboard loaded"
            self._has_connected = True
            self._activity.add(text, ActivityKind.SUCCESS)
            return
        if event.kind is TransportEventKind.DISCONNECTED:
            self._activity.add("Connection lost; reconnecting", ActivityKind.ERROR)
            return
        if event.kind is TransportEventKind.ERROR:
            _logger.debug("Dropped inbound payload: %s", event.error)
            return
        if event.topic is None or event.payload is None:
            return
        try:
            self._reconciler.handle_message(event.topic, event.payload)
        except MalformedMessageError:
            _logger.debug("Dropped malformed payload topic=%s", event.topic, exc_info=True)
