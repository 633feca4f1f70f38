"""Reconnection supervisor around the transport connection."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from ..logger import logger
from ..schema import ConnectionState
from .retry_config import NORMAL_CLOSURE, ReconnectPolicy, is_intentional_close
from .transport import TransportConnection

Scheduler = Callable[[float, Callable[[], None]], Any]
TransportFactory = Callable[..., TransportConnection]


def _loop_scheduler(delay_s: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    return asyncio.get_running_loop().call_later(delay_s, callback)


class SupervisorListener:
    """Callbacks the supervisor reports to. All default to no-ops."""

    def on_open(self) -> None:
        pass

    def on_message(self, text: str) -> None:
        pass

    def on_close(self, code: int, reason: str) -> None:
        pass

    def on_reconnect_due(self) -> bool:
        """Return True when the listener takes care of calling ``reconnect()``."""
        return False

    def on_connection_lost(self, attempts: int) -> None:
        pass


class ReconnectionSupervisor:
    """Keep one transport connected with bounded, increasing-delay retries.

    State transitions:
        disconnected --connect()--> connecting --open--> connected
        connected --close(1000)--> disconnected (no retry)
        connected --close(other)--> disconnected, reconnect scheduled
            while attempts < policy.max_attempts, else connection lost
    """

    def __init__(
        self,
        url: str,
        policy: Optional[ReconnectPolicy] = None,
        *,
        listener: Optional[SupervisorListener] = None,
        transport_factory: Optional[TransportFactory] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.url = url
        self.policy = policy or ReconnectPolicy.from_settings()
        self.listener = listener or SupervisorListener()
        self._transport_factory = transport_factory or TransportConnection
        self._scheduler = scheduler or _loop_scheduler
        self._state = ConnectionState.DISCONNECTED
        self._transport: Optional[TransportConnection] = None
        self._timer: Any = None
        self._closed = False
        self.attempts = 0
        self.lost = False
        self.scheduled_delays: list[int] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def reconnect_pending(self) -> bool:
        return self._timer is not None

    async def connect(self) -> None:
        """Open the connection; a no-op while connecting or connected."""
        if self._state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            return
        if not self.url:
            logger.warning("WebSocket URL not configured")
            self._state = ConnectionState.DISCONNECTED
            return

        if self.lost:
            # Explicit connect after giving up starts a fresh retry budget
            self.lost = False
            self.attempts = 0
        self._cancel_timer()
        self._closed = False

        self._state = ConnectionState.CONNECTING
        logger.info("Connecting to WebSocket: %s", self.url)
        self._transport = self._transport_factory(
            self.url,
            on_open=self._handle_open,
            on_message=self._handle_message,
            on_close=self._handle_close,
            on_error=self._handle_error,
        )
        await self._transport.open()

    async def reconnect(self) -> None:
        """Run a reconnect that came due; skipped after an intentional close."""
        if self._closed:
            logger.debug("Reconnect skipped: connection closed by user")
            return
        await self.connect()

    async def send(self, message: str | dict[str, Any]) -> bool:
        """Send when connected; returns False (never raises) otherwise."""
        if self._state != ConnectionState.CONNECTED or self._transport is None:
            return False
        return await self._transport.send(message)

    async def close(self) -> None:
        """Intentional close: halts pending reconnects."""
        self._closed = True
        self._cancel_timer()
        transport = self._transport
        if transport is not None:
            await transport.close(NORMAL_CLOSURE, "User closed")
        self._transport = None
        self._state = ConnectionState.DISCONNECTED

    # ==================== Transport callbacks ====================

    def _handle_open(self) -> None:
        self._state = ConnectionState.CONNECTED
        self.attempts = 0
        self.lost = False
        self.listener.on_open()

    def _handle_message(self, text: str) -> None:
        self.listener.on_message(text)

    def _handle_error(self, error: Exception) -> None:
        logger.warning(f"WebSocket error: {error}")

    def _handle_close(self, code: int, reason: str) -> None:
        self._state = ConnectionState.DISCONNECTED
        self._transport = None
        self.listener.on_close(code, reason)

        if is_intentional_close(code) or self._closed:
            return

        if self.attempts < self.policy.max_attempts:
            self.attempts += 1
            delay_ms = self.policy.delay_for(self.attempts)
            self.scheduled_delays.append(delay_ms)
            logger.info(
                "Reconnect %s/%s scheduled in %sms",
                self.attempts,
                self.policy.max_attempts,
                delay_ms,
            )
            self._timer = self._scheduler(delay_ms / 1000, self._reconnect_due)
        else:
            logger.error("Giving up after %s reconnect attempts", self.attempts)
            self.lost = True
            self.listener.on_connection_lost(self.attempts)

    def _reconnect_due(self) -> None:
        self._timer = None
        if self.listener.on_reconnect_due():
            return
        asyncio.ensure_future(self.reconnect())

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            cancel = getattr(self._timer, "cancel", None)
            if callable(cancel):
                cancel()
            self._timer = None
