"""
Connection and availability management for a single MIoT device.

State machine:
  DISCONNECTED -> CONNECTING   (start or reconfigure)
  CONNECTING   -> CONNECTED    (handshake succeeded)
  CONNECTING   -> FAILED       (handshake failed: reconnect scheduled)
  CONNECTED    -> FAILED       (read/write failure: reconnect scheduled)
  FAILED       -> CONNECTING   (after the reconnect delay or on request)
Only explicit shutdown is terminal.
"""

import asyncio
from enum import StrEnum
import typing

from . import const as mlc
from .helpers import Loggable
from .miotclient import NotReadyError, TransportError

if typing.TYPE_CHECKING:
    from typing import Any, Callable, Final, NotRequired, Unpack

    from .helpers.manager import EntityManager
    from .miotclient.transport import MiotTransport

    type TransportFactory = Callable[[], MiotTransport]


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


class ConnectionManager(Loggable):
    """
    Owns the transport handle and its lifecycle. It never blocks the caller
    when (re)connecting: the handshake runs in a task tracked by the owning manager.
    Availability is a separate flag: it's only raised after a successful remote call
    (mark_success) and lowered on the first failure (mark_failed).
    Callbacks:
    - on_connected: invoked when the handshake succeeds (start polling)
    - on_failed: invoked when a failure is detected (cancel polling)
    - on_availability: invoked with the new availability state
    """

    if typing.TYPE_CHECKING:
        manager: Final[EntityManager]
        state: ConnectionState
        available: bool
        reason: str | None
        transport: MiotTransport | None

        class Args(Loggable.Args):
            timeout: NotRequired[float]
            reconnect_delay: NotRequired[float]
            retries: NotRequired[int]
            on_connected: NotRequired[Callable[[], Any]]
            on_failed: NotRequired[Callable[[], Any]]
            on_availability: NotRequired[Callable[[bool], Any]]

    __slots__ = (
        "manager",
        "state",
        "available",
        "reason",
        "transport",
        "timeout",
        "reconnect_delay",
        "retries",
        "_transport_factory",
        "_on_connected",
        "_on_failed",
        "_on_availability",
        "_connect_task",
        "_unsub_reconnect",
    )

    def __init__(
        self,
        manager: "EntityManager",
        transport_factory: "TransportFactory",
        **kwargs: "Unpack[Args]",
    ):
        self.manager = manager
        self.state = ConnectionState.DISCONNECTED
        self.available = False
        self.reason = None
        self.transport = None
        self.timeout = kwargs.pop("timeout", mlc.PARAM_CALL_TIMEOUT)
        self.reconnect_delay = kwargs.pop("reconnect_delay", mlc.PARAM_RECONNECT_DELAY)
        self.retries = kwargs.pop("retries", mlc.PARAM_CALL_RETRIES)
        self._transport_factory = transport_factory
        self._on_connected = kwargs.pop("on_connected", None)
        self._on_failed = kwargs.pop("on_failed", None)
        self._on_availability = kwargs.pop("on_availability", None)
        self._connect_task: asyncio.Task | None = None
        self._unsub_reconnect: asyncio.TimerHandle | None = None
        kwargs.setdefault("logger", manager)
        super().__init__(manager.id, **kwargs)

    @property
    def ready(self):
        return self.state is ConnectionState.CONNECTED

    @property
    def reconnecting(self):
        return bool(self._connect_task or self._unsub_reconnect)

    def start(self):
        """Fire and forget connection attempt (never suspends the caller)."""
        if self.state in (ConnectionState.DISCONNECTED, ConnectionState.FAILED):
            self._start_connect()

    def request_reconnect(self):
        """
        Called when a caller found the connection not ready. A connection attempt
        already in progress suppresses this one. A scheduled (delayed) attempt is
        anticipated.
        """
        if self._connect_task:
            self.log(self.DEBUG, "reconnect already in progress")
            return
        if self.state is ConnectionState.CONNECTED:
            return
        self._unsub_reconnect = self.manager.cancel_callback(self._unsub_reconnect)
        self._start_connect()

    def reconfigure(self, transport_factory: "TransportFactory | None" = None):
        """
        Drops the current transport and any pending (re)connection, then
        starts over. Used when host/token/polling change.
        """
        self._cancel_pending()
        self._close_transport()
        if transport_factory:
            self._transport_factory = transport_factory
        self.state = ConnectionState.DISCONNECTED
        self.start()

    async def async_shutdown(self):
        self._cancel_pending()
        self._close_transport()
        self.state = ConnectionState.DISCONNECTED
        self._on_connected = None
        self._on_failed = None
        self._on_availability = None

    async def async_call(self, method: str, params):
        """
        Issues a remote call enforcing our own timeout. Fails fast with
        NotReadyError unless CONNECTED.
        """
        if self.state is not ConnectionState.CONNECTED or not (
            transport := self.transport
        ):
            raise NotReadyError(f"connection {self.state}")
        try:
            async with asyncio.timeout(self.timeout):
                return await transport.async_call(method, params, self.retries)
        except TimeoutError as error:
            raise TransportError(f"{method}: timeout ({self.timeout} s)") from error

    def mark_success(self):
        if not self.available and self.state is ConnectionState.CONNECTED:
            self.available = True
            self.reason = None
            self.log(self.INFO, "Back online!")
            if self._on_availability:
                self._on_availability(True)

    def mark_failed(self, error: Exception):
        """
        Escalates a transport failure: cancels polling, marks unavailable
        (if it was) and schedules a single reconnection attempt.
        """
        if self.state is ConnectionState.CONNECTING:
            # stale failure from a transport already replaced
            return
        if self.state is ConnectionState.FAILED and self.reconnecting:
            # already handled: a reconnect is pending
            return
        self.state = ConnectionState.FAILED
        if self._on_failed:
            self._on_failed()
        if self.available:
            self.available = False
            self.reason = f"device unreachable: {error}"
            self.log(self.WARNING, "Going offline! (%s)", self.reason)
            if self._on_availability:
                self._on_availability(False)
        else:
            self.reason = f"device unreachable: {error}"
        self._close_transport()
        self._schedule_reconnect()

    def _start_connect(self):
        self.state = ConnectionState.CONNECTING
        task = self.manager.async_create_task(self._async_connect(), ".connect")
        # eager tasks might already be done here
        if not task.done():
            self._connect_task = task

    async def _async_connect(self):
        try:
            self._close_transport()
            self.transport = transport = self._transport_factory()
            async with asyncio.timeout(self.timeout):
                await transport.async_handshake()
        except asyncio.CancelledError:
            raise
        except Exception as exception:
            self.log_exception(
                self.WARNING,
                exception,
                "connecting to device",
                timeout=mlc.PARAM_ERROR_LOG_TIMEOUT,
            )
            self._connect_task = None
            self.state = ConnectionState.FAILED
            self.reason = f"device unreachable: {exception}"
            self._close_transport()
            self._schedule_reconnect()
            return
        self._connect_task = None
        self.state = ConnectionState.CONNECTED
        self.log(self.DEBUG, "connected to %s", transport.host)
        if self._on_connected:
            self._on_connected()

    def _schedule_reconnect(self):
        if self._unsub_reconnect or self._connect_task:
            return
        self.log(self.DEBUG, "reconnecting in %s s", self.reconnect_delay)
        self._unsub_reconnect = self.manager.schedule_callback(
            self.reconnect_delay, self._reconnect_callback
        )

    def _reconnect_callback(self):
        self._unsub_reconnect = None
        if self.state is ConnectionState.FAILED:
            self._start_connect()

    def _cancel_pending(self):
        self._unsub_reconnect = self.manager.cancel_callback(self._unsub_reconnect)
        if connect_task := self._connect_task:
            self._connect_task = None
            connect_task.cancel("ConnectionManager reconfigure")

    def _close_transport(self):
        if transport := self.transport:
            self.transport = None
            transport.close()
