"""
Transport abstraction for MIoT devices and its implementation
over python-miio (encrypted UDP on port 54321).
"""

import abc
import asyncio
from functools import partial
import logging
from typing import TYPE_CHECKING

import miio

from . import ProtocolError, TransportError, json_dumps

if TYPE_CHECKING:
    from typing import Any, Protocol

    class LoggerT(Protocol):
        def isEnabledFor(self, level: int) -> bool: ...
        def log(self, level: int, msg: str, *args, **kwargs) -> None: ...


class MiotTransport(abc.ABC):
    """
    Opaque rpc client: call(method, params, retries) -> result.
    Implementations raise TransportError for any link level failure
    and ProtocolError when the device answers with an error code.
    """

    @property
    @abc.abstractmethod
    def host(self) -> str:
        raise NotImplementedError()

    @abc.abstractmethod
    async def async_handshake(self) -> None:
        raise NotImplementedError()

    @abc.abstractmethod
    async def async_call(self, method: str, params: "Any", retries: int = 0) -> "Any":
        raise NotImplementedError()

    def close(self):
        """Release any resource. The transport is not usable afterwards."""


class MiioTransport(MiotTransport):
    """
    python-miio is blocking so every request is run in the executor.
    The miio.Device instance is not thread safe: requests are serialized
    through an asyncio.Lock so a poll and a command never overlap on the socket.
    """

    __slots__ = (
        "_host",
        "_device",
        "_lock",
        "_logger",
        "_log_level_dump",
    )

    def __init__(
        self,
        host: str,
        token: str,
        *,
        timeout: float = 5,
        logger: "LoggerT | None" = None,
        log_level_dump: int = logging.NOTSET,
    ):
        """
        host: the ip or hostname of the device
        token: the 32 hex chars device token
        timeout: socket timeout for a single (low level) request
        logger: a shared logger to enable logging
        log_level_dump: the logging level at which the full json payloads will be dumped (costly)
        """
        self._host = host
        self._device: miio.Device | None = miio.Device(
            host, token, timeout=timeout, lazy_discover=True
        )
        self._lock = asyncio.Lock()
        self._logger = logger
        self._log_level_dump = log_level_dump

    @property
    def host(self):
        return self._host

    async def async_handshake(self):
        await self._async_run("handshake", self._get_device().send_handshake)

    async def async_call(self, method: str, params, retries: int = 0):
        logger = self._logger
        if logger and logger.isEnabledFor(self._log_level_dump):
            logger.log(
                self._log_level_dump,
                "MiioTransport(%s): request %s %s",
                self._host,
                method,
                json_dumps(params),
            )
        else:
            logger = None
        response = await self._async_run(
            method,
            partial(self._get_device().send, method, params, retry_count=retries),
        )
        if logger:
            logger.log(
                self._log_level_dump,
                "MiioTransport(%s): response %s %s",
                self._host,
                method,
                json_dumps(response),
            )
        return response

    def close(self):
        self._device = None

    def _get_device(self):
        if not (device := self._device):
            raise TransportError(f"transport to {self._host} is closed")
        return device

    async def _async_run(self, context: str, job):
        async with self._lock:
            future = asyncio.get_running_loop().run_in_executor(None, job)
            try:
                return await asyncio.shield(future)
            except asyncio.CancelledError:
                # the blocking request cannot be aborted: keep the device locked
                # until it returns so the next request doesn't overlap on the socket
                await asyncio.wait((future,))
                if not future.cancelled():
                    future.exception()  # mark retrieved: nobody is waiting anymore
                raise
            except miio.DeviceError as error:
                # the device answered with an error payload: args[0] is {"code":..,"message":..}
                raise ProtocolError(
                    getattr(error, "code", None) or -1,
                    getattr(error, "message", None) or str(error),
                ) from error
            except miio.DeviceException as error:
                raise TransportError(f"{context}: {error}") from error
            except OSError as error:
                raise TransportError(f"{context}: {error}") from error
