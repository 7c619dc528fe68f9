"""
Command dispatching: capability intents -> remote writes (set_properties/action)
and the two-way synchronization of the device settings.
"""

import typing

from . import const as mlc
from .helpers import Loggable
from .miotclient import (
    ActionAddress,
    NotReadyError,
    TransportError,
    UnsupportedCapabilityError,
    action_params,
    check_response_code,
    const as mc,
    set_properties_params,
)

if typing.TYPE_CHECKING:
    from typing import Any, Awaitable, Callable, Mapping, Unpack

    from .connection import ConnectionManager
    from .helpers.capabilities import SettingsStore
    from .helpers.profile import CapabilityDef, ModelProfile
    from .reconcile import ReconciliationEngine


class CommandDispatcher(Loggable):
    """
    Settings echo suppression: when the poll path mirrors a device value into the
    settings (sync_settings) an in-flight token (key -> value) is recorded. The
    resulting entry update carrying the same value is recognized and not written
    back to the device. Tokens are per key so concurrent changes to different
    settings don't interfere.
    """

    __slots__ = (
        "profile",
        "connection",
        "engine",
        "settings",
        "model",
        "_inflight",
    )

    def __init__(
        self,
        profile: "ModelProfile",
        model: str,
        connection: "ConnectionManager",
        engine: "ReconciliationEngine",
        settings: "SettingsStore",
        **kwargs: "Unpack[Loggable.Args]",
    ):
        self.profile = profile
        self.model = model
        self.connection = connection
        self.engine = engine
        self.settings = settings
        self._inflight: "dict[str, Any]" = {}
        super().__init__(profile.name, **kwargs)

    def get_writable(self, name: str) -> "CapabilityDef":
        capability = self.profile.get_capability(name)
        if not (capability and capability.write):
            raise UnsupportedCapabilityError(name, self.model)
        return capability

    async def async_dispatch(self, name: str, value=None):
        """
        Writes 'value' to the capability 'name' (value is ignored for actions).
        Raises:
        - UnsupportedCapabilityError: no write address for this model
        - InvalidValueError: the value failed validation (nothing sent)
        - NotReadyError: the connection is not established (a reconnect is requested)
        - ProtocolError: the device refused the write
        - TransportError: the link failed (availability escalated)
        """
        capability = self.get_writable(name)
        address = capability.write
        if isinstance(address, ActionAddress):
            method = mc.METHOD_ACTION
            params = action_params(address)
        else:
            device_value = capability.to_device(value)
            method = mc.METHOD_SET_PROPERTIES
            params = set_properties_params(name, address, device_value)  # type: ignore

        connection = self.connection
        if not connection.ready:
            connection.request_reconnect()
            raise NotReadyError()

        self.log(self.DEBUG, "dispatching %s=%s (%s %s)", name, value, method, address)
        try:
            response = await connection.async_call(method, params)
        except NotReadyError:
            connection.request_reconnect()
            raise
        except TransportError as error:
            connection.mark_failed(error)
            raise
        check_response_code(response)
        connection.mark_success()

        if capability.is_action or capability.is_setting:
            return
        # optimistic update: a read already in flight won't revert it
        self.engine.hold(name)
        self.engine.publish(name, value, capability.trigger)

    def sync_settings(self, values: "Mapping[str, Any]"):
        """Mirrors device side values into the settings (device -> settings)."""
        current = self.settings.get_all()
        changes = {
            key: value for key, value in values.items() if current.get(key) != value
        }
        if not changes:
            return False
        for key, value in changes.items():
            self._inflight[key] = value
        self.log(self.DEBUG, "syncing settings from device %s", changes)
        if not self.settings.patch(changes):
            for key in changes:
                self._inflight.pop(key, None)
            return False
        return True

    async def async_settings_changed(
        self,
        changed: "Mapping[str, Any]",
        reconfigure: "Callable[[], Awaitable] | None" = None,
    ):
        """
        Consumes the 'changed keys' diff of an entry update:
        - device originated changes (matching an in-flight token) are dropped
        - connection keys trigger 'reconfigure'
        - writable settings are written to the device (settings -> device)
        """
        reconnect = False
        for key, value in changed.items():
            if key in self._inflight:
                if self._inflight.pop(key) == value:
                    continue
            if key in mlc.CONF_CONNECTION_KEYS:
                reconnect = True
                continue
            capability = self.profile.get_capability(key)
            if not (capability and capability.is_setting and capability.write):
                continue
            if value is None:
                continue
            with self.exception_warning("writing setting %s=%s", key, value):
                await self.async_dispatch(key, value)

        if reconnect and reconfigure:
            await reconfigure()
