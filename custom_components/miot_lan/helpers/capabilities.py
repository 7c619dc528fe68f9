"""
Local collaborators of the sync engine:
- CapabilityStore: the device capability values (rendered by entities)
- SettingsStore: the device settings backed by the ConfigEntry options
- TriggerSink: fires device triggers on the HA event bus
"""

import typing

from homeassistant.core import callback

from . import LOGGER, Loggable
from .. import const as mlc

if typing.TYPE_CHECKING:
    from typing import Any, Callable, Mapping

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    type ListenerType = Callable[[str, Any], None]


class CapabilityStore:
    """
    Holds the last published value of every capability. Writes are idempotent:
    setting the same value twice doesn't notify listeners again.
    Capabilities flagged as 'estimate' carry a value computed by heuristics.
    """

    __slots__ = (
        "_values",
        "_listeners",
        "estimates",
    )

    def __init__(self):
        self._values: "dict[str, Any]" = {}
        self._listeners: "dict[str, set[ListenerType]]" = {}
        self.estimates: set[str] = set()

    def __contains__(self, name: str):
        return name in self._values

    def has(self, name: str):
        return name in self._values

    def get(self, name: str, default=None):
        return self._values.get(name, default)

    def add(self, name: str, value=None):
        self._values.setdefault(name, value)

    def remove(self, name: str):
        self._values.pop(name, None)
        self._listeners.pop(name, None)
        self.estimates.discard(name)

    def set(self, name: str, value, estimate: bool = False) -> bool:
        """Returns True when the value (or its estimate flag) actually changed."""
        was_estimate = name in self.estimates
        if estimate:
            self.estimates.add(name)
        else:
            self.estimates.discard(name)
        if (name in self._values) and (self._values[name] == value):
            if was_estimate == estimate:
                return False
        else:
            self._values[name] = value
        for listener in tuple(self._listeners.get(name, ())):
            try:
                listener(name, value)
            except Exception as exception:
                LOGGER.warning(
                    "CapabilityStore: %s(%s) in listener for %s",
                    exception.__class__.__name__,
                    str(exception),
                    name,
                )
        return True

    def as_dict(self):
        return dict(self._values)

    @callback
    def listen(self, name: str, listener: "ListenerType"):
        listeners = self._listeners.setdefault(name, set())
        listeners.add(listener)

        @callback
        def _unsub():
            listeners.discard(listener)

        return _unsub


class SettingsStore:
    """
    Device settings as stored in the ConfigEntry options merged over
    the profile defaults.
    """

    __slots__ = (
        "hass",
        "config_entry",
        "defaults",
    )

    def __init__(
        self,
        hass: "HomeAssistant",
        config_entry: "ConfigEntry",
        defaults: "Mapping[str, Any]",
    ):
        self.hass = hass
        self.config_entry = config_entry
        self.defaults = defaults

    def get_all(self) -> "dict[str, Any]":
        return dict(self.defaults) | dict(self.config_entry.options)

    def get(self, key: str, default=None):
        return self.get_all().get(key, default)

    def patch(self, changes: "Mapping[str, Any]") -> bool:
        """
        Writes the changed keys into the entry options. The entry update
        listener is then (asynchronously) invoked by HA with the new options.
        Returns False when nothing needed to be written.
        """
        options = dict(self.config_entry.options)
        changes = {
            key: value for key, value in changes.items() if options.get(key) != value
        }
        if not changes:
            return False
        return self.hass.config_entries.async_update_entry(
            self.config_entry, options=options | changes
        )


class TriggerSink(Loggable):
    """
    Fires device triggers as 'miot_lan_event' bus events. This is fire-and-forget:
    failures are logged and never propagated to the caller.
    """

    __slots__ = ("hass", "device_id")

    def __init__(self, hass: "HomeAssistant", device_id: str, **kwargs):
        self.hass = hass
        self.device_id = device_id
        super().__init__(device_id, **kwargs)

    def fire(self, trigger_id: str, payload: "Mapping[str, Any]"):
        try:
            self.hass.bus.async_fire(
                mlc.EVENT_MIOT_LAN,
                {
                    mlc.CONF_DEVICE_ID: self.device_id,
                    "type": trigger_id,
                    **payload,
                },
            )
            self.log(self.DEBUG, "trigger %s fired %s", trigger_id, payload)
        except Exception as exception:
            self.log_exception(self.WARNING, exception, "firing trigger %s", trigger_id)
