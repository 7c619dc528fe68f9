"""
Reconciliation of raw property reads into capability values.
"""

import typing
from typing import NamedTuple

from . import const as mlc
from .helpers import Loggable, parse_number
from .miotclient import const as mc

if typing.TYPE_CHECKING:
    from typing import Any, Mapping, Unpack

    from .helpers.capabilities import CapabilityStore, TriggerSink
    from .helpers.profile import ModelProfile
    from .miotclient import ReadResult


class CapabilityUpdate(NamedTuple):
    key: str
    value: "Any"
    previous: "Any"


class ReconciliationEngine(Loggable):
    """
    Maps a ReadResult into CapabilityStore updates:
    - absent properties leave the capability untouched (last known good)
    - present values are published only on change
    - edge triggered capabilities fire one trigger per transition carrying
    {new_value, previous_value}. The very first observation is never a transition.
    Writes issued by the dispatcher 'hold' a key so that a read which started
    before the write doesn't revert the optimistic value.
    """

    __slots__ = (
        "profile",
        "store",
        "triggers",
        "_observed",
        "_unsupported",
        "_sequence",
        "_holds",
    )

    def __init__(
        self,
        profile: "ModelProfile",
        store: "CapabilityStore",
        triggers: "TriggerSink",
        **kwargs: "Unpack[Loggable.Args]",
    ):
        self.profile = profile
        self.store = store
        self.triggers = triggers
        self._observed: set[str] = set()
        self._unsupported: set[str] = set()
        self._sequence = 0
        self._holds: dict[str, int] = {}
        super().__init__(profile.name, **kwargs)

    def begin_read(self):
        """Returns the token to be passed to 'apply' for a read starting now."""
        return self._sequence

    def hold(self, key: str):
        self._sequence += 1
        self._holds[key] = self._sequence

    def is_held(self, key: str, token: int):
        return self._holds.get(key, 0) > token

    def observed(self, key: str):
        return key in self._observed

    def apply(
        self, result: "ReadResult", token: int | None = None
    ) -> list[CapabilityUpdate]:
        updates = []
        for capability in self.profile.capabilities:
            if capability.is_setting or not (source := capability.source_name):
                continue
            if (value := self._convert(result, capability, source)) is None:
                continue
            if token is not None and self.is_held(capability.key, token):
                self.log(
                    self.DEBUG,
                    "skipping stale read of %s (write in progress)",
                    capability.key,
                )
                continue
            if update := self.publish(capability.key, value, capability.trigger):
                updates.append(update)
        return updates

    def settings_values(self, result: "ReadResult") -> "dict[str, Any]":
        """Current values of the device side of the mirrored settings."""
        values = {}
        for capability in self.profile.capabilities:
            if capability.is_setting and (source := capability.source_name):
                if (value := self._convert(result, capability, source)) is not None:
                    values[capability.key] = value
        return values

    def apply_alarms(self, settings: "Mapping[str, Any]") -> list[CapabilityUpdate]:
        """
        Evaluates the threshold alarms against the (last known) source capability.
        The alarm trigger fires on the rising edge only and never on the first
        evaluation after startup.
        """
        updates = []
        store = self.store
        for alarm in self.profile.alarms:
            if (value := parse_number(store.get(alarm.source))) is None:
                continue
            if (threshold := parse_number(settings.get(alarm.threshold))) is None:
                continue
            active = value < threshold
            observed = alarm.key in self._observed
            previous = store.get(alarm.key)
            if update := self.publish(alarm.key, active):
                updates.append(update)
                if alarm.trigger and active and observed and (previous is False):
                    self.triggers.fire(
                        alarm.trigger,
                        {
                            "value": value,
                            "threshold": threshold,
                            "label": alarm.label or alarm.source,
                        },
                    )
        return updates

    def publish(
        self,
        key: str,
        value,
        trigger: str | None = None,
        estimate: bool = False,
    ) -> CapabilityUpdate | None:
        store = self.store
        observed = key in self._observed
        self._observed.add(key)
        previous = store.get(key)
        if not store.set(key, value, estimate):
            return None
        if trigger and observed and (previous != value):
            self.triggers.fire(
                trigger,
                {
                    mlc.KEY_NEW_VALUE: value,
                    mlc.KEY_PREVIOUS_VALUE: previous,
                },
            )
        return CapabilityUpdate(key, value, previous)

    def _convert(self, result: "ReadResult", capability, source: str):
        if not (entry := result.get(source)):
            return None
        if not entry.present:
            if entry.code == mc.CODE_UNSUPPORTED and source not in self._unsupported:
                self._unsupported.add(source)
                self.log(
                    self.INFO,
                    "property %s (%s) is not supported by this device",
                    source,
                    self.profile.properties.get(source),
                )
            return None
        try:
            return capability.to_capability(entry.value)
        except Exception as exception:
            self.log_exception(
                self.WARNING,
                exception,
                "converting %s=%s",
                source,
                entry.value,
                timeout=mlc.PARAM_ERROR_LOG_TIMEOUT,
            )
            return None
