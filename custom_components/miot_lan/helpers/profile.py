"""
Descriptors for the per-model address tables. Device families in .devices
build ModelProfile instances out of these: the core engine only consumes them
as data and never branches on the model itself.
"""

from dataclasses import dataclass, field
import typing

from . import clamp, parse_number, reverse_lookup
from ..miotclient import ActionAddress, InvalidValueError, PropertyAddress

if typing.TYPE_CHECKING:
    from typing import Any, Callable, Final, Mapping


class Platform:
    """Entity platform names (kept as plain strings to not import HA here)."""

    SENSOR: "Final" = "sensor"
    BINARY_SENSOR: "Final" = "binary_sensor"
    SWITCH: "Final" = "switch"
    SELECT: "Final" = "select"
    NUMBER: "Final" = "number"
    BUTTON: "Final" = "button"
    SETTING: "Final" = None
    """capability mirrored in the config entry options instead of an entity"""


@dataclass(frozen=True, slots=True, kw_only=True)
class CapabilityDef:
    """
    Describes how a (read) property becomes a capability and, when 'write'
    is set, how a capability value is written back to the device.
    - source: the property name in the read set (defaults to 'key'). None for
    pure actions (buttons).
    - options: device value -> capability value for enumerated values.
    - convert/invert: custom device <-> capability conversions (they take precedence
    over options).
    - scale: capability = device * scale
    - trigger: when set the capability is edge triggered and every transition
    fires this trigger id.
    """

    key: str
    platform: str | None
    source: str | None = ""
    write: PropertyAddress | ActionAddress | None = None
    options: "Mapping[Any, Any] | None" = None
    convert: "Callable[[Any], Any] | None" = None
    invert: "Callable[[Any], Any] | None" = None
    scale: float | None = None
    minimum: float | None = None
    maximum: float | None = None
    step: float | None = None
    trigger: str | None = None
    device_class: str | None = None
    unit: str | None = None
    diagnostic: bool = False

    @property
    def source_name(self):
        return self.key if self.source == "" else self.source

    @property
    def is_action(self):
        return isinstance(self.write, ActionAddress)

    @property
    def is_setting(self):
        return self.platform is Platform.SETTING

    def to_capability(self, device_value):
        """Converts a (present) device value to the capability value."""
        if self.convert:
            return self.convert(device_value)
        if self.options is not None:
            return self.options.get(device_value, str(device_value))
        match self.platform:
            case Platform.BINARY_SENSOR | Platform.SWITCH:
                return bool(device_value)
        if self.scale is not None:
            if (number := parse_number(device_value)) is not None:
                return round(number * self.scale, 3)
        return device_value

    def to_device(self, value):
        """
        Validates and converts a capability value to the device value.
        Raises InvalidValueError before anything is sent to the device.
        """
        if self.invert:
            try:
                return self.invert(value)
            except (TypeError, ValueError, KeyError) as error:
                raise InvalidValueError(self.key, value, str(error)) from error
        if self.options is not None:
            if value not in self.options.values():
                raise InvalidValueError(
                    self.key, value, f"not in {list(self.options.values())}"
                )
            return reverse_lookup(self.options, value)
        match self.platform:
            case Platform.SWITCH | Platform.SETTING if isinstance(value, bool):
                return value
            case Platform.SWITCH:
                raise InvalidValueError(self.key, value, "expected a boolean")
        if self.minimum is not None or self.maximum is not None:
            if (number := parse_number(value)) is None:
                raise InvalidValueError(self.key, value, "expected a number")
            _min = self.minimum if self.minimum is not None else number
            _max = self.maximum if self.maximum is not None else number
            if clamp(number, _min, _max) != number:
                raise InvalidValueError(
                    self.key, value, f"out of range [{self.minimum}, {self.maximum}]"
                )
            if self.step and ((number - (self.minimum or 0)) % self.step):
                raise InvalidValueError(self.key, value, f"not a multiple of {self.step}")
            if self.scale:
                number = number / self.scale
            return int(number) if float(number).is_integer() else number
        return value


@dataclass(frozen=True, slots=True, kw_only=True)
class DailyCounterDef:
    """
    A daily accumulator (i.e. food eaten today) reset at the local day boundary.
    Sources are tried in order of reliability:
    - today: absolute 'today' counter exposed by the device
    - total: cumulative counter (today = total - baseline at day start)
    - progress/proxy: gated deltas (decreases of the proxy are buffered while
    progress < complete threshold). Without proxy an expected dose is credited
    at the end of every dispense cycle (estimate).
    """

    key: str
    today: str | None = None
    total: str | None = None
    progress: str | None = None
    proxy: str | None = None
    expected_dose: str | None = None
    """setting key carrying the dose credited when the proxy is missing"""
    trigger: str | None = None
    unit: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class CrossDerivationDef:
    """
    Linked (percentage remaining, days remaining) quantities. When only one of
    them is read in a cycle the other is derived through 'capacity' (days at 100%).
    'hours' flags a time source possibly reported in hours (see PARAM_HOURS_THRESHOLD).
    """

    percent: str
    days: str
    capacity: float
    percent_source: str | None = None
    days_source: str | None = None
    hours: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class AlarmDef:
    """Threshold alarm raised when 'source' capability falls below the threshold setting."""

    key: str
    source: str
    threshold: str
    trigger: str | None = None
    label: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ModelProfile:
    name: str
    models: tuple[str, ...]
    properties: "Mapping[str, PropertyAddress]"
    capabilities: tuple[CapabilityDef, ...]
    counters: tuple[DailyCounterDef, ...] = ()
    crossings: tuple[CrossDerivationDef, ...] = ()
    alarms: tuple[AlarmDef, ...] = ()
    settings: "Mapping[str, Any]" = field(default_factory=dict)
    """default values for the profile settings (config entry options)"""
    probe: "Mapping[str, tuple[PropertyAddress, ...]]" = field(default_factory=dict)
    """candidate addresses swept when the extended probe is enabled"""

    def get_capability(self, key: str):
        for capability in self.capabilities:
            if capability.key == key:
                return capability
        return None

    @property
    def read_request(self):
        return list(self.properties.items())
