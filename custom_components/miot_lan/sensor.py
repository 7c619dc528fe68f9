import typing

from homeassistant.components import sensor

from . import miot_entity as me
from .helpers import parse_number

if typing.TYPE_CHECKING:
    from typing import NotRequired, Unpack

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .miot_device import MiotDevice


async def async_setup_entry(
    hass: "HomeAssistant", config_entry: "ConfigEntry", async_add_devices
):
    me.platform_setup_entry(hass, config_entry, async_add_devices, sensor.DOMAIN)


class MLSensor(me.MLEntity, sensor.SensorEntity):
    """
    Renders both numeric and enumerated capabilities. ENUM sensors carry
    their 'options' while numeric ones carry the unit and state_class.
    """

    if typing.TYPE_CHECKING:

        class Args(me.MLEntity.Args):
            native_unit_of_measurement: NotRequired[str | None]
            options: NotRequired[list[str]]
            state_class: NotRequired[sensor.SensorStateClass]

    PLATFORM = sensor.DOMAIN
    DeviceClass = sensor.SensorDeviceClass
    StateClass = sensor.SensorStateClass

    # HA core entity attributes:
    native_value: "sensor.StateType"
    native_unit_of_measurement: str | None
    options: list[str] | None
    state_class: sensor.SensorStateClass | None

    __slots__ = (
        "native_value",
        "native_unit_of_measurement",
        "options",
        "state_class",
    )

    def __init__(
        self,
        manager: "MiotDevice",
        key: str,
        **kwargs: "Unpack[Args]",
    ):
        self.native_value = None
        self.native_unit_of_measurement = kwargs.pop(
            "native_unit_of_measurement", None
        )
        self.options = kwargs.pop("options", None)
        if device_class := kwargs.get("device_class"):
            kwargs["device_class"] = MLSensor.DeviceClass(device_class)
        self.state_class = kwargs.pop(
            "state_class",
            None if self.options is not None else MLSensor.StateClass.MEASUREMENT,
        )
        super().__init__(manager, key, **kwargs)

    def update_capability(self, value):
        if self.options is None:
            value = parse_number(value)
        elif value is not None:
            value = str(value)
            if value not in self.options:
                # unknown device value (not in our map): show it anyway
                self.options = [*self.options, value]
        if self.native_value != value:
            self.native_value = value
            return True
        return False
