import typing

from homeassistant.components import number

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
    me.platform_setup_entry(hass, config_entry, async_add_devices, number.DOMAIN)


class MLNumber(me.MLEntity, number.NumberEntity):
    """Numeric writable capability (fan level, target humidity and the likes)."""

    if typing.TYPE_CHECKING:

        class Args(me.MLEntity.Args):
            native_min_value: NotRequired[float | None]
            native_max_value: NotRequired[float | None]
            native_step: NotRequired[float | None]
            native_unit_of_measurement: NotRequired[str | None]

    PLATFORM = number.DOMAIN
    DeviceClass = number.NumberDeviceClass

    # HA core entity attributes:
    mode = number.NumberMode.SLIDER
    native_max_value: float
    native_min_value: float
    native_step: float
    native_unit_of_measurement: str | None
    native_value: float | None

    __slots__ = (
        "native_max_value",
        "native_min_value",
        "native_step",
        "native_unit_of_measurement",
        "native_value",
    )

    def __init__(
        self,
        manager: "MiotDevice",
        key: str,
        **kwargs: "Unpack[Args]",
    ):
        self.native_value = None
        self.native_min_value = kwargs.pop("native_min_value", None) or 0
        native_max_value = kwargs.pop("native_max_value", None)
        self.native_max_value = 100 if native_max_value is None else native_max_value
        self.native_step = kwargs.pop("native_step", None) or 1
        self.native_unit_of_measurement = kwargs.pop("native_unit_of_measurement", None)
        super().__init__(manager, key, **kwargs)

    async def async_set_native_value(self, value: float):
        if float(self.native_step).is_integer() and float(value).is_integer():
            value = int(value)
        await self.async_request_value(value)

    def update_capability(self, value):
        value = parse_number(value)
        if self.native_value != value:
            self.native_value = value
            return True
        return False
