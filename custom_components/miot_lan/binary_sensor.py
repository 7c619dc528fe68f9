import typing

from homeassistant.components import binary_sensor

from . import miot_entity as me

if typing.TYPE_CHECKING:
    from typing import Unpack

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .miot_device import MiotDevice


async def async_setup_entry(
    hass: "HomeAssistant", config_entry: "ConfigEntry", async_add_devices
):
    me.platform_setup_entry(hass, config_entry, async_add_devices, binary_sensor.DOMAIN)


class MLBinarySensor(me.MLEntity, binary_sensor.BinarySensorEntity):
    PLATFORM = binary_sensor.DOMAIN
    DeviceClass = binary_sensor.BinarySensorDeviceClass

    # HA core entity attributes:
    is_on: bool | None

    __slots__ = ("is_on",)

    def __init__(
        self,
        manager: "MiotDevice",
        key: str,
        **kwargs: "Unpack[me.MLEntity.Args]",
    ):
        self.is_on = None
        if device_class := kwargs.get("device_class"):
            kwargs["device_class"] = MLBinarySensor.DeviceClass(device_class)
        super().__init__(manager, key, **kwargs)

    def update_capability(self, value):
        is_on = None if value is None else bool(value)
        if self.is_on != is_on:
            self.is_on = is_on
            return True
        return False
