import typing

from homeassistant.components import switch

from . import miot_entity as me

if typing.TYPE_CHECKING:
    from typing import Unpack

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .miot_device import MiotDevice


async def async_setup_entry(
    hass: "HomeAssistant", config_entry: "ConfigEntry", async_add_devices
):
    me.platform_setup_entry(hass, config_entry, async_add_devices, switch.DOMAIN)


class MLSwitch(me.MLEntity, switch.SwitchEntity):
    """
    Switch bound to a writable boolean capability. The state is updated
    (optimistically) by the dispatcher through the CapabilityStore.
    """

    PLATFORM = switch.DOMAIN
    DeviceClass = switch.SwitchDeviceClass

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
        kwargs.setdefault("device_class", MLSwitch.DeviceClass.SWITCH)
        super().__init__(manager, key, **kwargs)

    async def async_turn_on(self, **kwargs):
        await self.async_request_value(True)

    async def async_turn_off(self, **kwargs):
        await self.async_request_value(False)

    def update_capability(self, value):
        is_on = None if value is None else bool(value)
        if self.is_on != is_on:
            self.is_on = is_on
            return True
        return False
