import typing

from homeassistant.components import button

from . import miot_entity as me

if typing.TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant


async def async_setup_entry(
    hass: "HomeAssistant", config_entry: "ConfigEntry", async_add_devices
):
    me.platform_setup_entry(hass, config_entry, async_add_devices, button.DOMAIN)


class MLButton(me.MLEntity, button.ButtonEntity):
    """Triggers a device action (serve food, start cleaning, ...)."""

    PLATFORM = button.DOMAIN
    DeviceClass = button.ButtonDeviceClass

    __slots__ = ()

    async def async_press(self):
        await self.async_request_value()

    def update_capability(self, value):
        return False
