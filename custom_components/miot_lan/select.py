import typing

from homeassistant.components import select

from . import miot_entity as me

if typing.TYPE_CHECKING:
    from typing import NotRequired, Unpack

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .miot_device import MiotDevice


async def async_setup_entry(
    hass: "HomeAssistant", config_entry: "ConfigEntry", async_add_devices
):
    me.platform_setup_entry(hass, config_entry, async_add_devices, select.DOMAIN)


class MLSelect(me.MLEntity, select.SelectEntity):
    if typing.TYPE_CHECKING:

        class Args(me.MLEntity.Args):
            options: NotRequired[list[str]]

    PLATFORM = select.DOMAIN

    # HA core entity attributes:
    current_option: str | None
    options: list[str]

    __slots__ = (
        "current_option",
        "options",
    )

    def __init__(
        self,
        manager: "MiotDevice",
        key: str,
        **kwargs: "Unpack[Args]",
    ):
        self.current_option = None
        self.options = kwargs.pop("options", [])
        super().__init__(manager, key, **kwargs)

    async def async_select_option(self, option: str):
        await self.async_request_value(option)

    def update_capability(self, value):
        option = None if value is None else str(value)
        if option is not None and option not in self.options:
            # unknown device value (not in our map): show it anyway
            self.options = [*self.options, option]
        if self.current_option != option:
            self.current_option = option
            return True
        return False
