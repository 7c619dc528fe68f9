"""The MIoT local LAN integration."""

import typing

from homeassistant.exceptions import ConfigEntryError

from . import const as mlc
from .derived import DerivedStateStore
from .devices import get_profile
from .helpers import LOGGER
from .miot_device import MiotDevice

if typing.TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant


async def async_setup_entry(
    hass: "HomeAssistant", config_entry: "ConfigEntry[MiotDevice]"
):
    LOGGER.debug("async_setup_entry (entry_id:%s)", config_entry.entry_id)

    model = config_entry.data.get(mlc.CONF_MODEL)
    if not (profile := get_profile(model)):  # type: ignore
        raise ConfigEntryError(
            f"Unsupported model '{model}' (entry_id:{config_entry.entry_id} title:'{config_entry.title}')"
        )
    device = MiotDevice(hass, config_entry, profile)
    try:
        await device.async_init()
        await device.async_setup_entry(hass, config_entry)
        # the connection is established in background: this never blocks
        device.start()
        return True
    except Exception as error:
        await device.async_shutdown()
        raise ConfigEntryError from error


async def async_unload_entry(
    hass: "HomeAssistant", config_entry: "ConfigEntry[MiotDevice]"
) -> bool:
    LOGGER.debug("async_unload_entry (entry_id:%s)", config_entry.entry_id)
    return await config_entry.runtime_data.async_unload_entry(hass, config_entry)


async def async_remove_entry(hass: "HomeAssistant", config_entry: "ConfigEntry"):
    LOGGER.debug("async_remove_entry (entry_id:%s)", config_entry.entry_id)
    await DerivedStateStore(hass, config_entry.entry_id).async_remove()
