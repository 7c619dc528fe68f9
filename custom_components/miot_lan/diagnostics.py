"""Diagnostics: the device runtime state with the token redacted."""

from typing import TYPE_CHECKING

from homeassistant.components.diagnostics import async_redact_data

from . import const as mlc

if TYPE_CHECKING:
    from typing import Any, Mapping

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.device_registry import DeviceEntry

    from .miot_device import MiotDevice

TO_REDACT = (mlc.CONF_TOKEN,)


async def async_get_config_entry_diagnostics(
    hass: "HomeAssistant", config_entry: "ConfigEntry[MiotDevice]"
) -> "Mapping[str, Any]":
    return async_redact_data(
        await config_entry.runtime_data.async_get_diagnostics(), TO_REDACT
    )


async def async_get_device_diagnostics(
    hass: "HomeAssistant", config_entry: "ConfigEntry[MiotDevice]", device: "DeviceEntry"
) -> "Mapping[str, Any]":
    # single device per entry
    return await async_get_config_entry_diagnostics(hass, config_entry)
