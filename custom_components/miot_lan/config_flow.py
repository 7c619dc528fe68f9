"""Config flow for MIoT LAN integration."""

import asyncio
from enum import StrEnum
import re
import typing

from homeassistant import config_entries as ce
from homeassistant.helpers import config_validation as cv
import voluptuous as vol

from . import const as mlc
from .devices import MODEL_PROFILES, get_profile
from .helpers import LOGGER
from .miotclient import MiotError
from .miotclient.transport import MiioTransport

if typing.TYPE_CHECKING:
    from typing import Any


# helper conf keys not persisted to config
DESCR = "suggested_value"
ERR_BASE = "base"

TOKEN_RE = re.compile(r"^[0-9a-fA-F]{32}$")


class FlowErrorKey(StrEnum):
    """These error keys are common to both Config and Options flows"""

    CANNOT_CONNECT = "cannot_connect"
    INVALID_TOKEN = "invalid_token"
    UNSUPPORTED_MODEL = "unsupported_model"


class FlowError(Exception):
    def __init__(self, key: FlowErrorKey):
        super().__init__(key)
        self.key = key


def validate_token(token: str):
    token = str(token).strip()
    if not TOKEN_RE.match(token):
        raise FlowError(FlowErrorKey.INVALID_TOKEN)
    return token.lower()


async def async_check_connection(host: str, token: str):
    """Tries the handshake so that we don't store unusable configurations."""
    transport = MiioTransport(host, token, timeout=mlc.PARAM_CALL_TIMEOUT)
    try:
        async with asyncio.timeout(mlc.PARAM_CALL_TIMEOUT * 2):
            await transport.async_handshake()
    except (MiotError, TimeoutError) as error:
        LOGGER.debug("async_check_connection(%s): %s", host, str(error))
        raise FlowError(FlowErrorKey.CANNOT_CONNECT) from error
    finally:
        transport.close()


class ConfigFlow(ce.ConfigFlow, domain=mlc.DOMAIN):
    """Handle a config flow for MIoT local LAN."""

    VERSION = 1

    @staticmethod
    def async_get_options_flow(config_entry):
        return OptionsFlow()

    async def async_step_user(self, user_input=None):
        errors = {}
        if user_input is not None:
            try:
                host = user_input[mlc.CONF_HOST].strip()
                token = validate_token(user_input[mlc.CONF_TOKEN])
                model = user_input[mlc.CONF_MODEL]
                if not get_profile(model):
                    raise FlowError(FlowErrorKey.UNSUPPORTED_MODEL)
                await self.async_set_unique_id(host)
                self._abort_if_unique_id_configured()
                await async_check_connection(host, token)
                data: mlc.DeviceConfigType = {
                    mlc.CONF_HOST: host,
                    mlc.CONF_TOKEN: token,
                    mlc.CONF_MODEL: model,
                }
                return self.async_create_entry(
                    title=f"{model} ({host})",
                    data=data,  # type: ignore
                    options={
                        mlc.CONF_POLLING_PERIOD: mlc.CONF_POLLING_PERIOD_DEFAULT
                    },
                )
            except FlowError as error:
                errors[ERR_BASE] = error.key
        else:
            user_input = {}

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Required(
                        mlc.CONF_HOST,
                        description={DESCR: user_input.get(mlc.CONF_HOST)},
                    ): str,
                    vol.Required(
                        mlc.CONF_TOKEN,
                        description={DESCR: user_input.get(mlc.CONF_TOKEN)},
                    ): str,
                    vol.Required(
                        mlc.CONF_MODEL,
                        description={DESCR: user_input.get(mlc.CONF_MODEL)},
                    ): vol.In(sorted(MODEL_PROFILES.keys())),
                }
            ),
            errors=errors,
        )


class OptionsFlow(ce.OptionsFlow):
    """
    Manage device options configuration: connection (host/token go into
    the entry data), polling, logging and the profile settings.
    """

    async def async_step_init(self, user_input=None):
        config_entry = self.config_entry
        config = dict(config_entry.data)
        profile = get_profile(config.get(mlc.CONF_MODEL, ""))
        settings = dict(profile.settings) if profile else {}
        options = settings | dict(config_entry.options)
        errors = {}

        if user_input is not None:
            try:
                host = user_input[mlc.CONF_HOST].strip()
                token = validate_token(user_input[mlc.CONF_TOKEN])
                options |= {
                    key: value
                    for key, value in user_input.items()
                    if key not in (mlc.CONF_HOST, mlc.CONF_TOKEN)
                }
                if (host, token) != (
                    config.get(mlc.CONF_HOST),
                    config.get(mlc.CONF_TOKEN),
                ):
                    await async_check_connection(host, token)
                    # a single update: the options flow result is then a no-op
                    self.hass.config_entries.async_update_entry(
                        config_entry,
                        data=config | {mlc.CONF_HOST: host, mlc.CONF_TOKEN: token},
                        options=options,
                    )
                return self.async_create_entry(data=options)
            except FlowError as error:
                errors[ERR_BASE] = error.key

        config_schema: "dict[Any, Any]" = {
            vol.Required(mlc.CONF_HOST, default=config.get(mlc.CONF_HOST, "")): str,
            vol.Required(mlc.CONF_TOKEN, default=config.get(mlc.CONF_TOKEN, "")): str,
            vol.Required(
                mlc.CONF_POLLING_PERIOD,
                default=options.get(
                    mlc.CONF_POLLING_PERIOD, mlc.CONF_POLLING_PERIOD_DEFAULT
                ),
            ): vol.All(vol.Coerce(int), vol.Range(min=mlc.CONF_POLLING_PERIOD_MIN)),
            vol.Required(
                mlc.CONF_LOGGING_LEVEL,
                default=options.get(mlc.CONF_LOGGING_LEVEL, 0),
            ): vol.In(mlc.CONF_LOGGING_LEVEL_OPTIONS),
        }
        for key, default in settings.items():
            value = options.get(key, default)
            if isinstance(default, bool):
                config_schema[vol.Optional(key, default=value)] = cv.boolean
            elif isinstance(default, (int, float)):
                config_schema[vol.Optional(key, default=value)] = vol.Coerce(float)
        return self.async_show_form(
            step_id="init", data_schema=vol.Schema(config_schema), errors=errors
        )
