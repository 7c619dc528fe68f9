"""Constants for the MIoT local LAN integration."""

import logging
from typing import Final, NotRequired, TypedDict

from homeassistant import const as hac

DOMAIN: Final = "miot_lan"
EVENT_MIOT_LAN: Final = f"{DOMAIN}_event"
"""Bus event carrying the device triggers (mode changes, alarms, ...)"""

#########################
# common ConfigEntry keys
#########################
# sets the logging level x ConfigEntry
CONF_LOGGING_LEVEL: Final = "logging_level"
CONF_LOGGING_VERBOSE: Final = 5
CONF_LOGGING_DEBUG: Final = logging.DEBUG
CONF_LOGGING_INFO: Final = logging.INFO
CONF_LOGGING_WARNING: Final = logging.WARNING
CONF_LOGGING_CRITICAL: Final = logging.CRITICAL
CONF_LOGGING_LEVEL_OPTIONS: Final = {
    logging.NOTSET: "default",
    CONF_LOGGING_CRITICAL: "critical",
    CONF_LOGGING_WARNING: "warning",
    CONF_LOGGING_INFO: "info",
    CONF_LOGGING_DEBUG: "debug",
    CONF_LOGGING_VERBOSE: "verbose",
}

###########################
# MiotDevice ConfigEntry keys
###########################
CONF_DEVICE_ID: Final = hac.CONF_DEVICE_ID
CONF_HOST: Final = hac.CONF_HOST
CONF_TOKEN: Final = hac.CONF_TOKEN
CONF_MODEL: Final = hac.CONF_MODEL
# general device state polling
CONF_POLLING_PERIOD: Final = "polling_period"
CONF_POLLING_PERIOD_MIN: Final = 5
CONF_POLLING_PERIOD_DEFAULT: Final = 30
# changing any of these rebuilds the transport
CONF_CONNECTION_KEYS: Final = (CONF_HOST, CONF_TOKEN, CONF_POLLING_PERIOD)


class DeviceConfigType(TypedDict):
    """Device config_entry data keys"""

    host: str
    """device ip address"""
    token: str
    """32 hex chars device token"""
    model: str
    """model string as reported by the device (i.e. 'xiaomi.feeder.iv2001')"""


class DeviceOptionsType(TypedDict, total=False):
    """Device config_entry options keys. Profile settings are added dynamically."""

    polling_period: NotRequired[int]
    logging_level: NotRequired[int]


##############################
# Profile (settings) keys
##############################
CONF_DESICCANT_ALARM_THRESHOLD: Final = "desiccant_alarm_threshold"
CONF_DESICCANT_ALARM_THRESHOLD_DEFAULT: Final = 20
CONF_CONSUMABLE_ALARM_THRESHOLD: Final = "alarm_threshold"
CONF_CONSUMABLE_ALARM_THRESHOLD_DEFAULT: Final = 10
CONF_EXTENDED_PROBE: Final = "extended_probe"
CONF_EXPECTED_DOSE: Final = "expected_dose"
CONF_EXPECTED_DOSE_DEFAULT: Final = 10

#####################################
# tunables (not exposed through config)
#####################################
PARAM_CHUNK_SIZE: Final = 14
"""max number of properties in a single get_properties call"""
PARAM_CALL_TIMEOUT: Final = 5
"""timeout (seconds) for any single remote call independent of transport retries"""
PARAM_CALL_RETRIES: Final = 1
"""retries delegated to the transport layer"""
PARAM_RECONNECT_DELAY: Final = 60
"""delay (seconds) before trying to reconnect after a failure"""
PARAM_DISPENSE_COMPLETE: Final = 99.5
"""dispense progress (%) at or above which a dispense cycle is considered done"""
PARAM_HOURS_THRESHOLD: Final = 1000
"""time-remaining readings above this are assumed to be hours instead of days"""
PARAM_ERROR_LOG_TIMEOUT: Final = 60 * 60 * 4
"""repeated connection errors are logged at most once per timeout"""

# capability/trigger keys shared among the derived state and the entities
KEY_NEW_VALUE: Final = "new_value"
KEY_PREVIOUS_VALUE: Final = "previous_value"
KEY_ESTIMATE: Final = "estimate"
