"""Test the device poll cycle and the entity services against an emulator"""

from datetime import datetime
import typing

from homeassistant import const as hac
from homeassistant.exceptions import HomeAssistantError
import pytest
from pytest_homeassistant_custom_component.common import async_capture_events

from custom_components.miot_lan import const as mlc
from custom_components.miot_lan.connection import ConnectionState
from custom_components.miot_lan.miotclient import (
    ActionAddress,
    PropertyAddress as P,
    const as mc,
)

from tests import const as tc, helpers

if typing.TYPE_CHECKING:
    from homeassistant.core import HomeAssistant


async def _async_call_service(
    hass: "HomeAssistant", domain: str, service: str, entity_id: str, **data
):
    await hass.services.async_call(
        domain,
        service,
        {hac.ATTR_ENTITY_ID: entity_id, **data},
        blocking=True,
    )
    await hass.async_block_till_done()


async def test_polling(hass: "HomeAssistant"):
    async with helpers.DeviceContext(
        hass, tc.MODEL_PURIFIER, tc.PURIFIER_STATE
    ) as context:
        emulator = context.emulator
        polls = emulator.count(mc.METHOD_GET_PROPERTIES)
        assert polls == 1  # 11 properties fit a single chunk

        emulator.state[P(2, 5)] = 3
        emulator.state[P(3, 1)] = 50
        await context.async_poll_single()
        assert emulator.count(mc.METHOD_GET_PROPERTIES) == polls + 1
        assert float(context.get_state("number", "fanlevel").state) == 3
        assert context.get_state("sensor", "humidity").state == "50"

        # a single property going missing doesn't affect the device
        emulator.state.pop(P(3, 1))
        await context.async_poll_single()
        assert context.device.online
        assert context.get_state("sensor", "humidity").state == "50"


async def test_polling_period(hass: "HomeAssistant"):
    async with helpers.DeviceContext(
        hass, tc.MODEL_PURIFIER, tc.PURIFIER_STATE
    ) as context:
        device = context.device
        polls = context.emulator.count(mc.METHOD_GET_PROPERTIES)
        await context.time.async_tick(29)
        assert context.emulator.count(mc.METHOD_GET_PROPERTIES) == polls
        await context.time.async_tick(1)
        assert context.emulator.count(mc.METHOD_GET_PROPERTIES) == polls + 1

        # changing the period reconnects
        hass.config_entries.async_update_entry(
            context.config_entry,
            options=dict(context.config_entry.options)
            | {mlc.CONF_POLLING_PERIOD: 60},
        )
        await hass.async_block_till_done()
        assert device.polling_period == 60
        assert len(context.transport_mock.transports) == 2
        assert device.connection.state is ConnectionState.CONNECTED
        assert device._unsub_polling
        assert device._unsub_polling.when() - hass.loop.time() == pytest.approx(60)


async def test_unavailable(hass: "HomeAssistant"):
    async with helpers.DeviceContext(
        hass, tc.MODEL_PURIFIER, tc.PURIFIER_STATE
    ) as context:
        device = context.device
        context.emulator.online = False
        await context.async_poll_single()
        assert device.connection.state is ConnectionState.FAILED
        assert not device.online
        assert context.get_state("switch", "power").state == hac.STATE_UNAVAILABLE
        assert context.get_state("sensor", "pm25").state == hac.STATE_UNAVAILABLE
        # no polling while disconnected
        assert not device._unsub_polling

        context.emulator.online = True
        await context.async_reconnect()
        assert device.online
        assert context.get_state("switch", "power").state == hac.STATE_ON
        assert context.get_state("sensor", "pm25").state == "12"


async def test_entity_services(hass: "HomeAssistant"):
    async with helpers.DeviceContext(
        hass, tc.MODEL_PURIFIER, tc.PURIFIER_STATE
    ) as context:
        emulator = context.emulator
        events = async_capture_events(hass, mlc.EVENT_MIOT_LAN)

        entity_id = context.get_entity_id("switch", "power")
        await _async_call_service(hass, "switch", "turn_off", entity_id)
        assert emulator.state[P(2, 1)] is False
        assert hass.states.get(entity_id).state == hac.STATE_OFF  # type: ignore

        entity_id = context.get_entity_id("select", "mode")
        await _async_call_service(
            hass, "select", "select_option", entity_id, option="silent"
        )
        assert emulator.state[P(2, 4)] == 1
        assert hass.states.get(entity_id).state == "silent"  # type: ignore
        assert events[-1].data == {
            mlc.CONF_DEVICE_ID: context.config_entry_id,
            "type": "mode_changed",
            mlc.KEY_NEW_VALUE: "silent",
            mlc.KEY_PREVIOUS_VALUE: "auto",
        }
        # the next poll confirms the value: no further trigger
        await context.async_poll_single()
        assert len(events) == 1

        entity_id = context.get_entity_id("number", "fanlevel")
        await _async_call_service(hass, "number", "set_value", entity_id, value=3)
        assert emulator.state[P(2, 5)] == 3
        assert float(hass.states.get(entity_id).state) == 3  # type: ignore

        # the device refuses the write: the state is untouched
        emulator.readonly.add(P(2, 5))
        with pytest.raises(HomeAssistantError):
            await _async_call_service(hass, "number", "set_value", entity_id, value=1)
        assert emulator.state[P(2, 5)] == 3
        assert float(hass.states.get(entity_id).state) == 3  # type: ignore
        assert context.device.online


async def test_action(hass: "HomeAssistant"):
    async with helpers.DeviceContext(
        hass, tc.MODEL_FEEDER, tc.FEEDER_STATE
    ) as context:
        entity_id = context.get_entity_id("button", "serve_food")
        await _async_call_service(hass, "button", "press", entity_id)
        assert context.emulator.actions == [ActionAddress(2, 1)]


async def test_settings_sync(hass: "HomeAssistant"):
    async with helpers.DeviceContext(
        hass, tc.MODEL_PURIFIER, tc.PURIFIER_STATE
    ) as context:
        emulator = context.emulator
        config_entry = context.config_entry
        # device values match the defaults: nothing was mirrored
        assert "buzzer" not in config_entry.options
        assert not emulator.count(mc.METHOD_SET_PROPERTIES)

        # device -> settings: no write back
        emulator.state[P(6, 1)] = False
        emulator.state[P(13, 2)] = 0
        await context.async_poll_single()
        assert config_entry.options["buzzer"] is False
        assert config_entry.options["led"] is False
        assert not emulator.count(mc.METHOD_SET_PROPERTIES)

        # settings -> device
        hass.config_entries.async_update_entry(
            config_entry,
            options=dict(config_entry.options) | {"buzzer": True, "child_lock": True},
        )
        await hass.async_block_till_done()
        assert emulator.state[P(6, 1)] is True
        assert emulator.state[P(8, 1)] is True
        assert emulator.count(mc.METHOD_SET_PROPERTIES) == 2
        # the next poll reads back what we wrote: nothing changes
        await context.async_poll_single()
        assert emulator.count(mc.METHOD_SET_PROPERTIES) == 2


async def test_settings_mirror(hass: "HomeAssistant"):
    """Read only device values are mirrored in the options."""
    async with helpers.DeviceContext(
        hass, tc.MODEL_WATERER, tc.WATERER_STATE
    ) as context:
        options = context.config_entry.options
        assert options["error"] == "No Error"
        assert options["filter_life_remaining"] == "80%"
        assert options["filter_days_left"] == 24
        assert options[mlc.CONF_POLLING_PERIOD] == 30

        context.emulator.state[P(2, 2)] = 3
        await context.async_poll_single()
        assert context.config_entry.options["error"] == "Error code: 3"
        assert not context.emulator.count(mc.METHOD_SET_PROPERTIES)
        assert context.device.connection.state is ConnectionState.CONNECTED


async def test_daily_counter(hass: "HomeAssistant", hass_storage):
    # 12:00 local time (US/Pacific)
    async with helpers.DeviceContext(
        hass, tc.MODEL_FEEDER, tc.FEEDER_STATE, time="2024-01-01 20:00:00+00:00"
    ) as context:
        emulator = context.emulator
        events = async_capture_events(hass, mlc.EVENT_MIOT_LAN)
        assert context.get_state("sensor", "eaten_food_today").state == "12"

        emulator.state[P(2, 22)] = 120
        await context.async_poll_single()
        assert context.get_state("sensor", "eaten_food_today").state == "120"
        assert events[-1].data == helpers.DictMatcher(
            {"type": "eaten_food_changed", "today": 120, "delta": 108}
        )

        # the device resets its counter at midnight
        emulator.state[P(2, 22)] = 5
        await context.time.async_move_to(
            datetime.fromisoformat("2024-01-02 20:00:00+00:00")
        )
        assert context.get_state("sensor", "eaten_food_today").state == "5"
        assert len(events) == 1

        stored = hass_storage[f"{mlc.DOMAIN}.derived.{context.config_entry_id}"]
        counter = stored["data"]["counters"]["eaten_food_today"]
        assert counter["epoch_key"] == "2024-01-02"
        assert counter["accumulated"] == 5


async def test_alarm_and_estimates(hass: "HomeAssistant"):
    async with helpers.DeviceContext(
        hass, tc.MODEL_FEEDER, tc.FEEDER_STATE
    ) as context:
        emulator = context.emulator
        events = async_capture_events(hass, mlc.EVENT_MIOT_LAN)
        assert context.get_state("binary_sensor", "desiccant_low").state == "off"
        state = context.get_state("sensor", "desiccant_time")
        assert float(state.state) == 18
        assert mlc.KEY_ESTIMATE not in state.attributes

        emulator.state[P(7, 1)] = 10
        await context.async_poll_single()
        assert context.get_state("binary_sensor", "desiccant_low").state == "on"
        assert events[-1].data == {
            mlc.CONF_DEVICE_ID: context.config_entry_id,
            "type": "desiccant_low",
            "value": 10,
            "threshold": mlc.CONF_DESICCANT_ALARM_THRESHOLD_DEFAULT,
            "label": "desiccant",
        }

        # the remaining time is now derived from the level
        emulator.state.pop(P(7, 2))
        await context.async_poll_single()
        state = context.get_state("sensor", "desiccant_time")
        assert float(state.state) == 3
        assert state.attributes[mlc.KEY_ESTIMATE] is True


async def test_extended_probe(hass: "HomeAssistant"):
    state = dict(tc.FEEDER_STATE)
    # this firmware reports the status on a different address
    state.pop(P(2, 26))
    state[P(2, 9)] = 2
    async with helpers.DeviceContext(
        hass,
        tc.MODEL_FEEDER,
        state,
        options={mlc.CONF_POLLING_PERIOD: 30, mlc.CONF_EXTENDED_PROBE: True},
    ) as context:
        assert context.get_state("sensor", "status_mode").state == "feeding"
        assert context.device.online

    async with helpers.DeviceContext(
        hass, tc.MODEL_FEEDER, state, host="10.0.0.2"
    ) as context:
        # no probing by default
        assert context.get_state("sensor", "status_mode").state == hac.STATE_UNKNOWN
        assert context.emulator.count(mc.METHOD_GET_PROPERTIES) == 1
