"""Test the per-model address tables and the capability conversions"""

import pytest

from custom_components.miot_lan.devices import MODEL_PROFILES, get_profile
from custom_components.miot_lan.helpers.profile import CapabilityDef, Platform
from custom_components.miot_lan.miotclient import (
    ActionAddress,
    InvalidValueError,
    PropertyAddress as P,
)

from tests import const as tc


def test_profile_lookup():
    assert get_profile("unknown.model.x1") is None
    profile = get_profile(tc.MODEL_FEEDER)
    assert profile and profile.name == "petfeeder_iv2001"
    # models sharing a table resolve to the very same profile
    assert get_profile("dmaker.fan.p11") is get_profile("dmaker.fan.p33")
    assert get_profile("mijia.vacuum.b108za") is get_profile("mijia.vacuum.b108zb")
    assert get_profile("ijai.vacuum.v19") is get_profile("ijai.vacuum.v1")
    assert get_profile("mijia.vacuum.v3") is not get_profile("mijia.vacuum.v1")


def test_profile_variants():
    # ijai models have no fan speed
    ijai = get_profile("ijai.vacuum.v10")
    assert ijai and ijai.get_capability("fan_speed") is None
    mijia = get_profile("mijia.vacuum.b108za")
    assert mijia
    fan_speed = mijia.get_capability("fan_speed")
    assert fan_speed and fan_speed.write == P(2, 8)
    assert mijia.get_capability("home").write == ActionAddress(6, 15)  # type: ignore
    status = mijia.get_capability("status")
    assert status and status.to_capability(8) == "docked"
    assert status.to_capability(42) == "unknown"
    fault = mijia.get_capability("fault")
    assert fault and fault.to_capability(0) == "Everything-is-ok"

    # fans lacking angle/speed/light/buzzer
    p44 = get_profile("dmaker.fan.p44")
    assert p44
    assert p44.get_capability("oscillating_angle") is None
    assert p44.get_capability("fan_speed") is None
    mode = p44.get_capability("mode")
    assert mode and mode.to_device("cold_air") == 3
    p39 = get_profile("dmaker.fan.p39")
    assert p39 and set(p39.settings) == {"child_lock"}
    p45 = get_profile("xiaomi.fan.p45")
    assert p45
    fan_level = p45.get_capability("fan_level")
    assert fan_level and fan_level.write == P(2, 4)


@pytest.mark.parametrize("model", sorted(MODEL_PROFILES.keys()))
def test_profile_consistency(model: str):
    """Every data source referenced by a profile must be in its read set."""
    profile = MODEL_PROFILES[model]
    properties = profile.properties
    keys = set()
    for capability in profile.capabilities:
        assert capability.key not in keys, f"duplicated capability {capability.key}"
        keys.add(capability.key)
        if source := capability.source_name:
            assert source in properties, f"{capability.key}: missing {source}"
        if capability.platform is Platform.BUTTON:
            assert isinstance(capability.write, ActionAddress)
    for counter in profile.counters:
        for source in (counter.today, counter.total, counter.progress, counter.proxy):
            assert source is None or source in properties
    for crossing in profile.crossings:
        assert (crossing.percent_source or crossing.percent) in properties
        assert (crossing.days_source or crossing.days) in properties
    derived = {crossing.percent for crossing in profile.crossings}
    for alarm in profile.alarms:
        assert alarm.source in keys | derived
        assert alarm.threshold in profile.settings


def test_capability_options():
    profile = get_profile(tc.MODEL_WATERER)
    assert profile
    mode = profile.get_capability("mode")
    assert mode
    assert mode.to_capability(2) == "constant"
    # unknown device values are rendered 'as is'
    assert mode.to_capability(7) == "7"
    assert mode.to_device("interval") == 1
    with pytest.raises(InvalidValueError):
        mode.to_device("turbo")


def test_capability_switch():
    capability = CapabilityDef(key="power", platform=Platform.SWITCH, write=P(2, 1))
    assert capability.to_capability(1) is True
    assert capability.to_device(False) is False
    with pytest.raises(InvalidValueError):
        capability.to_device("on")


def test_capability_number():
    profile = get_profile(tc.MODEL_HUMIDIFIER)
    assert profile
    target = profile.get_capability("target_humidity")
    assert target
    assert target.to_device(55) == 55
    assert target.to_device(55.0) == 55
    with pytest.raises(InvalidValueError):
        target.to_device(85)
    with pytest.raises(InvalidValueError):
        target.to_device("high")


def test_capability_step():
    capability = CapabilityDef(
        key="level", platform=Platform.NUMBER, write=P(2, 2), minimum=0, maximum=10, step=2
    )
    assert capability.to_device(4) == 4
    with pytest.raises(InvalidValueError):
        capability.to_device(3)


def test_capability_scale():
    profile = get_profile("xiaomi.vacuum.d109gl")
    assert profile
    clean_time = profile.get_capability("clean_time")
    assert clean_time
    assert clean_time.to_capability(3600) == 60
    status = profile.get_capability("status")
    assert status
    assert status.to_capability(4) == "cleaning"
    assert status.to_capability(99) == "unknown"


def test_capability_convert_invert():
    profile = get_profile(tc.MODEL_PURIFIER)
    assert profile
    led = profile.get_capability("led")
    assert led and led.is_setting
    assert led.to_capability(2) is True
    assert led.to_capability(0) is False
    assert led.to_device(True) == 2
    assert led.to_device(False) == 0
