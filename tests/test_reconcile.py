"""Test the reconciliation of raw reads into capabilities"""

import logging

import pytest

from custom_components.miot_lan import const as mlc
from custom_components.miot_lan.devices import get_profile
from custom_components.miot_lan.helpers.capabilities import CapabilityStore
from custom_components.miot_lan.helpers.profile import (
    CapabilityDef,
    ModelProfile,
    Platform,
)
from custom_components.miot_lan.miotclient import (
    PROPERTY_ABSENT,
    PropertyAddress as P,
    PropertyResult,
    ReadResult,
    const as mc,
)
from custom_components.miot_lan.reconcile import ReconciliationEngine

from tests import const as tc, helpers


def _read(**values):
    return ReadResult(
        {
            name: value if isinstance(value, PropertyResult) else PropertyResult(0, value)
            for name, value in values.items()
        }
    )


def _engine(model: str):
    profile = get_profile(model)
    assert profile
    store = CapabilityStore()
    triggers = helpers.TriggerRecorder()
    return ReconciliationEngine(profile, store, triggers), store, triggers


def test_edge_trigger():
    engine, store, triggers = _engine(tc.MODEL_WATERER)

    # first observation: capability set without any trigger
    updates = engine.apply(_read(mode=2))
    assert store.get("mode") == "constant"
    assert [update.key for update in updates] == ["mode"]
    assert not triggers.fired
    # same value: nothing happens
    assert not engine.apply(_read(mode=2))
    assert not triggers.fired
    # transition
    engine.apply(_read(mode=0))
    assert store.get("mode") == "auto"
    assert triggers.fired == [
        (
            "mode_changed",
            {mlc.KEY_NEW_VALUE: "auto", mlc.KEY_PREVIOUS_VALUE: "constant"},
        )
    ]


def test_absent_keeps_last_known():
    engine, store, triggers = _engine(tc.MODEL_WATERER)
    engine.apply(_read(mode=1, onoff=True))
    assert not engine.apply(
        _read(mode=PROPERTY_ABSENT, onoff=PropertyResult(mc.CODE_OK, None))
    )
    assert store.get("mode") == "interval"
    assert store.get("onoff") is True
    assert "status" not in store


def test_unsupported_logged_once(caplog: pytest.LogCaptureFixture):
    caplog.set_level(logging.INFO)
    engine, store, triggers = _engine(tc.MODEL_WATERER)
    for _ in range(3):
        engine.apply(_read(status=PropertyResult(mc.CODE_UNSUPPORTED)))
    records = [
        record for record in caplog.records if "is not supported" in record.message
    ]
    assert len(records) == 1
    assert "status" not in store


def test_conversion_failure(caplog: pytest.LogCaptureFixture):
    profile = ModelProfile(
        name="test",
        models=("test.model.v1",),
        properties={"ratio": P(2, 1)},
        capabilities=(
            CapabilityDef(
                key="ratio", platform=Platform.SENSOR, convert=lambda value: 1 / value
            ),
        ),
    )
    store = CapabilityStore()
    triggers = helpers.TriggerRecorder()
    engine = ReconciliationEngine(profile, store, triggers)  # type: ignore
    assert not engine.apply(_read(ratio=0))
    assert "ratio" not in store
    assert any("ZeroDivisionError" in record.message for record in caplog.records)
    engine.apply(_read(ratio=4))
    assert store.get("ratio") == 0.25


def test_write_hold():
    """A read which started before a write never reverts the written value."""
    engine, store, triggers = _engine(tc.MODEL_WATERER)
    engine.apply(_read(mode=2))

    token = engine.begin_read()
    engine.hold("mode")
    engine.publish("mode", "auto")
    # the (stale) read completes after the write
    engine.apply(_read(mode=2), token)
    assert store.get("mode") == "auto"
    # a fresh read is applied
    engine.apply(_read(mode=1), engine.begin_read())
    assert store.get("mode") == "interval"


def test_settings_values():
    engine, store, triggers = _engine(tc.MODEL_PURIFIER)
    result = _read(light=0, buzzer=True, child_lock=False, power=True)
    engine.apply(result)
    assert engine.settings_values(result) == {
        "led": False,
        "buzzer": True,
        "child_lock": False,
    }
    # mirrored settings never land in the capabilities
    assert "led" not in store
    assert store.get("power") is True


def test_alarms():
    engine, store, triggers = _engine("xiaomi.vacuum.d109gl")
    settings = {mlc.CONF_CONSUMABLE_ALARM_THRESHOLD: 10}

    engine.apply(_read(main_brush_life_level=50))
    engine.apply_alarms(settings)
    assert store.get("main_brush_life_low") is False
    assert not triggers.fired

    engine.apply(_read(main_brush_life_level=5))
    engine.apply_alarms(settings)
    assert store.get("main_brush_life_low") is True
    assert triggers.fired == [
        ("consumable_low", {"value": 5, "threshold": 10, "label": "Main Brush"})
    ]
    # still low: no new trigger
    engine.apply_alarms(settings)
    assert len(triggers.fired) == 1
    # back to normal and low again: rising edge
    engine.apply(_read(main_brush_life_level=80))
    engine.apply_alarms(settings)
    engine.apply(_read(main_brush_life_level=8))
    engine.apply_alarms(settings)
    assert len(triggers.fired) == 2
    assert "side_brush_life_low" not in store


def test_alarm_first_observation():
    """An alarm already active at startup is reported but not triggered."""
    engine, store, triggers = _engine("xiaomi.vacuum.d109gl")
    engine.apply(_read(filter_life_level=3))
    engine.apply_alarms({mlc.CONF_CONSUMABLE_ALARM_THRESHOLD: 10})
    assert store.get("filter_life_low") is True
    assert not triggers.fired
