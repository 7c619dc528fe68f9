"""
Pet feeders (mmgg.feeder.*, xiaomi.feeder.*)
The iv2001 telemetry addresses are not documented in the public spec and
could differ among firmwares: the extended probe helps confirming them.
"""

from .. import const as mlc
from ..helpers.profile import (
    AlarmDef,
    CapabilityDef,
    CrossDerivationDef,
    DailyCounterDef,
    ModelProfile,
    Platform,
)
from ..miotclient import ActionAddress, PropertyAddress as P

FEEDER_STATUS = {
    0: "unknown",
    1: "idle",
    2: "feeding",
    3: "paused",
    4: "fault",
}
FOOD_LEVEL = {
    0: "normal",
    1: "low",
    2: "empty",
}

BASE_PROPERTIES = {
    "error": P(2, 1),
    "foodlevel": P(2, 6),
}
BASE_CAPABILITIES = (
    CapabilityDef(
        key="fault",
        platform=Platform.SENSOR,
        source="error",
        trigger="fault_changed",
        diagnostic=True,
    ),
    CapabilityDef(
        key="foodlevel",
        platform=Platform.SENSOR,
        options=FOOD_LEVEL,
        device_class="enum",
    ),
    CapabilityDef(
        key="serve_food",
        platform=Platform.BUTTON,
        source=None,
        write=ActionAddress(2, 1),
    ),
)
BASE_SETTINGS = {
    mlc.CONF_DESICCANT_ALARM_THRESHOLD: mlc.CONF_DESICCANT_ALARM_THRESHOLD_DEFAULT,
    mlc.CONF_EXTENDED_PROBE: False,
    mlc.CONF_EXPECTED_DOSE: mlc.CONF_EXPECTED_DOSE_DEFAULT,
}


def _sweep(siids, piids):
    return tuple(P(siid, piid) for siid in siids for piid in piids)


PROFILE_DEFAULT = ModelProfile(
    name="petfeeder",
    models=("mmgg.feeder.fi1", "mmgg.feeder.inland", "mmgg.feeder.spec"),
    properties=BASE_PROPERTIES,
    capabilities=BASE_CAPABILITIES,
    settings=BASE_SETTINGS,
)

PROFILE_PI2001 = ModelProfile(
    name="petfeeder_pi2001",
    models=("xiaomi.feeder.pi2001",),
    properties=BASE_PROPERTIES | {"battery": P(4, 4)},
    capabilities=BASE_CAPABILITIES
    + (
        CapabilityDef(
            key="battery", platform=Platform.SENSOR, device_class="battery", unit="%"
        ),
    ),
    settings=BASE_SETTINGS,
)

PROFILE_IV2001 = ModelProfile(
    name="petfeeder_iv2001",
    models=("xiaomi.feeder.iv2001",),
    properties=BASE_PROPERTIES
    | {
        "eaten_food_today": P(2, 22),
        "eaten_food_total": P(2, 23),
        "food_out_status": P(2, 24),
        "heap_status": P(2, 25),
        "status_mode": P(2, 26),
        "dispense_progress": P(2, 27),
        "bowl_weight": P(2, 28),
        "desiccant_level": P(7, 1),
        "desiccant_time": P(7, 2),
    },
    capabilities=BASE_CAPABILITIES
    + (
        CapabilityDef(
            key="eaten_food_total",
            platform=Platform.SENSOR,
            device_class="weight",
            unit="g",
        ),
        CapabilityDef(
            key="food_out_status",
            platform=Platform.SENSOR,
            options={0: "ok", 1: "food_out"},
            device_class="enum",
        ),
        CapabilityDef(
            key="heap_status",
            platform=Platform.SENSOR,
            options={0: "ok", 1: "heap_detected"},
            device_class="enum",
        ),
        CapabilityDef(
            key="status_mode",
            platform=Platform.SENSOR,
            options=FEEDER_STATUS,
            trigger="feeder_status_changed",
            device_class="enum",
        ),
    ),
    counters=(
        DailyCounterDef(
            key="eaten_food_today",
            today="eaten_food_today",
            total="eaten_food_total",
            progress="dispense_progress",
            proxy="bowl_weight",
            expected_dose=mlc.CONF_EXPECTED_DOSE,
            trigger="eaten_food_changed",
            unit="g",
        ),
    ),
    crossings=(
        CrossDerivationDef(
            percent="desiccant_level",
            days="desiccant_time",
            capacity=30,
            hours=True,
        ),
    ),
    alarms=(
        AlarmDef(
            key="desiccant_low",
            source="desiccant_level",
            threshold=mlc.CONF_DESICCANT_ALARM_THRESHOLD,
            trigger="desiccant_low",
            label="desiccant",
        ),
    ),
    settings=BASE_SETTINGS,
    probe={
        "eaten_food_today": (P(2, 22), P(2, 23)),
        "eaten_food_total": (P(2, 23), P(2, 22)),
        "food_out_status": _sweep((2,), range(20, 31)),
        "heap_status": _sweep((2,), range(20, 31)),
        "status_mode": (P(2, 4), P(2, 5), P(2, 9), P(2, 10))
        + _sweep((2,), range(20, 31)),
        "desiccant_level": _sweep(range(6, 10), range(1, 5)),
        "desiccant_time": _sweep(range(6, 10), range(1, 5)),
    },
)

PROFILES = (PROFILE_DEFAULT, PROFILE_PI2001, PROFILE_IV2001)
