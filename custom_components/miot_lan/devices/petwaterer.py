"""Pet water fountains (xiaomi.pet_waterer.*)"""

from ..helpers.profile import (
    CapabilityDef,
    CrossDerivationDef,
    ModelProfile,
    Platform,
)
from ..miotclient import PropertyAddress as P

FOUNTAIN_MODE = {
    0: "auto",
    1: "interval",
    2: "constant",
}
FOUNTAIN_STATUS = {
    1: "waterless",
    2: "watering",
}


def fault_text(value):
    return "No Error" if value == 0 else f"Error code: {value}"


PROFILE_IV02 = ModelProfile(
    name="petwaterer",
    models=("xiaomi.pet_waterer.iv02",),
    properties={
        "onoff": P(2, 1),
        "fault": P(2, 2),
        "status": P(2, 3),
        "mode": P(2, 4),
        "out_water_interval_15": P(2, 7),
        "water_shortage_status": P(2, 10),
        "out_water_interval_5": P(2, 11),
        "filter_life_level": P(3, 1),
        "filter_left_time": P(3, 2),
    },
    capabilities=(
        CapabilityDef(key="onoff", platform=Platform.SWITCH, write=P(2, 1)),
        CapabilityDef(
            key="status",
            platform=Platform.SENSOR,
            options=FOUNTAIN_STATUS,
            device_class="enum",
        ),
        CapabilityDef(
            key="mode",
            platform=Platform.SELECT,
            options=FOUNTAIN_MODE,
            write=P(2, 4),
            trigger="mode_changed",
        ),
        CapabilityDef(
            key="water_shortage",
            platform=Platform.BINARY_SENSOR,
            source="water_shortage_status",
            device_class="problem",
        ),
        CapabilityDef(
            key="out_water_interval",
            platform=Platform.SENSOR,
            source="out_water_interval_5",
            unit="min",
            diagnostic=True,
        ),
        # device -> settings mirrors (read only)
        CapabilityDef(
            key="error",
            platform=Platform.SETTING,
            source="fault",
            convert=fault_text,
        ),
        CapabilityDef(
            key="filter_life_remaining",
            platform=Platform.SETTING,
            source="filter_life_level",
            convert=lambda value: f"{value}%",
        ),
        CapabilityDef(
            key="filter_days_left",
            platform=Platform.SETTING,
            source="filter_left_time",
        ),
    ),
    crossings=(
        CrossDerivationDef(
            percent="filter_life",
            days="filter_days_left",
            capacity=30,
            percent_source="filter_life_level",
            days_source="filter_left_time",
        ),
    ),
)

PROFILES = (PROFILE_IV02,)
