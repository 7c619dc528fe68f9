"""Air purifiers (zhimi.airp.*)"""

from ..helpers.profile import CapabilityDef, ModelProfile, Platform
from ..miotclient import PropertyAddress as P

PURIFIER_MODE = {
    0: "auto",
    1: "silent",
    2: "favorite",
    3: "idle",
}
LIGHT_MIN = 0
LIGHT_MAX = 2

PROFILE_MEB1 = ModelProfile(
    name="airpurifier",
    models=("zhimi.airp.meb1",),
    properties={
        "power": P(2, 1),
        "mode": P(2, 4),
        "fanlevel": P(2, 5),
        "humidity": P(3, 1),
        "aqi": P(3, 4),
        "temperature": P(3, 7),
        "buzzer": P(6, 1),
        "child_lock": P(8, 1),
        "light": P(13, 2),
        "filter_life_remaining": P(4, 1),
        "filter_hours_used": P(4, 3),
    },
    capabilities=(
        CapabilityDef(key="power", platform=Platform.SWITCH, write=P(2, 1)),
        CapabilityDef(
            key="mode",
            platform=Platform.SELECT,
            options=PURIFIER_MODE,
            write=P(2, 4),
            trigger="mode_changed",
        ),
        CapabilityDef(
            key="fanlevel",
            platform=Platform.NUMBER,
            write=P(2, 5),
            minimum=1,
            maximum=3,
            step=1,
        ),
        CapabilityDef(
            key="humidity", platform=Platform.SENSOR, device_class="humidity", unit="%"
        ),
        CapabilityDef(
            key="pm25",
            platform=Platform.SENSOR,
            source="aqi",
            device_class="pm25",
            unit="µg/m³",
        ),
        CapabilityDef(
            key="temperature",
            platform=Platform.SENSOR,
            device_class="temperature",
            unit="°C",
        ),
        CapabilityDef(
            key="filter_life_remaining",
            platform=Platform.SENSOR,
            unit="%",
            diagnostic=True,
        ),
        CapabilityDef(
            key="filter_hours_used",
            platform=Platform.SENSOR,
            device_class="duration",
            unit="h",
            diagnostic=True,
        ),
        # two-way settings
        CapabilityDef(
            key="led",
            platform=Platform.SETTING,
            source="light",
            write=P(13, 2),
            convert=lambda value: value > LIGHT_MIN,
            invert=lambda value: LIGHT_MAX if value else LIGHT_MIN,
        ),
        CapabilityDef(key="buzzer", platform=Platform.SETTING, write=P(6, 1)),
        CapabilityDef(key="child_lock", platform=Platform.SETTING, write=P(8, 1)),
    ),
    settings={
        "led": True,
        "buzzer": True,
        "child_lock": False,
    },
)

PROFILES = (PROFILE_MEB1,)
