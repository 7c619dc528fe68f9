"""Humidifiers (leshow.humidifier.jsq1, xiaomi.humidifier.3lite)"""

from ..helpers.profile import CapabilityDef, ModelProfile, Platform
from ..miotclient import PropertyAddress as P

HUMIDIFIER_MODE = {
    0: "constant_humidity",
    1: "sleep",
    2: "strong",
}
FAULT_TANK_EMPTY = 5


def _profile(name: str, models: tuple[str, ...], target, filter_life, brightness):
    return ModelProfile(
        name=name,
        models=models,
        properties={
            "power": P(2, 1),
            "fault": P(2, 2),
            "mode": P(2, 3),
            "target_humidity": target,
            "relative_humidity": P(3, 1),
            "filter_life_level": filter_life,
            "screen_brightness": brightness,
        },
        capabilities=(
            CapabilityDef(key="power", platform=Platform.SWITCH, write=P(2, 1)),
            CapabilityDef(
                key="fault",
                platform=Platform.SENSOR,
                trigger="fault_changed",
                diagnostic=True,
            ),
            CapabilityDef(
                key="tank_empty",
                platform=Platform.BINARY_SENSOR,
                source="fault",
                convert=lambda value: value == FAULT_TANK_EMPTY,
                device_class="problem",
            ),
            CapabilityDef(
                key="mode",
                platform=Platform.SELECT,
                options=HUMIDIFIER_MODE,
                write=P(2, 3),
                trigger="mode_changed",
            ),
            CapabilityDef(
                key="target_humidity",
                platform=Platform.NUMBER,
                write=target,
                minimum=30,
                maximum=80,
                step=1,
                device_class="humidity",
                unit="%",
            ),
            CapabilityDef(
                key="humidity",
                platform=Platform.SENSOR,
                source="relative_humidity",
                device_class="humidity",
                unit="%",
            ),
            CapabilityDef(
                key="filter_life",
                platform=Platform.SENSOR,
                source="filter_life_level",
                unit="%",
                diagnostic=True,
            ),
            CapabilityDef(
                key="screen_brightness",
                platform=Platform.NUMBER,
                write=brightness,
                minimum=0,
                maximum=2,
                step=1,
                diagnostic=True,
            ),
        ),
    )


PROFILES = (
    _profile(
        "humidifier_jsq1",
        ("leshow.humidifier.jsq1",),
        target=P(2, 6),
        filter_life=P(8, 1),
        brightness=P(8, 6),
    ),
    _profile(
        "humidifier_3lite",
        ("xiaomi.humidifier.3lite",),
        target=P(2, 5),
        filter_life=P(4, 1),
        brightness=P(6, 2),
    ),
)
