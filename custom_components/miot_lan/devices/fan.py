"""Standing fans (dmaker.fan.*, xiaomi.fan.p45)"""

from ..helpers.profile import CapabilityDef, ModelProfile, Platform
from ..miotclient import PropertyAddress as P

MODE_STRAIGHT_NATURAL = {
    0: "straight",
    1: "natural",
}
MODE_STRAIGHT_NATURAL_SLEEP = MODE_STRAIGHT_NATURAL | {2: "sleep"}
MODE_P44 = MODE_STRAIGHT_NATURAL_SLEEP | {3: "cold_air"}
MODE_1C = {
    0: "straight",
    1: "sleep",
}


def _profile(
    name: str,
    models: tuple[str, ...],
    *,
    modes,
    mode,
    oscillating,
    child_lock,
    fan_level=P(2, 2),
    angle=None,
    speed=None,
    light=None,
    buzzer=None,
):
    """
    Models lacking the angle/speed/light/buzzer properties just don't
    carry the corresponding capability.
    """
    properties = {
        "power": P(2, 1),
        "fan_level": fan_level,
        "mode": mode,
        "oscillating_mode": oscillating,
    }
    capabilities = [
        CapabilityDef(key="power", platform=Platform.SWITCH, write=P(2, 1)),
        CapabilityDef(
            key="fan_level",
            platform=Platform.NUMBER,
            write=fan_level,
            minimum=1,
            maximum=4,
            step=1,
        ),
        CapabilityDef(
            key="mode",
            platform=Platform.SELECT,
            options=modes,
            write=mode,
            trigger="mode_changed",
        ),
        CapabilityDef(
            key="oscillating",
            platform=Platform.SWITCH,
            source="oscillating_mode",
            write=oscillating,
        ),
    ]
    if angle:
        properties["oscillating_mode_angle"] = angle
        capabilities.append(
            CapabilityDef(
                key="oscillating_angle",
                platform=Platform.NUMBER,
                source="oscillating_mode_angle",
                write=angle,
                minimum=30,
                maximum=150,
                unit="°",
            )
        )
    if speed:
        properties["fan_speed"] = speed
        capabilities.append(
            CapabilityDef(
                key="fan_speed",
                platform=Platform.NUMBER,
                write=speed,
                minimum=1,
                maximum=100,
                step=1,
                unit="%",
            )
        )
    settings = {}
    if light:
        properties["light"] = light
        capabilities.append(
            CapabilityDef(key="led", platform=Platform.SETTING, source="light", write=light)
        )
        settings["led"] = True
    if buzzer:
        properties["buzzer"] = buzzer
        capabilities.append(
            CapabilityDef(key="buzzer", platform=Platform.SETTING, write=buzzer)
        )
        settings["buzzer"] = True
    properties["child_lock"] = child_lock
    capabilities.append(
        CapabilityDef(key="child_lock", platform=Platform.SETTING, write=child_lock)
    )
    settings["child_lock"] = False
    return ModelProfile(
        name=name,
        models=models,
        properties=properties,
        capabilities=tuple(capabilities),
        settings=settings,
    )


PROFILES = (
    _profile(
        "fan_p9",
        ("dmaker.fan.p9",),
        modes=MODE_STRAIGHT_NATURAL,
        mode=P(2, 4),
        oscillating=P(2, 5),
        angle=P(2, 6),
        speed=P(2, 11),
        light=P(2, 9),
        buzzer=P(2, 7),
        child_lock=P(3, 1),
    ),
    _profile(
        "fan_p10",
        ("dmaker.fan.p10", "dmaker.fan.p18"),
        modes=MODE_STRAIGHT_NATURAL_SLEEP,
        mode=P(2, 3),
        oscillating=P(2, 4),
        angle=P(2, 5),
        speed=P(2, 10),
        light=P(2, 7),
        buzzer=P(2, 8),
        child_lock=P(3, 1),
    ),
    _profile(
        "fan_p11",
        ("dmaker.fan.p11", "dmaker.fan.p15", "dmaker.fan.p33"),
        modes=MODE_STRAIGHT_NATURAL_SLEEP,
        mode=P(2, 3),
        oscillating=P(2, 4),
        angle=P(2, 5),
        speed=P(2, 6),
        light=P(4, 1),
        buzzer=P(5, 1),
        child_lock=P(7, 1),
    ),
    _profile(
        "fan_p39",
        ("dmaker.fan.p39",),
        modes=MODE_STRAIGHT_NATURAL_SLEEP,
        mode=P(2, 4),
        oscillating=P(2, 5),
        angle=P(2, 6),
        speed=P(2, 11),
        child_lock=P(3, 1),
    ),
    _profile(
        "fan_p44",
        ("dmaker.fan.p44",),
        modes=MODE_P44,
        mode=P(2, 3),
        oscillating=P(2, 4),
        light=P(4, 1),
        buzzer=P(5, 1),
        child_lock=P(7, 1),
    ),
    _profile(
        "fan_1c",
        ("dmaker.fan.1c",),
        modes=MODE_1C,
        mode=P(2, 7),
        oscillating=P(2, 3),
        light=P(2, 12),
        buzzer=P(2, 11),
        child_lock=P(3, 1),
    ),
    _profile(
        "fan_p45",
        ("xiaomi.fan.p45",),
        modes=MODE_STRAIGHT_NATURAL_SLEEP,
        fan_level=P(2, 4),
        mode=P(2, 3),
        oscillating=P(2, 6),
        angle=P(2, 7),
        speed=P(2, 5),
        light=P(5, 1),
        buzzer=P(7, 1),
        child_lock=P(11, 1),
    ),
)
