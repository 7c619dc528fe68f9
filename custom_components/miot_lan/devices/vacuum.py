"""Robot vacuums (xiaomi.vacuum.d109gl, mijia.vacuum.*, ijai.vacuum.*)"""

from .. import const as mlc
from ..helpers.profile import (
    AlarmDef,
    CapabilityDef,
    CrossDerivationDef,
    ModelProfile,
    Platform,
)
from ..miotclient import ActionAddress, PropertyAddress as P

ERROR_CODES = {
    0: "OK",
    1: "Left-wheel-error",
    2: "Right-wheel-error",
    3: "Cliff-error",
    4: "Low-battery-error",
    5: "Bump-error",
    6: "Main-brush-error",
    7: "Side-brush-error",
    8: "Fan-motor-error",
    9: "Dustbin-error",
    10: "Charging-error",
    11: "No-water-error",
    12: "Pick-up-error",
    100008: "OK / Busy",
    210030: "Water tank empty & paused",
}
STATUS_GROUPS = {
    "cleaning": (4, 7, 8, 10, 12, 16, 17, 19),
    "docked": (1, 9, 11, 14),
    "charging": (2, 6, 13, 21),
    "stopped": (3, 5, 18, 20),
    "stopped_error": (15,),
}
STATUS_MAP = {
    status: group for group, statuses in STATUS_GROUPS.items() for status in statuses
}
SWEEP_MOP_TYPE = {
    0: "sweep_and_mop",
    1: "sweep",
    2: "mop",
}
CLEANING_MODE = {
    1: "quiet",
    2: "standard",
    3: "medium",
    4: "turbo",
}
WATER_LEVEL = {
    0: "off",
    1: "low",
    2: "medium",
    3: "high",
}
PATH_MODE = {
    1: "fast",
    2: "standard",
    3: "deep",
}


def _consumable_alarm(key: str, label: str):
    return AlarmDef(
        key=f"{key}_low",
        source=key,
        threshold=mlc.CONF_CONSUMABLE_ALARM_THRESHOLD,
        trigger="consumable_low",
        label=label,
    )


PROFILE_D109GL = ModelProfile(
    name="vacuum",
    models=("xiaomi.vacuum.d109gl",),
    properties={
        "device_status": P(2, 2),
        "device_fault": P(2, 3),
        "mode": P(2, 4),
        "battery": P(3, 1),
        "main_brush_life_level": P(12, 1),
        "side_brush_life_level": P(13, 1),
        "filter_life_level": P(14, 1),
        "total_clean_time": P(2, 7),
        "total_clean_count": P(2, 8),
        "total_clean_area": P(2, 6),
        "cleaning_mode": P(2, 9),
        "water_level": P(2, 10),
        "path_mode": P(2, 74),
        "detergent_left_level": P(18, 1),
        "detergent_self_delivery": P(18, 2),
        "detergent_self_delivery_lvl": P(18, 3),
        "dust_bag_life_level": P(19, 1),
        "dust_bag_left_time": P(19, 2),
    },
    capabilities=(
        CapabilityDef(
            key="status",
            platform=Platform.SENSOR,
            source="device_status",
            convert=lambda value: STATUS_MAP.get(value, "unknown"),
            trigger="status_changed",
        ),
        CapabilityDef(
            key="fault",
            platform=Platform.SENSOR,
            source="device_fault",
            convert=lambda value: ERROR_CODES.get(value, f"Error code: {value}"),
            trigger="fault_changed",
        ),
        CapabilityDef(
            key="mop_mode",
            platform=Platform.SELECT,
            source="mode",
            options=SWEEP_MOP_TYPE,
            write=P(2, 4),
        ),
        CapabilityDef(
            key="battery", platform=Platform.SENSOR, device_class="battery", unit="%"
        ),
        CapabilityDef(
            key="main_brush_life",
            platform=Platform.SENSOR,
            source="main_brush_life_level",
            unit="%",
            diagnostic=True,
        ),
        CapabilityDef(
            key="side_brush_life",
            platform=Platform.SENSOR,
            source="side_brush_life_level",
            unit="%",
            diagnostic=True,
        ),
        CapabilityDef(
            key="filter_life",
            platform=Platform.SENSOR,
            source="filter_life_level",
            unit="%",
            diagnostic=True,
        ),
        CapabilityDef(
            key="clean_time",
            platform=Platform.SENSOR,
            source="total_clean_time",
            scale=1 / 60,
            device_class="duration",
            unit="min",
        ),
        CapabilityDef(
            key="clean_count", platform=Platform.SENSOR, source="total_clean_count"
        ),
        CapabilityDef(
            key="clean_area",
            platform=Platform.SENSOR,
            source="total_clean_area",
            device_class="area",
            unit="m²",
        ),
        CapabilityDef(
            key="cleaning_mode",
            platform=Platform.SELECT,
            options=CLEANING_MODE,
            write=P(2, 9),
        ),
        CapabilityDef(
            key="water_level",
            platform=Platform.SELECT,
            options=WATER_LEVEL,
            write=P(2, 10),
        ),
        CapabilityDef(
            key="path_mode",
            platform=Platform.SELECT,
            options=PATH_MODE,
            write=P(2, 74),
        ),
        CapabilityDef(
            key="detergent_left",
            platform=Platform.SENSOR,
            source="detergent_left_level",
            unit="%",
            diagnostic=True,
        ),
        CapabilityDef(
            key="detergent_self_delivery",
            platform=Platform.BINARY_SENSOR,
            diagnostic=True,
        ),
        CapabilityDef(
            key="start_clean",
            platform=Platform.BUTTON,
            source=None,
            write=ActionAddress(2, 1),
        ),
        CapabilityDef(
            key="stop_clean",
            platform=Platform.BUTTON,
            source=None,
            write=ActionAddress(2, 2),
        ),
        CapabilityDef(
            key="find", platform=Platform.BUTTON, source=None, write=ActionAddress(6, 1)
        ),
        CapabilityDef(
            key="home", platform=Platform.BUTTON, source=None, write=ActionAddress(3, 1)
        ),
    ),
    crossings=(
        CrossDerivationDef(
            percent="dust_bag_life",
            days="dust_bag_days_left",
            capacity=60,
            percent_source="dust_bag_life_level",
            days_source="dust_bag_left_time",
            hours=True,
        ),
    ),
    alarms=(
        _consumable_alarm("main_brush_life", "Main Brush"),
        _consumable_alarm("side_brush_life", "Side Brush"),
        _consumable_alarm("filter_life", "Filter"),
    ),
    settings={
        mlc.CONF_CONSUMABLE_ALARM_THRESHOLD: mlc.CONF_CONSUMABLE_ALARM_THRESHOLD_DEFAULT,
    },
)

MIJIA_ERROR_CODES = {
    0: "Everything-is-ok",
    1: "Left-wheel-error",
    2: "Right-wheel-error",
    3: "Cliff-error",
    4: "Low-battery-error",
    5: "Bump-error",
    6: "Main-brush-error",
    7: "Side-brush-error",
    8: "Fan-motor-error",
    9: "Dustbin-error",
    10: "Charging-error",
    11: "No-water-error",
    12: "Pick-up-error",
}
MIJIA_FAN_SPEED = {
    0: "silent",
    1: "standard",
    2: "medium",
    3: "turbo",
}


def _mijia_profile(
    name: str,
    models: tuple[str, ...],
    *,
    properties: "dict[str, P]",
    status_groups: "dict[str, tuple[int, ...]]",
    find: ActionAddress,
    home: ActionAddress,
):
    """
    The mijia/ijai families share the same capability set: only the addresses,
    the status enumeration and the actions differ. Models without a 'fan_speed'
    property (ijai) don't expose the select.
    """
    status_map = {
        status: group for group, statuses in status_groups.items() for status in statuses
    }
    capabilities = [
        CapabilityDef(
            key="status",
            platform=Platform.SENSOR,
            source="device_status",
            convert=lambda value: status_map.get(value, "unknown"),
            trigger="status_changed",
        ),
        CapabilityDef(
            key="fault",
            platform=Platform.SENSOR,
            source="device_fault",
            convert=lambda value: MIJIA_ERROR_CODES.get(value, f"Error code: {value}"),
            trigger="fault_changed",
        ),
        CapabilityDef(
            key="battery", platform=Platform.SENSOR, device_class="battery", unit="%"
        ),
    ]
    if "fan_speed" in properties:
        capabilities.append(
            CapabilityDef(
                key="fan_speed",
                platform=Platform.SELECT,
                options=MIJIA_FAN_SPEED,
                write=properties["fan_speed"],
            )
        )
    capabilities += (
        CapabilityDef(
            key="main_brush_life",
            platform=Platform.SENSOR,
            source="main_brush_life_level",
            unit="%",
            diagnostic=True,
        ),
        CapabilityDef(
            key="side_brush_life",
            platform=Platform.SENSOR,
            source="side_brush_life_level",
            unit="%",
            diagnostic=True,
        ),
        CapabilityDef(
            key="filter_life",
            platform=Platform.SENSOR,
            source="filter_life_level",
            unit="%",
            diagnostic=True,
        ),
        CapabilityDef(
            key="clean_time",
            platform=Platform.SENSOR,
            source="total_clean_time",
            device_class="duration",
            unit="min",
        ),
        CapabilityDef(
            key="clean_count", platform=Platform.SENSOR, source="total_clean_count"
        ),
        CapabilityDef(
            key="clean_area",
            platform=Platform.SENSOR,
            source="total_clean_area",
            device_class="area",
            unit="m²",
        ),
        CapabilityDef(
            key="start_clean",
            platform=Platform.BUTTON,
            source=None,
            write=ActionAddress(2, 1),
        ),
        CapabilityDef(
            key="stop_clean",
            platform=Platform.BUTTON,
            source=None,
            write=ActionAddress(2, 2),
        ),
        CapabilityDef(key="find", platform=Platform.BUTTON, source=None, write=find),
        CapabilityDef(key="home", platform=Platform.BUTTON, source=None, write=home),
    )
    return ModelProfile(
        name=name,
        models=models,
        properties=properties,
        capabilities=tuple(capabilities),
        alarms=(
            _consumable_alarm("main_brush_life", "Main Brush"),
            _consumable_alarm("side_brush_life", "Side Brush"),
            _consumable_alarm("filter_life", "Filter"),
        ),
        settings={
            mlc.CONF_CONSUMABLE_ALARM_THRESHOLD: mlc.CONF_CONSUMABLE_ALARM_THRESHOLD_DEFAULT,
        },
    )


def _mijia_properties(
    *,
    fan_speed: P,
    main_brush: P,
    side_brush: P,
    filter_life: P,
    clean_time: P,
    clean_count: P,
    clean_area: P,
):
    return {
        "battery": P(3, 1),
        "device_fault": P(2, 2),
        "device_status": P(2, 1),
        "fan_speed": fan_speed,
        "main_brush_life_level": main_brush,
        "side_brush_life_level": side_brush,
        "filter_life_level": filter_life,
        "total_clean_time": clean_time,
        "total_clean_count": clean_count,
        "total_clean_area": clean_area,
    }


MIJIA_STATUS_GROUPS = {
    "cleaning": (2, 6),
    "charging": (5,),
    "stopped": (1, 3),
    "stopped_error": (4,),
}

PROFILE_MIJIA = _mijia_profile(
    "vacuum_mijia",
    ("mijia.vacuum.v1", "mijia.vacuum.v2"),
    properties=_mijia_properties(
        fan_speed=P(2, 6),
        main_brush=P(24, 2),
        side_brush=P(25, 1),
        filter_life=P(11, 1),
        clean_time=P(9, 4),
        clean_count=P(9, 5),
        clean_area=P(9, 3),
    ),
    status_groups=MIJIA_STATUS_GROUPS,
    find=ActionAddress(6, 1),
    home=ActionAddress(2, 3),
)

PROFILE_MIJIA_V3 = _mijia_profile(
    "vacuum_mijia_v3",
    ("mijia.vacuum.v3",),
    properties=_mijia_properties(
        fan_speed=P(2, 6),
        main_brush=P(14, 1),
        side_brush=P(15, 1),
        filter_life=P(11, 1),
        clean_time=P(9, 4),
        clean_count=P(9, 5),
        clean_area=P(9, 3),
    ),
    status_groups=MIJIA_STATUS_GROUPS,
    find=ActionAddress(6, 1),
    home=ActionAddress(2, 3),
)

PROFILE_MIJIA_B108ZA = _mijia_profile(
    "vacuum_mijia_b108za",
    ("mijia.vacuum.b108za", "mijia.vacuum.b108zb"),
    properties=_mijia_properties(
        fan_speed=P(2, 8),
        main_brush=P(8, 1),
        side_brush=P(9, 1),
        filter_life=P(10, 2),
        clean_time=P(2, 6),
        clean_count=P(2, 7),
        clean_area=P(2, 5),
    ),
    status_groups={
        "cleaning": (4, 6, 7),
        "docked": (8,),
        "charging": (2, 3),
        "stopped": (1, 5, 9, 10),
    },
    find=ActionAddress(6, 6),
    home=ActionAddress(6, 15),
)

PROFILE_IJAI = _mijia_profile(
    "vacuum_ijai",
    tuple(
        f"ijai.vacuum.v{version}"
        for version in (1, 2, 3, 10, 13, 14, 15, 16, 17, 18, 19)
    ),
    properties={
        "device_status": P(2, 1),
        "device_fault": P(2, 2),
        "battery": P(3, 1),
        "main_brush_life_level": P(7, 10),
        "side_brush_life_level": P(7, 8),
        "filter_life_level": P(7, 12),
        "total_clean_time": P(7, 28),
        "total_clean_count": P(7, 22),
        "total_clean_area": P(7, 29),
    },
    status_groups={
        "cleaning": (3, 5, 6, 7),
        "docked": (0,),
        "charging": (4,),
        "stopped": (1, 2, 8),
    },
    find=ActionAddress(6, 6),
    home=ActionAddress(3, 1),
)

PROFILES = (
    PROFILE_D109GL,
    PROFILE_MIJIA,
    PROFILE_MIJIA_V3,
    PROFILE_MIJIA_B108ZA,
    PROFILE_IJAI,
)
