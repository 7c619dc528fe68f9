"""
Per-model address tables. Each family module exposes a PROFILES tuple:
the lookup model -> profile is resolved once when the device is built.
"""

from typing import TYPE_CHECKING

from . import airpurifier, fan, humidifier, petfeeder, petwaterer, vacuum

if TYPE_CHECKING:
    from ..helpers.profile import ModelProfile


MODEL_PROFILES: "dict[str, ModelProfile]" = {
    model: profile
    for module in (airpurifier, fan, humidifier, petfeeder, petwaterer, vacuum)
    for profile in module.PROFILES
    for model in profile.models
}


def get_profile(model: str) -> "ModelProfile | None":
    return MODEL_PROFILES.get(model)
