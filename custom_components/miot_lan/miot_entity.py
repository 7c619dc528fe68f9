"""
 Base-Common behaviour for all MIoT-LAN entities

 actual HA custom platform entities will be derived like this:
 MLSwitch(MLEntity, SwitchEntity)

 Every entity renders a single capability from the device CapabilityStore:
 it subscribes to its key and flushes the HA state whenever the value changes.
"""

import typing

from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.entity import Entity, EntityCategory

from . import const as mlc
from .helpers import Loggable
from .miotclient import MiotError

if typing.TYPE_CHECKING:
    from typing import Any, Callable, ClassVar, Final, NotRequired, TypedDict, Unpack

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .miot_device import MiotDevice


class MLEntity(Loggable, Entity if typing.TYPE_CHECKING else object):
    """
    Mixin style base class for all of the entity platform(s)
    This class must prepend the HA entity class in our custom
    entity classe definitions like:
    from homeassistant.components.switch import Switch
    class MyCustomSwitch(MLEntity, Switch)
    """

    if typing.TYPE_CHECKING:

        class Args(TypedDict):
            name: NotRequired[str]
            device_class: NotRequired[Any]
            entity_category: NotRequired[EntityCategory | None]
            translation_key: NotRequired[str]

        PLATFORM: ClassVar[str]
        manager: MiotDevice

    EntityCategory = EntityCategory

    # HA core entity attributes:
    # These are constants throughout our model
    force_update: "Final[bool]" = False
    has_entity_name: "Final[bool]" = True
    should_poll: "Final[bool]" = False
    # These may be customized here and there per class
    assumed_state: bool = False
    entity_registry_enabled_default: bool = True
    icon: str | None = None
    translation_key: str | None = None
    # These are actually per instance
    available: bool
    device_class: "Any"
    entity_category: EntityCategory | None
    extra_state_attributes: "dict[str, Any]"
    name: str | None
    suggested_object_id: str | None
    unique_id: str

    # used to speed-up checks if entity is enabled and loaded
    _hass_connected: bool

    __slots__ = (
        "manager",
        "key",
        "available",
        "device_class",
        "entity_category",
        "extra_state_attributes",
        "name",
        "suggested_object_id",
        "unique_id",
        "_hass_connected",
        "_unsub_capability",
    )

    def __init__(
        self,
        manager: "MiotDevice",
        key: str,
        **kwargs: "Unpack[Args]",
    ):
        """
        - key: the capability key (unique inside the device) this entity renders
        """
        self.manager = manager
        self.key = key
        self.available = manager.online
        self.device_class = kwargs.pop("device_class", None)
        self.entity_category = kwargs.pop("entity_category", None)
        self.extra_state_attributes = {}
        Loggable.__init__(self, key, logger=manager)
        if key in manager.entities:
            raise AssertionError(f"id:{key} is not unique inside manager.entities")

        self.suggested_object_id = self.name = kwargs.pop(
            "name", key.replace("_", " ").capitalize()
        )
        self.unique_id = manager.generate_unique_id(self)
        for _attr_name, _attr_value in kwargs.items():
            setattr(self, _attr_name, _attr_value)

        self._hass_connected = False
        capabilities = manager.capabilities
        self._unsub_capability = capabilities.listen(key, self._capability_changed)
        if key in capabilities:
            self.update_capability(capabilities.get(key))
        manager.entities[key] = self
        async_add_devices = manager.platforms.setdefault(self.PLATFORM)
        if async_add_devices:
            async_add_devices([self])

    # interface: Entity
    @property
    def device_info(self):
        return self.manager.deviceentry_id

    async def async_added_to_hass(self):
        self.log(self.VERBOSE, "Added to HomeAssistant")
        self._hass_connected = True
        return await super().async_added_to_hass()

    async def async_will_remove_from_hass(self):
        self.log(self.VERBOSE, "Removed from HomeAssistant")
        self._hass_connected = False
        return await super().async_will_remove_from_hass()

    # interface: self
    async def async_shutdown(self):
        if self._unsub_capability:
            self._unsub_capability()
            self._unsub_capability = None
        self.manager.entities.pop(self.id)
        self.manager: "MiotDevice" = None  # type: ignore

    def flush_state(self):
        """Actually commits a state change to HA."""
        if self._hass_connected:
            self.async_write_ha_state()

    def set_available(self):
        if not self.available:
            self.available = True
            self.flush_state()

    def set_unavailable(self):
        # the last known value is kept: HA renders 'unavailable' anyway
        if self.available:
            self.available = False
            self.flush_state()

    def update_capability(self, value) -> bool:
        """Converts the capability value to the entity state. Returns True if changed."""
        raise NotImplementedError("Called 'update_capability' on wrong entity type")

    async def async_request_value(self, value=None):
        """
        Sends the capability intent through the device dispatcher, translating
        our errors to HA ones so the UI shows the actual reason.
        """
        try:
            await self.manager.async_dispatch(self.key, value)
        except MiotError as error:
            raise HomeAssistantError(str(error)) from error

    def _capability_changed(self, key: str, value):
        estimate = key in self.manager.capabilities.estimates
        changed = self.update_capability(value)
        if estimate != (mlc.KEY_ESTIMATE in self.extra_state_attributes):
            self.extra_state_attributes = {mlc.KEY_ESTIMATE: True} if estimate else {}
            changed = True
        if changed:
            self.flush_state()


#
# helper functions to 'commonize' platform setup
#
def platform_setup_entry(
    hass: "HomeAssistant",
    config_entry: "ConfigEntry[MiotDevice]",
    async_add_devices: "Callable",
    platform: str,
):
    manager = config_entry.runtime_data
    manager.log(manager.DEBUG, "platform_setup_entry { platform: %s }", platform)
    manager.platforms[platform] = async_add_devices
    async_add_devices(manager.managed_entities(platform))
