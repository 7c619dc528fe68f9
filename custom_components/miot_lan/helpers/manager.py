import asyncio
import logging
from typing import TYPE_CHECKING

from homeassistant.core import callback

from . import LOGGER, Loggable, getLogger
from .. import const as mlc

if TYPE_CHECKING:
    from typing import (
        Any,
        Callable,
        Coroutine,
        Final,
        Mapping,
        NotRequired,
        TypedDict,
        Unpack,
    )

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import CALLBACK_TYPE, HomeAssistant

    from ..miot_entity import MLEntity


class EntityManager(Loggable):
    """
    This is an abstraction of an actual device container for MLEntity(s)
    and it also acts as the scheduler for everything the device runs:
    timers (call_later handles) and tasks are created through this
    so that they're tracked and deterministically cancelled on shutdown
    or reconfiguration.
    """

    if TYPE_CHECKING:

        class DeviceEntryIdType(TypedDict):
            identifiers: set[tuple[str, str]]

        type PlatformsType = dict[str, Callable | None]

        hass: Final[HomeAssistant]
        config_entry: Final[ConfigEntry | None]
        deviceentry_id: Final[DeviceEntryIdType | None]
        platforms: PlatformsType
        entities: Final[dict[object, MLEntity]]
        _tasks: set[asyncio.Future]
        _timers: set[asyncio.TimerHandle]

        class Args(Loggable.Args):
            hass: HomeAssistant
            config_entry: NotRequired[ConfigEntry]
            deviceentry_id: NotRequired["EntityManager.DeviceEntryIdType"]

    __slots__ = (
        "hass",
        "config_entry",
        "deviceentry_id",
        "entities",
        "platforms",
        "config",
        "options",
        "_tasks",
        "_timers",
        "_unsub_entry_update_listener",
    )

    def __init__(self, id: str, **kwargs: "Unpack[Args]"):
        self.hass = kwargs["hass"]
        self.config_entry = kwargs.get("config_entry")
        self.deviceentry_id = kwargs.get("deviceentry_id")
        self.entities = {}
        self.platforms = {}
        self._tasks = set()
        self._timers = set()
        super().__init__(id, **kwargs)

    async def async_shutdown(self):
        """
        Cleanup code called when the config entry is unloaded.
        Beware, when a derived class owns some direct member pointers to entities,
        be sure to invalidate them after calling the super() implementation.
        """
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()
        for task in list(self._tasks):
            if task.done():
                continue
            self.log(self.DEBUG, "Shutting down pending task %s", task)
            task.cancel("EntityManager shutdown")
            try:
                async with asyncio.timeout(0.1):
                    await task
            except asyncio.CancelledError:
                pass
            except Exception as exception:
                self.log_exception(
                    self.WARNING, exception, "cancelling task %s during shutdown", task
                )
        for entity in set(self.entities.values()):
            # async_shutdown will pop out of self.entities
            await entity.async_shutdown()
        if self._tasks:
            self.log(self.DEBUG, "Some tasks were not shutdown %s", self._tasks)

    @property
    def name(self) -> str:
        config_entry = self.config_entry
        return config_entry.title if config_entry else self.logtag

    @property
    def online(self) -> bool:
        return True

    def managed_entities(self, platform):
        """entities list for platform setup"""
        return [
            entity for entity in self.entities.values() if entity.PLATFORM is platform
        ]

    def generate_unique_id(self, entity: "MLEntity"):
        return f"{self.id}_{entity.id}"

    def schedule_callback(
        self, delay: float, target: "Callable", *args
    ) -> "asyncio.TimerHandle":
        timers = self._timers

        @callback
        def _callback():
            timers.discard(handle)
            target(*args)

        handle = self.hass.loop.call_later(delay, _callback)
        timers.add(handle)
        return handle

    def cancel_callback(self, handle: "asyncio.TimerHandle | None"):
        """Cancels a timer scheduled through schedule_callback. Always returns None."""
        if handle:
            handle.cancel()
            self._timers.discard(handle)
        return None

    @callback
    def async_create_task(
        self,
        target: "Coroutine",
        name: str,
        eager_start: bool = True,
    ) -> "asyncio.Task":
        task = self.hass.async_create_task(target, f"{self.logtag}{name}", eager_start)
        if not (eager_start and task.done()):
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        return task


class ConfigEntryManager(EntityManager):
    """
    This class manages the relationships with an actual ConfigEntry: platforms
    forwarding, the update listener and a per-entry configurable logger.
    Config (entry.data) and options (entry.options) are snapshotted so that
    entry_update_listener can compute the set of changed keys.
    """

    if TYPE_CHECKING:
        config: Mapping[str, Any]
        options: Mapping[str, Any]
        logger: logging.Logger
        _unsub_entry_update_listener: CALLBACK_TYPE | None

        class Args(EntityManager.Args):
            pass

    def __init__(self, id: str, **kwargs: "Unpack[Args]"):
        config_entry = kwargs["config_entry"]  # type: ignore
        self.config = dict(config_entry.data)
        self.options = dict(config_entry.options)
        self._unsub_entry_update_listener = None
        super().__init__(id, **kwargs)

    # interface: Loggable
    def configure_logger(self):
        """
        Configure a 'logger' and a 'logtag' based off current config for every ConfigEntry.
        This is called during __init__ for the first setup and subsequently when
        the ConfigEntry options change.
        """
        self.logtag = self.get_logger_name()
        self.logger = logger = getLogger(f"{LOGGER.name}.{self.logtag}")
        try:
            logger.setLevel(self.options.get(mlc.CONF_LOGGING_LEVEL, logging.NOTSET))
        except Exception as exception:
            # do not use self Loggable interface since we might be not set yet
            LOGGER.warning(
                "error (%s) setting log level: likely a corrupted configuration entry",
                str(exception),
            )

    def log(self, level: int, msg: str, *args, **kwargs):
        if (logger := self.logger).isEnabledFor(level):
            logger._log(level, msg, args, **kwargs)

    # interface: self
    async def async_setup_entry(
        self, hass: "HomeAssistant", config_entry: "ConfigEntry"
    ):
        assert self.config_entry == config_entry
        config_entry.runtime_data = self
        await hass.config_entries.async_forward_entry_setups(
            config_entry, self.platforms.keys()
        )
        self._unsub_entry_update_listener = config_entry.add_update_listener(
            self.entry_update_listener
        )

    async def async_unload_entry(
        self, hass: "HomeAssistant", config_entry: "ConfigEntry"
    ):
        if not await hass.config_entries.async_unload_platforms(
            config_entry, self.platforms.keys()
        ):
            return False
        self._cleanup_subscriptions()
        self.platforms.clear()
        await self.async_shutdown()
        return True

    async def entry_update_listener(
        self, hass: "HomeAssistant", config_entry: "ConfigEntry"
    ):
        """
        Diffs the entry against the last snapshot and forwards the changed
        keys to 'async_entry_changed'.
        """
        config = dict(config_entry.data)
        options = dict(config_entry.options)
        changed = {
            key: value
            for snapshot, current in ((self.config, config), (self.options, options))
            for key, value in current.items()
            if snapshot.get(key) != value
        }
        changed.update(
            (key, None)
            for snapshot, current in ((self.config, config), (self.options, options))
            for key in snapshot.keys() - current.keys()
        )
        self.config = config
        self.options = options
        if mlc.CONF_LOGGING_LEVEL in changed:
            self.configure_logger()
        if changed:
            await self.async_entry_changed(changed)

    async def async_entry_changed(self, changed: "dict[str, Any]"):
        """Called with the changed keys (and their new values) on entry updates."""

    def get_logger_name(self) -> str:
        return self.config_entry.title if self.config_entry else str(self.id)

    def _cleanup_subscriptions(self):
        if self._unsub_entry_update_listener:
            self._unsub_entry_update_listener()
            self._unsub_entry_update_listener = None
