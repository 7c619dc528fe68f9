import asyncio
from functools import partial
import typing

from homeassistant.core import callback
from homeassistant.helpers import device_registry as dr
from homeassistant.util import dt as dt_util

from . import const as mlc
from .binary_sensor import MLBinarySensor
from .button import MLButton
from .connection import ConnectionManager
from .derived import DerivedStateStore, DerivedStateTracker
from .dispatcher import CommandDispatcher
from .helpers.capabilities import CapabilityStore, SettingsStore, TriggerSink
from .helpers.manager import ConfigEntryManager
from .helpers.profile import Platform
from .miotclient import TransportError
from .miotclient.reader import PropertyReader
from .miotclient.transport import MiioTransport
from .number import MLNumber
from .reconcile import ReconciliationEngine
from .select import MLSelect
from .sensor import MLSensor
from .switch import MLSwitch

if typing.TYPE_CHECKING:
    from typing import Any, Final

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .helpers.profile import CapabilityDef, ModelProfile
    from .miotclient import ReadResult


MANUFACTURER: "Final" = "Xiaomi"


class MiotDevice(ConfigEntryManager):
    """
    Runs the poll cycle for a single device:
    read -> capability reconciliation -> derived state -> alarms -> settings sync
    A recurring timer drives the polling which is single-flight: a tick firing
    while the previous poll is still in progress is skipped.
    """

    if typing.TYPE_CHECKING:
        model: Final[str]
        profile: Final[ModelProfile]
        capabilities: Final[CapabilityStore]
        settings: Final[SettingsStore]
        triggers: Final[TriggerSink]
        engine: Final[ReconciliationEngine]
        tracker: Final[DerivedStateTracker]
        connection: Final[ConnectionManager]
        dispatcher: Final[CommandDispatcher]
        reader: Final[PropertyReader]
        polling_period: int

    __slots__ = (
        "model",
        "profile",
        "capabilities",
        "settings",
        "triggers",
        "engine",
        "tracker",
        "connection",
        "dispatcher",
        "reader",
        "polling_period",
        "_polling_task",
        "_unsub_polling",
    )

    def __init__(
        self,
        hass: "HomeAssistant",
        config_entry: "ConfigEntry",
        profile: "ModelProfile",
    ):
        self.model = config_entry.data[mlc.CONF_MODEL]
        self.profile = profile
        self._polling_task: asyncio.Task | None = None
        self._unsub_polling: asyncio.TimerHandle | None = None
        super().__init__(
            config_entry.entry_id,
            hass=hass,
            config_entry=config_entry,
            deviceentry_id={"identifiers": {(mlc.DOMAIN, config_entry.entry_id)}},
        )
        self.polling_period = self._get_polling_period()
        self.capabilities = CapabilityStore()
        self.settings = SettingsStore(hass, config_entry, profile.settings)
        self.triggers = TriggerSink(hass, config_entry.entry_id, logger=self)
        self.engine = ReconciliationEngine(
            profile, self.capabilities, self.triggers, logger=self
        )
        self.tracker = DerivedStateTracker(
            profile, DerivedStateStore(hass, config_entry.entry_id), logger=self
        )
        self.connection = ConnectionManager(
            self,
            self._build_transport,
            on_connected=self._on_connected,
            on_failed=self._stop_polling,
            on_availability=self._on_availability,
        )
        self.dispatcher = CommandDispatcher(
            profile,
            self.model,
            self.connection,
            self.engine,
            self.settings,
            logger=self,
        )
        self.reader = PropertyReader(
            self.connection.async_call,
            chunk_size=mlc.PARAM_CHUNK_SIZE,
            retries=1,
            log=partial(self.log, self.WARNING, timeout=mlc.PARAM_ERROR_LOG_TIMEOUT),
        )
        with self.exception_warning("DeviceRegistry.async_get_or_create"):
            dr.async_get(hass).async_get_or_create(
                config_entry_id=config_entry.entry_id,
                manufacturer=MANUFACTURER,
                name=config_entry.title,
                model=self.model,
                **self.deviceentry_id,  # type: ignore
            )
        self._build_entities()

    # interface: EntityManager
    @property
    def online(self):
        return self.connection.available

    async def async_shutdown(self):
        self._stop_polling()
        await self.connection.async_shutdown()
        await super().async_shutdown()

    # interface: ConfigEntryManager
    async def async_entry_changed(self, changed: "dict[str, Any]"):
        if mlc.CONF_POLLING_PERIOD in changed:
            self.polling_period = self._get_polling_period()
        await self.dispatcher.async_settings_changed(changed, self._async_reconfigure)

    # interface: self
    async def async_init(self):
        """Cold initialization: restores the derived state."""
        await self.tracker.async_load()

    def start(self):
        self.connection.start()

    async def async_poll(self):
        """Runs one poll cycle. The pipeline order is fixed."""
        engine = self.engine
        connection = self.connection
        token = engine.begin_read()
        result = await self.reader.async_read(self.profile.read_request)
        if self.profile.probe and self.settings.get(mlc.CONF_EXTENDED_PROBE):
            await self._async_probe(result)

        engine.apply(result, token)

        settings = self.settings.get_all()
        for key, derived in self.tracker.update(
            result, dt_util.utcnow(), settings
        ).items():
            observed = engine.observed(key)
            engine.publish(key, derived.value, estimate=derived.estimate)
            if derived.trigger and observed:
                self.triggers.fire(derived.trigger, derived.payload or {})
        await self.tracker.async_save()

        engine.apply_alarms(settings)

        if values := engine.settings_values(result):
            self.dispatcher.sync_settings(values)

        if result.failed_chunks:
            connection.mark_failed(
                TransportError(
                    f"{result.failed_chunks} of {result.chunks} read chunks failed"
                )
            )
        elif result.chunks:
            connection.mark_success()

    async def async_dispatch(self, name: str, value=None):
        return await self.dispatcher.async_dispatch(name, value)

    async def async_get_diagnostics(self):
        connection = self.connection
        return {
            "config": dict(self.config),
            "options": dict(self.options),
            "model": self.model,
            "profile": self.profile.name,
            "connection": {
                "state": connection.state,
                "available": connection.available,
                "reason": connection.reason,
            },
            "capabilities": self.capabilities.as_dict(),
            "estimates": sorted(self.capabilities.estimates),
            "derived": self.tracker.as_dict(),
        }

    def _get_polling_period(self):
        try:
            polling_period = int(
                self.options.get(
                    mlc.CONF_POLLING_PERIOD, mlc.CONF_POLLING_PERIOD_DEFAULT
                )
            )
        except (TypeError, ValueError):
            polling_period = mlc.CONF_POLLING_PERIOD_DEFAULT
        return max(polling_period, mlc.CONF_POLLING_PERIOD_MIN)

    def _build_transport(self):
        config = self.config
        return MiioTransport(
            config[mlc.CONF_HOST],
            config[mlc.CONF_TOKEN],
            timeout=mlc.PARAM_CALL_TIMEOUT,
            logger=self,
            log_level_dump=self.VERBOSE,
        )

    def _build_entities(self):
        profile = self.profile
        for capability in profile.capabilities:
            self._build_capability_entity(capability)
        for counter in profile.counters:
            MLSensor(
                self,
                counter.key,
                device_class=MLSensor.DeviceClass.WEIGHT if counter.unit == "g" else None,
                native_unit_of_measurement=counter.unit,
                state_class=MLSensor.StateClass.TOTAL_INCREASING,
            )
        for crossing in profile.crossings:
            MLSensor(
                self,
                crossing.percent,
                native_unit_of_measurement=self.hac.PERCENTAGE,
                state_class=MLSensor.StateClass.MEASUREMENT,
            )
            MLSensor(
                self,
                crossing.days,
                device_class=MLSensor.DeviceClass.DURATION,
                native_unit_of_measurement=self.hac.UnitOfTime.DAYS,
                state_class=MLSensor.StateClass.MEASUREMENT,
            )
        for alarm in profile.alarms:
            MLBinarySensor(
                self,
                alarm.key,
                device_class=MLBinarySensor.DeviceClass.PROBLEM,
            )

    def _build_capability_entity(self, capability: "CapabilityDef"):
        entity_category = (
            MLSensor.EntityCategory.DIAGNOSTIC if capability.diagnostic else None
        )
        match capability.platform:
            case Platform.SENSOR:
                if capability.options is not None:
                    MLSensor(
                        self,
                        capability.key,
                        device_class=MLSensor.DeviceClass.ENUM,
                        options=list(dict.fromkeys(capability.options.values())),
                        entity_category=entity_category,
                    )
                else:
                    MLSensor(
                        self,
                        capability.key,
                        device_class=capability.device_class,
                        native_unit_of_measurement=capability.unit,
                        entity_category=entity_category,
                    )
            case Platform.BINARY_SENSOR:
                MLBinarySensor(
                    self,
                    capability.key,
                    device_class=capability.device_class,
                    entity_category=entity_category,
                )
            case Platform.SWITCH:
                MLSwitch(self, capability.key, entity_category=entity_category)
            case Platform.SELECT:
                MLSelect(
                    self,
                    capability.key,
                    options=list(dict.fromkeys((capability.options or {}).values())),
                    entity_category=entity_category,
                )
            case Platform.NUMBER:
                MLNumber(
                    self,
                    capability.key,
                    native_min_value=capability.minimum,
                    native_max_value=capability.maximum,
                    native_step=capability.step,
                    native_unit_of_measurement=capability.unit,
                    entity_category=entity_category,
                )
            case Platform.BUTTON:
                MLButton(self, capability.key, entity_category=entity_category)

    @callback
    def _on_connected(self):
        self._stop_polling()
        self._polling_callback()

    @callback
    def _on_availability(self, available: bool):
        for entity in list(self.entities.values()):
            if available:
                entity.set_available()
            else:
                entity.set_unavailable()

    @callback
    def _polling_callback(self):
        self._unsub_polling = self.schedule_callback(
            self.polling_period, self._polling_callback
        )
        if self._polling_task:
            self.log(self.DEBUG, "skipping poll: the previous one is still running")
            return
        task = self.async_create_task(self._async_polling(), ".async_poll")
        if not task.done():
            self._polling_task = task

    async def _async_polling(self):
        try:
            await self.async_poll()
        except asyncio.CancelledError:
            raise
        except Exception as exception:
            self.log_exception(
                self.WARNING,
                exception,
                "async_poll",
                timeout=mlc.PARAM_ERROR_LOG_TIMEOUT,
            )
        finally:
            self._polling_task = None

    @callback
    def _stop_polling(self):
        self._unsub_polling = self.cancel_callback(self._unsub_polling)

    async def _async_reconfigure(self):
        self.log(self.INFO, "connection settings changed: reconnecting")
        self._stop_polling()
        if polling_task := self._polling_task:
            self._polling_task = None
            polling_task.cancel("MiotDevice reconfigure")
        self.connection.reconfigure()

    async def _async_probe(self, result: "ReadResult"):
        """
        Best effort sweep of the candidate addresses for the properties
        which are absent in this cycle. A hit is adopted for this cycle only.
        """
        probe = self.profile.probe
        missing = [
            name
            for name in probe
            if not ((entry := result.get(name)) and entry.present)
        ]
        if not missing:
            return
        request = [
            (f"{name}@{address}", address)
            for name in missing
            for address in probe[name]
        ]
        sweep = await self.reader.async_read(request)
        for name in missing:
            for address in probe[name]:
                entry = sweep.get(f"{name}@{address}")
                if entry and entry.present:
                    self.log(
                        self.INFO,
                        "probe: %s found at %s (value: %s)",
                        name,
                        address,
                        entry.value,
                        timeout=mlc.PARAM_ERROR_LOG_TIMEOUT,
                    )
                    result[name] = entry
                    break
