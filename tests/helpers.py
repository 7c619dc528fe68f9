import contextlib
from datetime import datetime, timedelta
import logging
import typing
from unittest.mock import patch

from freezegun.api import freeze_time
from homeassistant import config_entries
from homeassistant.helpers import entity_registry as er
from pytest_homeassistant_custom_component.common import (
    MockConfigEntry,
    async_fire_time_changed_exact,
)

from custom_components.miot_lan import const as mlc
from custom_components.miot_lan.config_flow import ConfigFlow
from custom_components.miot_lan.diagnostics import async_get_config_entry_diagnostics
from custom_components.miot_lan.miotclient import (
    ActionAddress,
    PropertyAddress,
    ProtocolError,
    TransportError,
    const as mc,
)
from custom_components.miot_lan.miotclient.transport import MiotTransport

from . import const as tc

if typing.TYPE_CHECKING:
    from typing import Any, Final, Mapping, NotRequired, TypedDict, Unpack

    from freezegun.api import (
        FrozenDateTimeFactory,
        StepTickTimeFactory,
        TickingDateTimeFactory,
        _Freezable,
    )

    _TimeFactory = FrozenDateTimeFactory | StepTickTimeFactory | TickingDateTimeFactory

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from custom_components.miot_lan.miot_device import MiotDevice

LOGGER = logging.getLogger("miot_lan.tests")


class DictMatcher(dict):
    """
    customize dictionary matching by checking if
    only the keys defined in this object are matched in the
    compared one. It works following the same assumptions as for the ANY
    symbol in the mock library
    """

    def __eq__(self, other):
        for key, value in self.items():
            if value != other.get(key):
                return False
        return True


class TriggerRecorder:
    """Stands in for TriggerSink in unit tests."""

    def __init__(self):
        self.fired: "list[tuple[str, dict]]" = []

    def fire(self, trigger_id: str, payload: "Mapping[str, Any]"):
        self.fired.append((trigger_id, dict(payload)))


class MiotEmulator:
    """
    In memory MIoT device answering get_properties/set_properties/action
    out of a plain (siid, piid) -> value map. Addresses missing from the map
    answer -4001 like real firmwares do for properties they don't implement.
    """

    __slots__ = (
        "state",
        "readonly",
        "online",
        "requests",
        "actions",
    )

    def __init__(self, state: "Mapping[PropertyAddress, Any] | None" = None):
        self.state: "dict[PropertyAddress, Any]" = dict(state or {})
        self.readonly: set[PropertyAddress] = set()
        self.online = True
        self.requests: "list[tuple[str, Any]]" = []
        self.actions: list[ActionAddress] = []

    def count(self, method: str):
        return sum(1 for request in self.requests if request[0] == method)

    def handshake(self):
        if not self.online:
            raise TransportError("handshake: no response")

    def handle(self, method: str, params):
        if not self.online:
            raise TransportError(f"{method}: no response")
        self.requests.append((method, params))
        match method:
            case mc.METHOD_GET_PROPERTIES:
                return [self._get_property(item) for item in params]
            case mc.METHOD_SET_PROPERTIES:
                return [self._set_property(item) for item in params]
            case mc.METHOD_ACTION:
                self.actions.append(
                    ActionAddress(params[mc.KEY_SIID], params[mc.KEY_AIID])
                )
                return {mc.KEY_CODE: mc.CODE_OK, mc.KEY_OUT: []}
        raise ProtocolError(-32601, f"method {method} not found")

    def _get_property(self, item: dict):
        address = PropertyAddress(item[mc.KEY_SIID], item[mc.KEY_PIID])
        reply = {
            mc.KEY_DID: item[mc.KEY_DID],
            mc.KEY_SIID: address.siid,
            mc.KEY_PIID: address.piid,
        }
        if address in self.state:
            reply[mc.KEY_CODE] = mc.CODE_OK
            reply[mc.KEY_VALUE] = self.state[address]
        else:
            reply[mc.KEY_CODE] = mc.CODE_UNSUPPORTED
        return reply

    def _set_property(self, item: dict):
        address = PropertyAddress(item[mc.KEY_SIID], item[mc.KEY_PIID])
        reply = {
            mc.KEY_DID: item[mc.KEY_DID],
            mc.KEY_SIID: address.siid,
            mc.KEY_PIID: address.piid,
        }
        if address not in self.state:
            reply[mc.KEY_CODE] = mc.CODE_UNSUPPORTED
        elif address in self.readonly:
            reply[mc.KEY_CODE] = mc.CODE_NOT_WRITABLE
        else:
            self.state[address] = item[mc.KEY_VALUE]
            reply[mc.KEY_CODE] = mc.CODE_OK
        return reply


class EmulatorTransport(MiotTransport):
    """Routes the transport calls to a MiotEmulator (None means unreachable host)."""

    def __init__(self, host: str, emulator: MiotEmulator | None):
        self._host = host
        self.emulator = emulator
        self.closed = False

    @property
    def host(self):
        return self._host

    async def async_handshake(self):
        if not self.emulator:
            raise TransportError(f"handshake: {self._host} unreachable")
        self.emulator.handshake()

    async def async_call(self, method: str, params, retries: int = 0):
        if self.closed:
            raise TransportError(f"transport to {self._host} is closed")
        if not self.emulator:
            raise TransportError(f"{method}: {self._host} unreachable")
        return self.emulator.handle(method, params)

    def close(self):
        self.closed = True


class TransportMocker(contextlib.AbstractContextManager):
    """
    Replaces MiioTransport wherever the component builds one so that
    every host resolves to its registered MiotEmulator.
    """

    PATCHED_MODULES: "Final" = ("miot_device", "config_flow")

    __slots__ = (
        "emulators",
        "transports",
        "_patches",
    )

    def __init__(self, emulators: "Mapping[str, MiotEmulator] | None" = None):
        self.emulators: dict[str, MiotEmulator] = dict(emulators or {})
        self.transports: list[EmulatorTransport] = []
        self._patches = [
            patch(
                f"custom_components.miot_lan.{module}.MiioTransport",
                side_effect=self._build_transport,
            )
            for module in TransportMocker.PATCHED_MODULES
        ]

    def __enter__(self):
        for _patch in self._patches:
            _patch.start()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        for _patch in self._patches:
            _patch.stop()

    def _build_transport(self, host: str, token: str, **kwargs):
        transport = EmulatorTransport(host, self.emulators.get(host))
        self.transports.append(transport)
        return transport


class TimeMocker(contextlib.AbstractContextManager):
    """
    time mocker helper using freeztime and providing some helpers
    to integrate time changes with HA core mechanics.
    """

    time: "_TimeFactory"

    __slots__ = (
        "hass",
        "time",
        "_freeze_time",
    )

    def __init__(
        self, hass: "HomeAssistant", time_to_freeze: "_Freezable | None" = None
    ):
        super().__init__()
        self.hass = hass
        self._freeze_time = freeze_time(time_to_freeze)
        hass.loop.slow_callback_duration = 2.1

    def __enter__(self):
        self.time = self._freeze_time.start()
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self._freeze_time.stop()

    def __call__(self):
        return self.time()

    async def async_tick(self, tick: timedelta | float | int):
        self.time.tick(tick if isinstance(tick, timedelta) else timedelta(seconds=tick))
        async_fire_time_changed_exact(self.hass)
        await self.hass.async_block_till_done()

    async def async_move_to(self, target_datetime: datetime):
        self.time.move_to(target_datetime)
        async_fire_time_changed_exact(self.hass)
        await self.hass.async_block_till_done()


class ConfigEntryMocker(contextlib.AbstractAsyncContextManager):

    if typing.TYPE_CHECKING:

        class Args(TypedDict):
            data: NotRequired[Mapping[str, Any]]
            options: NotRequired[Mapping[str, Any]]
            auto_add: NotRequired[bool]
            auto_setup: NotRequired[bool]

        hass: Final[HomeAssistant]
        config_entry: Final[ConfigEntry[MiotDevice]]
        config_entry_id: Final
        auto_setup: Final

    __slots__ = (
        "hass",
        "config_entry",
        "config_entry_id",
        "auto_setup",
    )

    def __init__(
        self,
        hass: "HomeAssistant",
        unique_id: str,
        title: str,
        **kwargs: "Unpack[Args]",
    ) -> None:
        super().__init__()
        self.hass = hass
        self.config_entry = MockConfigEntry(
            domain=mlc.DOMAIN,
            data=kwargs.get("data"),
            options=kwargs.get("options"),
            version=ConfigFlow.VERSION,
            unique_id=unique_id,
            title=title,
        )
        self.config_entry_id = self.config_entry.entry_id
        self.auto_setup = kwargs.get("auto_setup", True)
        if kwargs.get("auto_add", True):
            self.config_entry.add_to_hass(hass)

    @property
    def manager(self):
        return self.config_entry.runtime_data

    @property
    def config_entry_loaded(self):
        return self.config_entry.state == config_entries.ConfigEntryState.LOADED

    async def async_setup(self):
        result = await self.hass.config_entries.async_setup(self.config_entry_id)
        await self.hass.async_block_till_done()
        return result

    async def async_unload(self):
        result = await self.hass.config_entries.async_unload(self.config_entry_id)
        await self.hass.async_block_till_done()
        return result

    async def async_test_config_entry_diagnostics(self):
        assert self.config_entry_loaded
        diagnostic = await async_get_config_entry_diagnostics(
            self.hass, self.config_entry
        )
        assert diagnostic
        return diagnostic

    async def __aenter__(self):
        if self.auto_setup:
            assert await self.async_setup()
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        if self.config_entry.state.recoverable:
            assert await self.async_unload()
        return None


class DeviceContext(ConfigEntryMocker):
    """
    This is a 'full featured' context providing an emulator and setting it
    up as a configured device in HA.
    It also provides timefreezing and the transport patching.
    """

    if typing.TYPE_CHECKING:

        class Args(ConfigEntryMocker.Args):
            host: NotRequired[str]
            time: NotRequired[TimeMocker | datetime | str | None]

        time: Final[TimeMocker]

    __slots__ = (
        "model",
        "host",
        "emulator",
        "transport_mock",
        "time",
        "_time_mock_owned",
    )

    def __init__(
        self,
        hass: "HomeAssistant",
        model: str,
        state: "Mapping[PropertyAddress, Any] | None" = None,
        **kwargs: "Unpack[Args]",
    ):
        host = kwargs.pop("host", tc.MOCK_HOST)
        time = kwargs.pop("time", None)
        kwargs["data"] = tc.build_config(model, host)
        kwargs.setdefault("options", {mlc.CONF_POLLING_PERIOD: 30})
        super().__init__(hass, host, f"{model} ({host})", **kwargs)
        self.model = model
        self.host = host
        self.emulator = MiotEmulator(state)
        self.transport_mock = TransportMocker({host: self.emulator})
        if isinstance(time, TimeMocker):
            self.time = time
            self._time_mock_owned = False
        else:
            self.time = TimeMocker(hass, time)
            self._time_mock_owned = True

    @property
    def device(self) -> "MiotDevice":
        return self.config_entry.runtime_data

    async def __aenter__(self):
        if self._time_mock_owned:
            self.time.__enter__()
        self.transport_mock.__enter__()
        return await super().__aenter__()

    async def __aexit__(self, exc_type, exc_value: BaseException | None, traceback):
        try:
            return await super().__aexit__(exc_type, exc_value, traceback)
        finally:
            self.transport_mock.__exit__(exc_type, exc_value, traceback)
            if self._time_mock_owned:
                self.time.__exit__(exc_type, exc_value, traceback)

    async def async_setup(self):
        assert not self.config_entry_loaded
        result = await super().async_setup()
        return result

    async def async_poll_single(self):
        """Advances the time mocker up to the next polling cycle and executes it."""
        await self.time.async_tick(
            self.device._unsub_polling.when() - self.hass.loop.time()  # type: ignore
        )

    async def async_reconnect(self):
        """Advances the time mocker past the reconnect delay."""
        await self.time.async_tick(mlc.PARAM_RECONNECT_DELAY)

    def get_entity_id(self, platform: str, key: str):
        entity_id = er.async_get(self.hass).async_get_entity_id(
            platform, mlc.DOMAIN, f"{self.config_entry_id}_{key}"
        )
        assert entity_id, f"no {platform} entity for {key}"
        return entity_id

    def get_state(self, platform: str, key: str):
        state = self.hass.states.get(self.get_entity_id(platform, key))
        assert state
        return state
