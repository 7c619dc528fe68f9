"""
Derived state: quantities the protocol doesn't expose directly.
- daily counters reset at the local day boundary
- gated delta buffering while a dispense cycle is in progress
- cross derivation of (percentage, days) remaining
The counters state is persisted through an HA storage.Store so it survives restarts.
"""

import typing
from typing import NamedTuple

from homeassistant.helpers import storage

from . import const as mlc
from .helpers import Loggable, clamp, local_day_key, parse_number

if typing.TYPE_CHECKING:
    from datetime import datetime
    from typing import Any, Mapping, TypedDict, Unpack

    from homeassistant.core import HomeAssistant

    from .helpers.profile import CrossDerivationDef, DailyCounterDef, ModelProfile
    from .miotclient import ReadResult

    class CounterStateType(TypedDict):
        epoch_key: str | None
        accumulated: float
        pending: float
        baseline: float | None
        last_proxy: float | None
        in_progress: bool
        estimate: bool

    class DerivedStoreType(TypedDict):
        counters: dict[str, CounterStateType]


class DerivedValue(NamedTuple):
    value: "Any"
    estimate: bool = False
    trigger: str | None = None
    payload: "Mapping[str, Any] | None" = None


type DerivedSnapshot = dict[str, DerivedValue]


class DerivedStateStore(storage.Store["DerivedStoreType"]):
    VERSION = 1

    def __init__(self, hass: "HomeAssistant", entry_id: str):
        super().__init__(
            hass,
            DerivedStateStore.VERSION,
            f"{mlc.DOMAIN}.derived.{entry_id}",
        )


def _counter_state() -> "CounterStateType":
    return {
        "epoch_key": None,
        "accumulated": 0,
        "pending": 0,
        "baseline": None,
        "last_proxy": None,
        "in_progress": False,
        "estimate": False,
    }


class DerivedStateTracker(Loggable):
    """
    Exclusively owns the per device accumulators. 'update' is synchronous and
    only ever called from the poll path.
    """

    if typing.TYPE_CHECKING:
        _data: DerivedStoreType

    __slots__ = (
        "profile",
        "dispense_complete",
        "hours_threshold",
        "_data",
        "_store",
        "_dirty",
    )

    def __init__(
        self,
        profile: "ModelProfile",
        store: DerivedStateStore | None = None,
        *,
        dispense_complete: float = mlc.PARAM_DISPENSE_COMPLETE,
        hours_threshold: float = mlc.PARAM_HOURS_THRESHOLD,
        **kwargs: "Unpack[Loggable.Args]",
    ):
        self.profile = profile
        self.dispense_complete = dispense_complete
        self.hours_threshold = hours_threshold
        self._data = {"counters": {}}
        self._store = store
        self._dirty = False
        super().__init__(profile.name, **kwargs)

    @property
    def dirty(self):
        return self._dirty

    def as_dict(self):
        return {key: dict(state) for key, state in self._data["counters"].items()}

    def get_counter(self, key: str) -> "CounterStateType":
        counters = self._data["counters"]
        if key not in counters:
            counters[key] = _counter_state()
        return counters[key]

    async def async_load(self):
        if not self._store:
            return
        if data := await self._store.async_load():
            counters = data.get("counters")
            if isinstance(counters, dict):
                for key, state in counters.items():
                    if isinstance(state, dict):
                        # fill in any missing field from older saves
                        self._data["counters"][key] = _counter_state() | state  # type: ignore
            self.log(self.DEBUG, "loaded derived state %s", self._data)

    async def async_save(self):
        """Persists the state only when something changed since the last save."""
        if self._store and self._dirty:
            self._dirty = False
            await self._store.async_save(self._data)

    def update(
        self,
        result: "ReadResult",
        now: "datetime",
        settings: "Mapping[str, Any] | None" = None,
    ) -> DerivedSnapshot:
        snapshot: DerivedSnapshot = {}
        settings = settings or {}
        if self.profile.counters:
            day_key = local_day_key(now)
            for counter in self.profile.counters:
                snapshot[counter.key] = self._update_counter(
                    counter, result, day_key, settings
                )
        for crossing in self.profile.crossings:
            self._update_crossing(crossing, result, snapshot)
        return snapshot

    def _update_counter(
        self,
        counter: "DailyCounterDef",
        result: "ReadResult",
        day_key: str,
        settings: "Mapping[str, Any]",
    ):
        state = self.get_counter(counter.key)
        saved = dict(state)
        previous = state["accumulated"]
        today = parse_number(result.value(counter.today)) if counter.today else None
        total = parse_number(result.value(counter.total)) if counter.total else None
        progress = (
            parse_number(result.value(counter.progress)) if counter.progress else None
        )
        proxy = parse_number(result.value(counter.proxy)) if counter.proxy else None

        if state["epoch_key"] != day_key:
            if state["epoch_key"] is not None:
                self.log(
                    self.DEBUG,
                    "%s: new day %s (was %s: %s)",
                    counter.key,
                    day_key,
                    state["epoch_key"],
                    state["accumulated"],
                )
                if state["pending"]:
                    # buffered deltas belong to the day they were observed in
                    self.log(
                        self.DEBUG,
                        "%s: closing day %s with pending %s",
                        counter.key,
                        state["epoch_key"],
                        state["pending"],
                    )
            state["epoch_key"] = day_key
            state["accumulated"] = today if today is not None else 0
            state["pending"] = 0
            state["baseline"] = total
            state["estimate"] = False
            previous = state["accumulated"]

        if progress is None:
            in_progress = state["in_progress"]
        else:
            in_progress = progress < self.dispense_complete
        cleared = state["in_progress"] and not in_progress

        if today is not None:
            state["accumulated"] = today
            state["estimate"] = False
        elif total is not None:
            if state["baseline"] is None or total < state["baseline"]:
                # first total seen today or the device counter restarted
                state["baseline"] = total - state["accumulated"]
            state["accumulated"] = total - state["baseline"]
            state["estimate"] = False
        else:
            self._update_gated(counter, state, proxy, in_progress, cleared, settings)

        if proxy is not None:
            state["last_proxy"] = proxy
        state["in_progress"] = in_progress
        if state != saved:
            self._dirty = True

        accumulated = state["accumulated"]
        delta = accumulated - previous
        if delta > 0 and counter.trigger:
            return DerivedValue(
                accumulated,
                state["estimate"],
                counter.trigger,
                {
                    "today": accumulated,
                    "total": total,
                    "delta": delta,
                },
            )
        return DerivedValue(accumulated, state["estimate"])

    def _update_gated(
        self,
        counter: "DailyCounterDef",
        state: "CounterStateType",
        proxy: float | None,
        in_progress: bool,
        cleared: bool,
        settings: "Mapping[str, Any]",
    ):
        if proxy is not None:
            last_proxy = state["last_proxy"]
            if last_proxy is not None and proxy < last_proxy:
                decrease = last_proxy - proxy
                if in_progress:
                    state["pending"] += decrease
                else:
                    state["accumulated"] += decrease
            if cleared and state["pending"]:
                state["accumulated"] += state["pending"]
                state["pending"] = 0
            return

        if cleared:
            if state["pending"]:
                # the dispense was measured before the proxy went missing
                state["accumulated"] += state["pending"]
                state["pending"] = 0
                return
            dose = None
            if counter.expected_dose:
                dose = parse_number(settings.get(counter.expected_dose))
            if dose is None:
                dose = mlc.CONF_EXPECTED_DOSE_DEFAULT
            state["accumulated"] += dose
            state["estimate"] = True
            self.log(
                self.DEBUG,
                "%s: credited estimate of %s (proxy not available)",
                counter.key,
                dose,
            )

    def _update_crossing(
        self,
        crossing: "CrossDerivationDef",
        result: "ReadResult",
        snapshot: DerivedSnapshot,
    ):
        capacity = crossing.capacity
        percent = parse_number(result.value(crossing.percent_source or crossing.percent))
        days = parse_number(result.value(crossing.days_source or crossing.days))
        if percent is not None:
            percent = clamp(percent, 0, 100)
        percent_estimate = days_estimate = False
        if days is not None and crossing.hours and days > self.hours_threshold:
            hours = days
            days = round(days / 24, 1)
            days_estimate = True
            self.log(
                self.DEBUG,
                "%s: %s looks like hours: estimate %s days",
                crossing.days,
                hours,
                days,
            )
        # only raw values from this cycle feed the derivations
        if percent is not None and days is None:
            days = round(clamp(percent / 100 * capacity, 0, capacity), 1)
            days_estimate = True
        elif days is not None and percent is None:
            percent = round(clamp(days / capacity * 100, 0, 100), 1)
            percent_estimate = True
        if percent is not None:
            snapshot[crossing.percent] = DerivedValue(percent, percent_estimate)
        if days is not None:
            snapshot[crossing.days] = DerivedValue(days, days_estimate)
