"""
A collection of utilities to help managing the MIoT device protocol
"""

import json
from typing import TYPE_CHECKING, NamedTuple

from . import const as mc

if TYPE_CHECKING:
    from typing import Any, Iterable


#
# Optimized JSON encoding/decoding
#
JSON_ENCODER = json.JSONEncoder(
    ensure_ascii=False, check_circular=False, separators=(",", ":")
)


def json_dumps(obj):
    """Slightly optimized json.dumps with pre-configured encoder"""
    return JSON_ENCODER.encode(obj)


#
# Custom Exceptions
#
class MiotError(Exception):
    """Base class for every failure raised by the miot_lan core."""


class TransportError(MiotError):
    """
    signal a transport level failure like:
    - timeouts
    - connection refused/unreachable
    - handshake failures
    This is the only class escalating to device availability.
    """


class NotReadyError(TransportError):
    """The connection is not established: the request failed fast without being sent."""

    def __init__(self, reason: str = "device not ready"):
        super().__init__(reason)


class ProtocolError(MiotError):
    """
    signal a legit protocol response reporting an error code for
    a property/action (i.e. -4001 unsupported property)
    """

    def __init__(self, code: int, reason: object | None = None):
        self.code = code
        super().__init__(
            reason or f"code {code} ({mc.CODE_DESCRIPTIONS.get(code, 'error')})"
        )


class UnsupportedCapabilityError(MiotError):
    """The write targets a capability the device model doesn't expose as writable."""

    def __init__(self, capability: str, model: str):
        self.capability = capability
        super().__init__(f"'{capability}' is not supported on model {model}")


class InvalidValueError(MiotError):
    """The write value failed validation: rejected before any remote call."""

    def __init__(self, capability: str, value, reason: str):
        self.capability = capability
        self.value = value
        super().__init__(f"invalid value {value!r} for '{capability}': {reason}")


#
# Protocol types
#
class PropertyAddress(NamedTuple):
    """Composite key of a property (service id, property id)"""

    siid: int
    piid: int

    def __str__(self):
        return f"{self.siid}/{self.piid}"


class ActionAddress(NamedTuple):
    """Composite key of an action (service id, action id)"""

    siid: int
    aiid: int

    def __str__(self):
        return f"{self.siid}/a{self.aiid}"


class PropertyResult(NamedTuple):
    code: int
    value: "Any" = None

    @property
    def present(self):
        """A result is usable only with code == 0 and an actual value."""
        return self.code == mc.CODE_OK and self.value is not None


PROPERTY_ABSENT = PropertyResult(mc.CODE_ABSENT)


class ReadResult(dict[str, PropertyResult]):
    """
    Result of a batched read indexed by symbolic property name.
    Every requested name is guaranteed to have one entry. 'failed_chunks'
    counts the chunks which could not be read at all (after retries).
    """

    __slots__ = ("chunks", "failed_chunks")

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.chunks = 0
        self.failed_chunks = 0

    def value(self, name: str):
        """Returns the value of 'name' only when present (None otherwise)."""
        result = self.get(name)
        return result.value if result and result.present else None

    def present(self) -> "Iterable[str]":
        return (name for name, result in self.items() if result.present)


def get_properties_params(request: "Iterable[tuple[str, PropertyAddress]]"):
    return [
        {mc.KEY_DID: name, mc.KEY_SIID: address.siid, mc.KEY_PIID: address.piid}
        for name, address in request
    ]


def set_properties_params(name: str, address: PropertyAddress, value):
    return [
        {
            mc.KEY_DID: name,
            mc.KEY_SIID: address.siid,
            mc.KEY_PIID: address.piid,
            mc.KEY_VALUE: value,
        }
    ]


def action_params(address: ActionAddress, args: list | None = None):
    return {
        mc.KEY_DID: f"call-{address.siid}-{address.aiid}",
        mc.KEY_SIID: address.siid,
        mc.KEY_AIID: address.aiid,
        mc.KEY_IN: args or [],
    }


def check_response_code(response) -> None:
    """
    Raises ProtocolError if any entry in a set_properties/action response
    carries a non zero code. Responses come either as a dict (action)
    or as a list of dicts (set_properties).
    """
    for item in response if isinstance(response, list) else (response,):
        if isinstance(item, dict):
            code = item.get(mc.KEY_CODE, mc.CODE_OK)
            if code != mc.CODE_OK:
                raise ProtocolError(code, item.get(mc.KEY_MESSAGE))
