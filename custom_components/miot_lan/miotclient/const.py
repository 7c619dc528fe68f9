"""
MIoT spec (miot-spec.org) protocol symbols used when talking
to devices over the local miio transport
"""

from typing import Final

METHOD_GET_PROPERTIES: Final = "get_properties"
METHOD_SET_PROPERTIES: Final = "set_properties"
METHOD_ACTION: Final = "action"

KEY_DID: Final = "did"
KEY_SIID: Final = "siid"
KEY_PIID: Final = "piid"
KEY_AIID: Final = "aiid"
KEY_IN: Final = "in"
KEY_OUT: Final = "out"
KEY_CODE: Final = "code"
KEY_VALUE: Final = "value"
KEY_MESSAGE: Final = "message"

CODE_OK: Final = 0
CODE_ABSENT: Final = -1
"""synthesized for requested properties missing from (or failed in) the response"""
CODE_UNSUPPORTED: Final = -4001
"""property/action not existing on the device"""
CODE_NOT_READABLE: Final = -4002
CODE_NOT_WRITABLE: Final = -4003
CODE_VALUE_ERROR: Final = -4005

CODE_DESCRIPTIONS: Final = {
    CODE_ABSENT: "absent",
    CODE_UNSUPPORTED: "unsupported",
    CODE_NOT_READABLE: "not readable",
    CODE_NOT_WRITABLE: "not writable",
    CODE_VALUE_ERROR: "invalid value",
}

CHUNK_SIZE_MAX: Final = 14
"""protocol imposed bound on the number of properties in a single call"""
