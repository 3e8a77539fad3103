"""Error kinds raised by the Finch driver.

Connection problems use the builtin ``ConnectionError``, the same way the
HID layer reports a missing or unopenable device.
"""


class FinchError(Exception):
    """Base class for driver errors other than connection failures."""


class ProtocolError(FinchError):
    """A frame or response did not match the wire protocol."""


class ArgumentError(FinchError, ValueError):
    """A command parameter is outside its encodable range."""
