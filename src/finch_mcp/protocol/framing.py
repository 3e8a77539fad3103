"""Command frame builder and parser for 8-byte Finch HID reports.

Frame layout::

    +---------+-------------------------+----------------+
    | Command |       Parameters        |    Padding     |
    | 1 byte  | 0-7 bytes               | zeros to 8 B   |
    +---------+-------------------------+----------------+

- Command: ASCII code of the single-character command identifier
- Parameters: command-specific bytes, in order
- Padding: zero bytes to fill the 8-byte report

Commands that take no parameters carry a single zero parameter byte; sensor
queries carry none.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..errors import ArgumentError, ProtocolError

FRAME_SIZE = 8
MAX_PARAMS = FRAME_SIZE - 1  # 8 - 1(command)


@dataclass(frozen=True)
class Frame:
    """A decoded outbound command frame."""

    command: int
    params: bytes

    @property
    def identifier(self) -> str:
        return chr(self.command)

    def __repr__(self) -> str:
        return (
            f"Frame(command={self.identifier!r}, "
            f"params={self.params.hex(' ') if self.params else '(empty)'})"
        )


def command_code(command: int | str) -> int:
    """Return the numeric code of a command identifier.

    Accepts a one-character string or an int (including ``Command`` members).
    """
    if isinstance(command, str):
        if len(command) != 1 or not command.isascii():
            raise ArgumentError(
                f"Command identifier must be one ASCII character, got {command!r}"
            )
        return ord(command)
    if not 0 < command < 0x80:
        raise ArgumentError(f"Command code must be 1-127, got {command}")
    return int(command)


def build_frame(command: int | str, params: Iterable[int] = ()) -> bytes:
    """Build an 8-byte HID report containing a single command.

    Args:
        command: Command identifier character or its code.
        params: Parameter bytes (0-255 each), at most 7.

    Returns:
        An 8-byte ``bytes`` object ready to send as an output report.

    Raises:
        ArgumentError: If there are too many parameters or one is out of range.
    """
    code = command_code(command)
    params = list(params)
    if len(params) > MAX_PARAMS:
        raise ArgumentError(
            f"At most {MAX_PARAMS} parameters fit in a frame, got {len(params)}"
        )
    for value in params:
        if not isinstance(value, int) or not 0 <= value <= 0xFF:
            raise ArgumentError(f"Parameter bytes must be integers 0-255, got {value!r}")

    body = bytes([code, *params])
    return body + b"\x00" * (FRAME_SIZE - len(body))


def parse_frame(data: bytes) -> Frame:
    """Parse an 8-byte command frame back into a ``Frame``.

    Trailing zero bytes are treated as padding, so a parameter list ending in
    zeros (such as the single ``[0]`` of parameterless commands) comes back
    without them.

    Raises:
        ProtocolError: If ``data`` is not exactly one frame long.
    """
    if len(data) != FRAME_SIZE:
        raise ProtocolError(
            f"Command frame must be {FRAME_SIZE} bytes, got {len(data)}"
        )
    return Frame(command=data[0], params=bytes(data[1:]).rstrip(b"\x00"))
