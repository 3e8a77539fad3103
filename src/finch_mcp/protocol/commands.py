"""Command identifiers and high-level command builders.

Each command is identified by a single ASCII character sent as byte 0 of
the frame. Query commands make the robot answer with one input report.
"""

from __future__ import annotations

from enum import IntEnum

from ..errors import ArgumentError
from .framing import build_frame


class Command(IntEnum):
    """Command identifiers (ASCII codes)."""

    IDENTIFY = ord("z")
    DRIVE = ord("M")
    SOUND = ord("B")
    ILLUMINATE = ord("O")
    HALT = ord("X")
    OBSTACLES = ord("I")
    ACCELERATION = ord("A")
    TEMPERATURE = ord("T")
    LIGHT = ord("L")
    IDLE = ord("R")

    @property
    def identifier(self) -> str:
        return chr(self.value)


# Commands the robot answers with an input report
QUERY_COMMANDS = frozenset({
    Command.IDENTIFY,
    Command.OBSTACLES,
    Command.ACCELERATION,
    Command.TEMPERATURE,
    Command.LIGHT,
})

MAX_DURATION_MS = 0xFFFF
MAX_FREQUENCY = 0xFFFF


def _check_byte(name: str, value: int) -> int:
    if not isinstance(value, int) or not 0 <= value <= 255:
        raise ArgumentError(f"{name} must be an integer 0-255, got {value!r}")
    return value


def build_command(command: Command, params: list[int] | None = None) -> bytes:
    """Build a single 8-byte report for a command.

    Query commands default to no parameters, every other command to ``[0]``.
    """
    if params is None:
        params = [] if command in QUERY_COMMANDS else [0]
    return build_frame(command.value, params)


def build_drive(left: int, right: int) -> bytes:
    """Build a motor command.

    Args:
        left: Left wheel speed 0-255.
        right: Right wheel speed 0-255.
    """
    left = _check_byte("Left wheel speed", left)
    right = _check_byte("Right wheel speed", right)
    # Each speed is preceded by its direction byte (0 = forward)
    return build_command(Command.DRIVE, [0, left, 0, right])


def build_sound(duration: float, frequency: int) -> bytes:
    """Build a buzzer command.

    Duration is sent in milliseconds as a big-endian 16-bit value, followed
    by the frequency as a big-endian 16-bit value.

    Args:
        duration: Tone length in seconds.
        frequency: Tone frequency in hertz.
    """
    if duration < 0:
        raise ArgumentError(f"Duration must be >= 0, got {duration}")
    millis = round(duration * 1000)
    if millis > MAX_DURATION_MS:
        raise ArgumentError(
            f"Duration must be at most {MAX_DURATION_MS / 1000} s, got {duration}"
        )
    if not isinstance(frequency, int) or not 0 <= frequency <= MAX_FREQUENCY:
        raise ArgumentError(
            f"Frequency must be an integer 0-{MAX_FREQUENCY} Hz, got {frequency!r}"
        )
    return build_command(
        Command.SOUND,
        [
            (millis & 0xFF00) >> 8,
            millis & 0x00FF,
            (frequency & 0xFF00) >> 8,
            frequency & 0x00FF,
        ],
    )


def build_illuminate(red: int, green: int, blue: int) -> bytes:
    """Build an LED color command, each component 0-255."""
    return build_command(
        Command.ILLUMINATE,
        [
            _check_byte("Red", red),
            _check_byte("Green", green),
            _check_byte("Blue", blue),
        ],
    )


def build_halt() -> bytes:
    """Build the command that stops the motors and all running commands."""
    return build_command(Command.HALT)


def build_idle() -> bytes:
    """Build the command that returns the robot to idle mode."""
    return build_command(Command.IDLE)


def build_query(command: Command) -> bytes:
    """Build a sensor query command (no parameters)."""
    if command not in QUERY_COMMANDS:
        raise ArgumentError(f"{command.name} is not a query command")
    return build_command(command)
