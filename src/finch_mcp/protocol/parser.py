"""Response parsing for sensor reports."""

from __future__ import annotations

from dataclasses import asdict, dataclass

from ..errors import ProtocolError
from .commands import Command

ACCEL_SCALE = 1.6 / 32.0  # G per count
TAP_MASK = 0x20
SHAKE_MASK = 0x80


@dataclass(frozen=True)
class IdentifyResponse:
    """Parsed identify ('z') response."""

    command_id: int


@dataclass(frozen=True)
class ObstacleReading:
    """Obstacle sensor states; True means an obstacle is present."""

    left: bool
    right: bool

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AccelerationReading:
    """Accelerometer axes in G plus tap and shake flags."""

    x: float
    y: float
    z: float
    tap: bool
    shake: bool

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TemperatureReading:
    """Temperature in degrees Celsius."""

    celsius: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class LightReading:
    """Light sensor intensities, 0 (dark) to 255 (bright)."""

    left: int
    right: int

    def to_dict(self) -> dict:
        return asdict(self)


def _require(data: bytes, length: int, what: str) -> None:
    if len(data) < length:
        raise ProtocolError(
            f"{what} response needs {length} bytes, got {len(data)}"
        )


def convert_acceleration(raw: int) -> float:
    """Convert a raw 6-bit accelerometer count to G."""
    if raw > 31:
        raw -= 64
    return raw * ACCEL_SCALE


def convert_temperature(raw: int) -> float:
    """Convert a raw temperature byte to degrees Celsius."""
    return (raw - 127) / 2.4 + 25


def parse_identify(data: bytes) -> IdentifyResponse:
    """Parse the identify response: byte 0 is the device identifier."""
    _require(data, 1, "Identify")
    return IdentifyResponse(command_id=data[0])


def parse_obstacles(data: bytes) -> ObstacleReading:
    """Parse an obstacle response: bytes 0-1 are 0/1 flags (left, right)."""
    _require(data, 2, "Obstacle")
    return ObstacleReading(left=data[0] == 1, right=data[1] == 1)


def parse_acceleration(data: bytes) -> AccelerationReading:
    """Parse an accelerometer response.

    Bytes 0-2 hold the x, y and z counts; byte 4 carries the tap (0x20) and
    shake (0x80) flags.
    """
    _require(data, 5, "Acceleration")
    x, y, z = (convert_acceleration(raw) for raw in data[0:3])
    return AccelerationReading(
        x=x,
        y=y,
        z=z,
        tap=(data[4] & TAP_MASK) != 0,
        shake=(data[4] & SHAKE_MASK) != 0,
    )


def parse_temperature(data: bytes) -> TemperatureReading:
    """Parse a temperature response from byte 0."""
    _require(data, 1, "Temperature")
    return TemperatureReading(celsius=convert_temperature(data[0]))


def parse_light(data: bytes) -> LightReading:
    """Parse a light response: bytes 0-1 are raw intensities."""
    _require(data, 2, "Light")
    return LightReading(left=data[0], right=data[1])


PARSERS = {
    Command.IDENTIFY: parse_identify,
    Command.OBSTACLES: parse_obstacles,
    Command.ACCELERATION: parse_acceleration,
    Command.TEMPERATURE: parse_temperature,
    Command.LIGHT: parse_light,
}


def parse_response(command: Command, data: bytes):
    """Dispatch a response to the parser of the command that requested it.

    Returns the parsed reading, or the raw bytes if the command has no
    response parser.
    """
    parser = PARSERS.get(command)
    if parser:
        return parser(data)
    return bytes(data)
