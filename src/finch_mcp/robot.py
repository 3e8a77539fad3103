"""Typed robot operations on top of an open report channel.

Values are 0-255 for motors, LED and light sensors. All operations are
coroutines and must be awaited in sequence.
"""

from __future__ import annotations

import asyncio

from .protocol.commands import (
    Command,
    build_drive,
    build_halt,
    build_idle,
    build_illuminate,
    build_query,
    build_sound,
)
from .protocol.parser import (
    AccelerationReading,
    IdentifyResponse,
    LightReading,
    ObstacleReading,
    parse_response,
)
from .transport.channel import ReportChannel


class Finch:
    """Command façade for one connected robot.

    Instances are normally handed out by ``FinchSession``::

        async with FinchSession() as finch:
            await finch.drive(255, 255)
            print(await finch.read_temperature())
    """

    def __init__(self, channel: ReportChannel) -> None:
        self._channel = channel

    @property
    def channel(self) -> ReportChannel:
        return self._channel

    async def _query(self, command: Command):
        data = await self._channel.request(build_query(command))
        return parse_response(command, data)

    async def identify(self) -> IdentifyResponse:
        """Ask the robot for its device identifier."""
        return await self._query(Command.IDENTIFY)

    async def drive(self, left: int, right: int) -> None:
        """Set the speed of each wheel, 0 (stopped) to 255 (full speed)."""
        await self._channel.command(build_drive(left, right))

    async def sound(self, duration: float, frequency: int) -> None:
        """Play a tone on the buzzer and wait until it has finished.

        Args:
            duration: Tone length in seconds.
            frequency: Tone frequency in hertz.
        """
        await self._channel.command(build_sound(duration, frequency))
        await asyncio.sleep(duration)

    async def illuminate(self, red: int, green: int, blue: int) -> None:
        """Set the LED color, each component 0-255."""
        await self._channel.command(build_illuminate(red, green, blue))

    async def halt(self) -> None:
        """Stop the motors and every command running on the robot."""
        await self._channel.command(build_halt())

    async def idle(self) -> None:
        """Put the robot back into idle mode."""
        await self._channel.command(build_idle())

    async def read_obstacles(self) -> ObstacleReading:
        """Read the left and right obstacle sensors."""
        return await self._query(Command.OBSTACLES)

    async def read_acceleration(self) -> AccelerationReading:
        """Read the accelerometer in G, with tap and shake flags."""
        return await self._query(Command.ACCELERATION)

    async def read_temperature(self) -> float:
        """Read the temperature in degrees Celsius."""
        reading = await self._query(Command.TEMPERATURE)
        return reading.celsius

    async def read_light(self) -> LightReading:
        """Read the left and right light sensors."""
        return await self._query(Command.LIGHT)
