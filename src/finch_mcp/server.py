"""MCP server entry point for the Finch 1.0 robot.

Exposes the robot's actuators and sensors as tools via the Model Context
Protocol using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack
from typing import Any

from mcp.server.fastmcp import FastMCP

from .errors import FinchError
from .protocol.commands import QUERY_COMMANDS, Command
from .robot import Finch
from .session import FinchSession

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "finch",
    instructions="MCP server for the BirdBrain Finch 1.0 robot over USB HID",
)

# Active session state
_stack: AsyncExitStack | None = None
_session: FinchSession | None = None
_finch: Finch | None = None


def _get_finch() -> Finch:
    """Get the connected robot, raising if not connected."""
    if _finch is None:
        raise RuntimeError("Not connected to robot. Use the 'connect' tool first.")
    return _finch


def _error(e: Exception) -> dict[str, Any]:
    logger.warning("Tool failed: %s", e)
    return {"error": str(e)}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
async def connect() -> dict[str, Any]:
    """Connect to the Finch robot.

    Finds the robot by USB vendor/product ID (0x2354:0x1111), opens it and
    runs the identify handshake.
    """
    global _stack, _session, _finch
    if _finch is not None:
        return {"connected": True, "message": "Already connected"}

    stack = AsyncExitStack()
    session = FinchSession()
    try:
        finch = await stack.enter_async_context(session)
    except (FinchError, ConnectionError) as e:
        return _error(e)

    _stack, _session, _finch = stack, session, finch
    return {"connected": True, "command_id": session.command_id}


@mcp.tool()
async def disconnect() -> dict[str, Any]:
    """Put the robot in idle mode and close the connection."""
    global _stack, _session, _finch
    if _stack is None:
        return {"disconnected": True}

    stack = _stack
    _stack, _session, _finch = None, None, None
    try:
        await stack.aclose()
    except (FinchError, ConnectionError) as e:
        return _error(e)
    return {"disconnected": True}


@mcp.tool()
async def get_device_info() -> dict[str, Any]:
    """Report the device identifier returned by the handshake."""
    _get_finch()
    info: dict[str, Any] = {"command_id": _session.command_id}
    device_info = getattr(_session.device, "device_info", None)
    if device_info is not None:
        info["manufacturer"] = device_info.manufacturer
        info["product"] = device_info.product
    return info


# ─── ACTUATOR TOOLS ───────────────────────────────────────────────────

@mcp.tool()
async def drive(left: int, right: int) -> dict[str, Any]:
    """Set wheel speeds.

    Args:
        left: Left wheel speed (0-255).
        right: Right wheel speed (0-255).
    """
    finch = _get_finch()
    try:
        await finch.drive(left, right)
    except (FinchError, ConnectionError) as e:
        return _error(e)
    return {"left": left, "right": right}


@mcp.tool()
async def illuminate(red: int, green: int, blue: int) -> dict[str, Any]:
    """Set the LED color.

    Args:
        red: Red component (0-255).
        green: Green component (0-255).
        blue: Blue component (0-255).
    """
    finch = _get_finch()
    try:
        await finch.illuminate(red, green, blue)
    except (FinchError, ConnectionError) as e:
        return _error(e)
    return {"red": red, "green": green, "blue": blue}


@mcp.tool()
async def sound(duration: float, frequency: int) -> dict[str, Any]:
    """Play a tone on the buzzer. Returns once the tone has finished.

    Args:
        duration: Tone length in seconds.
        frequency: Tone frequency in hertz.
    """
    finch = _get_finch()
    try:
        await finch.sound(duration, frequency)
    except (FinchError, ConnectionError) as e:
        return _error(e)
    return {"duration": duration, "frequency": frequency}


@mcp.tool()
async def halt() -> dict[str, Any]:
    """Stop the motors and all commands running on the robot."""
    finch = _get_finch()
    try:
        await finch.halt()
    except (FinchError, ConnectionError) as e:
        return _error(e)
    return {"halted": True}


# ─── SENSOR TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
async def read_obstacles() -> dict[str, Any]:
    """Read the obstacle sensors (True = obstacle present)."""
    finch = _get_finch()
    try:
        reading = await finch.read_obstacles()
    except (FinchError, ConnectionError) as e:
        return _error(e)
    return reading.to_dict()


@mcp.tool()
async def read_acceleration() -> dict[str, Any]:
    """Read the accelerometer in G, with tap and shake flags."""
    finch = _get_finch()
    try:
        reading = await finch.read_acceleration()
    except (FinchError, ConnectionError) as e:
        return _error(e)
    return reading.to_dict()


@mcp.tool()
async def read_temperature() -> dict[str, Any]:
    """Read the temperature in degrees Celsius."""
    finch = _get_finch()
    try:
        celsius = await finch.read_temperature()
    except (FinchError, ConnectionError) as e:
        return _error(e)
    return {"celsius": round(celsius, 2)}


@mcp.tool()
async def read_light() -> dict[str, Any]:
    """Read the light sensors (0 = dark, 255 = bright)."""
    finch = _get_finch()
    try:
        reading = await finch.read_light()
    except (FinchError, ConnectionError) as e:
        return _error(e)
    return reading.to_dict()


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("finch://protocol/commands")
def resource_commands() -> str:
    """Command identifiers of the wire protocol."""
    return json.dumps({
        "commands": [
            {
                "name": command.name.lower(),
                "identifier": command.identifier,
                "query": command in QUERY_COMMANDS,
            }
            for command in Command
        ]
    })


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
