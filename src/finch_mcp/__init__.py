"""Driver and MCP server for the BirdBrain Finch 1.0 robot over USB HID."""

from .errors import ArgumentError, FinchError, ProtocolError
from .robot import Finch
from .session import FinchSession, SessionState, run, run_async, wait

__version__ = "0.1.0"
