"""Protocol layer: frame codec, command builders, and response parsing."""

from .framing import FRAME_SIZE, Frame, build_frame, parse_frame
from .commands import Command, build_command
from .parser import parse_response
