"""Transport layer: HID device handle and the async report channel."""

from .hid_connection import HIDConnection, request_device
from .channel import ReportChannel
