"""Async report channel over a single HID device handle.

The robot answers at most one outstanding request, so the channel pairs one
output report with one input report at a time. Blocking handle calls run in
a worker thread to keep the event loop free.

Reports that arrive while nobody is receiving stay in the host HID driver's
input buffer until the next ``receive_frame()`` reads them. The channel never
discards a report on its own. A response timeout leaves a possible late reply
in that buffer, so the channel closes the handle (dropping the buffer) and
refuses I/O until it is reopened.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from ..errors import ProtocolError
from ..protocol.framing import FRAME_SIZE, parse_frame
from .hid_connection import READ_TIMEOUT_MS

logger = logging.getLogger(__name__)

REPORT_ID = 0
RESPONSE_TIMEOUT = 2.0  # seconds


class DeviceHandle(Protocol):
    """The host device contract a channel depends on."""

    @property
    def connected(self) -> bool: ...

    def open(self): ...

    def close(self) -> None: ...

    def send_report(self, report_id: int, data: bytes) -> int: ...

    def read_report(self, timeout_ms: int = READ_TIMEOUT_MS) -> bytes | None: ...


class ReportChannel:
    """One bidirectional, single-slot frame exchange with the robot.

    Usage::

        channel = ReportChannel(HIDConnection())
        await channel.open()
        response = await channel.request(frame)
        await channel.close()
    """

    def __init__(
        self,
        device: DeviceHandle,
        *,
        report_id: int = REPORT_ID,
        response_timeout: float | None = RESPONSE_TIMEOUT,
        read_timeout_ms: int = READ_TIMEOUT_MS,
    ) -> None:
        self._device = device
        self._report_id = report_id
        self._response_timeout = response_timeout
        self._read_timeout_ms = read_timeout_ms
        self._lock = asyncio.Lock()
        self._receiving = False
        self._out_of_sync = False

    @property
    def device(self) -> DeviceHandle:
        return self._device

    @property
    def is_open(self) -> bool:
        return self._device.connected and not self._out_of_sync

    async def open(self) -> None:
        """Open the device handle, reusing it if it is already open.

        Reopening clears the out-of-sync state left by a response timeout.

        Raises:
            ConnectionError: If the device is missing or refuses to open.
        """
        if self._device.connected:
            if not self._out_of_sync:
                logger.debug("Device already open, reusing handle")
                return
            # Drop the stale input buffer along with the old handle
            await asyncio.to_thread(self._device.close)
        try:
            await asyncio.to_thread(self._device.open)
        except ConnectionError:
            raise
        except Exception as e:
            raise ConnectionError(f"Could not open device: {e}") from e
        self._out_of_sync = False

    async def close(self) -> None:
        """Release the device handle. Closing a closed channel does nothing."""
        if not self._device.connected:
            return
        await asyncio.to_thread(self._device.close)

    def _require_open(self) -> None:
        if self._out_of_sync:
            raise ProtocolError(
                "Channel lost request/response pairing after a timeout; reopen it"
            )
        if not self._device.connected:
            raise ConnectionError("Channel is not open")

    async def _desync(self) -> None:
        # A late reply would be read as the answer to the next request
        self._out_of_sync = True
        try:
            await self.close()
        except Exception as e:
            logger.warning("Closing out-of-sync channel failed: %s", e)

    async def send_frame(self, frame: bytes) -> None:
        """Write one command frame as an output report.

        Raises:
            ProtocolError: If the frame is not exactly 8 bytes, or the
                channel is out of sync.
            ConnectionError: If the channel is not open.
        """
        if len(frame) != FRAME_SIZE:
            raise ProtocolError(
                f"Command frame must be {FRAME_SIZE} bytes, got {len(frame)}"
            )
        self._require_open()
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("sending %r", parse_frame(frame))
        await asyncio.to_thread(self._device.send_report, self._report_id, bytes(frame))

    async def receive_frame(self) -> bytes:
        """Wait for exactly one input report and return its payload.

        On a response timeout the channel closes itself, dropping any late
        reply, and refuses further I/O until reopened.

        Raises:
            ProtocolError: If another receive is already pending, the channel
                is out of sync, or no report arrives within the response
                timeout.
            ConnectionError: If the channel is not open.
        """
        if self._receiving:
            raise ProtocolError("A receive is already pending on this channel")
        self._receiving = True
        try:
            loop = asyncio.get_running_loop()
            deadline = None
            if self._response_timeout is not None:
                deadline = loop.time() + self._response_timeout
            while True:
                self._require_open()
                report = await asyncio.to_thread(
                    self._device.read_report, self._read_timeout_ms
                )
                if report:
                    logger.debug("received %s", bytes(report).hex(" "))
                    return bytes(report)
                if deadline is not None and loop.time() >= deadline:
                    logger.warning(
                        "No response within %s s, closing channel", self._response_timeout
                    )
                    await self._desync()
                    raise ProtocolError(
                        f"No response within {self._response_timeout} s"
                    )
        finally:
            self._receiving = False

    async def command(self, frame: bytes) -> None:
        """Send a frame that expects no response."""
        async with self._lock:
            await self.send_frame(frame)

    async def request(self, frame: bytes) -> bytes:
        """Send a query frame and wait for its single response."""
        async with self._lock:
            await self.send_frame(frame)
            return await self.receive_frame()
