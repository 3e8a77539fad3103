"""Shared fixtures: a scripted stand-in for the robot's HID handle."""

from __future__ import annotations

import time
from collections import deque

import pytest

IDENTIFY_REPLY = bytes([0x42, 0, 0, 0, 0, 0, 0, 0])


class FakeDevice:
    """Device handle that answers query commands from a response table.

    Sending a frame whose command code is in ``responses`` queues that reply
    as the next input report, the way the robot answers a query.
    """

    def __init__(self) -> None:
        self.connected = False
        self.open_calls = 0
        self.close_calls = 0
        self.sent: list[tuple[int, bytes]] = []
        self.responses: dict[int, bytes] = {ord("z"): IDENTIFY_REPLY}
        self.fail_open = False
        self.fail_close = False
        self.fail_send: set[int] = set()
        self._inbox: deque[bytes] = deque()

    def open(self) -> None:
        self.open_calls += 1
        if self.fail_open:
            raise ConnectionError("Device refused to open")
        # Each handle starts with an empty input buffer
        self._inbox.clear()
        self.connected = True

    def close(self) -> None:
        self.close_calls += 1
        self.connected = False
        self._inbox.clear()
        if self.fail_close:
            raise OSError("close failed")

    def send_report(self, report_id: int, data: bytes) -> int:
        if data[0] in self.fail_send:
            raise OSError(f"write of {chr(data[0])!r} failed")
        self.sent.append((report_id, bytes(data)))
        if data[0] in self.responses:
            self._inbox.append(self.responses[data[0]])
        return len(data) + 1

    def read_report(self, timeout_ms: int = 1) -> bytes | None:
        if self._inbox:
            return self._inbox.popleft()
        time.sleep(timeout_ms / 1000)
        return None

    def push(self, report: bytes) -> None:
        """Deliver an unsolicited input report."""
        self._inbox.append(report)

    @property
    def sent_commands(self) -> list[str]:
        return [chr(frame[0]) for _, frame in self.sent]


@pytest.fixture
def device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture
def channel_options() -> dict:
    """Short timeouts so missing responses fail fast."""
    return {"response_timeout": 0.05, "read_timeout_ms": 1}
