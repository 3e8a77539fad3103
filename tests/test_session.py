"""Tests for the session lifecycle."""

import asyncio

import pytest

from finch_mcp import session as session_mod
from finch_mcp.errors import ProtocolError
from finch_mcp.robot import Finch
from finch_mcp.session import FinchSession, SessionState, run, run_async, wait


def test_session_handshake_and_teardown(device, channel_options):
    session = FinchSession(device, **channel_options)

    async def scenario():
        async with session as finch:
            assert session.state is SessionState.READY
            await finch.drive(10, 20)

    asyncio.run(scenario())
    assert device.sent_commands == ["z", "M", "R"]
    assert device.sent[-1][1] == b"R" + bytes(7)
    assert device.open_calls == 1
    assert device.close_calls == 1
    assert session.state is SessionState.CLOSED
    assert session.command_id == 0x42
    assert session.teardown_error is None


def test_teardown_runs_when_program_fails(device, channel_options):
    async def scenario():
        async with FinchSession(device, **channel_options) as finch:
            await finch.halt()
            raise KeyError("boom")

    with pytest.raises(KeyError):
        asyncio.run(scenario())
    assert device.sent_commands == ["z", "X", "R"]
    assert device.close_calls == 1


def test_idle_failure_surfaces_after_success(device, channel_options):
    device.fail_send.add(ord("R"))
    session = FinchSession(device, **channel_options)

    async def scenario():
        async with session:
            pass

    with pytest.raises(OSError):
        asyncio.run(scenario())
    # The channel is still released
    assert device.close_calls == 1
    assert isinstance(session.teardown_error, OSError)


def test_teardown_failure_does_not_mask_program_error(device, channel_options):
    device.fail_close = True
    session = FinchSession(device, **channel_options)

    async def scenario():
        async with session:
            raise ValueError("program failed")

    with pytest.raises(ValueError, match="program failed") as excinfo:
        asyncio.run(scenario())
    assert isinstance(session.teardown_error, OSError)
    assert any("teardown" in note for note in excinfo.value.__notes__)
    assert device.sent_commands == ["z", "R"]
    assert device.close_calls == 1


def test_close_failure_surfaces_after_success(device, channel_options):
    device.fail_close = True

    async def scenario():
        async with FinchSession(device, **channel_options):
            pass

    with pytest.raises(OSError, match="close failed"):
        asyncio.run(scenario())


def test_handshake_failure_closes_channel(device, channel_options):
    device.responses.clear()
    session = FinchSession(device, **channel_options)

    async def scenario():
        async with session:
            pytest.fail("body must not run")

    with pytest.raises(ProtocolError):
        asyncio.run(scenario())
    assert device.sent_commands == ["z"]
    assert device.close_calls == 1
    assert session.state is SessionState.CLOSED


def test_open_failure_propagates(device, channel_options):
    device.fail_open = True

    async def scenario():
        async with FinchSession(device, **channel_options):
            pass

    with pytest.raises(ConnectionError):
        asyncio.run(scenario())
    assert device.sent == []


def test_reuses_already_open_handle(device, channel_options):
    device.open()

    async def scenario():
        async with FinchSession(device, **channel_options):
            pass

    asyncio.run(scenario())
    assert device.open_calls == 1
    assert device.close_calls == 1


def test_session_is_not_reentrant(device, channel_options):
    session = FinchSession(device, **channel_options)

    async def scenario():
        async with session:
            with pytest.raises(RuntimeError):
                async with session:
                    pass

    asyncio.run(scenario())
    assert device.close_calls == 1


def test_session_can_be_entered_again_after_close(device, channel_options):
    session = FinchSession(device, **channel_options)

    async def scenario():
        async with session:
            pass
        async with session:
            pass

    asyncio.run(scenario())
    assert device.sent_commands == ["z", "R", "z", "R"]
    assert device.open_calls == 2
    assert device.close_calls == 2


def test_requests_device_when_none_given(device, channel_options, monkeypatch):
    requested = []

    def fake_request(vendor_id, product_id):
        requested.append((vendor_id, product_id))
        return device

    monkeypatch.setattr(session_mod, "request_device", fake_request)
    session = FinchSession(**channel_options)

    async def scenario():
        async with session:
            pass
        async with session:
            pass

    asyncio.run(scenario())
    assert requested == [(0x2354, 0x1111)]
    assert session.device is device


def test_request_device_failure(monkeypatch, channel_options):
    def no_device(vendor_id, product_id):
        raise ConnectionError("No Finch found")

    monkeypatch.setattr(session_mod, "request_device", no_device)
    with pytest.raises(ConnectionError):
        asyncio.run(run_async(lambda finch: wait(0), **channel_options))


def test_run_returns_program_result(device, channel_options):
    async def program(finch):
        await finch.illuminate(1, 2, 3)
        await wait(0)
        return "done"

    assert run(program, device, **channel_options) == "done"
    assert device.sent_commands == ["z", "O", "R"]
    assert device.close_calls == 1


def test_cancelled_idle_still_closes_channel(device, channel_options, monkeypatch):
    async def cancelled_idle(self):
        raise asyncio.CancelledError

    monkeypatch.setattr(Finch, "idle", cancelled_idle)
    session = FinchSession(device, **channel_options)

    async def scenario():
        async with session:
            pass

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(scenario())
    assert device.close_calls == 1
    assert session.state is SessionState.CLOSED


def test_handshake_close_failure_noted_on_error(device, channel_options):
    device.fail_send.add(ord("z"))
    device.fail_close = True
    session = FinchSession(device, **channel_options)

    async def scenario():
        async with session:
            pytest.fail("body must not run")

    with pytest.raises(OSError, match="write of 'z' failed") as excinfo:
        asyncio.run(scenario())
    assert isinstance(session.teardown_error, OSError)
    assert any("close failed" in note for note in excinfo.value.__notes__)
    assert device.close_calls == 1
