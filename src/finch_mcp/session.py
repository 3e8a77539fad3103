"""Session lifecycle: connect, handshake, run a program, idle, disconnect.

A ``FinchSession`` owns the report channel for as long as it is active and
releases it on every exit path::

    async with FinchSession() as finch:
        await finch.drive(255, 255)
        await wait(1)

or, from synchronous code::

    run(my_program)
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Awaitable, Callable, TypeVar

from .robot import Finch
from .transport.channel import DeviceHandle, ReportChannel
from .transport.hid_connection import PRODUCT_ID, VENDOR_ID, request_device

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionState(enum.Enum):
    UNOPENED = "unopened"
    OPEN = "open"
    READY = "ready"
    CLOSED = "closed"


class FinchSession:
    """Scoped connection to one robot.

    Entering the session requests a device handle if none was given, opens
    it (or reuses it when already open) and performs the identify handshake.
    Leaving it always sends the idle command and closes the channel, even
    when the body raised.

    A teardown failure is raised if the body succeeded. If the body raised,
    its exception wins: the teardown failure is logged, attached to it as a
    note and kept in ``teardown_error``.

    Args:
        device: Device handle to use. Requested through hidapi on first
            entry when omitted, then reused.
        vendor_id: USB vendor ID used when requesting a device.
        product_id: USB product ID used when requesting a device.
        **channel_options: Passed to ``ReportChannel``.
    """

    def __init__(
        self,
        device: DeviceHandle | None = None,
        *,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
        **channel_options: Any,
    ) -> None:
        self._device = device
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._channel_options = channel_options
        self._channel: ReportChannel | None = None
        self._finch: Finch | None = None
        self._state = SessionState.UNOPENED
        self.command_id: int | None = None
        self.teardown_error: BaseException | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def device(self) -> DeviceHandle | None:
        return self._device

    async def __aenter__(self) -> Finch:
        if self._state in (SessionState.OPEN, SessionState.READY):
            raise RuntimeError("Session is already active")

        if self._device is None:
            self._device = await asyncio.to_thread(
                request_device, self._vendor_id, self._product_id
            )

        self._channel = ReportChannel(self._device, **self._channel_options)
        await self._channel.open()
        self._state = SessionState.OPEN
        self.teardown_error = None

        finch = Finch(self._channel)
        try:
            ident = await finch.identify()
        except BaseException as exc:
            await self._close_after_failed_handshake()
            if self.teardown_error is not None:
                exc.add_note(
                    f"Closing after the failed handshake also failed: "
                    f"{self.teardown_error!r}"
                )
            raise

        # Diagnostic only, does not gate the session
        self.command_id = ident.command_id
        logger.info("Handshake complete, device id %#04x", ident.command_id)

        self._finch = finch
        self._state = SessionState.READY
        return finch

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        error = await self._teardown()
        if error is not None:
            if exc is None:
                raise error
            logger.error("Teardown failed after program error: %r", error)
            exc.add_note(f"Session teardown also failed: {error!r}")
        return False

    async def _close_after_failed_handshake(self) -> None:
        try:
            await self._channel.close()
        except Exception as e:
            logger.warning("Close after failed handshake failed: %s", e)
            self.teardown_error = e
        self._state = SessionState.CLOSED

    async def _teardown(self) -> BaseException | None:
        error: BaseException | None = None

        try:
            try:
                await self._finch.idle()
            except Exception as e:
                logger.warning("Idle command failed: %s", e)
                error = e
        finally:
            # Close on every path, including a cancelled idle send
            try:
                await self._channel.close()
            except Exception as e:
                logger.warning("Closing the channel failed: %s", e)
                if error is None:
                    error = e

            self._finch = None
            self._state = SessionState.CLOSED
            self.teardown_error = error
        return error


async def run_async(
    program: Callable[[Finch], Awaitable[T]],
    device: DeviceHandle | None = None,
    **session_options: Any,
) -> T:
    """Run ``program`` against a connected robot and disconnect afterwards.

    Args:
        program: Coroutine function receiving the ``Finch`` façade.
        device: Optional device handle; requested through hidapi if omitted.
        **session_options: Passed to ``FinchSession``.

    Returns:
        Whatever ``program`` returns.
    """
    async with FinchSession(device, **session_options) as finch:
        return await program(finch)


def run(
    program: Callable[[Finch], Awaitable[T]],
    device: DeviceHandle | None = None,
    **session_options: Any,
) -> T:
    """Synchronous entry point: connect, run ``program``, disconnect.

    Example::

        async def spin(finch):
            await finch.drive(255, 0)
            await wait(1)

        run(spin)
    """
    return asyncio.run(run_async(program, device, **session_options))


async def wait(seconds: float) -> None:
    """Suspend the calling program for ``seconds`` seconds."""
    await asyncio.sleep(seconds)
