"""USB HID connection to the Finch 1.0 robot.

Supports both ``hidapi`` (preferred) and ``pyusb`` backends.
The robot is a plain HID device: 8-byte output reports carry commands,
8-byte input reports carry sensor data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..protocol.framing import FRAME_SIZE

logger = logging.getLogger(__name__)

VENDOR_ID = 0x2354
PRODUCT_ID = 0x1111
HID_INTERFACE = 0
EP_IN = 0x81
READ_TIMEOUT_MS = 100

# HID class request used to send output reports over the control endpoint
HID_SET_REPORT = 0x09
HID_REPORT_TYPE_OUTPUT = 0x02
REQUEST_TYPE_CLASS_INTERFACE_OUT = 0x21


@dataclass
class DeviceInfo:
    """Basic device identification from USB descriptors."""

    vendor_id: int = VENDOR_ID
    product_id: int = PRODUCT_ID
    manufacturer: str = ""
    product: str = ""
    path: str = ""


class HIDConnection:
    """Manages the USB HID connection to the robot.

    This is the device handle a ``ReportChannel`` drives. Calls block, so the
    channel runs them in a worker thread.

    Usage::

        conn = HIDConnection()
        conn.open()
        conn.send_report(0, frame_bytes)
        report = conn.read_report()
        conn.close()
    """

    def __init__(
        self,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
        path: bytes | None = None,
    ) -> None:
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._path = path
        self._device = None
        self._backend: str = ""
        self._connected = False
        self._device_info = DeviceInfo(vendor_id=vendor_id, product_id=product_id)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    def open(self) -> DeviceInfo:
        """Open a connection to the robot, trying hidapi first, then pyusb.

        Returns:
            DeviceInfo with USB descriptor information.

        Raises:
            ConnectionError: If the device cannot be found or opened.
        """
        if self._connected:
            return self._device_info

        try:
            return self._open_hidapi()
        except Exception as e:
            logger.debug("hidapi backend failed: %s, trying pyusb", e)

        try:
            return self._open_pyusb()
        except Exception as e:
            raise ConnectionError(
                f"Could not connect to Finch "
                f"({self._vendor_id:#06x}:{self._product_id:#06x}). "
                f"Ensure the robot is plugged in and you have permissions. "
                f"Last error: {e}"
            ) from e

    def _open_hidapi(self) -> DeviceInfo:
        """Open using the hidapi library."""
        import hid

        device = hid.device()
        if self._path:
            device.open_path(self._path)
        else:
            device.open(self._vendor_id, self._product_id)
        device.set_nonblocking(False)

        self._device = device
        self._backend = "hidapi"
        self._connected = True
        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=self._product_id,
            manufacturer=device.get_manufacturer_string() or "",
            product=device.get_product_string() or "",
            path=self._path.decode(errors="replace") if self._path else "",
        )

        logger.info(
            "Connected via hidapi: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def _open_pyusb(self) -> DeviceInfo:
        """Open using pyusb + libusb."""
        import usb.core
        import usb.util

        dev = usb.core.find(idVendor=self._vendor_id, idProduct=self._product_id)
        if dev is None:
            raise ConnectionError("Device not found via pyusb")

        if dev.is_kernel_driver_active(HID_INTERFACE):
            dev.detach_kernel_driver(HID_INTERFACE)

        usb.util.claim_interface(dev, HID_INTERFACE)

        self._device = dev
        self._backend = "pyusb"
        self._connected = True
        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=self._product_id,
            manufacturer=usb.util.get_string(dev, dev.iManufacturer) or "",
            product=usb.util.get_string(dev, dev.iProduct) or "",
        )

        logger.info(
            "Connected via pyusb: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    def close(self) -> None:
        """Close the USB connection. Closing twice is a no-op."""
        if not self._connected:
            return

        try:
            if self._backend == "hidapi":
                self._device.close()
            elif self._backend == "pyusb":
                import usb.util
                usb.util.release_interface(self._device, HID_INTERFACE)
                usb.util.dispose_resources(self._device)
        finally:
            self._device = None
            self._connected = False
            logger.info("Disconnected")

    def send_report(self, report_id: int, data: bytes) -> int:
        """Send one output report to the robot.

        Args:
            report_id: HID report ID (0 for the robot's single report).
            data: An 8-byte command frame.

        Returns:
            Number of bytes written.

        Raises:
            ConnectionError: If not connected.
        """
        if not self._connected:
            raise ConnectionError("Not connected to device")

        if len(data) != FRAME_SIZE:
            raise ValueError(
                f"Output report must be {FRAME_SIZE} bytes, got {len(data)}"
            )

        if self._backend == "hidapi":
            # hidapi expects the report ID as the first byte
            return self._device.write(bytes([report_id]) + bytes(data))
        elif self._backend == "pyusb":
            return self._device.ctrl_transfer(
                REQUEST_TYPE_CLASS_INTERFACE_OUT,
                HID_SET_REPORT,
                (HID_REPORT_TYPE_OUTPUT << 8) | report_id,
                HID_INTERFACE,
                bytes(data),
            )
        else:
            raise RuntimeError(f"Unknown backend: {self._backend}")

    def read_report(self, timeout_ms: int = READ_TIMEOUT_MS) -> bytes | None:
        """Read one input report from the robot.

        Args:
            timeout_ms: Read timeout in milliseconds.

        Returns:
            The report payload, or None if the read timed out.

        Raises:
            ConnectionError: If not connected or the read fails.
        """
        if not self._connected:
            raise ConnectionError("Not connected to device")

        if self._backend == "hidapi":
            try:
                data = self._device.read(FRAME_SIZE, timeout_ms)
            except OSError as e:
                raise ConnectionError(f"Read failed: {e}") from e
            if data:
                return bytes(data)
            return None
        elif self._backend == "pyusb":
            import usb.core

            try:
                data = self._device.read(EP_IN, FRAME_SIZE, timeout=timeout_ms)
            except usb.core.USBTimeoutError:
                return None
            except usb.core.USBError as e:
                raise ConnectionError(f"Read failed: {e}") from e
            return bytes(data)
        else:
            raise RuntimeError(f"Unknown backend: {self._backend}")


def request_device(
    vendor_id: int = VENDOR_ID,
    product_id: int = PRODUCT_ID,
) -> HIDConnection:
    """Find a connected robot and return an unopened handle for it.

    Enumerates through hidapi. Without hidapi the handle is returned without
    a path, and discovery happens in ``open()`` through pyusb.

    Raises:
        ConnectionError: If hidapi finds no matching device.
    """
    try:
        import hid
    except ImportError:
        logger.debug("hidapi unavailable, deferring discovery to open()")
        return HIDConnection(vendor_id, product_id)

    matches = hid.enumerate(vendor_id, product_id)
    if not matches:
        raise ConnectionError(
            f"No Finch found ({vendor_id:#06x}:{product_id:#06x})"
        )
    if len(matches) > 1:
        logger.warning("%d matching devices found, using the first", len(matches))

    info = matches[0]
    logger.debug(
        "Found %s at %r",
        info.get("product_string") or "device",
        info.get("path"),
    )
    return HIDConnection(vendor_id, product_id, path=info.get("path"))
