from __future__ import annotations

import logging
from typing import Callable, Dict, List, Protocol

import usb.backend.libusb1
import usb.core
from serial.tools import list_ports

from .models import DeviceIdentifier

LOGGER = logging.getLogger(__name__)


class EnumerationError(RuntimeError):
    """The list of attached devices could not be obtained at all."""


class DescriptorReadError(RuntimeError):
    """A single device did not yield a usable vendor/product id."""


class DeviceEntry(Protocol):
    def identifier(self) -> DeviceIdentifier: ...

    def describe(self) -> str: ...


class UsbDeviceEntry:
    """An attached device as reported by libusb through pyusb.

    The device descriptor is read on first use so that one unreadable device
    only affects its own entry.
    """

    def __init__(self, device, backend, index: int = 0) -> None:
        self._device = device
        self._backend = backend
        self._index = index
        self._descriptor = None

    def _read_descriptor(self):
        if self._descriptor is None:
            self._descriptor = self._backend.get_device_descriptor(self._device)
        return self._descriptor

    def identifier(self) -> DeviceIdentifier:
        try:
            desc = self._read_descriptor()
            return DeviceIdentifier(vendor_id=int(desc.idVendor), product_id=int(desc.idProduct))
        except (usb.core.USBError, OSError, AttributeError, TypeError, ValueError) as exc:
            raise DescriptorReadError(f"{self.describe()}: {exc}") from exc

    def describe(self) -> str:
        if self._descriptor is None:
            return f"usb device #{self._index}"
        bus = getattr(self._descriptor, "bus", None)
        address = getattr(self._descriptor, "address", None)
        return f"usb device bus={bus} address={address}"


class SerialPortEntry:
    """A USB-serial adapter as reported by pyserial."""

    def __init__(self, info) -> None:
        self._info = info

    def identifier(self) -> DeviceIdentifier:
        vid = getattr(self._info, "vid", None)
        pid = getattr(self._info, "pid", None)
        if vid is None or pid is None:
            raise DescriptorReadError(f"{self.describe()}: no USB vendor/product id")
        try:
            return DeviceIdentifier(vendor_id=int(vid), product_id=int(pid))
        except ValueError as exc:
            raise DescriptorReadError(f"{self.describe()}: {exc}") from exc

    def describe(self) -> str:
        desc = getattr(self._info, "description", None) or self._info.device
        return f"serial port {self._info.device} ({desc})"


def list_usb_devices() -> List[UsbDeviceEntry]:
    try:
        backend = usb.backend.libusb1.get_backend()
    except OSError as exc:
        raise EnumerationError(f"Failed to load libusb: {exc}") from exc
    if backend is None:
        raise EnumerationError("No libusb backend available")
    try:
        devices = list(backend.enumerate_devices())
    except (usb.core.USBError, OSError) as exc:
        raise EnumerationError(f"Failed to get USB devices: {exc}") from exc
    LOGGER.debug("Enumerated %d USB device(s)", len(devices))
    return [UsbDeviceEntry(device, backend, index) for index, device in enumerate(devices)]


def list_serial_devices() -> List[SerialPortEntry]:
    try:
        ports = list(list_ports.comports())
    except OSError as exc:
        raise EnumerationError(f"Failed to list serial ports: {exc}") from exc
    LOGGER.debug("Enumerated %d serial port(s)", len(ports))
    return [SerialPortEntry(info) for info in ports if info.device]


ENUMERATORS: Dict[str, Callable[[], List[DeviceEntry]]] = {
    "usb": list_usb_devices,
    "serial": list_serial_devices,
}


def get_enumerator(backend: str) -> Callable[[], List[DeviceEntry]]:
    try:
        return ENUMERATORS[backend]
    except KeyError:
        raise ValueError(f"Unsupported backend: {backend} (choose from {', '.join(ENUMERATORS)})") from None
