from __future__ import annotations

import logging
from typing import Callable, Iterable, List

from .models import DeviceIdentifier, PresenceState, Signal
from .usb_devices import DescriptorReadError, DeviceEntry

LOGGER = logging.getLogger(__name__)


def target_present(devices: Iterable[DeviceEntry], target: DeviceIdentifier) -> bool:
    for device in devices:
        try:
            identifier = device.identifier()
        except DescriptorReadError as exc:
            LOGGER.warning("Skipping device with unreadable descriptor: %s", exc)
            continue
        if identifier == target:
            return True
    return False


def detect(devices: Iterable[DeviceEntry], state: PresenceState, target: DeviceIdentifier) -> Signal:
    """
    Compare the current device list with the last known presence of ``target``.

    Only attach/detach edges produce a switch signal; ``state`` is flipped in
    place whenever one is returned.
    """
    found = target_present(devices, target)

    if found and not state.connected:
        state.connected = True
        return Signal.SWITCH_TO_LAYOUT_B

    if not found and state.connected:
        state.connected = False
        return Signal.SWITCH_TO_LAYOUT_A

    return Signal.NO_CHANGE


class PresenceDetector:
    def __init__(self, target: DeviceIdentifier, enumerate_devices: Callable[[], List[DeviceEntry]]):
        self.target = target
        self._enumerate = enumerate_devices

    def poll(self, state: PresenceState) -> Signal:
        # EnumerationError propagates before the state is touched.
        devices = self._enumerate()
        return detect(devices, state, self.target)
