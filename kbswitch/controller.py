from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Optional, Protocol, Tuple

from .models import ControllerStatus, PresenceState, Signal
from .usb_devices import EnumerationError

LOGGER = logging.getLogger(__name__)

POLL_SECONDS = 1.0


class Detector(Protocol):
    target: object

    def poll(self, state: PresenceState) -> Signal: ...


class Switcher(Protocol):
    def apply(self, signal: Signal) -> Tuple[bool, str]: ...


class PollingController:
    """
    Enumerate -> detect -> maybe switch -> wait, until stopped.

    ``state`` follows the target's presence; ``last_applied`` only advances
    when the switcher reports success, so a failed switch is attempted again
    the next time the same signal is observed.
    """

    def __init__(
        self,
        detector: Detector,
        switcher: Switcher,
        interval: float = POLL_SECONDS,
        retry_delay: float = 0.0,
    ):
        self.detector = detector
        self.switcher = switcher
        self.interval = interval
        self.retry_delay = retry_delay
        self.state = PresenceState()
        self.last_applied = Signal.NO_CHANGE
        self._iterations = 0
        self._enumeration_errors = 0
        self._switch_errors = 0
        self._last_error: Optional[str] = None
        self._last_switch_at: Optional[datetime] = None
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def step(self) -> Optional[Signal]:
        """Run one iteration without waiting. Returns None if enumeration failed."""
        with self._lock:
            self._iterations += 1
        try:
            signal = self.detector.poll(self.state)
        except EnumerationError as exc:
            LOGGER.error("%s", exc)
            with self._lock:
                self._enumeration_errors += 1
                self._last_error = str(exc)
            return None

        if signal == self.last_applied:
            return signal

        if signal == Signal.NO_CHANGE:
            with self._lock:
                self.last_applied = signal
            return signal

        ok, message = self._apply(signal)
        if not ok:
            LOGGER.error("%s", message)
            with self._lock:
                self._switch_errors += 1
                self._last_error = message
            return signal

        LOGGER.info("%s", message)
        with self._lock:
            self.last_applied = signal
            self._last_switch_at = datetime.now()
        return signal

    def _apply(self, signal: Signal) -> Tuple[bool, str]:
        try:
            return self.switcher.apply(signal)
        except Exception as exc:
            LOGGER.exception("Layout switcher raised for %s", signal.value)
            return False, f"Layout switcher raised: {exc}"

    def run_forever(self) -> None:
        LOGGER.info(
            "Watching for %s every %gs",
            getattr(self.detector, "target", "target device"),
            self.interval,
        )
        while not self._stop.is_set():
            signal = self.step()
            delay = self.retry_delay if signal is None else self.interval
            self._stop.wait(delay)
        LOGGER.info("Polling stopped")

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run_forever, daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def snapshot(self) -> ControllerStatus:
        with self._lock:
            return ControllerStatus(
                target=str(getattr(self.detector, "target", "")),
                connected=self.state.connected,
                last_applied=self.last_applied,
                iterations=self._iterations,
                enumeration_errors=self._enumeration_errors,
                switch_errors=self._switch_errors,
                last_error=self._last_error,
                last_switch_at=self._last_switch_at,
            )
