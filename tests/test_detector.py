from __future__ import annotations

import logging

import pytest

from kbswitch.detector import PresenceDetector, detect, target_present
from kbswitch.models import PresenceState, Signal
from kbswitch.usb_devices import EnumerationError

from fakes import OTHER, TARGET, FakeDevice, ScriptedEnumerator


def _devices(*identifiers):
    return [FakeDevice(identifier) for identifier in identifiers]


def test_empty_list_while_disconnected_is_no_change() -> None:
    state = PresenceState()

    assert detect([], state, TARGET) is Signal.NO_CHANGE
    assert state.connected is False


def test_attach_switches_to_layout_b() -> None:
    state = PresenceState()

    assert detect(_devices(OTHER, TARGET), state, TARGET) is Signal.SWITCH_TO_LAYOUT_B
    assert state.connected is True


def test_still_attached_is_no_change() -> None:
    state = PresenceState()
    detect(_devices(TARGET), state, TARGET)

    for _ in range(3):
        assert detect(_devices(TARGET), state, TARGET) is Signal.NO_CHANGE
        assert state.connected is True


def test_detach_switches_to_layout_a() -> None:
    state = PresenceState(connected=True)

    assert detect([], state, TARGET) is Signal.SWITCH_TO_LAYOUT_A
    assert state.connected is False


def test_other_devices_do_not_count() -> None:
    state = PresenceState()

    assert detect(_devices(OTHER), state, TARGET) is Signal.NO_CHANGE
    assert state.connected is False


def test_edges_only_fire_on_transitions() -> None:
    present = [True, True, False, False, True, False, True, True]
    state = PresenceState()
    signals = [detect(_devices(TARGET) if p else _devices(OTHER), state, TARGET) for p in present]

    assert signals == [
        Signal.SWITCH_TO_LAYOUT_B,
        Signal.NO_CHANGE,
        Signal.SWITCH_TO_LAYOUT_A,
        Signal.NO_CHANGE,
        Signal.SWITCH_TO_LAYOUT_B,
        Signal.SWITCH_TO_LAYOUT_A,
        Signal.SWITCH_TO_LAYOUT_B,
        Signal.NO_CHANGE,
    ]
    # Non-NO_CHANGE signals alternate, and the state matches the last one.
    edges = [s for s in signals if s is not Signal.NO_CHANGE]
    assert all(a is not b for a, b in zip(edges, edges[1:]))
    assert state.connected is (edges[-1] is Signal.SWITCH_TO_LAYOUT_B)


def test_unreadable_descriptor_is_skipped(caplog: pytest.LogCaptureFixture) -> None:
    state = PresenceState()

    with caplog.at_level(logging.WARNING, logger="kbswitch.detector"):
        signal = detect(_devices(None, TARGET), state, TARGET)

    assert signal is Signal.SWITCH_TO_LAYOUT_B
    assert "unreadable descriptor" in caplog.text


def test_only_unreadable_descriptors_means_absent() -> None:
    state = PresenceState(connected=True)

    assert detect(_devices(None, None), state, TARGET) is Signal.SWITCH_TO_LAYOUT_A


def test_scan_stops_at_first_match() -> None:
    class Exploding(FakeDevice):
        def identifier(self):
            raise AssertionError("should not be read")

    assert target_present([FakeDevice(TARGET), Exploding(None)], TARGET) is True


def test_poll_leaves_state_alone_when_enumeration_fails() -> None:
    detector = PresenceDetector(TARGET, ScriptedEnumerator([None]))
    state = PresenceState(connected=True)

    with pytest.raises(EnumerationError):
        detector.poll(state)
    assert state.connected is True


def test_poll_feeds_enumeration_into_detection() -> None:
    enumerator = ScriptedEnumerator([[TARGET], []])
    detector = PresenceDetector(TARGET, enumerator)
    state = PresenceState()

    assert detector.poll(state) is Signal.SWITCH_TO_LAYOUT_B
    assert detector.poll(state) is Signal.SWITCH_TO_LAYOUT_A
    assert enumerator.calls == 2
