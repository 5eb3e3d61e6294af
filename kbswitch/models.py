from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

_ID_PATTERN = re.compile(r"^\s*(?:0x)?([0-9a-fA-F]{1,4})\s*:\s*(?:0x)?([0-9a-fA-F]{1,4})\s*$")


class Signal(str, Enum):
    SWITCH_TO_LAYOUT_A = "switch_to_layout_a"  # target detached
    SWITCH_TO_LAYOUT_B = "switch_to_layout_b"  # target attached
    NO_CHANGE = "no_change"


class DeviceIdentifier(BaseModel):
    model_config = ConfigDict(frozen=True)

    vendor_id: int = Field(..., ge=0, le=0xFFFF, description="USB idVendor")
    product_id: int = Field(..., ge=0, le=0xFFFF, description="USB idProduct")

    @classmethod
    def parse(cls, value: str) -> "DeviceIdentifier":
        """Parse a ``vendor:product`` hex pair such as ``445a:1121``."""
        match = _ID_PATTERN.match(value or "")
        if not match:
            raise ValueError(f"Invalid device identifier {value!r}, expected VID:PID in hex")
        return cls(vendor_id=int(match.group(1), 16), product_id=int(match.group(2), 16))

    def __str__(self) -> str:
        return f"{self.vendor_id:04x}:{self.product_id:04x}"


@dataclass
class PresenceState:
    """Whether the target device was present as of the last poll."""

    connected: bool = False


class ControllerStatus(BaseModel):
    target: str
    connected: bool = False
    last_applied: Signal = Signal.NO_CHANGE
    iterations: int = 0
    enumeration_errors: int = 0
    switch_errors: int = 0
    last_error: Optional[str] = None
    last_switch_at: Optional[datetime] = None
