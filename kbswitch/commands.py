from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from typing import Dict, Tuple

from .models import Signal

LOGGER = logging.getLogger(__name__)

DEFAULT_COMMAND = "setxkbmap"


def build_layout_cmd(command: str, layout: str) -> list[str]:
    parts = shlex.split(command)
    if not parts:
        raise ValueError("Layout command is empty.")
    if any("{layout}" in part for part in parts):
        return [part.replace("{layout}", layout) for part in parts]
    return [*parts, layout]


def readable_cmd(cmd: list[str]) -> str:
    return " ".join(shlex.quote(p) for p in cmd)


class LayoutSwitcher:
    """Switches the keyboard layout by running an external command."""

    def __init__(
        self,
        layout_a: str,
        layout_b: str,
        command: str = DEFAULT_COMMAND,
        *,
        dry_run: bool = False,
        timeout: float = 10.0,
    ) -> None:
        self.command = command
        self.dry_run = dry_run
        self.timeout = timeout
        self._layouts: Dict[Signal, str] = {
            Signal.SWITCH_TO_LAYOUT_A: layout_a,
            Signal.SWITCH_TO_LAYOUT_B: layout_b,
        }

    def layout_for(self, signal: Signal) -> str:
        try:
            return self._layouts[signal]
        except KeyError:
            raise ValueError(f"No layout is bound to {signal.value}") from None

    def apply(self, signal: Signal) -> Tuple[bool, str]:
        layout = self.layout_for(signal)
        cmd = build_layout_cmd(self.command, layout)
        readable = readable_cmd(cmd)
        if self.dry_run:
            return True, f"[dry-run] {readable}"

        executable = shutil.which(cmd[0])
        if not executable:
            return False, f"Layout command not found: {cmd[0]}"

        LOGGER.debug("Running %s", readable)
        try:
            result = subprocess.run(
                [executable, *cmd[1:]],
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            return False, f"Layout command timed out after {self.timeout:g}s: {readable}"
        except OSError as exc:
            return False, f"Failed to start layout command: {exc}"

        if result.returncode == 0:
            return True, f"Switched keyboard layout to {layout}"
        stderr_text = (result.stderr or "").strip()
        detail = stderr_text or f"exit code {result.returncode}"
        return False, f"Failed to switch keyboard layout to {layout}: {detail}"
