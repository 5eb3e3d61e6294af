from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
from typing import List, Optional

from pydantic import ValidationError

from .commands import LayoutSwitcher
from .controller import PollingController
from .detector import PresenceDetector
from .log_setup import setup_logging
from .settings import Settings, load_settings
from .usb_devices import get_enumerator

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kbswitch",
        description="Switch the keyboard layout when a given USB device is attached or detached.",
    )
    parser.add_argument("--target", help="Device to watch as VID:PID in hex (default 445a:1121)")
    parser.add_argument("--layout-a", dest="layout_a", help="Layout while the device is detached")
    parser.add_argument("--layout-b", dest="layout_b", help="Layout while the device is attached")
    parser.add_argument("--command", help="Layout command, '{layout}' is substituted or appended")
    parser.add_argument("--interval", type=float, help="Seconds between polls")
    parser.add_argument("--retry-delay", dest="retry_delay", type=float, help="Seconds to wait after an enumeration error")
    parser.add_argument("--backend", choices=["usb", "serial"], help="Device enumeration backend")
    parser.add_argument("--dry-run", dest="dry_run", action="store_true", default=None, help="Log commands instead of running them")
    parser.add_argument("--log-file", dest="log_file", help="Also write a rotating log to this file")
    parser.add_argument("--log-level", dest="log_level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument("--once", action="store_true", help="Poll a single time, print the status as JSON and exit")
    return parser


def build_controller(settings: Settings) -> PollingController:
    detector = PresenceDetector(settings.target, get_enumerator(settings.backend))
    switcher = LayoutSwitcher(
        settings.layout_a,
        settings.layout_b,
        settings.command,
        dry_run=settings.dry_run,
        timeout=settings.switch_timeout,
    )
    return PollingController(
        detector,
        switcher,
        interval=settings.interval,
        retry_delay=settings.retry_delay,
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    overrides = {key: value for key, value in vars(args).items() if key != "once"}
    try:
        settings = load_settings(overrides)
    except (ValidationError, ValueError) as exc:
        setup_logging(logging.ERROR)
        LOGGER.error("Invalid configuration: %s", exc)
        return 2

    setup_logging(settings.log_level, settings.log_file)
    controller = build_controller(settings)

    if args.once:
        result = controller.step()
        print(json.dumps(controller.snapshot().model_dump(mode="json"), indent=2))
        return 0 if result is not None else 1

    def _handle_stop(signum, _frame) -> None:
        LOGGER.info("Received signal %s, stopping", signal.Signals(signum).name)
        controller.stop()

    signal.signal(signal.SIGINT, _handle_stop)
    signal.signal(signal.SIGTERM, _handle_stop)

    LOGGER.info(
        "Layouts: %s while detached, %s while attached (%s backend%s)",
        settings.layout_a,
        settings.layout_b,
        settings.backend,
        ", dry-run" if settings.dry_run else "",
    )
    controller.run_forever()
    return 0


if __name__ == "__main__":
    sys.exit(main())
