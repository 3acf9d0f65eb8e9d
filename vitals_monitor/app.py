"""Application bootstrap: command line, logging and the Qt/asyncio loop."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from . import config


def setup_logging(verbose: bool) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # Reduce noise from libraries
    logging.getLogger("bleak").setLevel(logging.WARNING)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="vitals-monitor",
        description="Live ECG/PPG viewer for BLE sensor boards",
    )
    parser.add_argument(
        "-p", "--prefix",
        default=config.ADDRESS_PREFIX,
        help=f"Only list devices whose address starts with this (default: {config.ADDRESS_PREFIX})",
    )
    parser.add_argument(
        "-t", "--scan-timeout",
        type=float,
        default=config.DEFAULT_SCAN_TIMEOUT,
        metavar="SECONDS",
        help=f"Scan duration (default: {config.DEFAULT_SCAN_TIMEOUT})",
    )
    parser.add_argument(
        "-s", "--simulate",
        action="store_true",
        help="Use simulated devices instead of the Bluetooth adapter",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging (includes every received frame)",
    )
    return parser.parse_args(argv)


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Launch the Qt application."""
    args = parse_args(argv)
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    from PyQt6 import QtWidgets
    import qasync

    from .ui.main_window import MainWindow

    if args.simulate:
        from .sim_device import SimulatedAdapter

        adapter = SimulatedAdapter()
        logger.info("Running with simulated devices")
    else:
        from .ble import BleakAdapter

        adapter = BleakAdapter()

    app = QtWidgets.QApplication(sys.argv[:1])
    loop = qasync.QEventLoop(app)
    asyncio.set_event_loop(loop)
    window = MainWindow(adapter, address_prefix=args.prefix, scan_timeout=args.scan_timeout)
    window.show()
    with loop:
        try:
            loop.run_forever()
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
        loop.run_until_complete(window.shutdown())
    return 0
