"""Entry point for the vitals monitor application."""

from __future__ import annotations

import os
import platform
import sys

# macOS: let Qt render through Metal
if platform.system() == "Darwin":
    os.environ.setdefault("QSG_RHI_BACKEND", "metal")
    os.environ.setdefault("QT_MAC_WANTS_LAYER", "1")

from vitals_monitor.app import run


if __name__ == "__main__":
    sys.exit(run())
