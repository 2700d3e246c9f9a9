"""Wall-clock timestamps used for row bookkeeping."""

from __future__ import annotations

import time


def now_ms() -> int:
    """Current time in whole milliseconds since the epoch."""
    return time.time_ns() // 1_000_000
