from __future__ import annotations

import time


def now_s() -> float:
    """Monotonic clock in seconds. Timeout arithmetic only, never wall time."""
    return time.monotonic()


def elapsed_s(since: float) -> float:
    """Seconds from the monotonic reading `since` until now."""
    return now_s() - since
