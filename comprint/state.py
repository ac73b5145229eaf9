from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional


class TerminationReason(enum.Enum):
    TERMINATOR_SEEN = "terminator_seen"
    IDLE_TIMEOUT = "idle_timeout"
    BYTE_LIMIT_REACHED = "byte_limit_reached"


@dataclass
class MonitorState:
    """Mutable counters for one monitoring run.

    Owned by the stream monitor's read loop. `last_activity_ts` moves only when a
    byte is actually forwarded; empty or failed reads leave it alone so the idle
    timeout keeps counting."""
    bytes_read: int = 0
    last_activity_ts: float = 0.0
    last_byte: Optional[int] = None
    read_errors: int = 0
    reason: Optional[TerminationReason] = None
