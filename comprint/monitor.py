from __future__ import annotations

import time
from typing import Optional

from .config import TerminationPolicy
from .constants import READ_TIMEOUT_S
from .logging import JsonLogger
from .state import MonitorState, TerminationReason
from .util import elapsed_s, now_s


class StreamMonitor:
    """Byte-at-a-time read loop with three racing termination conditions.

    Each iteration pulls one byte from the port, forwards it to the sink (and the
    keystroke emitter, if any), then checks, in order:

        terminator  - the byte just read equals the terminator (not forwarded)
        idle        - no forwarded byte for longer than the idle timeout
        byte limit  - bytes forwarded reached the configured count

    Failed reads count as "no byte" and never end the run on their own; a dead
    port ends through the idle timeout. The monitor never closes the port."""
    def __init__(
        self,
        policy: TerminationPolicy,
        sink,
        logger: JsonLogger,
        keystrokes=None,
        error_backoff_s: float = READ_TIMEOUT_S,
    ):
        """
        Args:
            policy: Termination conditions for this run.
            sink: Object with write(byte) receiving every forwarded byte.
            logger: Diagnostics sink.
            keystrokes: Optional object with emit(byte), called after the sink.
            error_backoff_s: Pause after a failed read so a broken port does not spin.
        """
        self.policy = policy
        self.sink = sink
        self.logger = logger
        self.keystrokes = keystrokes
        self.error_backoff_s = float(error_backoff_s)
        self.state = MonitorState()

    def run(self, port) -> TerminationReason:
        """Read from `port` (anything with read_one_byte()) until a condition fires."""
        self.state = MonitorState(last_activity_ts=now_s())
        self.logger.debug(
            "monitor_start",
            max_byte_count=self.policy.max_byte_count,
            idle_timeout_s=self.policy.idle_timeout_s,
            terminator_byte=self.policy.terminator_byte,
            keystrokes=int(self.keystrokes is not None),
        )
        while True:
            byte = self._read(port)
            if byte is not None:
                self.state.last_byte = byte
                if byte != self.policy.terminator_byte:
                    self._forward(byte)

            reason = (
                self._maybe_terminator(byte)
                or self._maybe_idle_timeout()
                or self._maybe_byte_limit()
            )
            if reason is not None:
                self.state.reason = reason
                self.logger.debug(
                    "done",
                    reason=reason.value,
                    bytes_read=self.state.bytes_read,
                    read_errors=self.state.read_errors,
                )
                return reason

    def _read(self, port) -> Optional[int]:
        try:
            return port.read_one_byte()
        except OSError as e:
            # pyserial's SerialException is an OSError.
            self.state.read_errors += 1
            self.logger.debug("read_error", error=str(e), read_errors=self.state.read_errors)
            if self.error_backoff_s > 0:
                time.sleep(self.error_backoff_s)
            return None

    def _forward(self, byte: int):
        self.state.last_activity_ts = now_s()
        self.state.bytes_read += 1
        self.sink.write(byte)
        if self.keystrokes is not None:
            self.keystrokes.emit(byte)

    def _maybe_terminator(self, byte: Optional[int]) -> Optional[TerminationReason]:
        # Only an actual read can match; an empty read is never a terminator.
        if byte is None or self.policy.terminator_byte is None:
            return None
        if byte == self.policy.terminator_byte:
            return TerminationReason.TERMINATOR_SEEN
        return None

    def _maybe_idle_timeout(self) -> Optional[TerminationReason]:
        if self.policy.idle_timeout_s is None:
            return None
        if elapsed_s(self.state.last_activity_ts) > self.policy.idle_timeout_s:
            return TerminationReason.IDLE_TIMEOUT
        return None

    def _maybe_byte_limit(self) -> Optional[TerminationReason]:
        if self.policy.max_byte_count is None:
            return None
        if self.state.bytes_read >= self.policy.max_byte_count:
            return TerminationReason.BYTE_LIMIT_REACHED
        return None
