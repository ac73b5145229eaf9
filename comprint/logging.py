from __future__ import annotations

import json
import sys
import time

from .constants import VERBOSITY_DEBUG, VERBOSITY_NORMAL


class JsonLogger:
    """Minimal structured logger for diagnostics.

    Emits single-line events (plain `event key=value` text, or JSON) on stderr so
    the data stream on stdout stays clean. Events are gated by verbosity:
    `emit` needs normal verbosity, `debug` needs /debug, and `error` always prints."""
    def __init__(self, enable_json: bool = False, verbosity: int = VERBOSITY_NORMAL, stream=None):
        """Create a logger.

        Args:
            enable_json: Emit JSON objects instead of text lines.
            verbosity: 0 (quiet), 1 (normal) or 2 (debug).
            stream: File-like object for output (defaults to sys.stderr at write time).
        """
        self.enable_json = enable_json
        self.verbosity = int(verbosity)
        self._stream = stream

    @property
    def stream(self):
        return self._stream if self._stream is not None else sys.stderr

    def emit(self, event: str, **fields):
        """Emit an event at normal verbosity."""
        if self.verbosity >= VERBOSITY_NORMAL:
            self._write(event, fields)

    def debug(self, event: str, **fields):
        """Emit an event only when /debug is active."""
        if self.verbosity >= VERBOSITY_DEBUG:
            self._write(event, fields)

    def error(self, event: str, **fields):
        """Emit an event regardless of verbosity (fatal errors)."""
        self._write(event, fields)

    def _write(self, event: str, fields: dict):
        t = time.time()
        # ts: float seconds since epoch. ts_iso is a local timestamp with milliseconds.
        ts_iso = time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(t)) + f'.{int((t - int(t))*1000):03d}'
        if self.enable_json:
            payload = {"ts": t, "ts_iso": ts_iso, "event": event, **fields}
            line = json.dumps(payload, sort_keys=True)
        else:
            line = f"[{ts_iso}] {event}"
            if fields:
                line += " " + " ".join(f"{k}={v}" for k, v in fields.items())
        print(line, file=self.stream, flush=True)
