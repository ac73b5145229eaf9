from __future__ import annotations

import sys
from typing import Optional

try:
    import serial  # pyserial
except ImportError:  # pragma: no cover
    serial = None

from .config import PortConfig
from .constants import INTER_BYTE_TIMEOUT_S, READ_TIMEOUT_S, WRITE_TIMEOUT_S
from .logging import JsonLogger


def open_serial(device: str):
    """Open a device with pyserial's defaults; line settings are applied separately."""
    ser = serial.Serial()
    ser.port = device
    ser.open()
    return ser


def line_settings(config: PortConfig) -> dict:
    """Settings dict in the shape pyserial's Serial.apply_settings() accepts."""
    return {
        "baudrate": config.baud_rate,
        "bytesize": config.byte_size,
        "parity": config.parity,
        "stopbits": config.stop_bits,
        "xonxoff": False,
        "rtscts": False,
        "dsrdtr": False,
        "timeout": READ_TIMEOUT_S,
        "inter_byte_timeout": INTER_BYTE_TIMEOUT_S,
        "write_timeout": WRITE_TIMEOUT_S,
    }


class PortHandle:
    """Scoped owner of an open serial port.

    Created as soon as a device opens, so every later exit path (configuration
    failure, normal termination, Ctrl+C) goes through release(). Release is
    idempotent and reports the outcome of the close without raising.

    Also the monitor's byte source: read_one_byte() pulls a single byte, bounded
    by the port's per-call read timeout."""
    def __init__(self, ser, device: str, logger: JsonLogger):
        self.ser = ser
        self.device = device
        self.logger = logger
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def read_one_byte(self) -> Optional[int]:
        """Return the next byte value, or None if the read timed out."""
        data = self.ser.read(1)
        if not data:
            return None
        return data[0]

    def release(self) -> bool:
        """Close the port once. Returns True only for the call that closed it."""
        if self._released:
            return False
        self._released = True
        try:
            self.ser.close()
        except Exception as e:
            self.logger.emit("port_closed", device=self.device, ok=0, error=str(e), msg="Closing serial port...Error")
            return True
        self.logger.emit("port_closed", device=self.device, ok=1, msg="Closing serial port...OK")
        return True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False


class ConsoleSink:
    """Writes each byte raw to the output stream and flushes immediately."""
    def __init__(self, stream=None):
        self._stream = stream

    def write(self, byte: int):
        stream = self._stream if self._stream is not None else sys.stdout.buffer
        stream.write(bytes((byte,)))
        stream.flush()
