from __future__ import annotations

import sys

VERSION = "1.0.0"

DEFAULT_BAUD = 2400

# Candidate device indices, scanned high to low.
SCAN_MAX = 30
SCAN_MIN = 1

if sys.platform.startswith("win"):
    DEFAULT_DEVICE_TEMPLATE = "COM{n}"
else:
    DEFAULT_DEVICE_TEMPLATE = "/dev/ttyUSB{n}"

# Per-call I/O timeouts applied to the opened port (seconds).
INTER_BYTE_TIMEOUT_S = 0.05
READ_TIMEOUT_S = 0.05
WRITE_TIMEOUT_S = 0.05

VERBOSITY_QUIET = 0
VERBOSITY_NORMAL = 1
VERBOSITY_DEBUG = 2


USAGE_EXAMPLES = """\
Usage examples:
  # Print whatever arrives on the highest-numbered working port
  python com-printer.py

  # Specific device index and baud rate
  python com-printer.py /devnum 22 /baudrate 38400

  # Open a device path directly, no diagnostics
  python com-printer.py /port /dev/ttyACM0 /quiet

  # Type incoming characters into the focused window
  python com-printer.py /baudrate 38400 /keystrokes

  # Stop after 5 bytes, after 3 s of silence, or on 'x' / 0xFF
  python com-printer.py /charcount 5
  python com-printer.py /timeout 3000
  python com-printer.py /endchar x
  python com-printer.py /endhex FF

  # List ports and probe the scan range
  python com-printer.py /doctor

Press Ctrl+C to stop at any time.
"""
