from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from typing import Optional

try:
    import tomllib  # py3.11+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib

from .constants import (
    DEFAULT_BAUD,
    DEFAULT_DEVICE_TEMPLATE,
    SCAN_MAX,
    SCAN_MIN,
    VERBOSITY_DEBUG,
    VERBOSITY_NORMAL,
    VERBOSITY_QUIET,
)
from .errors import ArgumentError


@dataclass(frozen=True)
class PortConfig:
    """Which device to open and the line settings applied once it is open.

    Line settings are fixed at 8-N-1; only the baud rate is configurable."""
    device_index: Optional[int] = None
    baud_rate: int = DEFAULT_BAUD
    byte_size: int = 8
    stop_bits: int = 1
    parity: str = "N"
    device_name: Optional[str] = None
    device_template: str = DEFAULT_DEVICE_TEMPLATE
    scan_max: int = SCAN_MAX
    scan_min: int = SCAN_MIN

    def device_for(self, index: int) -> str:
        return self.device_template.format(n=index)


@dataclass(frozen=True)
class TerminationPolicy:
    """Conditions that end a monitoring run. None disables a condition."""
    max_byte_count: Optional[int] = None
    idle_timeout_s: Optional[float] = None
    terminator_byte: Optional[int] = None

    def __post_init__(self):
        # Zero/negative limits mean "never fire".
        if self.max_byte_count is not None and self.max_byte_count <= 0:
            object.__setattr__(self, "max_byte_count", None)
        if self.idle_timeout_s is not None and self.idle_timeout_s <= 0:
            object.__setattr__(self, "idle_timeout_s", None)
        if self.terminator_byte is not None and not 0 <= self.terminator_byte <= 255:
            raise ValueError(f"terminator byte out of range: {self.terminator_byte}")

    @classmethod
    def from_values(cls, charcount=None, timeout_ms=None, endchar=None):
        """Build a policy from the CLI units (count, milliseconds, byte)."""
        return cls(
            max_byte_count=charcount,
            idle_timeout_s=(timeout_ms / 1000.0 if timeout_ms is not None else None),
            terminator_byte=endchar,
        )


def get_bool_env(name: str, default: bool = False) -> bool:
    """Read an on/off environment variable. Unset means `default`."""
    val = os.getenv(name)
    if val is None:
        return default
    try:
        return parse_bool(val)
    except argparse.ArgumentTypeError as e:
        raise ArgumentError(f"Error: environment variable {name}: {e}") from e


def load_toml_config(path: str) -> dict:
    """Load TOML configuration from path."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except OSError as e:
        raise ArgumentError(f"Error: cannot read config file {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ArgumentError(f"Error: invalid config file {path}: {e}") from e


def _get_cfg(cfg: dict, section: str, key: str, default=None):
    sec = cfg.get(section, {})
    if not isinstance(sec, dict):
        return default
    return sec.get(key, default)


# ---------------- Value converters ----------------
#
# Shared by argparse (as `type=` callables) and the TOML loader, so both accept
# the same spellings. argparse turns ArgumentTypeError into a usage error.

def parse_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}")


_TRUE_WORDS = ("1", "true", "yes", "on")
_FALSE_WORDS = ("0", "false", "no", "off")


def parse_bool(value) -> bool:
    """A TOML boolean, or one of the on/off words (case-insensitive)."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise argparse.ArgumentTypeError(f"expected true or false: {value!r}")


def parse_char_byte(value) -> int:
    """/endchar: the first character of the argument, as a byte value."""
    if not isinstance(value, str):
        raise argparse.ArgumentTypeError(f"terminating character must be a string: {value!r}")
    if not value:
        raise argparse.ArgumentTypeError("terminating character not specified")
    code = ord(value[0])
    if code > 255:
        raise argparse.ArgumentTypeError(f"terminating character must be a single byte: {value[0]!r}")
    return code


def parse_hex_byte(value) -> int:
    """/endhex: a hex byte such as 0A, 0x0a or FF."""
    # A bare TOML integer would be read as decimal, so only text is accepted.
    if not isinstance(value, str):
        raise argparse.ArgumentTypeError(f"hex byte must be a string such as \"0A\": {value!r}")
    try:
        code = int(value, 16)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid hex byte: {value!r}")
    if not 0 <= code <= 255:
        raise argparse.ArgumentTypeError(f"hex byte out of range 00-FF: {value!r}")
    return code


def _convert(value, conv, key: str):
    if value is None:
        return None
    try:
        return conv(value)
    except argparse.ArgumentTypeError as e:
        raise ArgumentError(f"Error: config {key}: {e}") from e


def config_defaults_from(cfg: dict) -> dict:
    """Map TOML config onto argparse destination names."""
    endchar = _convert(_get_cfg(cfg, "termination", "endchar"), parse_char_byte, "termination.endchar")
    endhex = _convert(_get_cfg(cfg, "termination", "endhex"), parse_hex_byte, "termination.endhex")
    if _convert(_get_cfg(cfg, "logging", "quiet", False), parse_bool, "logging.quiet"):
        verbosity = VERBOSITY_QUIET
    elif _convert(_get_cfg(cfg, "logging", "debug", False), parse_bool, "logging.debug"):
        verbosity = VERBOSITY_DEBUG
    else:
        verbosity = VERBOSITY_NORMAL
    return {
        "devnum": _convert(_get_cfg(cfg, "serial", "devnum"), parse_int, "serial.devnum"),
        "port": _get_cfg(cfg, "serial", "port", None),
        "baudrate": _convert(_get_cfg(cfg, "serial", "baudrate", DEFAULT_BAUD), parse_int, "serial.baudrate"),
        "device_template": _get_cfg(cfg, "serial", "device_template", DEFAULT_DEVICE_TEMPLATE),
        "scan_min": _convert(_get_cfg(cfg, "serial", "scan_min", SCAN_MIN), parse_int, "serial.scan_min"),
        "scan_max": _convert(_get_cfg(cfg, "serial", "scan_max", SCAN_MAX), parse_int, "serial.scan_max"),
        "charcount": _convert(_get_cfg(cfg, "termination", "charcount"), parse_int, "termination.charcount"),
        "timeout": _convert(_get_cfg(cfg, "termination", "timeout_ms"), parse_int, "termination.timeout_ms"),
        "endchar": endhex if endhex is not None else endchar,
        "keystrokes": _convert(_get_cfg(cfg, "output", "keystrokes", False), parse_bool, "output.keystrokes"),
        "verbosity": verbosity,
        "json": _convert(_get_cfg(cfg, "logging", "json", get_bool_env("COMPRINT_JSON")), parse_bool, "logging.json"),
    }
