#!/usr/bin/env python3
#
# Serial port console printer
#
# Reads bytes from a serial (COM) port and prints them to the console as they
# arrive, optionally typing them into the focused window as keystrokes.
#
# With no device given, COM ports are scanned from the highest index down and
# the first one that opens is used. The program runs until Ctrl+C, or until a
# character count, an idle timeout or a terminating byte ends it.
#

from __future__ import annotations

import time

from comprint import cli
from comprint.cli import main, parse_args, policy_from, port_config_from, run
from comprint.config import PortConfig, TerminationPolicy
from comprint.constants import VERSION
from comprint.doctor import probe, run_doctor
from comprint.errors import ArgumentError, ConfigurationFailed, NoPortFound, PortUnavailable
from comprint.locator import PortLocator
from comprint.logging import JsonLogger
from comprint.monitor import StreamMonitor
from comprint.serialio import ConsoleSink, PortHandle
from comprint.state import TerminationReason


if __name__ == "__main__":
    raise SystemExit(main())
