from __future__ import annotations

import argparse
import json
import signal
import sys
from argparse import RawDescriptionHelpFormatter

from .config import (
    PortConfig,
    TerminationPolicy,
    config_defaults_from,
    load_toml_config,
    parse_char_byte,
    parse_hex_byte,
    parse_int,
)
from .constants import USAGE_EXAMPLES, VERBOSITY_DEBUG, VERBOSITY_QUIET, VERSION
from .doctor import run_doctor
from .errors import ArgumentError, ComPrintError
from .keystrokes import KeystrokeEmitter
from .locator import PortLocator
from .logging import JsonLogger
from .monitor import StreamMonitor
from .serialio import ConsoleSink, serial


class SlashArgumentParser(argparse.ArgumentParser):
    """argparse with Windows-style /flags that raises instead of exiting."""
    def error(self, message):
        raise ArgumentError(f"Error: {message}")


def build_arg_parser(defaults=None):
    """Construct the CLI argument parser."""
    ap = SlashArgumentParser(
        prog="com-printer",
        description="Print text arriving on a serial port to the console.",
        epilog=USAGE_EXAMPLES,
        formatter_class=RawDescriptionHelpFormatter,
        prefix_chars="/",
        add_help=False,
        allow_abbrev=False,
    )
    # Defaults come from the built-in values, optionally overridden by a TOML file.
    if defaults is None:
        defaults = config_defaults_from({})
    ap.set_defaults(**defaults)
    ap.add_argument("/devnum", type=parse_int, metavar="N", help="Only try device index N (e.g. 22 for COM22).")
    ap.add_argument("/port", metavar="NAME", help="Open this device path directly (e.g. /dev/ttyACM0).")
    ap.add_argument("/baudrate", type=parse_int, metavar="N", help="Baud rate (default: 2400).")
    ap.add_argument("/charcount", type=parse_int, metavar="N", help="Exit after N characters. 0 or less disables.")
    ap.add_argument("/timeout", type=parse_int, metavar="MS", help="Exit after MS milliseconds without data. 0 or less disables.")
    ap.add_argument("/endchar", dest="endchar", type=parse_char_byte, metavar="C",
                    help="Exit when character C is received (C itself is not printed).")
    ap.add_argument("/endhex", dest="endchar", type=parse_hex_byte, metavar="HH",
                    help="Exit when hex byte HH is received (e.g. 0A for newline).")
    ap.add_argument("/keystrokes", action="store_true", help="Also type received characters as keystrokes.")
    ap.add_argument("/debug", dest="verbosity", action="store_const", const=VERBOSITY_DEBUG, help="Verbose diagnostics.")
    ap.add_argument("/quiet", dest="verbosity", action="store_const", const=VERBOSITY_QUIET, help="No diagnostics.")
    ap.add_argument("/json", action="store_true", help="Emit diagnostics as JSON events.")
    ap.add_argument("/config", metavar="PATH", help="Path to a TOML config file. CLI args override config values.")
    ap.add_argument("/print-config", action="store_true", help="Print the resolved configuration and exit.")
    ap.add_argument("/doctor", action="store_true", help="List ports, probe the scan range and exit.")
    ap.add_argument("/version", action="store_true", help="Print version and exit.")
    ap.add_argument("/help", "/?", dest="help", action="store_true", help="Show this help and exit.")
    return ap


def bind_values(ap, argv) -> list:
    """Attach the token after each value-taking flag as `/flag=value`.

    Values such as /dev/ttyACM0 start with the prefix character and argparse
    would otherwise read them as options. The following token is always the
    value, whatever it looks like.
    """
    value_flags = {s for a in ap._actions if a.nargs is None for s in a.option_strings}
    bound = []
    tokens = iter(argv)
    for token in tokens:
        if token in value_flags:
            value = next(tokens, None)
            bound.append(token if value is None else f"{token}={value}")
        else:
            bound.append(token)
    return bound


def parse_args(argv):
    """Parse argv, applying a /config file first. Returns (args, unrecognised)."""
    ap = build_arg_parser()
    argv = bind_values(ap, list(argv))
    args, unknown = ap.parse_known_args(argv)
    if args.config:
        defaults = config_defaults_from(load_toml_config(args.config))
        args, unknown = build_arg_parser(defaults).parse_known_args(argv)
    validate_args(args)
    return args, unknown


def validate_args(args):
    if args.devnum is not None and args.devnum < 0:
        raise ArgumentError(f"Error: device number must not be negative: {args.devnum}")
    if args.baudrate is None or args.baudrate <= 0:
        raise ArgumentError(f"Error: baud rate must be positive: {args.baudrate}")
    try:
        str(args.device_template).format(n=args.scan_max)
    except (KeyError, IndexError, ValueError) as e:
        raise ArgumentError(f"Error: bad device_template {args.device_template!r}: {e}") from e


def port_config_from(args) -> PortConfig:
    return PortConfig(
        device_index=args.devnum,
        device_name=args.port or None,
        baud_rate=args.baudrate,
        device_template=args.device_template,
        scan_max=args.scan_max,
        scan_min=args.scan_min,
    )


def policy_from(args) -> TerminationPolicy:
    return TerminationPolicy.from_values(charcount=args.charcount, timeout_ms=args.timeout, endchar=args.endchar)


def resolved_config_dict(args) -> dict:
    return {
        "serial": {
            "devnum": args.devnum,
            "port": args.port,
            "baudrate": args.baudrate,
            "device_template": args.device_template,
            "scan_min": args.scan_min,
            "scan_max": args.scan_max,
        },
        "termination": {
            "charcount": args.charcount,
            "timeout_ms": args.timeout,
            "endhex": (f"{args.endchar:02X}" if args.endchar is not None else None),
        },
        "output": {"keystrokes": bool(args.keystrokes)},
        "logging": {
            "debug": args.verbosity >= VERBOSITY_DEBUG,
            "quiet": args.verbosity == VERBOSITY_QUIET,
            "json": bool(args.json),
        },
    }


def _raise_interrupt(signum, frame):
    raise KeyboardInterrupt


def run(args, logger: JsonLogger, locator: PortLocator = None, sink=None, keystrokes=None) -> int:
    """Locate the port and monitor it until a termination condition fires."""
    port_config = port_config_from(args)
    policy = policy_from(args)
    locator = locator or PortLocator(logger)
    if args.keystrokes and keystrokes is None:
        keystrokes = KeystrokeEmitter(logger)

    monitor = StreamMonitor(policy, sink or ConsoleSink(), logger, keystrokes=keystrokes)

    # SIGTERM unwinds like Ctrl+C so the port guard below still runs.
    prev_sigterm = signal.signal(signal.SIGTERM, _raise_interrupt)
    try:
        with locator.locate(port_config) as port:
            reason = monitor.run(port)
        logger.debug("exit", reason=reason.value, bytes_read=monitor.state.bytes_read)
    except KeyboardInterrupt:
        logger.emit("interrupted", bytes_read=monitor.state.bytes_read)
    finally:
        signal.signal(signal.SIGTERM, prev_sigterm)
    return 0


def main(argv=None):
    """CLI entry point. Returns the process exit code."""
    if argv is None:
        argv = sys.argv[1:]

    try:
        args, unknown = parse_args(argv)
    except ArgumentError as e:
        JsonLogger().error("error", kind=type(e).__name__, msg=str(e))
        return e.exit_code

    logger = JsonLogger(enable_json=bool(args.json), verbosity=args.verbosity)

    for token in unknown:
        logger.emit("unrecognised_option", option=token, msg=f"Unrecognised option: {token}")

    if args.help:
        build_arg_parser().print_help()
        return 0

    if args.version:
        print(VERSION)
        return 0

    if args.print_config:
        print(json.dumps(resolved_config_dict(args), indent=2, sort_keys=True))
        return 0

    logger.emit("startup", version=VERSION, msg=f"com-printer {VERSION}")
    logger.debug(
        "config",
        devnum=args.devnum,
        port=args.port,
        baudrate=args.baudrate,
        charcount=args.charcount,
        timeout_ms=args.timeout,
        endchar=args.endchar,
        keystrokes=int(bool(args.keystrokes)),
    )

    # Serial (pyserial) is required to open any device.
    if serial is None:  # pragma: no cover
        logger.error("error", msg="ERROR: pyserial is not installed. Install it with: pip install pyserial")
        return 2

    try:
        if args.doctor:
            return run_doctor(PortLocator(logger), port_config_from(args))
        return run(args, logger)
    except ComPrintError as e:
        logger.error("error", kind=type(e).__name__, msg=str(e))
        return e.exit_code
    except KeyboardInterrupt:
        logger.emit("interrupted")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
