from __future__ import annotations


class ComPrintError(Exception):
    """Fatal startup failure. Reported once on stderr, then the process exits."""
    exit_code = 1


class PortUnavailable(ComPrintError):
    """The explicitly requested device could not be opened."""


class NoPortFound(ComPrintError):
    """No device in the scan range could be opened."""


class ConfigurationFailed(ComPrintError):
    """The OS rejected the line or timeout parameters."""


class ArgumentError(ComPrintError):
    """Malformed or missing command-line (or config file) value."""


class KeystrokesUnavailable(ArgumentError):
    """Keystroke emission was requested but no keyboard backend is available."""
