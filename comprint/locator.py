from __future__ import annotations

from .config import PortConfig
from .errors import ConfigurationFailed, NoPortFound, PortUnavailable
from .logging import JsonLogger
from .serialio import PortHandle, line_settings, open_serial

# pyserial raises SerialException (an OSError) for missing/busy devices and
# ValueError for settings it refuses before touching the OS.
OPEN_ERRORS = (OSError, ValueError)


class PortLocator:
    """Finds and opens a serial device.

    With an explicit device (name or index) only that device is tried. Otherwise
    indices are scanned from scan_max down to scan_min and the first device that
    opens wins: newer and virtual adapters tend to get the higher numbers.
    Every candidate is tried exactly once."""
    def __init__(self, logger: JsonLogger, opener=None):
        """
        Args:
            logger: Diagnostics sink.
            opener: Callable taking a device name and returning an open serial
                object (defaults to pyserial). Raises OSError/ValueError on failure.
        """
        self.logger = logger
        self.opener = opener or open_serial

    @staticmethod
    def is_explicit(config: PortConfig) -> bool:
        return config.device_name is not None or config.device_index is not None

    def candidates(self, config: PortConfig) -> list:
        """Device names in the order they will be tried."""
        if config.device_name is not None:
            return [config.device_name]
        if config.device_index is not None:
            return [config.device_for(config.device_index)]
        return [config.device_for(n) for n in range(config.scan_max, config.scan_min - 1, -1)]

    def locate(self, config: PortConfig) -> PortHandle:
        """Open, wrap and configure the first usable device.

        Raises:
            PortUnavailable: the explicitly requested device did not open.
            NoPortFound: nothing in the scan range opened.
            ConfigurationFailed: the device opened but rejected the line settings
                (the handle is released before this propagates).
        """
        handle = None
        last_error = None
        for device in self.candidates(config):
            self.logger.debug("trying", device=device)
            try:
                ser = self.opener(device)
            except OPEN_ERRORS as e:
                last_error = e
                self.logger.debug("open_failed", device=device, error=str(e))
                continue
            handle = PortHandle(ser, device, self.logger)
            self.logger.debug("open_ok", device=device)
            break

        if handle is None:
            if self.is_explicit(config):
                raise PortUnavailable(f"Error: could not open serial port {self.candidates(config)[0]} ({last_error})")
            raise NoPortFound(
                f"Error: could not open serial port (tried {config.device_for(config.scan_max)} "
                f"down to {config.device_for(config.scan_min)})"
            )

        try:
            self.logger.emit(
                "port_opened",
                device=handle.device,
                baud=config.baud_rate,
                msg=f"Opening {handle.device} at {config.baud_rate} baud",
            )
            try:
                handle.ser.apply_settings(line_settings(config))
            except OPEN_ERRORS as e:
                raise ConfigurationFailed(f"Error setting device parameters: {e}") from e
        except BaseException:
            # Includes Ctrl+C or a broken stderr after the open: the caller never sees this handle.
            handle.release()
            raise
        return handle
