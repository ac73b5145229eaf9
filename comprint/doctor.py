from __future__ import annotations

from .config import PortConfig
from .locator import OPEN_ERRORS, PortLocator


def list_ports() -> list:
    """Ports the OS reports, as (device, description) pairs."""
    from serial.tools import list_ports as _list_ports

    return [(p.device, p.description) for p in sorted(_list_ports.comports(), key=lambda p: p.device)]


def probe(locator: PortLocator, config: PortConfig) -> list:
    """Try every locator candidate in order, closing each one straight away.

    Returns a list of (device, ok, error) tuples. Nothing is read or written.
    """
    results = []
    for device in locator.candidates(config):
        try:
            ser = locator.opener(device)
        except OPEN_ERRORS as e:
            results.append((device, False, str(e)))
            continue
        try:
            ser.close()
        except OPEN_ERRORS:
            pass
        results.append((device, True, ""))
    return results


def run_doctor(locator: PortLocator, config: PortConfig, ports=None) -> int:
    """Print the ports the OS knows about and which scan candidates open."""
    print("Doctor Mode (safe):")
    print("  - Devices are opened and closed again; nothing is read or written.")
    print()

    if ports is None:
        ports = list_ports()
    print("Detected ports:")
    if not ports:
        print("  (none)")
    for device, description in ports:
        print(f"  {device}  {description}")
    print()

    print("Scan order:")
    chosen = None
    for device, ok, error in probe(locator, config):
        if ok:
            print(f"  Trying {device}...OK")
            if chosen is None:
                chosen = device
        else:
            print(f"  Trying {device}...FAILED ({error})")
    print()

    if chosen is None:
        print("WARN: no candidate opened; a normal run would fail.")
    else:
        print(f"OK: a normal run would open {chosen}")
    return 0
