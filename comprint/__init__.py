"""comprint package for com-printer."""

from .state import MonitorState, TerminationReason
from .monitor import StreamMonitor
from .locator import PortLocator

__all__ = ["MonitorState", "TerminationReason", "StreamMonitor", "PortLocator"]
