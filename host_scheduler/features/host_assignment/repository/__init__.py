"""
Repository subpackage for host assignment.
"""

from .host_registry import HostRegistry, HostRegistryError, host_registry
from .session_log import SessionLogError, SessionLogRepository, session_log

__all__ = [
    "HostRegistry",
    "HostRegistryError",
    "host_registry",
    "SessionLogError",
    "SessionLogRepository",
    "session_log",
]
