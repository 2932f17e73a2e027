"""
Service layer for host assignment.
"""

from .coordinator import CapacityExhaustedError, HostAssignmentService, host_assignment_service
from .reconciler import HostReconciler, host_reconciler

__all__ = [
    "CapacityExhaustedError",
    "HostAssignmentService",
    "host_assignment_service",
    "HostReconciler",
    "host_reconciler",
]
