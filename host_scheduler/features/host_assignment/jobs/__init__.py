"""
Background jobs for host assignment.
"""

from .reconcile_job import (
    HostReconcileJob,
    host_reconcile_job,
    run_host_reconcile_once,
    start_host_reconcile_scheduler,
)

__all__ = [
    "HostReconcileJob",
    "host_reconcile_job",
    "run_host_reconcile_once",
    "start_host_reconcile_scheduler",
]
