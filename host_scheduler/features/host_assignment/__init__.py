"""
Host assignment feature package.

Keeps every layer of capacity-aware host assignment together: domain
models, the host registry and session log repositories, the selector,
conflict checker, coordinator and reconciler services, the periodic
reconcile job, and the ops router.
"""

from .domain.models import AvailabilityResult, Host, HostProvisioning  # noqa: F401
from .services.coordinator import (  # noqa: F401
    CapacityExhaustedError,
    HostAssignmentService,
    host_assignment_service,
)
