"""Collaborator-facing status service.

Ties the client, reconciler and store together:
- Lazy refresh driven by the freshness policy, with forced refresh
- Error isolation that never touches the store on a failed fetch
- Bulk refresh with a success/failure tally
"""

from a11y_status.service.errors import StatusNotFoundError, StatusServiceError
from a11y_status.service.metrics import RefreshMetrics
from a11y_status.service.models import (
    GENERIC_FAILURE_MESSAGE,
    BulkRefreshResult,
    RefreshOutcome,
)
from a11y_status.service.service import StatusService
from a11y_status.service.state_machine import (
    RefreshState,
    RefreshStateError,
    RefreshStateMachine,
)


__all__ = [
    # Service
    "StatusService",
    # Models
    "GENERIC_FAILURE_MESSAGE",
    "BulkRefreshResult",
    "RefreshOutcome",
    # Errors
    "StatusNotFoundError",
    "StatusServiceError",
    # State machine
    "RefreshState",
    "RefreshStateError",
    "RefreshStateMachine",
    # Metrics
    "RefreshMetrics",
]
