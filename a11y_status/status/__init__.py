"""Certification status domain: records, classification and reconciliation."""

from a11y_status.status.identity import (
    InvalidIdentityError,
    canonicalize_identity,
    derive_identity,
    email_local_part,
    sanitize_identity,
)
from a11y_status.status.models import (
    RECORD_SCHEMA_VERSION,
    STATE_LABELS,
    CertificationState,
    RecordSnapshot,
    StatusRecord,
    ensure_aware,
)
from a11y_status.status.predicates import (
    DEFAULT_GRACE_PERIOD_DAYS,
    EXPIRING_SOON_MONTHS,
    classify,
    expires_within_one_month,
    grace_period_end,
    grace_period_remaining,
    human_time_diff,
    in_grace_period,
    is_fresh,
    month_difference,
    time_to_expiration,
)
from a11y_status.status.reconciler import StatusReconciler


__all__ = [
    # Identity
    "InvalidIdentityError",
    "canonicalize_identity",
    "derive_identity",
    "email_local_part",
    "sanitize_identity",
    # Models
    "RECORD_SCHEMA_VERSION",
    "STATE_LABELS",
    "CertificationState",
    "RecordSnapshot",
    "StatusRecord",
    "ensure_aware",
    # Predicates
    "DEFAULT_GRACE_PERIOD_DAYS",
    "EXPIRING_SOON_MONTHS",
    "classify",
    "expires_within_one_month",
    "grace_period_end",
    "grace_period_remaining",
    "human_time_diff",
    "in_grace_period",
    "is_fresh",
    "month_difference",
    "time_to_expiration",
    # Reconciliation
    "StatusReconciler",
]
