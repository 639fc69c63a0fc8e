"""Refresh orchestration: the collaborator-facing status API."""

import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from a11y_status.fetch.client import StatusClient
from a11y_status.fetch.models import FetchError, FetchErrorClass
from a11y_status.reminder.composer import Reminder, ReminderComposer
from a11y_status.service.errors import StatusNotFoundError
from a11y_status.service.metrics import RefreshMetrics
from a11y_status.service.models import BulkRefreshResult, RefreshOutcome
from a11y_status.service.state_machine import RefreshState, RefreshStateMachine
from a11y_status.status.identity import InvalidIdentityError, canonicalize_identity
from a11y_status.status.models import (
    CertificationState,
    RecordSnapshot,
    StatusRecord,
    ensure_aware,
)
from a11y_status.status.predicates import classify, is_fresh
from a11y_status.status.reconciler import StatusReconciler
from a11y_status.store.base import StatusStore
from a11y_status.store.errors import RecordDecodeError, StatusStoreError


logger = structlog.get_logger()


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class _IdentityLock:
    """Lock for one identity plus the number of callers holding or awaiting it."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class StatusService:
    """Fetches, reconciles and caches certification status.

    Control flow for a refresh: read the cached record, skip when it is fresh
    (unless forced), fetch upstream, merge, store. The store is never written
    when the fetch fails; the cached record stays authoritative and is
    returned with the error attached.

    Refreshes of the same identity are serialized; different identities do
    not block each other.
    """

    def __init__(
        self,
        client: StatusClient,
        store: StatusStore,
        reconciler: StatusReconciler | None = None,
        composer: ReminderComposer | None = None,
        clock: Callable[[], datetime] | None = None,
        metrics: RefreshMetrics | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            client: Upstream status client.
            store: Status record store.
            reconciler: Merge policy (defaults to one using the client's source
                timezone).
            composer: Reminder composer.
            clock: Source of "now" (injectable for tests).
            metrics: Optional metrics instance.
        """
        self._client = client
        self._store = store
        self._reconciler = reconciler or StatusReconciler(source_tz=client.config.tzinfo)
        self._composer = composer or ReminderComposer()
        self._clock = clock or _utc_now
        self._metrics = metrics or RefreshMetrics.get_instance()
        self._log = logger.bind(component="service")
        self._locks: dict[str, _IdentityLock] = {}
        self._locks_guard = threading.Lock()

    def now(self) -> datetime:
        """Current instant according to the service clock."""
        return ensure_aware(self._clock())

    @contextmanager
    def _identity_lock(self, identity: str) -> Iterator[None]:
        with self._locks_guard:
            entry = self._locks.get(identity)
            if entry is None:
                entry = self._locks[identity] = _IdentityLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[identity]

    # ===== Reads =====

    def get_status(self, identity: str, refresh: bool = False) -> StatusRecord | None:
        """Get the record for an identity.

        Args:
            identity: Network ID (canonicalized before use).
            refresh: Refresh first when the cached record is not fresh.

        Returns:
            The record, or None if there is none.

        Raises:
            InvalidIdentityError: If the identity is unusable.
            StatusStoreError: If the store fails.
        """
        key = canonicalize_identity(identity)
        if refresh:
            return self.refresh_status(key).record
        return self._store.get(key)

    def require_status(self, identity: str, refresh: bool = False) -> StatusRecord:
        """Get the record for an identity, raising when there is none.

        Raises:
            StatusNotFoundError: If no record exists.
        """
        record = self.get_status(identity, refresh=refresh)
        if record is None:
            raise StatusNotFoundError(canonicalize_identity(identity))
        return record

    def snapshot(self, identity: str, refresh: bool = False) -> RecordSnapshot:
        """Get a record together with its classification at the current time.

        Raises:
            StatusNotFoundError: If no record exists.
        """
        record = self.require_status(identity, refresh=refresh)
        now = self.now()
        return RecordSnapshot(
            identity=canonicalize_identity(identity),
            record=record,
            state=classify(record, now),
            as_of=now,
        )

    def classify(self, record: StatusRecord, now: datetime | None = None) -> CertificationState:
        """Classify a record (at the service clock's now by default)."""
        return classify(record, now or self.now())

    def compose_reminder(
        self,
        record: StatusRecord,
        now: datetime | None = None,
        display_name: str | None = None,
        registered_at: datetime | None = None,
    ) -> Reminder:
        """Compose the reminder for a record (at the service clock's now by default)."""
        return self._composer.compose(
            record,
            now or self.now(),
            display_name=display_name,
            registered_at=registered_at,
        )

    # ===== Writes =====

    def refresh_status(self, identity: str, force: bool = False) -> RefreshOutcome:
        """Refresh one identity's record from upstream.

        Args:
            identity: Network ID (canonicalized before use).
            force: Refetch even when the cached record is fresh.

        Returns:
            RefreshOutcome with the authoritative record and any fetch error.

        Raises:
            InvalidIdentityError: If the identity is unusable.
            StatusStoreError: If the merged record cannot be stored.
        """
        key = canonicalize_identity(identity)

        with self._identity_lock(key):
            return self._refresh_locked(key, force)

    def _refresh_locked(self, identity: str, force: bool) -> RefreshOutcome:
        log = self._log.bind(identity=identity)
        machine = RefreshStateMachine(identity)
        self._metrics.record_refresh()
        now = self.now()

        previous = self._read_previous(identity)

        if not force and is_fresh(previous, now):
            machine.transition(RefreshState.SKIPPED)
            self._metrics.record_skipped()
            log.debug("status_refresh_skipped", reason="fresh")
            return RefreshOutcome(identity=identity, record=previous, skipped=True)

        machine.transition(RefreshState.FETCHING)
        result = self._client.fetch(identity)

        if result.raw is None:
            error = result.error
            if error is None:
                error = FetchError(
                    error_class=FetchErrorClass.PARSE_ERROR,
                    message="Fetch returned neither a status nor an error",
                )
            return self._fail(machine, identity, previous, error)

        try:
            merged = self._reconciler.merge(previous, result.raw, now)
        except ValueError as e:
            error = FetchError(error_class=FetchErrorClass.PARSE_ERROR, message=str(e))
            return self._fail(machine, identity, previous, error)

        machine.transition(RefreshState.MERGED)

        try:
            self._store.put(identity, merged)
        except StatusStoreError as e:
            machine.transition(RefreshState.FAILED)
            self._metrics.record_failed(type(e).__name__)
            log.error("status_store_failed", error=str(e))
            raise

        machine.transition(RefreshState.STORED)

        preserved = (
            previous is not None and previous.was_certified and not merged.is_certified
        )
        self._metrics.record_stored(expiration_preserved=preserved)
        log.info(
            "status_refreshed",
            is_certified=merged.is_certified,
            was_certified=merged.was_certified,
            expire_date=merged.expire_date.isoformat() if merged.expire_date else None,
            forced=force,
        )
        return RefreshOutcome(identity=identity, record=merged, refreshed=True)

    def _read_previous(self, identity: str) -> StatusRecord | None:
        """Read the cached record; an undecodable one is replaced by the refresh."""
        try:
            return self._store.get(identity)
        except RecordDecodeError as e:
            self._log.warning("cached_record_unreadable", identity=identity, error=str(e))
            return None

    def _fail(
        self,
        machine: RefreshStateMachine,
        identity: str,
        previous: StatusRecord | None,
        error: FetchError,
    ) -> RefreshOutcome:
        machine.transition(RefreshState.FAILED)
        self._metrics.record_failed(error.error_class.value)
        log_method = self._log.info if error.is_soft else self._log.warning
        log_method(
            "status_refresh_failed",
            identity=identity,
            error_class=error.error_class.value,
            status_code=error.status_code,
            error=error.message,
            kept_previous=previous is not None,
        )
        return RefreshOutcome(identity=identity, record=previous, error=error)

    def refresh_many(
        self,
        identities: Iterable[str],
        force: bool = False,
    ) -> BulkRefreshResult:
        """Refresh several identities in order, continuing past failures.

        Args:
            identities: Network IDs to refresh.
            force: Refetch even fresh records.

        Returns:
            BulkRefreshResult tally with per-identity error detail.
        """
        success = 0
        fail = 0
        errors: dict[str, str] = {}

        for identity in identities:
            try:
                outcome = self.refresh_status(identity, force=force)
            except (InvalidIdentityError, StatusStoreError) as e:
                fail += 1
                errors[identity] = str(e)
                continue

            if outcome.error is not None:
                fail += 1
                errors[outcome.identity] = (
                    f"{outcome.error.error_class.value}: {outcome.error.message}"
                )
            else:
                success += 1

        self._log.info("bulk_refresh_complete", success=success, fail=fail)
        return BulkRefreshResult(success=success, fail=fail, errors=errors)

    def refresh_all(self, force: bool = False) -> BulkRefreshResult:
        """Refresh every identity in the store.

        This is the entry point for a periodic scheduler.
        """
        return self.refresh_many(self._store.identities(), force=force)

    def delete_status(self, identity: str) -> bool:
        """Delete an identity's cached record.

        Returns:
            True if a record was deleted.
        """
        key = canonicalize_identity(identity)
        with self._identity_lock(key):
            deleted = self._store.delete(key)
        self._log.info("status_deleted", identity=key, deleted=deleted)
        return deleted
