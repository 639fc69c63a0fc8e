"""Result models returned by the status service."""

from pydantic import BaseModel, ConfigDict, Field

from a11y_status.fetch.models import FetchError
from a11y_status.status.models import StatusRecord


GENERIC_FAILURE_MESSAGE = "Unable to retrieve WSU Accessibility Training status."


class RefreshOutcome(BaseModel):
    """Outcome of refreshing one identity.

    ``record`` is the authoritative record after the refresh: the merged
    record on success, or the untouched cached record (possibly None) when
    the fetch failed or was skipped.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    identity: str
    record: StatusRecord | None = None
    error: FetchError | None = None
    refreshed: bool = Field(default=False, description="Merged record was stored")
    skipped: bool = Field(default=False, description="Cached record was fresh")

    @property
    def is_success(self) -> bool:
        """Whether the refresh stored a record or was skipped as fresh."""
        return self.error is None

    @property
    def is_soft_failure(self) -> bool:
        """Whether upstream had nothing to say (empty response)."""
        return self.error is not None and self.error.is_soft

    def user_message(self, debug: bool = False) -> str | None:
        """Message to show a person after a failed refresh.

        Args:
            debug: Include the underlying error detail.

        Returns:
            The message, or None when the refresh did not fail.
        """
        if self.error is None:
            return None
        if not debug:
            return GENERIC_FAILURE_MESSAGE
        detail = self.error.message
        if self.error.status_code:
            detail = f"{detail} (HTTP {self.error.status_code})"
        return f"{GENERIC_FAILURE_MESSAGE} {self.error.error_class.value}: {detail}"


class BulkRefreshResult(BaseModel):
    """Tally of a multi-identity refresh."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    success: int = Field(default=0, ge=0)
    fail: int = Field(default=0, ge=0)
    errors: dict[str, str] = Field(
        default_factory=dict, description="Failure detail by identity"
    )

    @property
    def total(self) -> int:
        """Number of identities processed."""
        return self.success + self.fail

    def summary(self) -> list[str]:
        """Operator notices describing the tally."""
        lines: list[str] = []
        if self.success:
            lines.append(
                "Updated WSU Accessibility Training status info "
                f"for {self.success} users."
            )
        if self.fail:
            lines.append(
                "WSU Accessibility Training status update failed "
                f"for {self.fail} users."
            )
        return lines
