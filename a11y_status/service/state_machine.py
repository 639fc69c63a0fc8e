"""Refresh lifecycle state machine."""

from enum import Enum, auto
from typing import ClassVar

import structlog


logger = structlog.get_logger()


class RefreshState(Enum):
    """Lifecycle of one identity's refresh.

    State transitions:
        PENDING -> FETCHING: Cached record is stale or refresh was forced
        PENDING -> SKIPPED: Cached record is fresh, nothing to do
        FETCHING -> MERGED: Upstream returned a status, merged with the cache
        FETCHING -> FAILED: Upstream fetch failed, cache left untouched
        MERGED -> STORED: Merged record written to the store
        MERGED -> FAILED: Store write failed
    """

    PENDING = auto()
    FETCHING = auto()
    MERGED = auto()
    STORED = auto()
    SKIPPED = auto()
    FAILED = auto()


class RefreshStateError(Exception):
    """Raised when an invalid refresh state transition is attempted."""

    def __init__(self, from_state: RefreshState, to_state: RefreshState) -> None:
        """Initialize the error.

        Args:
            from_state: The current state.
            to_state: The attempted target state.
        """
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid refresh state transition: {from_state.name} -> {to_state.name}"
        )


class RefreshStateMachine:
    """State machine for a single refresh.

    Guarantees the store is only written after a successful merge.
    """

    VALID_TRANSITIONS: ClassVar[dict[RefreshState, set[RefreshState]]] = {
        RefreshState.PENDING: {
            RefreshState.FETCHING,
            RefreshState.SKIPPED,
        },
        RefreshState.FETCHING: {
            RefreshState.MERGED,
            RefreshState.FAILED,
        },
        RefreshState.MERGED: {
            RefreshState.STORED,
            RefreshState.FAILED,
        },
        RefreshState.STORED: set(),  # Terminal state
        RefreshState.SKIPPED: set(),  # Terminal state
        RefreshState.FAILED: set(),  # Terminal state
    }

    def __init__(self, identity: str) -> None:
        """Initialize the state machine in PENDING state.

        Args:
            identity: Identity being refreshed, for logging.
        """
        self._identity = identity
        self._state = RefreshState.PENDING
        self._log = logger.bind(identity=identity, component="service")

    @property
    def state(self) -> RefreshState:
        """Get the current state."""
        return self._state

    @property
    def identity(self) -> str:
        """Get the identity."""
        return self._identity

    def can_transition(self, to_state: RefreshState) -> bool:
        """Check if a transition to the given state is valid."""
        return to_state in self.VALID_TRANSITIONS.get(self._state, set())

    def transition(self, to_state: RefreshState) -> None:
        """Transition to a new state.

        Args:
            to_state: The target state.

        Raises:
            RefreshStateError: If the transition is invalid.
        """
        if not self.can_transition(to_state):
            self._log.error(
                "invariant_violation",
                error_type="illegal_state_transition",
                from_state=self._state.name,
                to_state=to_state.name,
            )
            raise RefreshStateError(self._state, to_state)

        old_state = self._state
        self._state = to_state
        self._log.debug(
            "refresh_state_transition",
            from_state=old_state.name,
            to_state=to_state.name,
        )

    def is_terminal(self) -> bool:
        """Check if the current state is terminal."""
        return not self.VALID_TRANSITIONS[self._state]
