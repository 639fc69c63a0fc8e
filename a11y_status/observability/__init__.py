"""Observability module for logging."""

from a11y_status.observability.logging import (
    bind_command_context,
    clear_command_context,
    configure_logging,
)


__all__ = [
    "bind_command_context",
    "clear_command_context",
    "configure_logging",
]
