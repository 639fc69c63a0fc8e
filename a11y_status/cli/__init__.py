"""Command line interface."""

from a11y_status.cli.main import cli


__all__ = ["cli"]
