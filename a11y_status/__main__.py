"""Allow ``python -m a11y_status``."""

from a11y_status.cli.main import cli


cli()
