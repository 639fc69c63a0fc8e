"""CLI commands for the certification status cache."""

import json
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import click
import structlog
from dateutil import parser as date_parser

from a11y_status import __version__
from a11y_status.fetch.client import StatusClient
from a11y_status.observability.logging import (
    bind_command_context,
    clear_command_context,
    configure_logging,
)
from a11y_status.reminder.composer import ReminderComposer
from a11y_status.service.errors import StatusNotFoundError
from a11y_status.service.models import BulkRefreshResult, RefreshOutcome
from a11y_status.service.service import StatusService
from a11y_status.settings import AppSettings, get_settings
from a11y_status.status.identity import InvalidIdentityError, canonicalize_identity
from a11y_status.status.models import STATE_LABELS, StatusRecord
from a11y_status.status.predicates import classify, human_time_diff
from a11y_status.status.reconciler import StatusReconciler
from a11y_status.store.errors import StatusStoreError
from a11y_status.store.sqlite import SqliteStatusStore


logger = structlog.get_logger()

COMPONENT_CLI = "cli"


@dataclass
class CliContext:
    """Settings shared by every command."""

    settings: AppSettings
    verbose: bool = False

    def open_store(self) -> SqliteStatusStore:
        """Open the configured SQLite store (use as a context manager)."""
        return SqliteStatusStore(self.settings.db_path, source_tz=self.settings.tzinfo)

    def build_service(self, store: SqliteStatusStore) -> StatusService:
        """Wire a StatusService around an open store."""
        return StatusService(
            client=StatusClient(self.settings.to_client_config()),
            store=store,
            reconciler=StatusReconciler(source_tz=self.settings.tzinfo),
            composer=ReminderComposer(grace_period_days=self.settings.grace_period_days),
        )


def _setup(ctx: click.Context, command: str) -> CliContext:
    cli_ctx: CliContext = ctx.find_root().obj
    level = logging.DEBUG if cli_ctx.verbose else logging.WARNING
    configure_logging(level=level, json_format=cli_ctx.settings.json_logs)
    bind_command_context(command, debug=cli_ctx.settings.debug)
    ctx.call_on_close(clear_command_context)
    return cli_ctx


def _record_to_dict(identity: str, record: StatusRecord, now: datetime) -> dict[str, object]:
    state = classify(record, now)
    return {
        "identity": identity,
        "state": state.value,
        "label": STATE_LABELS[state],
        **record.to_storage(),
    }


def _describe_record(identity: str, record: StatusRecord, now: datetime) -> list[str]:
    state = classify(record, now)
    lines = [
        f"{identity}: {STATE_LABELS[state]}",
        f"  Certified: {'yes' if record.is_certified else 'no'}",
        f"  Ever certified: {'yes' if record.was_certified else 'no'}",
    ]
    if record.expire_date is not None:
        diff = human_time_diff(now, record.expire_date)
        when = f"in {diff}" if record.expire_date >= now else f"{diff} ago"
        lines.append(f"  Expires: {record.expire_date.isoformat()} ({when})")
    else:
        lines.append("  Expires: unknown")
    if record.training_url:
        lines.append(f"  Training: {record.training_url}")
    lines.append(f"  Last checked: {record.last_checked.isoformat()}")
    return lines


def _echo_outcome(outcome: RefreshOutcome, debug: bool) -> None:
    if outcome.error is not None:
        click.echo(f"{outcome.identity}: {outcome.user_message(debug)}", err=True)
    elif outcome.skipped:
        click.echo(f"{outcome.identity}: up to date, not refreshed")
    else:
        click.echo(f"{outcome.identity}: updated")


def _require_record(
    service: StatusService,
    identity: str,
    refresh: bool,
    debug: bool,
) -> StatusRecord:
    """Read a record, refreshing first when asked.

    A failed refresh is reported on stderr. The cached record is still used
    when there is one; otherwise the command exits with status 1.
    """
    if refresh:
        outcome = service.refresh_status(identity)
        if outcome.error is not None:
            click.echo(f"{outcome.identity}: {outcome.user_message(debug)}", err=True)
            if outcome.record is None:
                sys.exit(1)
        if outcome.record is not None:
            return outcome.record
    return service.require_status(identity)


def _echo_bulk(result: BulkRefreshResult, debug: bool) -> None:
    for line in result.summary():
        click.echo(line)
    if debug:
        for identity, error in sorted(result.errors.items()):
            click.echo(f"  {identity}: {error}", err=True)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to SQLite status database (overrides A11Y_STATUS_DB_PATH).",
)
@click.option(
    "--api-url",
    default=None,
    help="Upstream status endpoint (overrides A11Y_STATUS_API_URL).",
)
@click.option("--debug", is_flag=True, help="Show error detail for failed refreshes.")
@click.option("--json-logs/--console-logs", default=None, help="Log output format.")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(  # noqa: PLR0913
    ctx: click.Context,
    db_path: Path | None,
    api_url: str | None,
    debug: bool,
    json_logs: bool | None,
    verbose: bool,
) -> None:
    """WSU Accessibility Training certification status CLI."""
    updates: dict[str, object] = {}
    if db_path is not None:
        updates["db_path"] = db_path
    if api_url is not None:
        updates["api_url"] = api_url
    if debug:
        updates["debug"] = True
    if json_logs is not None:
        updates["json_logs"] = json_logs

    settings = AppSettings(**updates) if updates else get_settings()  # type: ignore[arg-type]
    ctx.obj = CliContext(settings=settings, verbose=verbose)


@cli.command()
@click.argument("identity")
@click.option("--refresh", is_flag=True, help="Refresh first if the record is stale.")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def show(ctx: click.Context, identity: str, refresh: bool, json_output: bool) -> None:
    """Show the cached certification status for IDENTITY."""
    cli_ctx = _setup(ctx, "show")

    try:
        with cli_ctx.open_store() as store:
            service = cli_ctx.build_service(store)
            record = _require_record(service, identity, refresh, cli_ctx.settings.debug)
            now = service.now()
    except InvalidIdentityError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)
    except StatusNotFoundError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    key = canonicalize_identity(identity)
    if json_output:
        click.echo(json.dumps(_record_to_dict(key, record, now), indent=2))
    else:
        for line in _describe_record(key, record, now):
            click.echo(line)


@cli.command()
@click.argument("identities", nargs=-1, required=True)
@click.option("--force", is_flag=True, help="Refetch even if records are fresh.")
@click.pass_context
def refresh(ctx: click.Context, identities: tuple[str, ...], force: bool) -> None:
    """Refresh one or more IDENTITIES from the upstream service."""
    cli_ctx = _setup(ctx, "refresh")
    debug = cli_ctx.settings.debug

    with cli_ctx.open_store() as store:
        service = cli_ctx.build_service(store)

        if len(identities) == 1:
            try:
                outcome = service.refresh_status(identities[0], force=force)
            except InvalidIdentityError as e:
                click.echo(f"Error: {e}", err=True)
                sys.exit(2)
            _echo_outcome(outcome, debug)
            if not outcome.is_success:
                sys.exit(1)
            return

        result = service.refresh_many(identities, force=force)

    _echo_bulk(result, debug)
    if result.fail:
        sys.exit(1)


@cli.command("refresh-all")
@click.option("--force", is_flag=True, help="Refetch even if records are fresh.")
@click.pass_context
def refresh_all(ctx: click.Context, force: bool) -> None:
    """Refresh every cached identity (run from a scheduler)."""
    cli_ctx = _setup(ctx, "refresh-all")

    with cli_ctx.open_store() as store:
        result = cli_ctx.build_service(store).refresh_all(force=force)

    if result.total == 0:
        click.echo("No cached identities to refresh.")
        return

    _echo_bulk(result, cli_ctx.settings.debug)
    if result.fail:
        sys.exit(1)


@cli.command()
@click.argument("identity")
@click.pass_context
def delete(ctx: click.Context, identity: str) -> None:
    """Delete the cached status for IDENTITY."""
    cli_ctx = _setup(ctx, "delete")

    try:
        with cli_ctx.open_store() as store:
            deleted = cli_ctx.build_service(store).delete_status(identity)
    except InvalidIdentityError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    if deleted:
        click.echo(f"Deleted status for {canonicalize_identity(identity)}.")
    else:
        click.echo(f"No status cached for {canonicalize_identity(identity)}.")


@cli.command()
@click.argument("identity")
@click.option("--name", "display_name", default=None, help="Name to greet.")
@click.option(
    "--registered",
    default=None,
    help="Registration date (ISO 8601), enables the grace period notice.",
)
@click.option("--refresh", is_flag=True, help="Refresh first if the record is stale.")
@click.pass_context
def remind(
    ctx: click.Context,
    identity: str,
    display_name: str | None,
    registered: str | None,
    refresh: bool,
) -> None:
    """Compose the reminder message for IDENTITY."""
    cli_ctx = _setup(ctx, "remind")

    registered_at: datetime | None = None
    if registered is not None:
        try:
            registered_at = date_parser.isoparse(registered)
        except ValueError as e:
            click.echo(f"Error: Invalid registration date '{registered}'", err=True)
            raise SystemExit(2) from e

    try:
        with cli_ctx.open_store() as store:
            service = cli_ctx.build_service(store)
            record = _require_record(service, identity, refresh, cli_ctx.settings.debug)
            reminder = service.compose_reminder(
                record, display_name=display_name, registered_at=registered_at
            )
    except InvalidIdentityError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)
    except StatusNotFoundError as e:
        click.echo(str(e), err=True)
        sys.exit(1)

    click.echo(f"Subject: {reminder.subject}")
    click.echo("")
    click.echo(reminder.body)
    if not reminder.should_notify:
        click.echo("")
        click.echo("(no reminder needed)")


@cli.command("db-stats")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON.")
@click.pass_context
def db_stats(ctx: click.Context, json_output: bool) -> None:
    """Display status database statistics."""
    cli_ctx = _setup(ctx, "db-stats")

    with cli_ctx.open_store() as store:
        stats = store.get_stats()
        schema_version = store.get_schema_version()

    if json_output:
        click.echo(json.dumps({"schema_version": schema_version, "records": stats}, indent=2))
    else:
        click.echo("Status Database Statistics")
        click.echo("=" * 40)
        click.echo(f"  Schema Version: {schema_version}")
        click.echo("")
        click.echo("Record Counts:")
        for name, count in sorted(stats.items()):
            click.echo(f"  {name}: {count}")


@cli.command()
@click.pass_context
def upgrade(ctx: click.Context) -> None:
    """Rewrite records stored in older shapes in the current shape."""
    cli_ctx = _setup(ctx, "upgrade")

    with cli_ctx.open_store() as store:
        report = store.upgrade_records()

    click.echo(f"Upgraded {report.upgraded} records.")
    if report.failed:
        click.echo(f"Failed to upgrade {len(report.failed)} records:", err=True)
        for identity in report.failed:
            click.echo(f"  {identity}", err=True)
        sys.exit(1)


@cli.command("import-legacy")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def import_legacy(ctx: click.Context, path: Path) -> None:
    """Import records exported from an older deployment.

    PATH is a JSON object mapping network IDs to stored payloads of any
    known shape. Run ``upgrade`` afterwards to rewrite them.
    """
    cli_ctx = _setup(ctx, "import-legacy")
    log = logger.bind(component=COMPONENT_CLI, command="import-legacy")

    try:
        payloads = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        click.echo(f"Error: {path} is not valid JSON: {e.msg}", err=True)
        raise SystemExit(2) from e

    if not isinstance(payloads, dict):
        click.echo("Error: expected a JSON object keyed by network ID", err=True)
        sys.exit(2)

    imported = 0
    failed: list[str] = []

    with cli_ctx.open_store() as store:
        for raw_identity, payload in payloads.items():
            try:
                store.import_payload(canonicalize_identity(raw_identity), payload)
            except (InvalidIdentityError, StatusStoreError) as e:
                log.warning("legacy_import_failed", identity=raw_identity, error=str(e))
                failed.append(raw_identity)
                continue
            imported += 1

    click.echo(f"Imported {imported} records.")
    if failed:
        click.echo(f"Skipped {len(failed)} records:", err=True)
        for identity in failed:
            click.echo(f"  {identity}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
