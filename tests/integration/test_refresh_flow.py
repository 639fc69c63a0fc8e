"""Integration tests for refreshing status against a local upstream server."""

import json
import tempfile
import threading
from collections.abc import Generator
from datetime import UTC, datetime
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from urllib.parse import parse_qs, urlparse

import pytest
from click.testing import CliRunner
from dateutil.relativedelta import relativedelta

from a11y_status.cli.main import cli
from a11y_status.fetch.client import StatusClient
from a11y_status.fetch.config import ClientConfig
from a11y_status.fetch.metrics import FetchMetrics
from a11y_status.fetch.models import FetchErrorClass
from a11y_status.service.metrics import RefreshMetrics
from a11y_status.service.service import StatusService
from a11y_status.status.models import CertificationState
from a11y_status.status.reconciler import StatusReconciler
from a11y_status.store.metrics import StoreMetrics
from a11y_status.store.sqlite import SqliteStatusStore
from tests.helpers.time import PACIFIC


def get_server_url(server: HTTPServer, path: str = "/training/service") -> str:
    """Get the URL for a test server.

    Args:
        server: The HTTP server instance.
        path: The URL path.

    Returns:
        Complete URL for the server.
    """
    host, port = server.server_address[0], server.server_address[1]
    if isinstance(host, bytes):
        host = host.decode("utf-8")
    return f"http://{host}:{port}{path}"


class StatusHandler(BaseHTTPRequestHandler):
    """Serves canned upstream answers keyed by the NID query parameter."""

    # NID -> (status code, body)
    responses: dict[str, tuple[int, bytes]] = {}
    requested: list[str] = []

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        """Suppress log messages during tests."""

    def do_GET(self) -> None:  # noqa: N802
        """Answer with the configured response for the NID."""
        nid = parse_qs(urlparse(self.path).query).get("NID", [""])[0]
        StatusHandler.requested.append(nid)
        status, body = StatusHandler.responses.get(nid, (200, b"[]"))

        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


def _upstream_date(value: datetime) -> str:
    return value.strftime("%b %d %Y %I:%M%p")


# Month component of two, so the record classifies as certified whatever today is
VALID_EXPIRES = _upstream_date(datetime.now(PACIFIC) + relativedelta(months=2, days=5))


def _answer(certified: bool, expires: str | None = None) -> tuple[int, bytes]:
    payload: dict[str, object] = {
        "isCertified": "True" if certified else "False",
        "trainingURL": "https://training.example.edu/course",
    }
    if expires is not None:
        payload["Expires"] = expires
    return 200, json.dumps([payload]).encode()


@pytest.fixture
def temp_db_path() -> Generator[Path]:
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "status.sqlite"


@pytest.fixture
def store(temp_db_path: Path) -> Generator[SqliteStatusStore]:
    """Create a connected status store."""
    StoreMetrics.reset()
    store = SqliteStatusStore(temp_db_path, source_tz=PACIFIC)
    store.connect()
    yield store
    store.close()


@pytest.fixture
def status_server() -> Generator[HTTPServer]:
    """Start a local upstream status server."""
    StatusHandler.responses = {
        "jdoe": _answer(True, VALID_EXPIRES),
        "asmith": _answer(False, "Jan 2 2020 9:00AM"),
        "down": (503, b"Service Unavailable"),
    }
    StatusHandler.requested = []
    server = HTTPServer(("127.0.0.1", 0), StatusHandler)
    thread = threading.Thread(target=server.serve_forever)
    thread.daemon = True
    thread.start()
    yield server
    server.shutdown()


@pytest.fixture
def service(store: SqliteStatusStore, status_server: HTTPServer) -> StatusService:
    """Create a service wired to the local server."""
    FetchMetrics.reset()
    RefreshMetrics.reset()
    client = StatusClient(ClientConfig(base_url=get_server_url(status_server)))
    return StatusService(
        client=client,
        store=store,
        reconciler=StatusReconciler(source_tz=PACIFIC),
    )


class TestRefreshFlow:
    """End-to-end refreshes through HTTP, reconciliation and SQLite."""

    def test_refresh_stores_record(
        self,
        service: StatusService,
        store: SqliteStatusStore,
    ) -> None:
        """A successful refresh persists the merged record."""
        outcome = service.refresh_status("JDoe")

        assert outcome.refreshed is True
        stored = store.get("jdoe")
        assert stored is not None
        assert stored.is_certified is True
        assert stored.expire_date is not None
        assert stored.expire_date > datetime.now(UTC)
        assert stored.training_url == "https://training.example.edu/course"
        assert StatusHandler.requested == ["jdoe"]

    def test_fresh_record_is_not_refetched(self, service: StatusService) -> None:
        """A certified record far from expiration skips the upstream call."""
        service.refresh_status("jdoe")

        outcome = service.refresh_status("jdoe")

        assert outcome.skipped is True
        assert StatusHandler.requested == ["jdoe"]

    def test_force_refetches(self, service: StatusService) -> None:
        """Test that force bypasses the freshness check."""
        service.refresh_status("jdoe")

        outcome = service.refresh_status("jdoe", force=True)

        assert outcome.refreshed is True
        assert StatusHandler.requested == ["jdoe", "jdoe"]

    def test_lost_certification_keeps_history(self, service: StatusService) -> None:
        """A lapsed answer without Expires is merged and classifies as expired."""
        service.refresh_status("asmith")
        StatusHandler.responses["asmith"] = _answer(True, VALID_EXPIRES)
        service.refresh_status("asmith")
        StatusHandler.responses["asmith"] = _answer(False)

        outcome = service.refresh_status("asmith", force=True)

        assert outcome.error is None
        assert outcome.refreshed is True
        assert outcome.record is not None
        assert outcome.record.was_certified is True
        assert outcome.record.is_certified is False
        assert service.classify(outcome.record) == CertificationState.UNCERTIFIED_EXPIRED

    def test_empty_response_keeps_store_untouched(
        self,
        service: StatusService,
        store: SqliteStatusStore,
    ) -> None:
        """An empty upstream answer is a soft failure."""
        outcome = service.refresh_status("nobody")

        assert outcome.error is not None
        assert outcome.error.error_class == FetchErrorClass.EMPTY_RESPONSE
        assert outcome.is_soft_failure is True
        assert store.get("nobody") is None

    def test_server_error_returns_cached_record(
        self,
        service: StatusService,
        store: SqliteStatusStore,
    ) -> None:
        """An HTTP failure leaves the cached record authoritative."""
        StatusHandler.responses["down"] = _answer(False)
        service.refresh_status("down")
        StatusHandler.responses["down"] = (503, b"Service Unavailable")

        outcome = service.refresh_status("down")

        assert outcome.error is not None
        assert outcome.error.error_class == FetchErrorClass.HTTP_ERROR
        assert outcome.error.status_code == 503
        assert outcome.record == store.get("down")

    def test_refresh_many(self, service: StatusService) -> None:
        """Bulk refresh tallies successes and failures."""
        result = service.refresh_many(["jdoe", "asmith", "down", "nobody"])

        assert result.success == 2
        assert result.fail == 2
        assert set(result.errors) == {"down", "nobody"}
        assert result.errors["down"].startswith("HTTP_ERROR")

    def test_refresh_all_uses_cached_identities(
        self,
        service: StatusService,
    ) -> None:
        """Test the scheduler entry point."""
        service.refresh_many(["jdoe", "asmith"])
        StatusHandler.requested = []

        result = service.refresh_all(force=True)

        assert result.success == 2
        assert StatusHandler.requested == ["asmith", "jdoe"]


class TestRefreshCommand:
    """The refresh command against the local server."""

    def test_single_refresh(self, temp_db_path: Path, status_server: HTTPServer) -> None:
        """Test refreshing and then showing one identity."""
        runner = CliRunner()
        base = [
            "--db",
            str(temp_db_path),
            "--api-url",
            get_server_url(status_server),
            "--console-logs",
        ]

        refreshed = runner.invoke(cli, [*base, "refresh", "jdoe"])
        shown = runner.invoke(cli, [*base, "show", "jdoe", "--json"])

        assert refreshed.exit_code == 0
        assert "jdoe: updated" in refreshed.output
        assert json.loads(shown.output)["state"] == "certified_ok"

    def test_failure_uses_generic_message(
        self,
        temp_db_path: Path,
        status_server: HTTPServer,
    ) -> None:
        """Failures show the generic message unless debugging."""
        runner = CliRunner()
        base = ["--db", str(temp_db_path), "--api-url", get_server_url(status_server)]

        plain = runner.invoke(cli, [*base, "--console-logs", "refresh", "down"])
        debug = runner.invoke(cli, [*base, "--console-logs", "--debug", "refresh", "down"])

        assert plain.exit_code == 1
        assert "Unable to retrieve WSU Accessibility Training status." in plain.output
        assert "HTTP_ERROR" not in plain.output
        assert "HTTP_ERROR" in debug.output

    def test_bulk_refresh_summary(
        self,
        temp_db_path: Path,
        status_server: HTTPServer,
    ) -> None:
        """Test the bulk summary notices."""
        runner = CliRunner()
        base = ["--db", str(temp_db_path), "--api-url", get_server_url(status_server)]

        result = runner.invoke(cli, [*base, "--console-logs", "refresh", "jdoe", "down"])

        assert result.exit_code == 1
        assert "Updated WSU Accessibility Training status info for 1 users." in result.output
        assert "WSU Accessibility Training status update failed for 1 users." in result.output

    def test_show_refresh_reports_fetch_error(
        self,
        temp_db_path: Path,
        status_server: HTTPServer,
    ) -> None:
        """A failed refresh with nothing cached reports the fetch error."""
        runner = CliRunner()
        base = ["--db", str(temp_db_path), "--api-url", get_server_url(status_server)]

        plain = runner.invoke(cli, [*base, "--console-logs", "show", "down", "--refresh"])
        debug = runner.invoke(
            cli, [*base, "--console-logs", "--debug", "show", "down", "--refresh"]
        )

        assert plain.exit_code == 1
        assert "Unable to retrieve WSU Accessibility Training status." in plain.output
        assert "No certification status" not in plain.output
        assert debug.exit_code == 1
        assert "HTTP_ERROR" in debug.output
        assert "503" in debug.output

    def test_remind_refresh_falls_back_to_cache(
        self,
        temp_db_path: Path,
        status_server: HTTPServer,
    ) -> None:
        """A failed refresh still composes a reminder from the cached record."""
        runner = CliRunner()
        base = ["--db", str(temp_db_path), "--api-url", get_server_url(status_server)]
        StatusHandler.responses["down"] = _answer(False)
        runner.invoke(cli, [*base, "--console-logs", "refresh", "down"])
        StatusHandler.responses["down"] = (503, b"Service Unavailable")

        result = runner.invoke(
            cli, [*base, "--console-logs", "--debug", "remind", "down", "--refresh"]
        )

        assert result.exit_code == 0
        assert "HTTP_ERROR" in result.output
        assert "Subject: Please take the WSU Accessibility Training." in result.output
