"""Unit tests for the command line interface."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner, Result

from a11y_status.cli.main import cli
from a11y_status.status.models import StatusRecord
from a11y_status.store.sqlite import SqliteStatusStore
from tests.helpers.time import FIXED_NOW


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Path to a fresh database."""
    return tmp_path / "status.sqlite"


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner."""
    return CliRunner()


def _invoke(runner: CliRunner, db_path: Path, *args: str) -> Result:
    return runner.invoke(cli, ["--db", str(db_path), "--console-logs", *args])


def _seed(db_path: Path, identity: str, record: StatusRecord) -> None:
    with SqliteStatusStore(db_path) as store:
        store.put(identity, record)


EXPIRED = StatusRecord(
    is_certified=False,
    was_certified=True,
    expire_date=FIXED_NOW.replace(year=2023),
    training_url="https://x/train",
    last_checked=FIXED_NOW,
)


class TestShow:
    """Tests for the show command."""

    def test_missing_identity(self, runner: CliRunner, db_path: Path) -> None:
        """Test the not-found exit code."""
        result = _invoke(runner, db_path, "show", "jdoe")

        assert result.exit_code == 1
        assert "No certification status for 'jdoe'" in result.output

    def test_text_output(self, runner: CliRunner, db_path: Path) -> None:
        """Test the human readable listing."""
        _seed(db_path, "asmith", EXPIRED)

        result = _invoke(runner, db_path, "show", "ASmith")

        assert result.exit_code == 0
        assert "asmith: Expired" in result.output
        assert "Training: https://x/train" in result.output

    def test_json_output(self, runner: CliRunner, db_path: Path) -> None:
        """Test JSON output."""
        _seed(db_path, "asmith", EXPIRED)

        result = _invoke(runner, db_path, "show", "asmith", "--json")

        payload = json.loads(result.output)
        assert payload["identity"] == "asmith"
        assert payload["state"] == "uncertified_expired"
        assert payload["was_certified"] is True

    def test_invalid_identity(self, runner: CliRunner, db_path: Path) -> None:
        """Test usage error for unusable identities."""
        result = _invoke(runner, db_path, "show", "<>")

        assert result.exit_code == 2


class TestDelete:
    """Tests for the delete command."""

    def test_delete(self, runner: CliRunner, db_path: Path) -> None:
        """Test deleting and re-deleting."""
        _seed(db_path, "asmith", EXPIRED)

        first = _invoke(runner, db_path, "delete", "asmith")
        second = _invoke(runner, db_path, "delete", "asmith")

        assert "Deleted status for asmith." in first.output
        assert "No status cached for asmith." in second.output


class TestRemind:
    """Tests for the remind command."""

    def test_remind(self, runner: CliRunner, db_path: Path) -> None:
        """Test reminder output."""
        _seed(db_path, "asmith", EXPIRED)

        result = _invoke(runner, db_path, "remind", "asmith", "--name", "Ann")

        assert result.exit_code == 0
        assert (
            "Subject: Please renew your WSU Accessibility Training certification."
            in result.output
        )
        assert "Hello Ann," in result.output

    def test_invalid_registration_date(self, runner: CliRunner, db_path: Path) -> None:
        """Test date validation."""
        _seed(db_path, "asmith", EXPIRED)

        result = _invoke(runner, db_path, "remind", "asmith", "--registered", "soon")

        assert result.exit_code == 2


class TestLegacyCommands:
    """Tests for import-legacy, upgrade and db-stats."""

    def test_import_upgrade_stats(
        self, runner: CliRunner, db_path: Path, tmp_path: Path
    ) -> None:
        """Import legacy payloads, upgrade them, and check the counts."""
        export = tmp_path / "export.json"
        export.write_text(
            json.dumps(
                {
                    "JDoe": {
                        "isCertified": "True",
                        "Expires": "Mar 7 2030 6:52PM",
                        "trainingURL": "https://x/train",
                    },
                    "asmith": {"is_certified": False, "was_certified": True},
                }
            ),
            encoding="utf-8",
        )

        imported = _invoke(runner, db_path, "import-legacy", str(export))
        before = _invoke(runner, db_path, "db-stats", "--json")
        upgraded = _invoke(runner, db_path, "upgrade")
        after = _invoke(runner, db_path, "db-stats", "--json")

        assert imported.exit_code == 0
        assert "Imported 2 records." in imported.output
        assert json.loads(before.output)["records"]["legacy_records"] == 2
        assert "Upgraded 2 records." in upgraded.output
        assert json.loads(after.output)["records"] == {
            "status_records": 2,
            "legacy_records": 0,
        }

    def test_import_skips_bad_payloads(
        self, runner: CliRunner, db_path: Path, tmp_path: Path
    ) -> None:
        """Test that bad entries are reported, good ones kept."""
        export = tmp_path / "export.json"
        export.write_text(
            json.dumps({"jdoe": {"is_certified": True}, "bad": {"foo": 1}}),
            encoding="utf-8",
        )

        result = _invoke(runner, db_path, "import-legacy", str(export))

        assert result.exit_code == 1
        assert "Imported 1 records." in result.output

    def test_db_stats_text(self, runner: CliRunner, db_path: Path) -> None:
        """Test the text statistics output."""
        result = _invoke(runner, db_path, "db-stats")

        assert result.exit_code == 0
        assert "Schema Version: 1" in result.output
        assert "status_records: 0" in result.output


class TestVersion:
    """Tests for the version option."""

    def test_version(self, runner: CliRunner) -> None:
        """Test --version."""
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "1.0.0" in result.output
