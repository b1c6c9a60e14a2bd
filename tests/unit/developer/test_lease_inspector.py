"""Tests for the lease inspector CLI."""

from unittest.mock import AsyncMock, Mock, patch

import pytest
from click.testing import CliRunner

from leasekeeper.developer import lease_inspector
from leasekeeper.developer.lease_inspector import describe_record, main
from leasekeeper.domain.models import LeaseRecord


class TestDescribeRecord:
    """Test describe_record."""

    def test_vacant(self):
        summary = describe_record(None, 1000, 5000)

        assert summary == {"state": "vacant", "decision": "CLAIM_ABSENT"}

    def test_held(self):
        summary = describe_record(LeaseRecord(owner_id="A", acquired_at=0), 3000, 5000)

        assert summary["state"] == "held"
        assert summary["owner"] == "A"
        assert summary["age_ms"] == "3000"
        assert summary["decision"] == "FOLLOW"

    def test_stale(self):
        summary = describe_record(LeaseRecord(owner_id="A", acquired_at=0), 6000, 5000)

        assert summary["state"] == "stale"
        assert summary["decision"] == "CLAIM_EXPIRED"


@pytest.fixture
def store():
    store = Mock()
    store.get = AsyncMock(return_value=LeaseRecord(owner_id="A", acquired_at=0))
    store.delete = AsyncMock()
    return store


@pytest.fixture
def open_store(store):
    connection = Mock(disconnect=AsyncMock())
    with patch.object(
        lease_inspector, "_open_store", AsyncMock(return_value=(connection, store))
    ) as mock:
        yield mock


class TestCommands:
    """Test the click commands."""

    def test_status(self, open_store, store):
        result = CliRunner().invoke(main, ["--namespace", "jobs", "status"])

        assert result.exit_code == 0
        assert "single-owner-jobs" in result.output
        assert "A" in result.output
        store.get.assert_awaited_once_with("single-owner-jobs")

    def test_status_connection_failure(self):
        with patch.object(
            lease_inspector, "_open_store", AsyncMock(side_effect=OSError("refused"))
        ):
            result = CliRunner().invoke(main, ["status"])

        assert result.exit_code == 1
        assert "Inspection failed" in result.output

    def test_clear_with_confirmation_flag(self, open_store, store):
        result = CliRunner().invoke(main, ["--prefix", "ci", "clear", "--yes"])

        assert result.exit_code == 0
        store.delete.assert_awaited_once_with("ci-my-app")

    def test_clear_aborted(self, open_store, store):
        result = CliRunner().invoke(main, ["clear"], input="n\n")

        assert result.exit_code == 0
        assert "Aborted" in result.output
        store.delete.assert_not_called()
