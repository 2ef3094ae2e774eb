from unittest.mock import AsyncMock

import pytest
from click.testing import CliRunner

from inventory_sync.cli.main import cli
from inventory_sync.integrations.setup import SyncComponents
from inventory_sync.schemas.stock import SyncRunSummary
from tests.conftest import make_settings
from tests.mocks import MockCommerceStore, MockMailer, MockRemoteInventory


@pytest.fixture
def components(mocker):
    settings = make_settings()
    components = SyncComponents(settings, MockCommerceStore(), MockRemoteInventory(), None, mailer=MockMailer())
    mocker.patch("inventory_sync.cli.common.get_settings", return_value=settings)
    mocker.patch("inventory_sync.cli.common.configure_logging")
    mocker.patch("inventory_sync.cli.common.build_components", return_value=components)
    return components


def test_sync_all_prints_summary(components, mocker):
    summary = SyncRunSummary(sync_run_id="run-1", processed=3, updated=1, skipped=2)
    mocker.patch.object(components, "run_sync_all", AsyncMock(return_value=summary))

    result = CliRunner().invoke(cli, ["sync-all"])

    assert result.exit_code == 0
    assert "Sync run run-1" in result.output
    assert "processed: 3" in result.output


def test_sync_all_aborted_run_fails(components, mocker):
    summary = SyncRunSummary(sync_run_id="run-2", aborted=True)
    mocker.patch.object(components, "run_sync_all", AsyncMock(return_value=summary))

    result = CliRunner().invoke(cli, ["sync-all"])

    assert result.exit_code == 1
    assert "aborted" in result.output


def test_sync_product_unknown_product_fails(components):
    result = CliRunner().invoke(cli, ["sync-product", "42"])

    assert result.exit_code == 1
    assert "Product 42 could not be synchronized" in result.output


def test_queued_notifications_flushed_on_exit(components, mocker):
    flush = mocker.patch.object(components.dispatcher, "process_queued_notifications", AsyncMock(return_value=0))
    mocker.patch.object(components, "run_log_cleanup", AsyncMock(return_value=4))

    result = CliRunner().invoke(cli, ["cleanup-logs"])

    assert result.exit_code == 0
    assert "Removed 4 stock change log entries" in result.output
    flush.assert_awaited_once()
