from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from inventory_sync.core.enums import StockSource, SyncStatus
from inventory_sync.core.exceptions import StaleLedgerWriteError
from inventory_sync.models.stock_sync import StockSyncRecord
from inventory_sync.services.stock_change_log import StockChangeLogService
from inventory_sync.services.stock_ledger import StockLedgerService
from tests.mocks import make_product


@pytest.fixture
def ledger(db_session):
    return StockLedgerService(db_session)


@pytest.fixture
def change_log(db_session):
    return StockChangeLogService(db_session)


@pytest.mark.asyncio
async def test_ensure_record_creates_pending_row(ledger):
    record = await ledger.ensure_record(make_product(1, 10))

    assert record.product_id == 1
    assert record.remote_item_id == "Z1"
    assert record.local_quantity == 10
    assert record.remote_quantity == 0
    assert record.sync_status == SyncStatus.PENDING.value
    assert record.version == 1


@pytest.mark.asyncio
async def test_ensure_record_keeps_unlinked_products(ledger):
    record = await ledger.ensure_record(make_product(2, 3, remote_item_id=None))

    assert record.remote_item_id is None
    assert not record.is_linked


@pytest.mark.asyncio
async def test_ensure_record_relinks_and_resets_status(ledger):
    record = await ledger.ensure_record(make_product(1, 10))
    await ledger.record_sync(record, local_quantity=10, remote_quantity=10)

    relinked = await ledger.ensure_record(make_product(1, 10, remote_item_id="Z99"))

    assert relinked.remote_item_id == "Z99"
    assert relinked.sync_status == SyncStatus.PENDING.value
    assert relinked.version == 3


@pytest.mark.asyncio
async def test_record_sync_writes_quantities_and_bumps_version(ledger):
    record = await ledger.ensure_record(make_product(1, 10))
    observed_at = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    record = await ledger.record_sync(record, local_quantity=7, remote_quantity=7, observed_at=observed_at)

    assert record.local_quantity == 7
    assert record.remote_quantity == 7
    assert record.sync_status == SyncStatus.SYNCED.value
    assert record.version == 2
    assert record.last_sync_at.replace(tzinfo=timezone.utc) == observed_at


@pytest.mark.asyncio
async def test_record_sync_rejects_stale_version_and_discards_pending_log(ledger, change_log, db_session):
    record = await ledger.ensure_record(make_product(1, 10))

    # Another writer moves the row on
    await db_session.execute(
        update(StockSyncRecord)
        .where(StockSyncRecord.product_id == 1)
        .values(version=StockSyncRecord.version + 1)
        .execution_options(synchronize_session=False)
    )
    await db_session.commit()

    await change_log.append(1, 10, 4, StockSource.LOCAL)
    with pytest.raises(StaleLedgerWriteError) as exc_info:
        await ledger.record_sync(record, local_quantity=4, remote_quantity=4)

    assert exc_info.value.product_id == 1
    assert exc_info.value.expected_version == 1
    assert await change_log.count() == 0

    fresh = await ledger.get_record(1)
    assert fresh.local_quantity == 10
    assert fresh.version == 2


@pytest.mark.asyncio
async def test_mark_error_keeps_quantities(ledger):
    record = await ledger.ensure_record(make_product(1, 10))
    await ledger.record_sync(record, local_quantity=10, remote_quantity=10)

    await ledger.mark_error(1, "Zoho unavailable")

    fresh = await ledger.get_record(1)
    assert fresh.sync_status == SyncStatus.ERROR.value
    assert fresh.last_error == "Zoho unavailable"
    assert fresh.local_quantity == 10
    assert fresh.remote_quantity == 10


@pytest.mark.asyncio
async def test_successful_sync_clears_last_error(ledger):
    record = await ledger.ensure_record(make_product(1, 10))
    await ledger.mark_error(1, "boom")

    record = await ledger.get_record(1)
    record = await ledger.record_sync(record, local_quantity=10, remote_quantity=10)

    assert record.last_error is None
    assert record.sync_status == SyncStatus.SYNCED.value


@pytest.mark.asyncio
async def test_list_records_filters_by_status(ledger):
    for product_id in (1, 2, 3):
        await ledger.ensure_record(make_product(product_id, 5))
    await ledger.mark_error(2, "boom")

    errors = await ledger.list_records(status=SyncStatus.ERROR)
    pending = await ledger.list_records(status=SyncStatus.PENDING)

    assert [r.product_id for r in errors] == [2]
    assert [r.product_id for r in pending] == [1, 3]


@pytest.mark.asyncio
async def test_change_log_history_and_retention(change_log, db_session):
    now = datetime(2026, 6, 1, tzinfo=timezone.utc)
    await change_log.append(1, 10, 8, StockSource.LOCAL, changed_at=now - timedelta(days=45))
    await change_log.append(1, 8, 6, StockSource.REMOTE, changed_at=now - timedelta(days=10))
    await change_log.append(2, 3, 0, StockSource.LOCAL, changed_at=now - timedelta(days=1))
    await db_session.commit()

    history = await change_log.history(1)
    assert [(e.old_quantity, e.new_quantity) for e in history] == [(8, 6), (10, 8)]
    assert history[0].source == "remote"

    deleted = await change_log.purge_older_than(30, now=now)

    assert deleted == 1
    assert await change_log.count() == 2
