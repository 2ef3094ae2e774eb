# inventory_sync/services/stock_ledger.py
"""
Stock Ledger Service

Persists the last-known local and remote quantities per product. Quantity
writes are compare-and-swap on StockSyncRecord.version so that two overlapping
sync jobs cannot silently overwrite each other's row.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_sync.core.enums import SyncStatus
from inventory_sync.core.exceptions import StaleLedgerWriteError
from inventory_sync.core.utils import utc_now
from inventory_sync.models.stock_sync import StockSyncRecord
from inventory_sync.schemas.stock import ManagedProduct

logger = logging.getLogger(__name__)


class StockLedgerService:
    """Service for reading and writing product stock records."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_record(self, product_id: int) -> Optional[StockSyncRecord]:
        """Read a record from the database, discarding any state cached in the session."""
        result = await self.db.execute(
            select(StockSyncRecord)
            .where(StockSyncRecord.product_id == product_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def ensure_record(self, product: ManagedProduct) -> StockSyncRecord:
        """
        Get or create the ledger row for a product, keeping its remote link
        in step with the commerce store.
        """
        record = await self.get_record(product.product_id)

        if record is None:
            record = StockSyncRecord(
                product_id=product.product_id,
                remote_item_id=product.remote_item_id or None,
                local_quantity=max(product.stock_quantity, 0),
                remote_quantity=0,
                sync_status=SyncStatus.PENDING.value,
                version=1,
                created_at=utc_now(),
            )
            self.db.add(record)
            await self.db.commit()
            logger.debug(f"Created stock record for product {product.product_id}")
            return record

        remote_item_id = product.remote_item_id or None
        if record.remote_item_id != remote_item_id:
            logger.info(
                f"Product {product.product_id} remote link changed: "
                f"{record.remote_item_id!r} -> {remote_item_id!r}"
            )
            record.remote_item_id = remote_item_id
            record.sync_status = SyncStatus.PENDING.value
            record.version = record.version + 1
            await self.db.commit()

        return record

    async def record_sync(
        self,
        record: StockSyncRecord,
        *,
        local_quantity: int,
        remote_quantity: int,
        observed_at: Optional[datetime] = None,
        status: SyncStatus = SyncStatus.SYNCED
    ) -> StockSyncRecord:
        """
        Write observed quantities for a record.

        Raises:
            StaleLedgerWriteError: If the row's version moved since ``record`` was read.
                Any pending writes in the session (e.g. change log entries) are rolled back.
        """
        expected_version = record.version
        result = await self.db.execute(
            update(StockSyncRecord)
            .where(
                StockSyncRecord.product_id == record.product_id,
                StockSyncRecord.version == expected_version
            )
            .values(
                local_quantity=local_quantity,
                remote_quantity=remote_quantity,
                sync_status=SyncStatus(status).value,
                last_sync_at=observed_at or utc_now(),
                last_error=None,
                version=expected_version + 1
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            await self.db.rollback()
            raise StaleLedgerWriteError(record.product_id, expected_version)

        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def mark_error(self, product_id: int, error: str) -> None:
        """Flag a record as failed. Quantities are left untouched."""
        # Drop whatever the failed attempt left pending in the session
        await self.db.rollback()
        await self.db.execute(
            update(StockSyncRecord)
            .where(StockSyncRecord.product_id == product_id)
            .values(
                sync_status=SyncStatus.ERROR.value,
                last_error=(error or "")[:1000],
                version=StockSyncRecord.version + 1
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    async def list_records(
        self,
        status: Optional[SyncStatus] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[StockSyncRecord]:
        stmt = select(StockSyncRecord).order_by(StockSyncRecord.product_id)
        if status is not None:
            stmt = stmt.where(StockSyncRecord.sync_status == SyncStatus(status).value)
        result = await self.db.execute(stmt.limit(limit).offset(offset))
        return list(result.scalars().all())
