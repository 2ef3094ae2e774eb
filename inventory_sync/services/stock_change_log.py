# inventory_sync/services/stock_change_log.py
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_sync.core.enums import StockSource
from inventory_sync.core.utils import utc_now
from inventory_sync.models.stock_change_log import StockChangeLog

logger = logging.getLogger(__name__)


class StockChangeLogService:
    """
    Service for the append-only stock change history.

    append() only flushes; the entry is committed together with the ledger
    write that follows it, so a rejected ledger write discards the entry too.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        product_id: int,
        old_quantity: int,
        new_quantity: int,
        source: StockSource,
        sync_run_id: Optional[str] = None,
        changed_at: Optional[datetime] = None
    ) -> StockChangeLog:
        entry = StockChangeLog(
            product_id=product_id,
            old_quantity=old_quantity,
            new_quantity=new_quantity,
            source=StockSource(source).value,
            sync_run_id=sync_run_id,
            changed_at=changed_at or utc_now()
        )
        self.db.add(entry)
        await self.db.flush()

        logger.debug(
            f"Stock change logged: product {product_id} {old_quantity} -> {new_quantity} "
            f"(source: {entry.source})"
        )
        return entry

    async def history(self, product_id: int, limit: int = 50) -> List[StockChangeLog]:
        result = await self.db.execute(
            select(StockChangeLog)
            .where(StockChangeLog.product_id == product_id)
            .order_by(StockChangeLog.changed_at.desc(), StockChangeLog.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count(self, sync_run_id: Optional[str] = None) -> int:
        stmt = select(func.count(StockChangeLog.id))
        if sync_run_id is not None:
            stmt = stmt.where(StockChangeLog.sync_run_id == sync_run_id)
        return (await self.db.execute(stmt)).scalar_one()

    async def purge_older_than(self, days: int, now: Optional[datetime] = None) -> int:
        """Delete entries older than the retention window. Returns the number removed."""
        cutoff = (now or utc_now()) - timedelta(days=days)
        result = await self.db.execute(
            delete(StockChangeLog)
            .where(StockChangeLog.changed_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        deleted = result.rowcount or 0
        logger.info(f"Stock change log cleanup removed {deleted} entries older than {days} days")
        return deleted
