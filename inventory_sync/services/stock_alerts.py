# inventory_sync/services/stock_alerts.py
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from inventory_sync.core.enums import AlertStatus, AlertType
from inventory_sync.core.utils import utc_now
from inventory_sync.models.stock_alert import StockAlert

logger = logging.getLogger(__name__)


class StockAlertService:
    """Persistence for stock alerts. Only the low-stock monitor writes through it."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_open(self, product_id: int, alert_type: AlertType) -> Optional[StockAlert]:
        """Return the non-dismissed alert for a product and type, if any."""
        result = await self.db.execute(
            select(StockAlert)
            .where(
                StockAlert.product_id == product_id,
                StockAlert.alert_type == AlertType(alert_type).value,
                StockAlert.status != AlertStatus.DISMISSED.value
            )
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        product_id: int,
        alert_type: AlertType,
        threshold: int,
        stock_level: int,
        triggered_at: Optional[datetime] = None
    ) -> StockAlert:
        triggered_at = triggered_at or utc_now()
        alert = StockAlert(
            product_id=product_id,
            alert_type=AlertType(alert_type).value,
            threshold=threshold,
            stock_level=stock_level,
            status=AlertStatus.ACTIVE.value,
            last_triggered_at=triggered_at,
            created_at=triggered_at
        )
        self.db.add(alert)
        await self.db.commit()
        return alert

    async def retrigger(
        self,
        alert: StockAlert,
        threshold: int,
        stock_level: int,
        triggered_at: Optional[datetime] = None
    ) -> StockAlert:
        alert.threshold = threshold
        alert.stock_level = stock_level
        alert.status = AlertStatus.TRIGGERED.value
        alert.last_triggered_at = triggered_at or utc_now()
        await self.db.commit()
        return alert

    async def mark_notified(self, alert: StockAlert, sent_at: Optional[datetime] = None) -> StockAlert:
        alert.notification_sent_at = sent_at or utc_now()
        await self.db.commit()
        return alert

    async def dismiss(self, product_id: int, alert_type: Optional[AlertType] = None) -> int:
        """Dismiss open alerts for a product (optionally one type only). Returns the count."""
        stmt = (
            update(StockAlert)
            .where(
                StockAlert.product_id == product_id,
                StockAlert.status != AlertStatus.DISMISSED.value
            )
            .values(status=AlertStatus.DISMISSED.value)
            .execution_options(synchronize_session=False)
        )
        if alert_type is not None:
            stmt = stmt.where(StockAlert.alert_type == AlertType(alert_type).value)

        result = await self.db.execute(stmt)
        await self.db.commit()
        return result.rowcount or 0

    async def list_open(self, product_id: Optional[int] = None) -> List[StockAlert]:
        stmt = (
            select(StockAlert)
            .where(StockAlert.status != AlertStatus.DISMISSED.value)
            .order_by(StockAlert.product_id, StockAlert.alert_type)
            .execution_options(populate_existing=True)
        )
        if product_id is not None:
            stmt = stmt.where(StockAlert.product_id == product_id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
