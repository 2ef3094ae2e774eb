# inventory_sync/services/low_stock_monitor.py
"""
Low-Stock Monitor

Evaluates product stock levels against thresholds and keeps one open alert
per (product, alert type). Repeat notifications for the same alert are held
back until the cooldown window (ALERT_COOLDOWN_HOURS) has passed since the
last one went out.

Alerts are never dismissed automatically when stock recovers; dismissal is
an explicit action (see dismiss()).
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from inventory_sync.core.config import Settings
from inventory_sync.core.enums import AlertType, NotificationType
from inventory_sync.core.utils import ensure_utc, utc_now
from inventory_sync.integrations.base import CommerceStore
from inventory_sync.models.stock_alert import StockAlert
from inventory_sync.schemas.stock import ManagedProduct
from inventory_sync.services.notification_service import NotificationDispatcher, get_notification_recipients
from inventory_sync.services.stock_alerts import StockAlertService

logger = logging.getLogger(__name__)


class LowStockMonitor:

    def __init__(
        self,
        settings: Settings,
        alerts: StockAlertService,
        dispatcher: NotificationDispatcher,
        store: Optional[CommerceStore] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self._settings = settings
        self.alerts = alerts
        self.dispatcher = dispatcher
        self.store = store
        self.clock = clock

    @property
    def cooldown(self) -> timedelta:
        return timedelta(hours=self._settings.ALERT_COOLDOWN_HOURS)

    def get_threshold(self, product: ManagedProduct) -> int:
        """Per-product override if set, otherwise the global STOCK_THRESHOLD."""
        if product.stock_threshold is not None:
            return int(product.stock_threshold)
        return int(self._settings.STOCK_THRESHOLD)

    async def evaluate(
        self,
        product: ManagedProduct,
        quantity: Optional[int] = None,
        previous_quantity: Optional[int] = None
    ) -> List[StockAlert]:
        """
        Check one product's stock level.

        Args:
            product: The product being checked.
            quantity: Stock level to evaluate; defaults to product.stock_quantity.
            previous_quantity: Level before the change that triggered this check.
                A move from <= 0 to > 0 sends a stock_replenished notification.

        Returns:
            The alerts created or re-triggered by this check.
        """
        quantity = product.stock_quantity if quantity is None else int(quantity)
        threshold = self.get_threshold(product)
        raised: List[StockAlert] = []

        if quantity <= threshold:
            raised.append(await self._process_alert(product, AlertType.LOW_STOCK, quantity, threshold))

        if quantity <= 0:
            raised.append(await self._process_alert(product, AlertType.OUT_OF_STOCK, quantity, threshold))

        if previous_quantity is not None and previous_quantity <= 0 < quantity:
            await self._notify_replenished(product, previous_quantity, quantity)

        return raised

    async def monitor_stock_levels(self) -> int:
        """
        Check every managed product in the commerce store.

        Returns the number of alerts created or re-triggered.
        """
        if self.store is None:
            raise RuntimeError("monitor_stock_levels requires a commerce store")

        batch_size = self._settings.BATCH_SIZE
        page = 1
        raised = 0

        while True:
            products = await self.store.get_managed_products(page, batch_size)
            if not products:
                break

            for product in products:
                if not product.manage_stock:
                    continue
                try:
                    raised += len(await self.evaluate(product))
                except Exception as e:
                    logger.error(f"Error checking stock level for product {product.product_id}: {e}")

            if len(products) < batch_size:
                break
            page += 1

        logger.info(f"Stock level check completed: {raised} alerts raised")
        return raised

    async def dismiss(self, product_id: int, alert_type: Optional[AlertType] = None) -> int:
        dismissed = await self.alerts.dismiss(product_id, alert_type)
        logger.info(f"Dismissed {dismissed} alert(s) for product {product_id}")
        return dismissed

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _process_alert(
        self,
        product: ManagedProduct,
        alert_type: AlertType,
        quantity: int,
        threshold: int
    ) -> StockAlert:
        now = self.clock()
        alert = await self.alerts.get_open(product.product_id, alert_type)

        if alert is None:
            alert = await self.alerts.create(product.product_id, alert_type, threshold, quantity, triggered_at=now)
        else:
            alert = await self.alerts.retrigger(alert, threshold, quantity, triggered_at=now)

        if alert_type is AlertType.OUT_OF_STOCK:
            logger.error(f"Product out of stock: {product.name} (SKU: {product.sku})")
        else:
            logger.warning(
                f"Low stock detected for {product.name} (SKU: {product.sku}). "
                f"Current stock: {quantity}, threshold: {threshold}"
            )

        last_sent = ensure_utc(alert.notification_sent_at)
        if last_sent is not None and now - last_sent < self.cooldown:
            logger.info(
                f"{alert_type.value} notification for product {product.product_id} suppressed; "
                f"last sent {last_sent.isoformat()}"
            )
            return alert

        data = {
            "product_id": product.product_id,
            "product_name": product.name,
            "sku": product.sku,
            "current_stock": quantity,
            "threshold": threshold,
        }
        recipients = get_notification_recipients(self._settings, include_distributors=True)
        sent = await self.dispatcher.send_to_all(alert_type.value, recipients, data)

        if sent:
            alert = await self.alerts.mark_notified(alert, sent_at=now)
        return alert

    async def _notify_replenished(self, product: ManagedProduct, previous_quantity: int, quantity: int) -> None:
        logger.info(f"Stock replenished for {product.name}: {previous_quantity} -> {quantity}")
        await self.dispatcher.send_to_all(
            NotificationType.STOCK_REPLENISHED.value,
            get_notification_recipients(self._settings),
            {
                "product_id": product.product_id,
                "product_name": product.name,
                "sku": product.sku,
                "previous_stock": previous_quantity,
                "current_stock": quantity,
            }
        )
