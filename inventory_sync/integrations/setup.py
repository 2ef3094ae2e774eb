"""
Wiring for the sync engine and its collaborators.

build_components() creates the long-lived pieces once at startup (commerce
store, Zoho service, notification dispatcher, per-product locks). Each job or
webhook then gets its own database session and a StockSyncEngine bound to it
via engine_for().
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from inventory_sync.core.config import Settings
from inventory_sync.core.utils import utc_now
from inventory_sync.database import get_session_factory
from inventory_sync.integrations.base import CommerceStore, FlushScheduler, Mailer, RemoteInventoryService
from inventory_sync.integrations.events import OrderCompletedEvent
from inventory_sync.integrations.platforms.woocommerce import WooCommerceStore
from inventory_sync.integrations.platforms.zoho import ZohoInventoryService
from inventory_sync.schemas.stock import SyncRunSummary
from inventory_sync.services.low_stock_monitor import LowStockMonitor
from inventory_sync.services.notification_service import NotificationDispatcher, SmtpMailer
from inventory_sync.services.stock_alerts import StockAlertService
from inventory_sync.services.stock_change_log import StockChangeLogService
from inventory_sync.services.stock_ledger import StockLedgerService
from inventory_sync.services.stock_sync import StockSyncEngine
from inventory_sync.services.woocommerce.client import WooCommerceClient
from inventory_sync.services.zoho.client import ZohoInventoryClient

logger = logging.getLogger(__name__)


class SyncComponents:

    def __init__(
        self,
        settings: Settings,
        store: CommerceStore,
        remote: RemoteInventoryService,
        session_factory: async_sessionmaker,
        mailer: Optional[Mailer] = None,
        flush_scheduler: Optional[FlushScheduler] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.settings = settings
        self.store = store
        self.remote = remote
        self.session_factory = session_factory
        self.dispatcher = NotificationDispatcher(
            settings,
            mailer or SmtpMailer(settings),
            flush_scheduler=flush_scheduler
        )
        self.clock = clock
        self.locks: Dict[int, asyncio.Lock] = {}

    def monitor_for(self, session: AsyncSession) -> LowStockMonitor:
        return LowStockMonitor(
            self.settings,
            StockAlertService(session),
            self.dispatcher,
            store=self.store,
            clock=self.clock
        )

    def engine_for(self, session: AsyncSession) -> StockSyncEngine:
        return StockSyncEngine(
            self.settings,
            self.store,
            self.remote,
            StockLedgerService(session),
            StockChangeLogService(session),
            monitor=self.monitor_for(session),
            dispatcher=self.dispatcher,
            locks=self.locks,
            clock=self.clock
        )

    def register_handlers(self) -> None:
        """Subscribe the sync engine to the commerce store's events."""
        self.store.on_stock_changed(self.handle_stock_changed)
        self.store.on_order_completed(self.handle_order_completed)
        logger.info("Registered stock change and order completion handlers")

    async def handle_stock_changed(self, product_id: int, new_quantity: int) -> bool:
        async with self.session_factory() as session:
            return await self.engine_for(session).handle_local_stock_change(product_id, new_quantity)

    async def handle_order_completed(self, order: OrderCompletedEvent) -> Dict[int, bool]:
        async with self.session_factory() as session:
            return await self.engine_for(session).handle_order_completion(order)

    async def sync_product(self, product_id: int) -> bool:
        product = await self.store.get_product(product_id)
        if product is None:
            logger.warning(f"Product {product_id} not found in the commerce store")
            return False
        async with self.session_factory() as session:
            return await self.engine_for(session).sync_product(product)

    async def run_sync_all(self) -> SyncRunSummary:
        async with self.session_factory() as session:
            return await self.engine_for(session).sync_all()

    async def run_stock_check(self) -> int:
        async with self.session_factory() as session:
            return await self.monitor_for(session).monitor_stock_levels()

    async def run_log_cleanup(self) -> int:
        async with self.session_factory() as session:
            return await StockChangeLogService(session).purge_older_than(self.settings.LOG_RETENTION_DAYS)


def build_components(
    settings: Settings,
    session_factory: Optional[async_sessionmaker] = None,
    flush_scheduler: Optional[FlushScheduler] = None
) -> SyncComponents:
    """Create the WooCommerce/Zoho backed components from settings."""
    store = WooCommerceStore(WooCommerceClient(settings))
    remote = ZohoInventoryService(ZohoInventoryClient(settings))
    components = SyncComponents(
        settings,
        store,
        remote,
        session_factory or get_session_factory(settings),
        flush_scheduler=flush_scheduler
    )
    logger.info(f"Sync components ready (direction: {settings.SYNC_DIRECTION.value}, "
                f"conflict policy: {settings.conflict_policy.value})")
    return components
