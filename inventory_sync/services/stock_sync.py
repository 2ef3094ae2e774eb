# inventory_sync/services/stock_sync.py
"""
Stock Sync Engine

Keeps WooCommerce and Zoho Inventory stock levels in step:
- sync_all(): scheduled, batched pull of every linked product; Zoho wins.
- sync_product(): on-demand sync of one product under the configured policy.
- handle_local_stock_change(): pushes a local quantity change to Zoho.
- handle_order_completion(): syncs every managed line item of a completed order.

A failure on one product is logged, flags that product's ledger row as
'error', and never stops the rest of the run. sync_all() reports its failures
in a single notification at the end of the run. Failed pushes are not
retried here; the next scheduled sync_all() picks the product up again.
"""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, NamedTuple, Optional

from inventory_sync.core.config import Settings
from inventory_sync.core.enums import ConflictPolicy, StockSource, SyncDirection, SyncStatus
from inventory_sync.core.exceptions import InvalidStockPayloadError, StaleLedgerWriteError, ZohoAPIError
from inventory_sync.core.utils import ensure_utc, utc_now
from inventory_sync.integrations.base import CommerceStore, RemoteInventoryService
from inventory_sync.integrations.events import OrderCompletedEvent
from inventory_sync.models.stock_sync import StockSyncRecord
from inventory_sync.schemas.stock import ManagedProduct, SyncFailure, SyncRunSummary
from inventory_sync.services.conflict_resolver import clamp_quantity, resolve
from inventory_sync.services.low_stock_monitor import LowStockMonitor
from inventory_sync.services.notification_service import NotificationDispatcher
from inventory_sync.services.stock_change_log import StockChangeLogService
from inventory_sync.services.stock_ledger import StockLedgerService

logger = logging.getLogger(__name__)

LEDGER_WRITE_ATTEMPTS = 2


class SyncOutcome(NamedTuple):
    ok: bool
    changed: bool = False
    error: Optional[str] = None


class StockSyncEngine:

    def __init__(
        self,
        settings: Settings,
        store: CommerceStore,
        remote: RemoteInventoryService,
        ledger: StockLedgerService,
        change_log: StockChangeLogService,
        monitor: Optional[LowStockMonitor] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        locks: Optional[Dict[int, asyncio.Lock]] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self._settings = settings
        self.store = store
        self.remote = remote
        self.ledger = ledger
        self.change_log = change_log
        self.monitor = monitor
        self.dispatcher = dispatcher
        # Shared between engines of one process so overlapping jobs serialize per product
        self._locks = locks if locks is not None else {}
        self.clock = clock

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    async def sync_all(self) -> SyncRunSummary:
        """
        Pull remote stock for every linked, managed product in batches.

        Never raises: per-product failures are counted in the summary and a
        failure while fetching a page ends the run with ``aborted=True``.
        """
        batch_size = self._settings.BATCH_SIZE
        summary = SyncRunSummary(sync_run_id=str(uuid.uuid4()), started_at=self.clock())
        logger.info(f"=== STOCK SYNC STARTING (run {summary.sync_run_id}, batch size {batch_size}) ===")

        failures: List[SyncFailure] = []
        page = 1
        try:
            while True:
                products = await self.store.get_managed_products(page, batch_size)
                summary.pages += 1
                if not products:
                    break

                for product in products:
                    if not product.manage_stock:
                        summary.skipped += 1
                        continue

                    if not product.is_linked:
                        logger.warning(f"Product {product.product_id} has no Zoho item ID; skipping")
                        summary.skipped += 1
                        continue

                    summary.processed += 1
                    outcome = await self._sync_linked(
                        product,
                        ConflictPolicy.REMOTE_WINS,
                        StockSource.REMOTE,
                        sync_run_id=summary.sync_run_id,
                        notify=False
                    )
                    if not outcome.ok:
                        summary.errors += 1
                        failures.append(SyncFailure(
                            product_id=product.product_id,
                            product_name=product.name,
                            remote_item_id=product.remote_item_id,
                            error=outcome.error or "unknown error"
                        ))
                    elif outcome.changed:
                        summary.updated += 1

                if len(products) < batch_size:
                    break
                page += 1

        except Exception as e:
            summary.aborted = True
            logger.error(f"Stock sync aborted on page {page}: {e}", exc_info=True)

        if failures:
            await self._notify_failures(failures, summary.sync_run_id)

        summary.finished_at = self.clock()
        logger.info(
            f"Stock sync completed: {summary.processed} processed, {summary.updated} updated, "
            f"{summary.skipped} skipped, {summary.errors} errors",
            extra={"sync_run_id": summary.sync_run_id, "duration_seconds": summary.duration_seconds}
        )
        return summary

    async def sync_product(self, product: ManagedProduct, source: StockSource = StockSource.LOCAL) -> bool:
        """Synchronize a single product now. Returns True on success."""
        if not product.is_linked:
            logger.warning(f"Product {product.product_id} has no Zoho item ID; skipping")
            return False

        outcome = await self._sync_linked(product, self._policy_for(source), source)
        return outcome.ok

    async def handle_local_stock_change(self, product_id: int, new_quantity: int) -> bool:
        """
        Push a local stock change to Zoho.

        No-op when SYNC_DIRECTION is zoho_to_wc or the product is not linked.
        A failed push is logged and left for the next scheduled sync.
        """
        direction = SyncDirection(self._settings.SYNC_DIRECTION)
        if not direction.pushes_local_changes:
            logger.debug(f"Sync direction {direction.value}; local change for product {product_id} not pushed")
            return False

        new_quantity = clamp_quantity(new_quantity, f"stock for product {product_id}")
        product = await self.store.get_product(product_id)
        if product is None or not product.manage_stock:
            logger.debug(f"Product {product_id} is not stock-managed; ignoring stock change")
            return False

        if not product.is_linked:
            logger.warning(f"Product {product_id} has no Zoho item ID; stock change not pushed")
            return False

        previous_local = None
        async with self._lock_for(product_id):
            try:
                record = await self.ledger.ensure_record(product)
                previous_local = record.local_quantity

                if (record.sync_status == SyncStatus.SYNCED.value
                        and record.local_quantity == new_quantity
                        and record.remote_quantity == new_quantity):
                    logger.debug(f"Product {product_id} already in sync at {new_quantity}")
                    return True

                observed_at = self.clock()
                await self._push(product, new_quantity)
                await self._write_ledger(
                    record,
                    observed_local=new_quantity,
                    new_local=new_quantity,
                    new_remote=new_quantity,
                    observed_at=observed_at,
                    wrote_remote=True
                )
                logger.info(f"Stock updated in Zoho for product {product_id}: {new_quantity}")

            except Exception as e:
                logger.error(f"Error updating Zoho stock for product {product_id}: {e}")
                await self._record_failure(product, e)
                return False

        await self._evaluate(product, new_quantity, previous_local)
        return True

    async def handle_order_completion(self, order: OrderCompletedEvent) -> Dict[int, bool]:
        """Sync each managed line item of a completed order. Returns results by product ID."""
        if not self._settings.SYNC_ON_ORDER:
            return {}

        results: Dict[int, bool] = {}
        for item in order.items:
            product_id = item.variation_id or item.product_id
            if product_id in results:
                continue

            product = await self.store.get_product(product_id)
            if product is None or not product.manage_stock:
                continue

            results[product_id] = await self.sync_product(product, source=StockSource.LOCAL)

        logger.info(f"Order {order.order_id} completed: synced {sum(results.values())}/{len(results)} products")
        return results

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _lock_for(self, product_id: int) -> asyncio.Lock:
        return self._locks.setdefault(product_id, asyncio.Lock())

    def _policy_for(self, source: StockSource) -> ConflictPolicy:
        direction = SyncDirection(self._settings.SYNC_DIRECTION)
        if direction is SyncDirection.ZOHO_TO_WC:
            return ConflictPolicy.REMOTE_WINS
        if direction is SyncDirection.WC_TO_ZOHO:
            return ConflictPolicy.LOCAL_WINS
        return self._settings.conflict_policy

    async def _sync_linked(
        self,
        product: ManagedProduct,
        policy: ConflictPolicy,
        source: StockSource,
        sync_run_id: Optional[str] = None,
        notify: bool = True
    ) -> SyncOutcome:
        async with self._lock_for(product.product_id):
            try:
                previous_local, new_local, changed = await self._reconcile(product, policy, source, sync_run_id)
            except Exception as e:
                logger.error(f"Error syncing stock for product {product.product_id}: {e}")
                await self._record_failure(product, e, notify=notify)
                return SyncOutcome(ok=False, error=str(e))

        await self._evaluate(product, new_local, previous_local)
        return SyncOutcome(ok=True, changed=changed)

    async def _reconcile(
        self,
        product: ManagedProduct,
        policy: ConflictPolicy,
        source: StockSource,
        sync_run_id: Optional[str]
    ):
        record = await self.ledger.ensure_record(product)
        previous_local = record.local_quantity

        observed_at = self.clock()
        local_qty = clamp_quantity(product.stock_quantity, f"local stock for product {product.product_id}")
        payload = await self.remote.get_item_stock(product.remote_item_id)
        remote_qty = clamp_quantity(
            self._parse_quantity(payload, product), f"remote stock for item {product.remote_item_id}"
        )

        resolution = resolve(local_qty, remote_qty, policy, source)
        new_local, new_remote = local_qty, remote_qty

        if resolution.push_required:
            await self._push(product, resolution.winning_quantity)
            new_remote = resolution.winning_quantity

        if resolution.pull_required:
            await self.store.set_stock_quantity(product.product_id, resolution.winning_quantity)
            new_local = resolution.winning_quantity
            logger.info(
                f"Local stock for product {product.product_id} updated from Zoho: "
                f"{local_qty} -> {new_local}"
            )

        await self._write_ledger(
            record,
            observed_local=local_qty,
            new_local=new_local,
            new_remote=new_remote,
            observed_at=observed_at,
            wrote_local=resolution.pull_required,
            wrote_remote=resolution.push_required,
            sync_run_id=sync_run_id
        )
        return previous_local, new_local, resolution.pull_required or resolution.push_required

    async def _push(self, product: ManagedProduct, quantity: int) -> None:
        accepted = await self.remote.put_item_stock(product.remote_item_id, quantity)
        if not accepted:
            raise ZohoAPIError(f"Zoho rejected stock update for item {product.remote_item_id}")

    async def _write_ledger(
        self,
        record: StockSyncRecord,
        *,
        observed_local: int,
        new_local: int,
        new_remote: int,
        observed_at: datetime,
        wrote_local: bool = False,
        wrote_remote: bool = False,
        sync_run_id: Optional[str] = None
    ) -> None:
        """
        Log every local quantity transition and write the ledger row in one
        transaction.

        Two transitions can be logged: the ledger's last value to the quantity
        the store held when observed (a change nobody reported), then that
        quantity to the one written back from Zoho.

        If another writer got to the row first, the write is retried against
        the fresh row. When that row holds an observation at least as new as
        ours, it is kept as the baseline and only what this call actually
        wrote to the store or to Zoho is applied on top. With nothing written,
        our observation is dropped.
        """
        product_id = record.product_id

        for attempt in range(1, LEDGER_WRITE_ATTEMPTS + 1):
            try:
                await self._append_transitions(
                    product_id, record.local_quantity, observed_local, new_local,
                    observed_at=observed_at, sync_run_id=sync_run_id
                )
                await self.ledger.record_sync(
                    record,
                    local_quantity=new_local,
                    remote_quantity=new_remote,
                    observed_at=observed_at,
                    status=SyncStatus.SYNCED if new_local == new_remote else SyncStatus.PENDING
                )
                return

            except StaleLedgerWriteError:
                if attempt == LEDGER_WRITE_ATTEMPTS:
                    raise

                fresh = await self.ledger.get_record(product_id)
                if fresh is None:
                    raise

                fresh_at = ensure_utc(fresh.last_sync_at)
                if fresh_at is not None and fresh_at >= ensure_utc(observed_at):
                    if not (wrote_local or wrote_remote):
                        logger.info(
                            f"Stock record for product {product_id} already holds a newer observation; "
                            f"dropping write of {new_local}/{new_remote}"
                        )
                        return

                    logger.warning(
                        f"Stock record for product {product_id} already holds a newer observation; "
                        f"applying this sync's writes on top of it"
                    )
                    observed_at = fresh_at
                    observed_local = fresh.local_quantity
                    if not wrote_local:
                        new_local = fresh.local_quantity
                    if not wrote_remote:
                        new_remote = fresh.remote_quantity
                else:
                    logger.warning(f"Concurrent write on stock record for product {product_id}; retrying")

                record = fresh

    async def _append_transitions(
        self,
        product_id: int,
        ledger_local: int,
        observed_local: int,
        new_local: int,
        *,
        observed_at: datetime,
        sync_run_id: Optional[str] = None
    ) -> None:
        if observed_local != ledger_local:
            await self.change_log.append(
                product_id, ledger_local, observed_local, StockSource.LOCAL,
                sync_run_id=sync_run_id, changed_at=observed_at
            )
        if new_local != observed_local:
            await self.change_log.append(
                product_id, observed_local, new_local, StockSource.REMOTE,
                sync_run_id=sync_run_id, changed_at=observed_at
            )

    @staticmethod
    def _parse_quantity(payload: Any, product: ManagedProduct) -> int:
        quantity = payload.get("quantity") if isinstance(payload, dict) else None
        if quantity is None or isinstance(quantity, bool):
            raise InvalidStockPayloadError(
                f"Invalid stock data from Zoho for item {product.remote_item_id}: {payload!r}"
            )
        try:
            return int(quantity)
        except (TypeError, ValueError):
            raise InvalidStockPayloadError(
                f"Invalid stock quantity from Zoho for item {product.remote_item_id}: {quantity!r}"
            )

    async def _record_failure(self, product: ManagedProduct, error: Exception, notify: bool = True) -> None:
        try:
            await self.ledger.mark_error(product.product_id, str(error))
        except Exception as e:
            logger.error(f"Could not flag stock record for product {product.product_id} as failed: {e}")

        if notify:
            await self._notify_failures([SyncFailure(
                product_id=product.product_id,
                product_name=product.name,
                remote_item_id=product.remote_item_id,
                error=str(error)
            )])

    async def _notify_failures(self, failures: List[SyncFailure], sync_run_id: Optional[str] = None) -> None:
        if self.dispatcher is None:
            return
        try:
            await self.dispatcher.notify_sync_failures(failures, sync_run_id=sync_run_id, now=self.clock())
        except Exception as e:
            logger.error(f"Could not send sync failure notification: {e}", exc_info=True)

    async def _evaluate(self, product: ManagedProduct, quantity: int, previous_quantity: Optional[int]) -> None:
        if self.monitor is None:
            return
        try:
            await self.monitor.evaluate(product, quantity, previous_quantity=previous_quantity)
        except Exception as e:
            logger.error(f"Low stock check failed for product {product.product_id}: {e}", exc_info=True)
