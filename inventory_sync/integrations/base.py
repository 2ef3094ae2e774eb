import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

from inventory_sync.integrations.events import OrderCompletedEvent
from inventory_sync.schemas.stock import ManagedProduct

logger = logging.getLogger(__name__)

StockChangedHandler = Callable[[int, int], Awaitable[Any]]
OrderCompletedHandler = Callable[[OrderCompletedEvent], Awaitable[Any]]
FlushCallback = Callable[[], Awaitable[Any]]


class CommerceStore(ABC):
    """
    The local commerce store: product stock reads/writes plus order and
    stock-change events.

    Handlers are registered explicitly with on_stock_changed() and
    on_order_completed(); whatever receives the store's events (webhooks,
    tests) calls the matching emit_* method.
    """

    def __init__(self):
        self._stock_changed_handlers: List[StockChangedHandler] = []
        self._order_completed_handlers: List[OrderCompletedHandler] = []

    @abstractmethod
    async def get_managed_products(self, page: int, batch_size: int) -> List[ManagedProduct]:
        """Return one page (1-indexed) of stock-managed products in stable order"""
        pass

    @abstractmethod
    async def get_product(self, product_id: int) -> Optional[ManagedProduct]:
        """Return a single product, or None if it does not exist"""
        pass

    @abstractmethod
    async def get_stock_quantity(self, product_id: int) -> int:
        pass

    @abstractmethod
    async def set_stock_quantity(self, product_id: int, quantity: int) -> None:
        pass

    def on_stock_changed(self, handler: StockChangedHandler) -> None:
        self._stock_changed_handlers.append(handler)

    def on_order_completed(self, handler: OrderCompletedHandler) -> None:
        self._order_completed_handlers.append(handler)

    async def emit_stock_changed(self, product_id: int, new_quantity: int) -> List[Any]:
        results = []
        for handler in self._stock_changed_handlers:
            try:
                results.append(await handler(product_id, new_quantity))
            except Exception as e:
                logger.exception(f"Stock change handler failed for product {product_id}: {e}")
                results.append(e)
        return results

    async def emit_order_completed(self, order: OrderCompletedEvent) -> List[Any]:
        results = []
        for handler in self._order_completed_handlers:
            try:
                results.append(await handler(order))
            except Exception as e:
                logger.exception(f"Order completion handler failed for order {order.order_id}: {e}")
                results.append(e)
        return results


class RemoteInventoryService(ABC):
    """The remote system of record for cross-channel stock."""

    @abstractmethod
    async def get_item_stock(self, remote_item_id: str) -> Dict[str, Any]:
        """Return the item's stock payload; must contain a 'quantity' key"""
        pass

    @abstractmethod
    async def put_item_stock(self, remote_item_id: str, quantity: int) -> bool:
        """Set the item's stock level on the remote service"""
        pass


class Mailer(ABC):
    @abstractmethod
    async def send_mail(self, recipient: str, subject: str, html_body: str) -> bool:
        pass


class FlushScheduler(ABC):
    """Runs a callback once after a delay; implemented by the job scheduler."""

    @abstractmethod
    def schedule(self, delay_seconds: float, callback: FlushCallback) -> None:
        pass
