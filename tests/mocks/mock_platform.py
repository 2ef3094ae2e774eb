from datetime import datetime
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from inventory_sync.core.exceptions import WooCommerceAPIError, ZohoAPIError
from inventory_sync.integrations.base import CommerceStore, RemoteInventoryService
from inventory_sync.schemas.stock import ManagedProduct


def make_product(product_id: int, quantity: int, remote_item_id: Optional[str] = "auto", **kwargs) -> ManagedProduct:
    """Product P<id> linked to Zoho item Z<id> unless remote_item_id is given."""
    if remote_item_id == "auto":
        remote_item_id = f"Z{product_id}"
    return ManagedProduct(
        product_id=product_id,
        name=kwargs.pop("name", f"Product {product_id}"),
        sku=kwargs.pop("sku", f"SKU-{product_id}"),
        stock_quantity=quantity,
        remote_item_id=remote_item_id,
        **kwargs
    )


class MockCommerceStore(CommerceStore):
    def __init__(self, products: Iterable[ManagedProduct] = ()):
        super().__init__()
        self.products: Dict[int, ManagedProduct] = {p.product_id: p for p in products}
        self.page_requests: List[tuple] = []  # Track calls for testing
        self.set_calls: List[dict] = []
        self.fail_on_page: Optional[int] = None  # Toggle to test a failed page fetch

    def add(self, product: ManagedProduct) -> None:
        self.products[product.product_id] = product

    def quantity(self, product_id: int) -> int:
        return self.products[product_id].stock_quantity

    async def get_managed_products(self, page: int, batch_size: int) -> List[ManagedProduct]:
        self.page_requests.append((page, batch_size))
        if self.fail_on_page == page:
            raise WooCommerceAPIError(f"Could not fetch page {page}")

        ordered = sorted(self.products.values(), key=lambda p: p.product_id)
        start = (page - 1) * batch_size
        return [p.model_copy() for p in ordered[start:start + batch_size]]

    async def get_product(self, product_id: int) -> Optional[ManagedProduct]:
        product = self.products.get(product_id)
        return product.model_copy() if product else None

    async def get_stock_quantity(self, product_id: int) -> int:
        return self.products[product_id].stock_quantity

    async def set_stock_quantity(self, product_id: int, quantity: int) -> None:
        self.set_calls.append({
            'product_id': product_id,
            'quantity': quantity,
            'timestamp': datetime.now()
        })
        self.products[product_id] = self.products[product_id].model_copy(update={"stock_quantity": quantity})


class MockRemoteInventory(RemoteInventoryService):
    def __init__(self, stock_levels: Optional[Dict[str, int]] = None):
        self.stock_levels: Dict[str, int] = dict(stock_levels or {})  # remote_item_id -> quantity
        self.get_calls: List[str] = []
        self.update_calls: List[dict] = []
        self.should_fail = False
        self.failing_items: set = set()
        self.payload_overrides: Dict[str, dict] = {}
        self.before_get: Optional[Callable[[str], Awaitable[None]]] = None

    def _check_failure(self, remote_item_id: str) -> None:
        if self.should_fail or remote_item_id in self.failing_items:
            raise ZohoAPIError(f"Zoho unavailable for item {remote_item_id}", status_code=503)

    async def get_item_stock(self, remote_item_id: str) -> dict:
        self.get_calls.append(remote_item_id)
        if self.before_get is not None:
            await self.before_get(remote_item_id)
        self._check_failure(remote_item_id)

        if remote_item_id in self.payload_overrides:
            return self.payload_overrides[remote_item_id]
        return {"item_id": remote_item_id, "quantity": self.stock_levels.get(remote_item_id, 0)}

    async def put_item_stock(self, remote_item_id: str, quantity: int) -> bool:
        self._check_failure(remote_item_id)
        self.update_calls.append({
            'remote_item_id': remote_item_id,
            'quantity': quantity,
            'timestamp': datetime.now()
        })
        self.stock_levels[remote_item_id] = quantity
        return True

    @property
    def total_calls(self) -> int:
        return len(self.get_calls) + len(self.update_calls)

    def clear_history(self):
        """Clear test history"""
        self.get_calls = []
        self.update_calls = []
