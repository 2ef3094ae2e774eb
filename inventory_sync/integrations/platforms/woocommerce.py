import logging
from typing import Any, Dict, List, Optional

from inventory_sync.core.exceptions import WooCommerceAPIError
from inventory_sync.integrations.base import CommerceStore
from inventory_sync.schemas.stock import ManagedProduct
from inventory_sync.services.woocommerce.client import WooCommerceClient

logger = logging.getLogger(__name__)

REMOTE_ID_META_KEY = "zoho_item_id"
THRESHOLD_META_KEY = "_zssi_stock_threshold"


def _meta_value(product: Dict[str, Any], key: str) -> Optional[str]:
    for meta in product.get("meta_data") or []:
        if meta.get("key") == key:
            value = meta.get("value")
            return str(value).strip() if value not in (None, "") else None
    return None


def product_from_payload(payload: Dict[str, Any]) -> ManagedProduct:
    """Map a WooCommerce product (or variation) payload to a ManagedProduct."""
    threshold = _meta_value(payload, THRESHOLD_META_KEY)
    try:
        threshold = int(threshold) if threshold is not None else None
    except ValueError:
        logger.warning(f"Ignoring invalid stock threshold {threshold!r} on product {payload.get('id')}")
        threshold = None

    return ManagedProduct(
        product_id=int(payload["id"]),
        name=payload.get("name") or "",
        sku=payload.get("sku") or None,
        stock_quantity=int(payload.get("stock_quantity") or 0),
        remote_item_id=_meta_value(payload, REMOTE_ID_META_KEY),
        stock_threshold=threshold,
        manage_stock=payload.get("manage_stock") is True
    )


class WooCommerceStore(CommerceStore):
    """CommerceStore backed by the WooCommerce REST API."""

    def __init__(self, client: WooCommerceClient):
        super().__init__()
        self.client = client
        # variation id -> parent product id, learned from product reads
        self._parents: Dict[int, int] = {}

    def _remember(self, payload: Dict[str, Any]) -> None:
        parent_id = payload.get("parent_id")
        if parent_id:
            self._parents[int(payload["id"])] = int(parent_id)

    async def get_managed_products(self, page: int, batch_size: int) -> List[ManagedProduct]:
        payloads = await self.client.list_products(page=page, per_page=batch_size, status="publish")
        products = []
        for payload in payloads:
            self._remember(payload)
            products.append(product_from_payload(payload))
        return products

    async def get_product(self, product_id: int) -> Optional[ManagedProduct]:
        payload = await self.client.get_product(product_id)
        if payload is None:
            return None
        self._remember(payload)
        return product_from_payload(payload)

    async def get_stock_quantity(self, product_id: int) -> int:
        product = await self.get_product(product_id)
        if product is None:
            raise WooCommerceAPIError(f"Product {product_id} not found")
        return product.stock_quantity

    async def set_stock_quantity(self, product_id: int, quantity: int) -> None:
        data = {"manage_stock": True, "stock_quantity": int(quantity)}
        parent_id = self._parents.get(product_id)
        if parent_id:
            await self.client.update_variation(parent_id, product_id, data)
        else:
            await self.client.update_product(product_id, data)
        logger.info(f"WooCommerce stock for product {product_id} set to {quantity}")
