import logging
from typing import Any, Dict

from inventory_sync.integrations.base import RemoteInventoryService
from inventory_sync.services.zoho.client import ZohoInventoryClient

logger = logging.getLogger(__name__)


class ZohoInventoryService(RemoteInventoryService):
    """RemoteInventoryService backed by the Zoho Inventory API."""

    def __init__(self, client: ZohoInventoryClient):
        self.client = client

    async def get_item_stock(self, remote_item_id: str) -> Dict[str, Any]:
        payload = await self.client.get_item_stock(remote_item_id)
        # Some responses wrap the figures in a "stock" object
        if "quantity" not in payload and isinstance(payload.get("stock"), dict):
            return payload["stock"]
        return payload

    async def put_item_stock(self, remote_item_id: str, quantity: int) -> bool:
        await self.client.update_item_stock(remote_item_id, quantity)
        logger.debug(f"Zoho stock for item {remote_item_id} set to {quantity}")
        return True
