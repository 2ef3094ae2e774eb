from .woocommerce import WooCommerceStore
from .zoho import ZohoInventoryService

__all__ = ["WooCommerceStore", "ZohoInventoryService"]
