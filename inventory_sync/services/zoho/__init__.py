from .auth import ZohoAuthManager
from .client import ZohoInventoryClient

__all__ = ["ZohoAuthManager", "ZohoInventoryClient"]
