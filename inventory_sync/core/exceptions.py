from typing import Optional


class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass

class InventorySyncError(BaseServiceError):
    """Base exception for stock synchronization errors."""
    pass

class InvalidStockPayloadError(InventorySyncError):
    """Raised when the remote service returns stock data without a usable quantity."""
    pass

class StaleLedgerWriteError(InventorySyncError):
    """Raised when a ledger row changed underneath a compare-and-swap write."""

    def __init__(self, product_id: int, expected_version: int):
        super().__init__(
            f"Stock record for product {product_id} changed since version {expected_version}"
        )
        self.product_id = product_id
        self.expected_version = expected_version

class PlatformServiceError(BaseServiceError):
    """Base exception for external platform errors."""
    pass

class ZohoAPIError(PlatformServiceError):
    """Raised when Zoho Inventory API calls fail."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

class ZohoAuthError(ZohoAPIError):
    """Raised when no valid Zoho access token can be obtained."""
    pass

class WooCommerceAPIError(PlatformServiceError):
    """Raised when WooCommerce REST API calls fail."""
    pass

class NotificationError(BaseServiceError):
    """Base exception for notification errors."""
    pass

class TemplateNotFoundError(NotificationError):
    """Raised when no email template exists for a notification type."""
    pass
