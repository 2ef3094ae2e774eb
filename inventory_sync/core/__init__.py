"""
Core module exports.
"""
from .enums import (
    SyncStatus,
    StockSource,
    ConflictPolicy,
    SyncDirection,
    SyncFrequency,
    AlertType,
    AlertStatus,
    NotificationType
)

from .exceptions import (
    BaseServiceError,
    InventorySyncError,
    InvalidStockPayloadError,
    StaleLedgerWriteError,
    PlatformServiceError,
    ZohoAPIError,
    ZohoAuthError,
    WooCommerceAPIError,
    NotificationError,
    TemplateNotFoundError
)
