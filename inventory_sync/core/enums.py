"""
Shared enums and constants used across the application.
"""

from enum import Enum


class SyncStatus(str, Enum):
    """Sync state of a product stock record."""
    PENDING = "pending"          # Linked but never synced, or awaiting the next pass
    SYNCED = "synced"            # Local and remote quantities agreed at last_sync_at
    ERROR = "error"              # Last remote call for this product failed


class StockSource(str, Enum):
    """Side of the system that originated a quantity change."""
    LOCAL = "local"
    REMOTE = "remote"


class ConflictPolicy(str, Enum):
    REMOTE_WINS = "remote_wins"
    LOCAL_WINS = "local_wins"
    BOTH = "both"

    @classmethod
    def from_setting(cls, value: str) -> "ConflictPolicy":
        """
        Map a configured conflict_resolution value onto a policy.

        Accepts the policy names as well as the store-facing aliases
        'zoho', 'woocommerce' and 'manual'.
        """
        aliases = {
            "zoho": cls.REMOTE_WINS,
            "woocommerce": cls.LOCAL_WINS,
            "manual": cls.BOTH,
        }
        normalized = (value or "").strip().lower()
        if normalized in aliases:
            return aliases[normalized]
        return cls(normalized)


class SyncDirection(str, Enum):
    ZOHO_TO_WC = "zoho_to_wc"
    WC_TO_ZOHO = "wc_to_zoho"
    BOTH = "both"

    @property
    def pushes_local_changes(self) -> bool:
        return self is not SyncDirection.ZOHO_TO_WC


class SyncFrequency(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"


class AlertType(str, Enum):
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


class AlertStatus(str, Enum):
    ACTIVE = "active"
    TRIGGERED = "triggered"
    DISMISSED = "dismissed"


class NotificationType(str, Enum):
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"
    STOCK_REPLENISHED = "stock_replenished"
    SYNC_FAILED = "sync_failed"
