from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field

from inventory_sync.core.enums import SyncStatus
from inventory_sync.core.utils import utc_now


class ManagedProduct(BaseModel):
    """A commerce-store product as seen by the sync engine and the monitor."""
    product_id: int
    name: str = ""
    sku: Optional[str] = None
    stock_quantity: int = 0
    remote_item_id: Optional[str] = None
    stock_threshold: Optional[int] = None
    manage_stock: bool = True

    @property
    def is_linked(self) -> bool:
        return bool(self.remote_item_id)


class StockRecordRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: int
    remote_item_id: Optional[str] = None
    local_quantity: int
    remote_quantity: int
    sync_status: SyncStatus
    last_sync_at: Optional[datetime] = None
    last_error: Optional[str] = None


class NotificationQueueEntry(BaseModel):
    type: str
    recipient: str
    data: Dict[str, Any] = {}
    enqueued_at: datetime = Field(default_factory=utc_now)


class SyncFailure(BaseModel):
    product_id: int
    product_name: str = ""
    remote_item_id: Optional[str] = None
    error: str


class SyncRunSummary(BaseModel):
    sync_run_id: str
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    errors: int = 0
    pages: int = 0
    aborted: bool = False
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()
