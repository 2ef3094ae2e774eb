from .stock import (
    ManagedProduct,
    StockRecordRead,
    NotificationQueueEntry,
    SyncRunSummary
)
