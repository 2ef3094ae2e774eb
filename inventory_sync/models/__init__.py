from .stock_sync import StockSyncRecord
from .stock_change_log import StockChangeLog
from .stock_alert import StockAlert

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'StockSyncRecord',
    'StockChangeLog',
    'StockAlert',
]
