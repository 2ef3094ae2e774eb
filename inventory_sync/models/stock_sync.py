# inventory_sync/models/stock_sync.py
from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func

from inventory_sync.database import Base
from inventory_sync.core.enums import SyncStatus


class StockSyncRecord(Base):
    """
    Last-known local and remote quantities for one stock-managed product.

    Rows without a remote_item_id are "not linked": they are kept so the
    product shows up in the ledger, but they are never pushed or pulled.
    """
    __tablename__ = "stock_sync"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, nullable=False, unique=True, index=True)
    remote_item_id = Column(String(100), nullable=True, index=True)

    local_quantity = Column(Integer, nullable=False, default=0)
    remote_quantity = Column(Integer, nullable=False, default=0)

    sync_status = Column(String(20), nullable=False, default=SyncStatus.PENDING.value, index=True)
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    last_error = Column(Text, nullable=True)

    # Bumped on every write; writers compare-and-swap on it
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def is_linked(self) -> bool:
        return bool(self.remote_item_id)

    def __repr__(self):
        return (f"<StockSyncRecord(product_id={self.product_id}, remote_item_id='{self.remote_item_id}', "
                f"local={self.local_quantity}, remote={self.remote_quantity}, status='{self.sync_status}')>")
