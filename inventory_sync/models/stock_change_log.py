# inventory_sync/models/stock_change_log.py
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func

from inventory_sync.database import Base


class StockChangeLog(Base):
    """
    Append-only history of local stock quantity transitions.

    One row per transition. Rows are never updated; the retention cleanup
    job is the only thing that deletes them.
    """
    __tablename__ = "stock_change_log"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, nullable=False, index=True)
    old_quantity = Column(Integer, nullable=False)
    new_quantity = Column(Integer, nullable=False)
    source = Column(String(10), nullable=False)  # 'local' or 'remote'

    # Groups the entries written by one sync_all() run
    sync_run_id = Column(String(36), nullable=True, index=True)

    changed_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return (f"<StockChangeLog(product_id={self.product_id}, {self.old_quantity}->{self.new_quantity}, "
                f"source='{self.source}')>")
