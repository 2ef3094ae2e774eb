# inventory_sync/models/stock_alert.py
from sqlalchemy import Column, Integer, String, DateTime, Index, text
from sqlalchemy.sql import func

from inventory_sync.database import Base
from inventory_sync.core.enums import AlertStatus


class StockAlert(Base):
    """
    A low-stock or out-of-stock threshold breach for one product.

    Only one open (non-dismissed) alert may exist per product and alert type;
    re-detection updates that row instead of inserting another.
    """
    __tablename__ = "stock_alerts"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, nullable=False, index=True)
    alert_type = Column(String(20), nullable=False)  # low_stock, out_of_stock
    threshold = Column(Integer, nullable=False, default=0)
    stock_level = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=AlertStatus.ACTIVE.value, index=True)

    last_triggered_at = Column(DateTime(timezone=True), nullable=True)
    notification_sent_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index(
            "uq_stock_alerts_open_product_type",
            "product_id",
            "alert_type",
            unique=True,
            postgresql_where=text("status <> 'dismissed'"),
            sqlite_where=text("status <> 'dismissed'"),
        ),
    )

    def __repr__(self):
        return (f"<StockAlert(product_id={self.product_id}, type='{self.alert_type}', "
                f"status='{self.status}', threshold={self.threshold})>")
