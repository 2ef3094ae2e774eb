"""
Events raised by the commerce store and consumed by the stock sync engine.

OrderCompletedEvent carries the line items of an order that reached the completed status.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from inventory_sync.core.utils import utc_now


class OrderLineItem(BaseModel):
    product_id: int
    quantity: int = 1
    variation_id: Optional[int] = None


class OrderCompletedEvent(BaseModel):
    order_id: int
    status: str = "completed"
    items: List[OrderLineItem] = []
    timestamp: datetime = Field(default_factory=utc_now)
