from .mock_notifications import MockFlushScheduler, MockMailer
from .mock_platform import MockCommerceStore, MockRemoteInventory, make_product

__all__ = [
    "MockCommerceStore",
    "MockRemoteInventory",
    "MockMailer",
    "MockFlushScheduler",
    "make_product",
]
