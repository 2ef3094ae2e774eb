"""Stock synchronization between WooCommerce and Zoho Inventory."""

__version__ = "1.0.0"
