# inventory_sync/cli/main.py
import click

from inventory_sync.cli.check_stock import check_stock, dismiss_alert
from inventory_sync.cli.cleanup_logs import cleanup_logs
from inventory_sync.cli.create_tables import create_tables
from inventory_sync.cli.sync_stock import sync_all, sync_product, sync_status


@click.group()
def cli():
    """Zoho Inventory / WooCommerce stock sync commands"""


cli.add_command(create_tables)
cli.add_command(sync_all)
cli.add_command(sync_product)
cli.add_command(sync_status)
cli.add_command(check_stock)
cli.add_command(dismiss_alert)
cli.add_command(cleanup_logs)


if __name__ == "__main__":
    cli()
