# inventory_sync/cli/sync_stock.py
import click

from inventory_sync.cli.common import run_with_components
from inventory_sync.core.enums import SyncStatus
from inventory_sync.schemas.stock import StockRecordRead
from inventory_sync.services.stock_ledger import StockLedgerService


@click.command("sync-all")
def sync_all():
    """Pull stock from Zoho for every linked product"""
    summary = run_with_components(lambda components: components.run_sync_all())

    click.echo(f"Sync run {summary.sync_run_id}")
    click.echo(f"  processed: {summary.processed}")
    click.echo(f"  updated:   {summary.updated}")
    click.echo(f"  skipped:   {summary.skipped}")
    click.echo(f"  errors:    {summary.errors}")
    if summary.aborted:
        raise click.ClickException("Sync run aborted; see the log for details")


@click.command("sync-product")
@click.argument("product_id", type=int)
def sync_product(product_id):
    """Synchronize a single product now"""
    ok = run_with_components(lambda components: components.sync_product(product_id))
    if not ok:
        raise click.ClickException(f"Product {product_id} could not be synchronized")
    click.echo(f"Product {product_id} synchronized")


@click.command("sync-status")
@click.option("--status", "status", type=click.Choice([s.value for s in SyncStatus]), default=None,
              help="Only show records with this sync status")
@click.option("--limit", default=100, show_default=True)
def sync_status(status, limit):
    """List stock sync records from the ledger"""

    async def _list(components):
        async with components.session_factory() as session:
            records = await StockLedgerService(session).list_records(
                status=SyncStatus(status) if status else None,
                limit=limit
            )
            return [StockRecordRead.model_validate(record) for record in records]

    records = run_with_components(_list)
    if not records:
        click.echo("No stock records found")
        return

    for record in records:
        line = (f"{record.product_id:>8}  {record.remote_item_id or '-':<20} "
                f"local={record.local_quantity:<6} remote={record.remote_quantity:<6} {record.sync_status.value}")
        if record.last_error:
            line += f"  ({record.last_error})"
        click.echo(line)
