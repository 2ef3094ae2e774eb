# inventory_sync/cli/check_stock.py
import click

from inventory_sync.cli.common import run_with_components
from inventory_sync.core.enums import AlertType


@click.command("check-stock")
def check_stock():
    """Check every managed product against its low-stock threshold"""
    raised = run_with_components(lambda components: components.run_stock_check())
    click.echo(f"{raised} alert(s) raised")


@click.command("dismiss-alert")
@click.argument("product_id", type=int)
@click.option("--type", "alert_type", type=click.Choice([t.value for t in AlertType]), default=None,
              help="Only dismiss this alert type")
def dismiss_alert(product_id, alert_type):
    """Dismiss open stock alerts for a product"""

    async def _dismiss(components):
        async with components.session_factory() as session:
            monitor = components.monitor_for(session)
            return await monitor.dismiss(product_id, AlertType(alert_type) if alert_type else None)

    dismissed = run_with_components(_dismiss)
    click.echo(f"Dismissed {dismissed} alert(s) for product {product_id}")
