# inventory_sync/cli/cleanup_logs.py
import click

from inventory_sync.cli.common import run_with_components


@click.command("cleanup-logs")
def cleanup_logs():
    """Delete stock change log entries older than LOG_RETENTION_DAYS"""
    deleted = run_with_components(lambda components: components.run_log_cleanup())
    click.echo(f"Removed {deleted} stock change log entries")
