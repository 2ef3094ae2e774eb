# inventory_sync/cli/create_tables.py
import asyncio
import click

from inventory_sync.core.config import get_settings
from inventory_sync.database import build_engine, create_tables as create_all_tables


@click.command("create-tables")
def create_tables():
    """Create all database tables directly using SQLAlchemy"""
    settings = get_settings()
    if not settings.DATABASE_URL:
        raise click.ClickException("DATABASE_URL is not set")

    async def _create_tables():
        engine = build_engine(settings.DATABASE_URL)
        try:
            await create_all_tables(engine)
        finally:
            await engine.dispose()
        click.echo("All tables created successfully!")

    asyncio.run(_create_tables())


if __name__ == "__main__":
    create_tables()
