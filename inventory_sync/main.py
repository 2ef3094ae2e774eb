# inventory_sync/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from inventory_sync import __version__
from inventory_sync.core.config import get_settings
from inventory_sync.core.logging_config import configure_logging
from inventory_sync.database import dispose_engine
from inventory_sync.integrations.setup import build_components
from inventory_sync.routes import health
from inventory_sync.routes.webhooks import router as webhook_router
from inventory_sync.scheduler import (
    ApschedulerFlushScheduler,
    create_scheduler,
    register_jobs,
    start_scheduler,
    stop_scheduler,
)

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()

    scheduler = create_scheduler()
    components = build_components(settings, flush_scheduler=ApschedulerFlushScheduler(scheduler))
    components.register_handlers()
    register_jobs(scheduler, components, settings)
    app.state.components = components

    await start_scheduler()
    try:
        yield  # This is where the app runs
    finally:
        # The notification queue is in memory only
        if components.dispatcher.queue:
            logger.info(f"Flushing {len(components.dispatcher.queue)} queued notifications before shutdown")
            await components.dispatcher.process_queued_notifications()
        await stop_scheduler()
        await dispose_engine()


app = FastAPI(
    title="Zoho Inventory Sync",
    version=__version__,
    lifespan=lifespan
)

app.include_router(health.router)
app.include_router(webhook_router)  # Webhooks are authenticated by signature
