# inventory_sync/cli/common.py
import asyncio
from typing import Awaitable, Callable, TypeVar

from inventory_sync.core.config import get_settings
from inventory_sync.core.logging_config import configure_logging
from inventory_sync.database import dispose_engine
from inventory_sync.integrations.setup import SyncComponents, build_components

T = TypeVar("T")


def run_with_components(job: Callable[[SyncComponents], Awaitable[T]]) -> T:
    """
    Build the sync components, run one job and tear everything down.

    There is no scheduler outside the web process, so any batched
    notifications are flushed before exiting.
    """
    configure_logging()

    async def _run():
        components = build_components(get_settings())
        try:
            return await job(components)
        finally:
            await components.dispatcher.process_queued_notifications()
            await dispose_engine()

    return asyncio.run(_run())
