import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

from inventory_sync import scheduler as scheduler_module
from inventory_sync.core.enums import SyncFrequency
from inventory_sync.integrations.setup import SyncComponents
from inventory_sync.scheduler import ApschedulerFlushScheduler, register_jobs, sync_trigger
from tests.conftest import make_settings
from tests.mocks import MockCommerceStore, MockMailer, MockRemoteInventory


@pytest.fixture
def components(settings):
    return SyncComponents(settings, MockCommerceStore(), MockRemoteInventory(), None, mailer=MockMailer())


def test_hourly_and_daily_triggers():
    assert str(sync_trigger(SyncFrequency.HOURLY).fields[6]) == "0"
    daily = sync_trigger(SyncFrequency.DAILY)
    assert str(daily.fields[5]) == "3"
    assert str(daily.fields[6]) == "0"


def test_register_jobs_adds_sync_and_cleanup(components):
    sched = AsyncIOScheduler(timezone="UTC")
    register_jobs(sched, components, make_settings(SYNC_FREQUENCY="daily"))

    jobs = {job.id: job for job in sched.get_jobs()}
    assert set(jobs) == {"sync_stock", "cleanup_logs"}
    assert jobs["sync_stock"].max_instances == 1
    assert str(jobs["sync_stock"].trigger.fields[5]) == "3"


def test_register_jobs_respects_disabled_schedule(components):
    sched = AsyncIOScheduler(timezone="UTC")
    register_jobs(sched, components, make_settings(SYNC_SCHEDULE_ENABLED=False))

    assert sched.get_jobs() == []


def test_flush_scheduler_adds_one_shot_job(mocker):
    sched = mocker.MagicMock()
    flush = ApschedulerFlushScheduler(sched)

    async def callback():
        return None

    flush.schedule(120, callback)

    args, kwargs = sched.add_job.call_args
    assert args[0] is callback
    assert isinstance(args[1], DateTrigger)
    assert kwargs["id"] == "flush_notifications"
    assert kwargs["replace_existing"] is True


@pytest.mark.asyncio
async def test_scheduler_status_when_not_initialised(mocker):
    mocker.patch.object(scheduler_module, "scheduler", None)

    assert await scheduler_module.get_scheduler_status() == {"status": "not_initialized", "jobs": []}


@pytest.mark.asyncio
async def test_scheduler_status_separates_notification_flush(components, mocker):
    sched = AsyncIOScheduler(timezone="UTC")
    register_jobs(sched, components, make_settings())

    async def callback():
        return None

    sched.add_job(callback, DateTrigger(), id="flush_notifications")
    mocker.patch.object(scheduler_module, "scheduler", sched)

    status = await scheduler_module.get_scheduler_status()

    assert status["status"] == "stopped"
    assert [job["id"] for job in status["jobs"]] == ["sync_stock", "cleanup_logs"]
    assert status["notification_flush_pending"] is True
