from datetime import datetime, timedelta, timezone

import pytest

from inventory_sync.core.enums import AlertStatus, AlertType
from inventory_sync.services.low_stock_monitor import LowStockMonitor
from inventory_sync.services.notification_service import NotificationDispatcher
from inventory_sync.services.stock_alerts import StockAlertService
from tests.conftest import make_settings
from tests.mocks import MockCommerceStore, MockMailer, make_product

START = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def mailer():
    return MockMailer()


@pytest.fixture
def alerts(db_session):
    return StockAlertService(db_session)


def make_monitor(alerts, mailer, clock, store=None, **overrides):
    settings = make_settings(**overrides)
    dispatcher = NotificationDispatcher(settings, mailer)
    return LowStockMonitor(settings, alerts, dispatcher, store=store, clock=clock)


@pytest.mark.asyncio
async def test_stock_above_threshold_raises_nothing(alerts, mailer, clock):
    monitor = make_monitor(alerts, mailer, clock)

    assert await monitor.evaluate(make_product(1, 6)) == []
    assert await alerts.list_open() == []
    assert mailer.sent == []


@pytest.mark.asyncio
async def test_low_stock_creates_alert_and_notifies(alerts, mailer, clock):
    monitor = make_monitor(alerts, mailer, clock, DISTRIBUTOR_EMAILS="dist@example.com")

    raised = await monitor.evaluate(make_product(1, 5))

    assert [a.alert_type for a in raised] == [AlertType.LOW_STOCK.value]
    alert = raised[0]
    assert alert.status == AlertStatus.ACTIVE.value
    assert alert.threshold == 5
    assert alert.stock_level == 5
    assert {mail["recipient"] for mail in mailer.sent} == {"admin@example.com", "dist@example.com"}
    assert alert.notification_sent_at is not None


@pytest.mark.asyncio
async def test_zero_stock_raises_low_and_out_of_stock(alerts, mailer, clock):
    monitor = make_monitor(alerts, mailer, clock)

    raised = await monitor.evaluate(make_product(1, 0))

    assert sorted(a.alert_type for a in raised) == ["low_stock", "out_of_stock"]
    assert len(mailer.sent) == 2


@pytest.mark.asyncio
async def test_per_product_threshold_overrides_global(alerts, mailer, clock):
    monitor = make_monitor(alerts, mailer, clock)

    assert await monitor.evaluate(make_product(1, 8, stock_threshold=10)) != []
    assert await monitor.evaluate(make_product(2, 3, stock_threshold=2)) == []


@pytest.mark.asyncio
async def test_repeat_detection_updates_the_open_alert(alerts, mailer, clock):
    monitor = make_monitor(alerts, mailer, clock)

    first = (await monitor.evaluate(make_product(1, 4)))[0]
    clock.advance(hours=1)
    second = (await monitor.evaluate(make_product(1, 2)))[0]

    assert second.id == first.id
    assert second.stock_level == 2
    assert second.status == AlertStatus.TRIGGERED.value
    assert len(await alerts.list_open(product_id=1)) == 1


@pytest.mark.asyncio
async def test_notifications_suppressed_within_cooldown(alerts, mailer, clock):
    monitor = make_monitor(alerts, mailer, clock, ALERT_COOLDOWN_HOURS=24)
    product = make_product(1, 3)

    await monitor.evaluate(product)
    assert len(mailer.sent) == 1

    clock.advance(hours=23)
    await monitor.evaluate(product)
    assert len(mailer.sent) == 1

    clock.advance(hours=2)
    await monitor.evaluate(product)
    assert len(mailer.sent) == 2


@pytest.mark.asyncio
async def test_failed_send_does_not_start_cooldown(alerts, mailer, clock):
    monitor = make_monitor(alerts, mailer, clock)
    product = make_product(1, 3)

    mailer.should_fail = True
    alert = (await monitor.evaluate(product))[0]
    assert alert.notification_sent_at is None

    mailer.should_fail = False
    clock.advance(minutes=5)
    await monitor.evaluate(product)
    assert len(mailer.sent) == 1


@pytest.mark.asyncio
async def test_alerts_stay_open_when_stock_recovers(alerts, mailer, clock):
    monitor = make_monitor(alerts, mailer, clock)

    await monitor.evaluate(make_product(1, 2))
    await monitor.evaluate(make_product(1, 50))

    assert len(await alerts.list_open(product_id=1)) == 1


@pytest.mark.asyncio
async def test_dismissed_alert_is_replaced_by_a_new_one(alerts, mailer, clock):
    monitor = make_monitor(alerts, mailer, clock)
    first = (await monitor.evaluate(make_product(1, 2)))[0]

    assert await monitor.dismiss(1) == 1
    assert await alerts.list_open(product_id=1) == []

    second = (await monitor.evaluate(make_product(1, 2)))[0]
    assert second.id != first.id
    assert second.status == AlertStatus.ACTIVE.value


@pytest.mark.asyncio
async def test_replenished_notification(alerts, mailer, clock):
    monitor = make_monitor(alerts, mailer, clock)

    raised = await monitor.evaluate(make_product(1, 12), previous_quantity=0)

    assert raised == []
    assert len(mailer.sent) == 1
    assert "replenished" in mailer.sent[0]["subject"].lower()


@pytest.mark.asyncio
async def test_monitor_stock_levels_pages_through_the_store(alerts, mailer, clock):
    store = MockCommerceStore([make_product(i, i) for i in range(1, 8)])
    store.add(make_product(20, 0, manage_stock=False))
    monitor = make_monitor(alerts, mailer, clock, store=store, BATCH_SIZE=3)

    raised = await monitor.monitor_stock_levels()

    # Products 1-5 are at or below the threshold of 5
    assert raised == 5
    assert store.page_requests == [(1, 3), (2, 3), (3, 3)]
    assert all(alert.product_id != 20 for alert in await alerts.list_open())
