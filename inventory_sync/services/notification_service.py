"""Email notifications for stock alerts and sync failures."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from collections import OrderedDict
from datetime import datetime, timedelta
from email.message import EmailMessage
from email.utils import formataddr
from typing import Any, Dict, List, Optional, Tuple

from jinja2 import Environment, PackageLoader, TemplateNotFound, select_autoescape

from inventory_sync.core.config import Settings
from inventory_sync.core.enums import NotificationType
from inventory_sync.core.exceptions import TemplateNotFoundError
from inventory_sync.core.utils import unique_emails, utc_now
from inventory_sync.integrations.base import FlushScheduler, Mailer
from inventory_sync.schemas.stock import NotificationQueueEntry, SyncFailure

logger = logging.getLogger(__name__)


SUBJECTS = {
    NotificationType.LOW_STOCK: "⚠️ Low stock: {product_name}",
    NotificationType.OUT_OF_STOCK: "❌ Out of stock: {product_name}",
    NotificationType.STOCK_REPLENISHED: "✅ Stock replenished: {product_name}",
    NotificationType.SYNC_FAILED: "🔄 Stock sync error: {product_name}",
}

DIGEST_STYLE = {
    NotificationType.LOW_STOCK: ("⚠️", "#ffc107"),
    NotificationType.OUT_OF_STOCK: ("❌", "#dc3545"),
    NotificationType.STOCK_REPLENISHED: ("✅", "#28a745"),
    NotificationType.SYNC_FAILED: ("🔄", "#fd7e14"),
}


def get_notification_recipients(settings: Settings, include_distributors: bool = False) -> List[str]:
    """Admin address, extra notification addresses and, optionally, distributors."""
    groups = [[settings.ADMIN_EMAIL], settings.NOTIFICATION_EMAILS]
    if include_distributors and settings.NOTIFY_DISTRIBUTORS:
        groups.append(settings.DISTRIBUTOR_EMAILS)
    return unique_emails(*groups)


class EmailTemplateRenderer:
    """Renders notification emails from the Jinja2 templates shipped with the package."""

    def __init__(self, settings: Settings, env: Optional[Environment] = None):
        self._settings = settings
        self.env = env or Environment(
            loader=PackageLoader("inventory_sync", "templates/email"),
            autoescape=select_autoescape(["html"])
        )

    def _context(self, data: Dict[str, Any]) -> Dict[str, Any]:
        context = {
            "store_name": self._settings.STORE_NAME,
            "admin_url": self._settings.ADMIN_URL,
            "product_name": "",
            "sku": None,
            "current_stock": 0,
            "threshold": 0,
        }
        context.update(data)
        return context

    def render(self, notification_type: str, data: Dict[str, Any]) -> Tuple[str, str]:
        """
        Render subject and HTML body for a single notification.

        Raises:
            TemplateNotFoundError: If the type has no template.
        """
        try:
            kind = NotificationType(notification_type)
        except ValueError:
            raise TemplateNotFoundError(f"Notification template not found: {notification_type}")

        try:
            template = self.env.get_template(f"{kind.value}.html")
        except TemplateNotFound:
            raise TemplateNotFoundError(f"Notification template not found: {kind.value}")

        context = self._context(data)
        subject = SUBJECTS[kind].format(product_name=context.get("product_name") or "")
        return subject, template.render(**context)

    def render_digest(self, entries: List[NotificationQueueEntry]) -> Tuple[str, str]:
        items = []
        for entry in entries:
            kind = NotificationType(entry.type)
            icon, color = DIGEST_STYLE[kind]
            items.append({
                "icon": icon,
                "color": color,
                "product_name": entry.data.get("product_name", ""),
                "message": self.format_message(kind, entry.data),
                "current_stock": entry.data.get("current_stock"),
                "timestamp": entry.enqueued_at.strftime("%Y-%m-%d %H:%M UTC"),
            })

        template = self.env.get_template("batch_notification.html")
        subject = f"Inventory update summary ({len(entries)})"
        return subject, template.render(**self._context({"entries": items}))

    @staticmethod
    def format_message(kind: NotificationType, data: Dict[str, Any]) -> str:
        if kind is NotificationType.LOW_STOCK:
            return f"Stock is at or below the threshold of {data.get('threshold', 0)}."
        if kind is NotificationType.OUT_OF_STOCK:
            return "The product is out of stock."
        if kind is NotificationType.STOCK_REPLENISHED:
            return (f"Stock replenished from {data.get('previous_stock', 0)} "
                    f"to {data.get('current_stock', 0)}.")
        return f"Stock sync failed: {data.get('error', 'unknown error')}"


class SmtpMailer(Mailer):
    """Lightweight SMTP transport for system notifications."""

    def __init__(self, settings: Settings):
        self._settings = settings

    async def send_mail(self, recipient: str, subject: str, html_body: str) -> bool:
        if not self._ready():
            logger.warning("SMTP configuration incomplete; email to %s skipped", recipient)
            return False

        message = self._build_message(subject, recipient, html_body)
        try:
            await asyncio.to_thread(self._send_sync, message)
            logger.info("Notification email sent to %s", recipient)
            return True
        except Exception as exc:
            logger.error("Failed to send notification email to %s: %s", recipient, exc, exc_info=True)
            return False

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _ready(self) -> bool:
        settings = self._settings
        return bool(settings.SMTP_HOST and settings.SMTP_USERNAME and settings.SMTP_PASSWORD)

    def _build_message(self, subject: str, recipient: str, html_body: str) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self._formatted_from_address
        message["To"] = recipient
        message.set_content("This notification requires an HTML-capable email client.")
        message.add_alternative(html_body, subtype="html")
        return message

    @property
    def _formatted_from_address(self) -> str:
        from_email = self._settings.SMTP_FROM_EMAIL or self._settings.SMTP_USERNAME
        from_name = self._settings.SMTP_FROM_NAME or f"{self._settings.STORE_NAME} Inventory"
        return formataddr((from_name, from_email))

    def _send_sync(self, message: EmailMessage) -> None:
        settings = self._settings
        host = settings.SMTP_HOST
        port = settings.SMTP_PORT or (465 if settings.SMTP_USE_SSL else 587)
        timeout = settings.SMTP_TIMEOUT

        if settings.SMTP_USE_SSL:
            smtp = smtplib.SMTP_SSL(host=host, port=port, timeout=timeout)
        else:
            smtp = smtplib.SMTP(host=host, port=port, timeout=timeout)
        try:
            if settings.SMTP_USE_TLS and not settings.SMTP_USE_SSL:
                smtp.starttls()

            smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            smtp.send_message(message)
        finally:
            try:
                smtp.quit()
            except Exception:
                smtp.close()


class NotificationDispatcher:
    """
    Sends notifications immediately, or queues them per recipient and sends
    one digest each when the queue is flushed.

    The queue lives in memory only. When batching is on, the first queued
    entry asks the flush scheduler to call process_queued_notifications()
    after BATCH_FLUSH_DELAY_SECONDS; later entries ride on that same flush.
    """

    def __init__(
        self,
        settings: Settings,
        mailer: Mailer,
        renderer: Optional[EmailTemplateRenderer] = None,
        flush_scheduler: Optional[FlushScheduler] = None
    ):
        self._settings = settings
        self.mailer = mailer
        self.renderer = renderer or EmailTemplateRenderer(settings)
        self.flush_scheduler = flush_scheduler
        self.queue: List[NotificationQueueEntry] = []
        self._flush_pending = False
        self._failures_reported_at: Dict[int, datetime] = {}

    @property
    def flush_pending(self) -> bool:
        return self._flush_pending

    def should_send_notification(self, notification_type: NotificationType) -> bool:
        if not self._settings.EMAIL_NOTIFICATIONS:
            return False

        notification_types = {
            NotificationType.LOW_STOCK: True,
            NotificationType.OUT_OF_STOCK: True,
            NotificationType.STOCK_REPLENISHED: self._settings.ADMIN_NOTIFICATIONS,
            NotificationType.SYNC_FAILED: self._settings.ADMIN_NOTIFICATIONS,
        }
        return notification_types.get(notification_type, False)

    async def send_notification(self, notification_type: str, recipient: str, data: Dict[str, Any]) -> bool:
        """
        Send (or queue) one notification.

        Returns False when notifications of this type are disabled, the type
        has no template, or the mail transport reports a failure.
        """
        if not self._settings.EMAIL_NOTIFICATIONS:
            return False

        try:
            kind = NotificationType(notification_type)
        except ValueError:
            logger.error(f"Notification template not found: {notification_type}")
            return False

        if not self.should_send_notification(kind):
            logger.debug(f"{kind.value} notifications disabled; skipping {recipient}")
            return False

        if self._settings.BATCH_NOTIFICATIONS:
            self._queue_notification(kind, recipient, data)
            return True

        return await self._process_notification(kind, recipient, data)

    async def send_to_all(self, notification_type: str, recipients: List[str], data: Dict[str, Any]) -> int:
        """Send the same notification to each recipient. Returns how many were sent or queued."""
        sent = 0
        for recipient in recipients:
            if await self.send_notification(notification_type, recipient, data):
                sent += 1
        return sent

    async def notify_sync_failure(
        self,
        product_id: int,
        error: str,
        product_name: str = "",
        remote_item_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> int:
        failure = SyncFailure(
            product_id=product_id,
            product_name=product_name,
            remote_item_id=remote_item_id,
            error=error
        )
        return await self.notify_sync_failures([failure], now=now)

    async def notify_sync_failures(
        self,
        failures: List[SyncFailure],
        sync_run_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> int:
        """
        Send one sync_failed notification to the admins covering every failure.

        Products already reported within ALERT_COOLDOWN_HOURS are left out, so
        an outage spanning several runs is reported once per product. Returns
        the number of recipients the notification was sent or queued for.
        """
        if not self.should_send_notification(NotificationType.SYNC_FAILED):
            return 0

        now = now or utc_now()
        cooldown = timedelta(hours=self._settings.ALERT_COOLDOWN_HOURS)
        reportable = []
        for failure in failures:
            last_sent = self._failures_reported_at.get(failure.product_id)
            if last_sent is not None and now - last_sent < cooldown:
                continue
            reportable.append(failure)

        if not reportable:
            logger.debug(f"{len(failures)} sync failures already reported; no notification sent")
            return 0

        rows = [
            {
                "product_id": failure.product_id,
                "product_name": failure.product_name or f"Product {failure.product_id}",
                "remote_item_id": failure.remote_item_id,
                "error": failure.error,
            }
            for failure in reportable
        ]
        data = dict(rows[0], sync_run_id=sync_run_id, failures=rows)
        if len(rows) > 1:
            data["product_name"] = f"{len(rows)} products"
            data["error"] = f"{len(rows)} products failed to sync"

        sent = await self.send_to_all(
            NotificationType.SYNC_FAILED.value, get_notification_recipients(self._settings), data
        )
        if sent:
            for failure in reportable:
                self._failures_reported_at[failure.product_id] = now
        return sent

    async def process_queued_notifications(self) -> int:
        """
        Flush the queue: one digest per recipient, then drop every entry.

        Entries whose digest fails to send are not re-queued. Returns the
        number of digests the transport accepted.
        """
        entries, self.queue = self.queue, []
        self._flush_pending = False

        if not entries:
            return 0

        by_recipient: "OrderedDict[str, List[NotificationQueueEntry]]" = OrderedDict()
        for entry in entries:
            by_recipient.setdefault(entry.recipient, []).append(entry)

        sent = 0
        for recipient, recipient_entries in by_recipient.items():
            try:
                subject, body = self.renderer.render_digest(recipient_entries)
            except Exception as e:
                logger.error(f"Failed to render notification digest for {recipient}: {e}")
                continue

            if await self._deliver(recipient, subject, body):
                sent += 1

        logger.info(
            f"Notification queue flushed: {len(entries)} entries, "
            f"{sent}/{len(by_recipient)} digests sent"
        )
        return sent

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _process_notification(self, kind: NotificationType, recipient: str, data: Dict[str, Any]) -> bool:
        try:
            subject, body = self.renderer.render(kind.value, data)
        except TemplateNotFoundError as e:
            logger.error(str(e))
            return False

        return await self._deliver(recipient, subject, body)

    def _queue_notification(self, kind: NotificationType, recipient: str, data: Dict[str, Any]) -> None:
        self.queue.append(NotificationQueueEntry(
            type=kind.value,
            recipient=recipient,
            data=dict(data),
            enqueued_at=utc_now()
        ))

        if self._flush_pending:
            return

        if self.flush_scheduler is None:
            logger.warning("Notification batching enabled without a flush scheduler; queue flushes on demand only")
            return

        self.flush_scheduler.schedule(self._settings.BATCH_FLUSH_DELAY_SECONDS, self.process_queued_notifications)
        self._flush_pending = True
        logger.debug(f"Notification flush scheduled in {self._settings.BATCH_FLUSH_DELAY_SECONDS}s")

    async def _deliver(self, recipient: str, subject: str, body: str) -> bool:
        try:
            return bool(await self.mailer.send_mail(recipient, subject, body))
        except Exception as e:
            logger.error(f"Mail transport failed for {recipient}: {e}", exc_info=True)
            return False
