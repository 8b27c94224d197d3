"""Notification dispatcher: durable rows plus a per-user realtime buffer.

create() writes the durable row first (source of truth) and then
front-inserts a denormalised copy into notifications:realtime:<user_id>,
capped at realtime_max entries and expiring after realtime_ttl seconds.
Polling clients read only the buffer; counts and listings read the durable
store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import Any, Callable, Protocol

from leadwire.domain.intents import ClassificationResult, Intent, Sentiment, Urgency
from leadwire.infra.db import txn
from leadwire.infra.kv import KeyValueStore
from leadwire.infra.repositories import notifications_repository
from leadwire.infra.time import parse_iso, utc_now
from leadwire.observability.logging import get_logger
from leadwire.observability.redaction import safe_log_context

logger = get_logger(__name__)

REALTIME_KEY_PREFIX = "notifications:realtime:"
DEFAULT_REALTIME_MAX = 50
DEFAULT_REALTIME_TTL = 86400
DEFAULT_RETENTION_DAYS = 30

PREVIEW_LENGTH = 100
FULL_MESSAGE_LENGTH = 500


class NotificationType(str, Enum):
    WHATSAPP_MESSAGE = "whatsapp_message"
    WHATSAPP_PURCHASE_INTENT = "whatsapp_purchase_intent"
    WHATSAPP_COMPLAINT = "whatsapp_complaint"
    WHATSAPP_URGENT = "whatsapp_urgent"
    LEAD_CREATED = "lead_created"
    LEAD_CONVERTED = "lead_converted"
    SYSTEM = "system"


class Priority(IntEnum):
    LOW = 1
    NORMAL = 2
    HIGH = 3
    URGENT = 4


class NotificationDeliveryFailure(Exception):
    """Raised when the durable notification row cannot be written."""


@dataclass(frozen=True)
class NewNotification:
    user_id: int
    type: NotificationType
    title: str
    message: str
    priority: Priority = Priority.NORMAL
    data: dict[str, Any] = field(default_factory=dict)
    expires_at: datetime | None = None


class NotificationStore(Protocol):
    """Durable notification storage."""

    def insert(self, notification: NewNotification) -> dict[str, Any]: ...

    def unread_count(self, user_id: int) -> int: ...

    def list_page(
        self, user_id: int, limit: int, offset: int, unread_only: bool
    ) -> tuple[list[dict[str, Any]], int]: ...

    def mark_read(self, notification_id: int, user_id: int) -> bool: ...

    def mark_all_read(self, user_id: int) -> int: ...

    def delete(self, notification_id: int, user_id: int) -> bool: ...

    def delete_older_than(self, days: int) -> int: ...


class PgNotificationStore:
    """NotificationStore over the user_notifications table."""

    def insert(self, notification: NewNotification) -> dict[str, Any]:
        with txn() as cur:
            return notifications_repository.insert_notification(
                cur,
                user_id=notification.user_id,
                type=notification.type.value,
                title=notification.title,
                message=notification.message,
                priority=int(notification.priority),
                data=notification.data,
                expires_at=notification.expires_at,
            )

    def unread_count(self, user_id: int) -> int:
        with txn() as cur:
            return notifications_repository.count_unread(cur, user_id=user_id)

    def list_page(
        self, user_id: int, limit: int, offset: int, unread_only: bool
    ) -> tuple[list[dict[str, Any]], int]:
        with txn() as cur:
            return notifications_repository.list_notifications(
                cur, user_id=user_id, limit=limit, offset=offset, unread_only=unread_only
            )

    def mark_read(self, notification_id: int, user_id: int) -> bool:
        with txn() as cur:
            read_at = notifications_repository.mark_read(
                cur, notification_id=notification_id, user_id=user_id
            )
        return read_at is not None

    def mark_all_read(self, user_id: int) -> int:
        with txn() as cur:
            return notifications_repository.mark_all_read(cur, user_id=user_id)

    def delete(self, notification_id: int, user_id: int) -> bool:
        with txn() as cur:
            return notifications_repository.delete_notification(
                cur, notification_id=notification_id, user_id=user_id
            )

    def delete_older_than(self, days: int) -> int:
        with txn() as cur:
            return notifications_repository.delete_older_than(cur, days=days)


def realtime_key(user_id: int) -> str:
    return f"{REALTIME_KEY_PREFIX}{user_id}"


def _iso(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def serialize_row(row: dict[str, Any]) -> dict[str, Any]:
    """JSON-ready copy of a durable row (timestamps as ISO strings)."""
    return {
        **row,
        "created_at": _iso(row.get("created_at")),
        "read_at": _iso(row.get("read_at")),
        "expires_at": _iso(row.get("expires_at")),
    }


def classify_alert(result: ClassificationResult) -> tuple[NotificationType, Priority, str]:
    """Map a classification onto (type, priority, title) for seller alerts."""
    if result.sentiment == Sentiment.NEGATIVE or result.intent == Intent.COMPLAINT:
        return (
            NotificationType.WHATSAPP_COMPLAINT,
            Priority.URGENT,
            "⚠️ Cliente insatisfeito no WhatsApp",
        )
    if result.intent in (Intent.PURCHASE_INTENT, Intent.QUOTE_REQUEST):
        return (
            NotificationType.WHATSAPP_PURCHASE_INTENT,
            Priority.HIGH,
            "💰 Intenção de compra detectada",
        )
    if result.urgency == Urgency.HIGH:
        return (
            NotificationType.WHATSAPP_URGENT,
            Priority.HIGH,
            "🚨 Mensagem urgente no WhatsApp",
        )
    return NotificationType.WHATSAPP_MESSAGE, Priority.NORMAL, "Nova mensagem WhatsApp"


def _preview(text: str) -> str:
    suffix = "..." if len(text) > PREVIEW_LENGTH else ""
    return f"{text[:PREVIEW_LENGTH]}{suffix}"


class NotificationDispatcher:
    """Creates, polls and acknowledges user notifications.

    Args:
        store: Durable notification storage.
        realtime: Key-value store holding the per-user buffers.
        realtime_max: Buffer capacity per user.
        realtime_ttl: Seconds a buffer (and each buffered entry) stays visible.
        now: Current UTC time source.
    """

    def __init__(
        self,
        store: NotificationStore,
        realtime: KeyValueStore,
        realtime_max: int = DEFAULT_REALTIME_MAX,
        realtime_ttl: int = DEFAULT_REALTIME_TTL,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._realtime = realtime
        self._realtime_max = realtime_max
        self._realtime_ttl = realtime_ttl
        self._now = now

    def create(self, notification: NewNotification) -> int:
        """Persist a notification and push it to the user's realtime buffer.

        Returns:
            The durable notification id.

        Raises:
            NotificationDeliveryFailure: If the durable insert fails.
        """
        try:
            row = self._store.insert(notification)
        except Exception as e:
            logger.error(
                "notification insert failed",
                extra={
                    "extra_fields": safe_log_context(
                        user_id=notification.user_id,
                        type=notification.type.value,
                        error_type=type(e).__name__,
                    )
                },
            )
            raise NotificationDeliveryFailure(str(e)) from e

        entry = {
            "id": row["id"],
            "type": notification.type.value,
            "title": notification.title,
            "message": notification.message,
            "priority": int(notification.priority),
            "data": notification.data,
            "created_at": _iso(row.get("created_at")) or self._now().isoformat(),
            "read_at": None,
        }
        try:
            self._realtime.push_front(
                realtime_key(notification.user_id),
                entry,
                self._realtime_max,
                ttl=self._realtime_ttl,
            )
        except Exception as e:
            logger.warning(
                "realtime notification buffer write failed",
                extra={
                    "extra_fields": safe_log_context(
                        user_id=notification.user_id,
                        notification_id=row["id"],
                        error_type=type(e).__name__,
                    )
                },
            )

        logger.info(
            "notification created",
            extra={
                "extra_fields": safe_log_context(
                    notification_id=row["id"],
                    user_id=notification.user_id,
                    type=notification.type.value,
                )
            },
        )
        return int(row["id"])

    def get_pending(self, user_id: int, since: datetime | None = None) -> list[dict[str, Any]]:
        """Buffered notifications for polling, most recent first.

        Reads only the realtime buffer; an absent buffer yields []. With
        `since`, only entries created strictly after it are returned.
        """
        try:
            entries = self._realtime.get_list(realtime_key(user_id))
        except Exception as e:
            logger.warning(
                "realtime notification buffer read failed",
                extra={"extra_fields": safe_log_context(user_id=user_id, error_type=type(e).__name__)},
            )
            return []

        cutoff = self._now() - timedelta(seconds=self._realtime_ttl)
        pending = []
        for entry in entries:
            created_at = parse_iso(entry.get("created_at"))
            if created_at is None or created_at <= cutoff:
                continue
            if since is not None and created_at <= since:
                continue
            pending.append(entry)
        return pending

    def _stamp_buffer(self, user_id: int, notification_id: int | None = None) -> None:
        key = realtime_key(user_id)
        try:
            entries = self._realtime.get_list(key)
            if not entries:
                return
            read_at = self._now().isoformat()
            changed = False
            for entry in entries:
                if entry.get("read_at"):
                    continue
                if notification_id is None or entry.get("id") == notification_id:
                    entry["read_at"] = read_at
                    changed = True
            if changed:
                self._realtime.set_list(key, entries, ttl=self._realtime_ttl)
        except Exception as e:
            logger.warning(
                "realtime notification buffer update failed",
                extra={"extra_fields": safe_log_context(user_id=user_id, error_type=type(e).__name__)},
            )

    def mark_read(self, notification_id: int, user_id: int) -> bool:
        updated = self._store.mark_read(notification_id, user_id)
        if updated:
            self._stamp_buffer(user_id, notification_id)
        return updated

    def mark_all_read(self, user_id: int) -> int:
        count = self._store.mark_all_read(user_id)
        self._stamp_buffer(user_id)
        return count

    def unread_count(self, user_id: int) -> int:
        return self._store.unread_count(user_id)

    def list_for_user(
        self,
        user_id: int,
        page: int = 1,
        limit: int = 20,
        unread_only: bool = False,
    ) -> dict[str, Any]:
        """Paginated durable listing plus the unread count."""
        page = max(page, 1)
        limit = max(1, min(limit, 100))
        rows, total = self._store.list_page(user_id, limit, (page - 1) * limit, unread_only)
        return {
            "notifications": [serialize_row(row) for row in rows],
            "unreadCount": self._store.unread_count(user_id),
            "pagination": {"page": page, "limit": limit, "total": total},
        }

    def delete(self, notification_id: int, user_id: int) -> bool:
        deleted = self._store.delete(notification_id, user_id)
        if deleted:
            key = realtime_key(user_id)
            try:
                entries = self._realtime.get_list(key)
                remaining = [e for e in entries if e.get("id") != notification_id]
                if len(remaining) != len(entries):
                    self._realtime.set_list(key, remaining, ttl=self._realtime_ttl)
            except Exception as e:
                logger.warning(
                    "realtime notification buffer update failed",
                    extra={"extra_fields": safe_log_context(user_id=user_id, error_type=type(e).__name__)},
                )
        return deleted

    def cleanup(self, days: int = DEFAULT_RETENTION_DAYS) -> int:
        """Delete durable notifications older than `days`."""
        deleted = self._store.delete_older_than(days)
        logger.info(
            "old notifications removed",
            extra={"extra_fields": safe_log_context(deleted=deleted, days=days)},
        )
        return deleted

    def notify_whatsapp_message(
        self,
        seller_id: int,
        *,
        phone: str,
        customer_name: str | None,
        text: str,
        result: ClassificationResult,
        lead_id: int | None = None,
    ) -> int:
        """Alert a seller about an important WhatsApp message."""
        notification_type, priority, title = classify_alert(result)
        data: dict[str, Any] = {
            "phone": phone,
            "customerName": customer_name,
            "intent": result.intent.value,
            "sentiment": result.sentiment.value,
            "urgency": result.urgency.value,
            "confidence": result.confidence,
            "fullMessage": text[:FULL_MESSAGE_LENGTH],
        }
        if lead_id is not None:
            data["leadId"] = lead_id

        return self.create(
            NewNotification(
                user_id=seller_id,
                type=notification_type,
                title=title,
                message=f"{customer_name or phone}: {_preview(text)}",
                priority=priority,
                data=data,
            )
        )

    def notify_lead_created(
        self,
        seller_id: int,
        *,
        lead_id: int,
        phone: str,
        customer_name: str | None,
        products: list[str],
    ) -> int:
        return self.create(
            NewNotification(
                user_id=seller_id,
                type=NotificationType.LEAD_CREATED,
                title="🛒 Novo lead via WhatsApp",
                message=f"Lead #{lead_id} criado automaticamente para {customer_name or phone}",
                priority=Priority.HIGH,
                data={
                    "leadId": lead_id,
                    "phone": phone,
                    "customerName": customer_name,
                    "products": products,
                },
            )
        )
