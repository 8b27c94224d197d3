"""Append-only audit log of webhook processing outcomes.

Every message that passes the debounce gate is recorded, including skips and
errors. The log doubles as the idempotency record for lead creation: a lead
is created at most once per (message_id, sender_phone).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Protocol

from leadwire.domain.result import Result
from leadwire.infra.db import txn
from leadwire.infra.repositories import webhook_events_repository
from leadwire.observability.correlation import get_correlation_id
from leadwire.observability.logging import get_logger
from leadwire.observability.redaction import safe_log_context

logger = get_logger(__name__)

EVENT_PROCESSED = "message_processed"
EVENT_SKIPPED = "message_skipped"
EVENT_ERROR = "processing_error"


@dataclass(frozen=True)
class WebhookEvent:
    event_type: str
    message_id: str | None
    session_id: str | None
    sender_phone: str | None
    intent: str | None = None
    confidence: float | None = None
    lead_created: bool = False
    lead_id: int | None = None
    alert_sent: bool = False
    skipped_reason: str | None = None
    error: str | None = None


class AuditStore(Protocol):
    def append(self, event: WebhookEvent, correlation_id: str | None) -> None: ...

    def find_lead(self, message_id: str, sender_phone: str) -> int | None: ...

    def counts_by_type(self, hours: int) -> dict[str, int]: ...


class PgAuditStore:
    """AuditStore over the webhook_events table."""

    def append(self, event: WebhookEvent, correlation_id: str | None) -> None:
        with txn() as cur:
            webhook_events_repository.insert_event(cur, correlation_id=correlation_id, **asdict(event))

    def find_lead(self, message_id: str, sender_phone: str) -> int | None:
        with txn() as cur:
            return webhook_events_repository.find_lead_for_message(
                cur, message_id=message_id, sender_phone=sender_phone
            )

    def counts_by_type(self, hours: int) -> dict[str, int]:
        with txn() as cur:
            return webhook_events_repository.count_events_by_type(cur, hours=hours)


class AuditLog:
    """Records WebhookEvents; storage failures are logged, never raised."""

    def __init__(self, store: AuditStore) -> None:
        self._store = store

    def record(self, event: WebhookEvent) -> bool:
        try:
            self._store.append(event, get_correlation_id() or None)
            return True
        except Exception as e:
            logger.error(
                "audit event not recorded",
                extra={
                    "extra_fields": safe_log_context(
                        event_type=event.event_type,
                        message_id=event.message_id,
                        error_type=type(e).__name__,
                    )
                },
            )
            return False

    def lead_for_message(self, message_id: str, sender_phone: str) -> Result[int | None]:
        """Lead id already created for this message, if any."""
        try:
            return Result.success(self._store.find_lead(message_id, sender_phone))
        except Exception as e:
            return Result.failure(str(e), "audit_lookup_error")

    def recent_counts(self, hours: int = 24) -> Result[dict[str, Any]]:
        try:
            return Result.success(self._store.counts_by_type(hours))
        except Exception as e:
            return Result.failure(str(e), "audit_lookup_error")
