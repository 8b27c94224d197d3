"""Shared test helpers for leadwire tests.

In-memory fakes for the storage collaborators, a fake clock, JWT and
signature helpers. These are NOT fixtures - they are regular functions and
classes that conftest.py and individual test files import.
"""

from __future__ import annotations

import json
import time
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from leadwire.classifier.base import ClassificationUnavailable
from leadwire.classifier.service import IntentClassifier
from leadwire.domain.intents import (
    ClassificationResult,
    ClassificationSource,
    Entities,
    Intent,
    ProductEntity,
    Sentiment,
    Urgency,
)
from leadwire.domain.rules import RuleBasedClassifier
from leadwire.infra.hashing import compute_signature
from leadwire.infra.kv import InMemoryKVStore
from leadwire.infra.settings import Settings
from leadwire.services.audit import AuditLog, WebhookEvent
from leadwire.services.context_resolver import ContextResolver
from leadwire.services.debounce import DebounceGate, DeferredQueue
from leadwire.services.ingestion import WebhookIngestionService
from leadwire.services.lead_materializer import LeadMaterializer, MaterializationFailure
from leadwire.services.notifications import NotificationDispatcher
from leadwire.services.wiring import Pipeline

TEST_JWT_SECRET = "test-jwt-secret-with-at-least-32-bytes"
TEST_WEBHOOK_SECRET = "test-webhook-secret"
TEST_TASK_SECRET = "test-task-secret"

# Synthetic numbers only
SENDER_PHONE = "5511900001111"
OTHER_PHONE = "5511900002222"


class FakeClock:
    """Epoch-seconds clock advanced manually."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def utc(self) -> datetime:
        return datetime.fromtimestamp(self.now, tz=timezone.utc)


class FakeCustomerDirectory:
    def __init__(
        self,
        linked: dict[str, Any] | None = None,
        messages: list[dict[str, Any]] | None = None,
        stats: dict[str, Any] | None = None,
        fail: bool = False,
    ) -> None:
        self.linked = linked
        self.messages = messages or []
        self.stats = stats or {}
        self.fail = fail
        self.lookups: list[str] = []

    def find_linked_customer(self, phone_suffix: str) -> dict[str, Any] | None:
        self.lookups.append(phone_suffix)
        if self.fail:
            raise RuntimeError("directory unavailable")
        return self.linked

    def recent_messages(self, phone_suffix: str, limit: int) -> list[dict[str, Any]]:
        return self.messages[:limit]

    def message_stats(self, phone_suffix: str) -> dict[str, Any]:
        return self.stats


def linked_customer(seller_id: int | None = 7, customer_id: int = 42) -> dict[str, Any]:
    return {
        "chat_customer_id": 900,
        "chat_name": "Cliente Chat",
        "customer_id": customer_id,
        "customer_name": "Oficina Teste",
        "seller_id": seller_id,
        "seller_name": "Vendedor Teste",
    }


class FakeLeadStore:
    def __init__(
        self,
        products: dict[str, dict[str, Any]] | None = None,
        fail_insert: bool = False,
        fail_lookup: bool = False,
        fail_items: bool = False,
        fail_origin: bool = False,
    ) -> None:
        self.products = products or {}
        self.fail_insert = fail_insert
        self.fail_lookup = fail_lookup
        self.fail_items = fail_items
        self.fail_origin = fail_origin
        self.leads: list[Any] = []
        self.items: list[tuple[int, Any]] = []
        self.origins: list[tuple[int, str]] = []

    def insert_lead(self, lead) -> int:
        if self.fail_insert:
            raise MaterializationFailure("lead insert failed: OperationalError")
        self.leads.append(lead)
        return 1000 + len(self.leads)

    def find_product(self, product: ProductEntity) -> dict[str, Any] | None:
        if self.fail_lookup:
            raise RuntimeError("products table unavailable")
        return self.products.get(product.code or product.query)

    def insert_item(self, lead_id: int, item) -> None:
        if self.fail_items:
            raise RuntimeError("lead_items insert failed")
        self.items.append((lead_id, item))

    def record_origin(self, lead_id: int, message, result) -> None:
        if self.fail_origin:
            raise RuntimeError("lead_origins insert failed")
        self.origins.append((lead_id, message.message_id))


class FakeNotificationStore:
    """Durable notification store backed by a list of row dicts."""

    def __init__(self, now=None, fail_insert: bool = False) -> None:
        self._now = now or (lambda: datetime.now(timezone.utc))
        self.fail_insert = fail_insert
        self.rows: list[dict[str, Any]] = []

    def _visible(self, user_id: int) -> list[dict[str, Any]]:
        now = self._now()
        return [
            r
            for r in self.rows
            if r["user_id"] == user_id and (r["expires_at"] is None or r["expires_at"] > now)
        ]

    def insert(self, notification) -> dict[str, Any]:
        if self.fail_insert:
            raise RuntimeError("user_notifications insert failed")
        row = {
            "id": len(self.rows) + 1,
            "user_id": notification.user_id,
            "type": notification.type.value,
            "title": notification.title,
            "message": notification.message,
            "priority": int(notification.priority),
            "data": dict(notification.data),
            "created_at": self._now(),
            "read_at": None,
            "expires_at": notification.expires_at,
        }
        self.rows.append(row)
        return dict(row)

    def unread_count(self, user_id: int) -> int:
        return sum(1 for r in self._visible(user_id) if r["read_at"] is None)

    def list_page(self, user_id, limit, offset, unread_only):
        rows = self._visible(user_id)
        if unread_only:
            rows = [r for r in rows if r["read_at"] is None]
        rows = sorted(rows, key=lambda r: (r["created_at"], r["id"]), reverse=True)
        return [dict(r) for r in rows[offset:offset + limit]], len(rows)

    def mark_read(self, notification_id: int, user_id: int) -> bool:
        for r in self.rows:
            if r["id"] == notification_id and r["user_id"] == user_id and r["read_at"] is None:
                r["read_at"] = self._now()
                return True
        return False

    def mark_all_read(self, user_id: int) -> int:
        count = 0
        for r in self.rows:
            if r["user_id"] == user_id and r["read_at"] is None:
                r["read_at"] = self._now()
                count += 1
        return count

    def delete(self, notification_id: int, user_id: int) -> bool:
        before = len(self.rows)
        self.rows = [
            r for r in self.rows if not (r["id"] == notification_id and r["user_id"] == user_id)
        ]
        return len(self.rows) != before

    def delete_older_than(self, days: int) -> int:
        cutoff = self._now() - timedelta(days=days)
        before = len(self.rows)
        self.rows = [r for r in self.rows if r["created_at"] >= cutoff]
        return before - len(self.rows)


class FakeAuditStore:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.events: list[tuple[WebhookEvent, str | None]] = []

    def append(self, event: WebhookEvent, correlation_id: str | None) -> None:
        if self.fail:
            raise RuntimeError("webhook_events insert failed")
        self.events.append((event, correlation_id))

    def find_lead(self, message_id: str, sender_phone: str) -> int | None:
        if self.fail:
            raise RuntimeError("webhook_events unavailable")
        for event, _ in self.events:
            if (
                event.message_id == message_id
                and event.sender_phone == sender_phone
                and event.lead_created
                and event.lead_id is not None
            ):
                return event.lead_id
        return None

    def counts_by_type(self, hours: int) -> dict[str, int]:
        counts: dict[str, int] = {}
        for event, _ in self.events:
            counts[event.event_type] = counts.get(event.event_type, 0) + 1
        return counts

    def of_type(self, event_type: str) -> list[WebhookEvent]:
        return [e for e, _ in self.events if e.event_type == event_type]


def ai_result(
    intent: Intent = Intent.QUOTE_REQUEST,
    confidence: float = 0.9,
    products: tuple[ProductEntity, ...] = (ProductEntity(query="rolamento 6204", code="6204", quantity=5),),
    sentiment: Sentiment = Sentiment.NEUTRAL,
    urgency: Urgency = Urgency.MEDIUM,
) -> ClassificationResult:
    return ClassificationResult(
        intent=intent,
        confidence=confidence,
        sentiment=sentiment,
        urgency=urgency,
        source=ClassificationSource.AI,
        entities=Entities(products=products),
        summary="Cliente quer cotação",
        model="gpt-test",
        tokens_used=120,
    )


class FakeAIClassifier:
    """Counts calls; returns a fixed result or raises ClassificationUnavailable."""

    def __init__(self, result: ClassificationResult | None = None, fail: bool = False) -> None:
        self.result = result or ai_result()
        self.fail = fail
        self.calls: list[tuple[str, tuple, str | None]] = []

    def classify(self, text, context_messages=(), customer_name=None) -> ClassificationResult:
        self.calls.append((text, tuple(context_messages), customer_name))
        if self.fail:
            raise ClassificationUnavailable("openai request failed: ConnectTimeout")
        return self.result


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "environment": "development",
        "webhook_secret": TEST_WEBHOOK_SECRET,
        "auto_create_leads": True,
        "debounce_seconds": 5,
    }
    values.update(overrides)
    return Settings(**values)


class PipelineFixture:
    """A Pipeline wired to fakes, with the fakes kept reachable for asserts."""

    def __init__(
        self,
        settings: Settings | None = None,
        directory: FakeCustomerDirectory | None = None,
        lead_store: FakeLeadStore | None = None,
        ai: FakeAIClassifier | None = None,
        audit_store: FakeAuditStore | None = None,
        notification_store: FakeNotificationStore | None = None,
    ) -> None:
        self.clock = FakeClock()
        self.settings = settings or make_settings()
        self.kv = InMemoryKVStore(clock=self.clock)
        self.directory = directory or FakeCustomerDirectory(linked=linked_customer())
        self.lead_store = lead_store or FakeLeadStore()
        self.ai = ai
        self.audit_store = audit_store or FakeAuditStore()
        self.notification_store = notification_store or FakeNotificationStore(now=self.clock.utc)

        self.classifier = IntentClassifier(cache=self.kv, ai=ai, rules=RuleBasedClassifier())
        self.dispatcher = NotificationDispatcher(
            store=self.notification_store,
            realtime=self.kv,
            now=self.clock.utc,
        )
        self.queue = DeferredQueue(self.kv, max_size=self.settings.max_queue_size, clock=self.clock)
        self.ingestion = WebhookIngestionService(
            settings=self.settings,
            gate=DebounceGate(self.kv, ttl_seconds=self.settings.debounce_seconds, clock=self.clock),
            queue=self.queue,
            resolver=ContextResolver(self.directory),
            classifier=self.classifier,
            materializer=LeadMaterializer(self.lead_store, default_seller_id=self.settings.default_seller_id),
            dispatcher=self.dispatcher,
            audit=AuditLog(self.audit_store),
        )
        self.pipeline = Pipeline(
            settings=self.settings,
            ingestion=self.ingestion,
            notifications=self.dispatcher,
            classifier=self.classifier,
        )


def superbot_payload(
    text: str | None = "Preciso de 5 rolamentos 6204, qual o valor?",
    sender_phone: str = SENDER_PHONE,
    message_id: str = "msg-001",
    direction: str = "incoming",
    **extra: Any,
) -> dict[str, Any]:
    payload = {
        "message_id": message_id,
        "session_id": "session-001",
        "sender_phone": sender_phone,
        "recipient_phone": "5511900009999",
        "text": text,
        "direction": direction,
        "type": "text",
        "received_at": "2026-10-17T12:00:00Z",
    }
    payload.update(extra)
    return payload


def make_token(
    user_id: int | str = 7,
    secret: str = TEST_JWT_SECRET,
    exp: int | None = None,
    claim: str = "userId",
    **claims: Any,
) -> str:
    """Create an HS256 JWT like the platform auth service issues."""
    now = int(time.time())
    payload = {
        claim: user_id,
        "email": "vendedor@example.com",
        "nick": "Vendedor",
        "iat": now,
        "exp": exp if exp is not None else now + 3600,
    }
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(user_id: int = 7) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


def signed_body(payload: dict[str, Any], secret: str = TEST_WEBHOOK_SECRET) -> tuple[bytes, str]:
    """Serialize a payload and return (body, signature header value)."""
    body = json.dumps(payload).encode("utf-8")
    return body, f"sha256={compute_signature(body, secret)}"
