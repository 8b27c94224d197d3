"""Webhook ingestion pipeline for Superbot WhatsApp messages.

Flow per delivery:
  1. Verify signature (production only) and validate the payload
  2. Skip outgoing messages (no side effects)
  3. Debounce per sender; deliveries inside an open window are queued
  4. Pick text (message text or audio transcription)
  5. Resolve customer context (best-effort)
  6. Classify intent (AI first, rule-based fallback)
  7. Decide and act: create lead, then alert seller
  8. Audit the outcome (including skips and errors)

Security: NEVER log phones or message text. Only masked phones, ids and
lengths.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from leadwire.classifier.service import IntentClassifier
from leadwire.domain.decisions import decide
from leadwire.domain.intents import ClassificationResult
from leadwire.infra.hashing import SignatureVerificationError, verify_signature
from leadwire.infra.settings import Settings
from leadwire.infra.time import utc_now
from leadwire.observability.correlation import correlation_scope
from leadwire.observability.logging import get_logger
from leadwire.observability.redaction import mask_phone, safe_log_context
from leadwire.services.audit import (
    EVENT_ERROR,
    EVENT_PROCESSED,
    EVENT_SKIPPED,
    AuditLog,
    WebhookEvent,
)
from leadwire.services.context_resolver import ContextResolver, CustomerContext
from leadwire.services.debounce import DebounceGate, DeferredQueue
from leadwire.services.lead_materializer import LeadMaterializer, LeadOutcome
from leadwire.services.notifications import NotificationDeliveryFailure, NotificationDispatcher
from leadwire.whatsapp.models import IncomingMessage
from leadwire.whatsapp.superbot_adapter import InvalidPayloadError, parse_incoming

logger = get_logger(__name__)

SKIP_OUTGOING = "outgoing"
SKIP_DEBOUNCED = "debounced"
SKIP_NO_TEXT = "no_text"

SIMULATED_PHONE = "5511999999999"


class InvalidSignatureError(Exception):
    """Raised when a production delivery fails HMAC verification."""

    pass


@dataclass(frozen=True)
class IngestionResult:
    accepted: bool
    skipped_reason: str | None = None
    message_id: str | None = None
    classification: ClassificationResult | None = None
    lead: LeadOutcome | None = None
    lead_created: bool = False
    alert_sent: bool = False
    queue_position: int | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "accepted": self.accepted,
            "skipped_reason": self.skipped_reason,
            "message_id": self.message_id,
            "classification": self.classification.to_dict() if self.classification else None,
            "lead": self.lead.to_dict() if self.lead else None,
            "lead_created": self.lead_created,
            "alert_sent": self.alert_sent,
            "queue_position": self.queue_position,
            "error": self.error,
        }


class WebhookIngestionService:
    """Orchestrates gate, context, classifier, decisions and side effects."""

    def __init__(
        self,
        settings: Settings,
        gate: DebounceGate,
        queue: DeferredQueue,
        resolver: ContextResolver,
        classifier: IntentClassifier,
        materializer: LeadMaterializer,
        dispatcher: NotificationDispatcher,
        audit: AuditLog,
    ) -> None:
        self._settings = settings
        self._gate = gate
        self._queue = queue
        self._resolver = resolver
        self._classifier = classifier
        self._materializer = materializer
        self._dispatcher = dispatcher
        self._audit = audit

    # ── Intake ───────────────────────────────────────────────────────────────

    def _verify_signature(self, payload: Any, raw_body: bytes | None, signature: str | None) -> None:
        if not self._settings.is_production:
            logger.warning("webhook signature check bypassed outside production")
            return

        body = raw_body
        if body is None:
            body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

        try:
            verify_signature(body, signature, self._settings.webhook_secret)
        except SignatureVerificationError as e:
            raise InvalidSignatureError(str(e)) from e

    def process(
        self,
        payload: Any,
        raw_body: bytes | None = None,
        signature: str | None = None,
    ) -> IngestionResult:
        """Process one gateway delivery.

        Raises:
            InvalidSignatureError: Production delivery with a bad/missing signature.
            InvalidPayloadError: Missing sender_phone/session_id or malformed fields.
        """
        self._verify_signature(payload, raw_body, signature)
        return self._intake(payload)

    def _intake(self, payload: Any) -> IngestionResult:
        message = parse_incoming(payload)

        if message.direction == "outgoing":
            return IngestionResult(
                accepted=True,
                skipped_reason=SKIP_OUTGOING,
                message_id=message.message_id,
            )

        if not self._gate.try_acquire(message.sender_phone):
            position = self._queue.enqueue(message.sender_phone, payload)
            logger.info(
                "webhook message debounced",
                extra={
                    "extra_fields": safe_log_context(
                        phone=mask_phone(message.sender_phone),
                        message_id=message.message_id,
                        queue_position=position,
                    )
                },
            )
            return IngestionResult(
                accepted=True,
                skipped_reason=SKIP_DEBOUNCED,
                message_id=message.message_id,
                queue_position=position,
            )

        return self._handle(message, message.content)

    # ── Pipeline ─────────────────────────────────────────────────────────────

    def _resolve_context(self, message: IncomingMessage) -> CustomerContext | None:
        resolved = self._resolver.resolve(message.sender_phone)
        if not resolved.ok:
            logger.warning(
                "proceeding without customer context",
                extra={
                    "extra_fields": safe_log_context(
                        message_id=message.message_id,
                        error_code=resolved.error_code,
                    )
                },
            )
            return None
        return resolved.value

    def _create_lead(
        self,
        message: IncomingMessage,
        text: str,
        result: ClassificationResult,
        context: CustomerContext | None,
    ) -> tuple[LeadOutcome, bool]:
        """Create the lead unless this message already produced one.

        Returns:
            Tuple of (outcome, created_now).
        """
        existing = self._audit.lead_for_message(message.message_id, message.sender_phone)
        if not existing.ok:
            logger.warning(
                "lead idempotency lookup failed",
                extra={"extra_fields": safe_log_context(message_id=message.message_id)},
            )
        elif existing.value is not None:
            logger.info(
                "lead already created for message",
                extra={
                    "extra_fields": safe_log_context(
                        message_id=message.message_id,
                        lead_id=existing.value,
                    )
                },
            )
            return LeadOutcome(success=True, lead_id=existing.value), False

        outcome = self._materializer.create_lead(message, text, result, context)
        return outcome, outcome.success

    def _alert_seller(
        self,
        seller_id: int,
        message: IncomingMessage,
        text: str,
        result: ClassificationResult,
        context: CustomerContext | None,
        lead_id: int | None,
    ) -> bool:
        try:
            self._dispatcher.notify_whatsapp_message(
                seller_id,
                phone=message.sender_phone,
                customer_name=context.customer_name if context else None,
                text=text,
                result=result,
                lead_id=lead_id,
            )
        except NotificationDeliveryFailure:
            logger.warning(
                "seller alert not delivered",
                extra={"extra_fields": safe_log_context(seller_id=seller_id, message_id=message.message_id)},
            )
            return False
        return True

    def _notify_lead_created(
        self,
        message: IncomingMessage,
        context: CustomerContext | None,
        outcome: LeadOutcome,
        result: ClassificationResult,
    ) -> None:
        seller_id = (context.seller_id if context else None) or self._settings.default_seller_id
        try:
            self._dispatcher.notify_lead_created(
                seller_id,
                lead_id=outcome.lead_id,
                phone=message.sender_phone,
                customer_name=context.customer_name if context else None,
                products=[p.query for p in result.entities.products],
            )
        except NotificationDeliveryFailure:
            logger.warning(
                "lead created notification not delivered",
                extra={"extra_fields": safe_log_context(seller_id=seller_id, lead_id=outcome.lead_id)},
            )

    def _handle(self, message: IncomingMessage, text: str | None) -> IngestionResult:
        if not text:
            self._audit.record(
                WebhookEvent(
                    event_type=EVENT_SKIPPED,
                    message_id=message.message_id,
                    session_id=message.session_id,
                    sender_phone=message.sender_phone,
                    skipped_reason=SKIP_NO_TEXT,
                )
            )
            return IngestionResult(
                accepted=True,
                skipped_reason=SKIP_NO_TEXT,
                message_id=message.message_id,
            )

        logger.info(
            "processing webhook message",
            extra={
                "extra_fields": safe_log_context(
                    phone=mask_phone(message.sender_phone),
                    message_id=message.message_id,
                    text_len=len(text),
                )
            },
        )

        result: ClassificationResult | None = None
        try:
            context = self._resolve_context(message)
            result = self._classifier.classify(
                text,
                context_messages=context.recent_messages if context else None,
                customer_name=context.customer_name if context else None,
            )
            decision = decide(
                result,
                context,
                auto_create_leads=self._settings.auto_create_leads,
                min_confidence=self._settings.min_confidence_for_lead,
            )

            lead: LeadOutcome | None = None
            lead_created = False
            if decision.create_lead:
                lead, lead_created = self._create_lead(message, text, result, context)

            alert_sent = False
            if decision.alert_seller:
                alert_sent = self._alert_seller(
                    context.seller_id,
                    message,
                    text,
                    result,
                    context,
                    lead.lead_id if lead else None,
                )
            elif lead_created:
                self._notify_lead_created(message, context, lead, result)
        except Exception as e:
            logger.error(
                "webhook message processing failed",
                exc_info=True,
                extra={
                    "extra_fields": safe_log_context(
                        phone=mask_phone(message.sender_phone),
                        message_id=message.message_id,
                        session_id=message.session_id,
                        error_type=type(e).__name__,
                    )
                },
            )
            self._audit.record(
                WebhookEvent(
                    event_type=EVENT_ERROR,
                    message_id=message.message_id,
                    session_id=message.session_id,
                    sender_phone=message.sender_phone,
                    intent=result.intent.value if result else None,
                    confidence=result.confidence if result else None,
                    error=str(e),
                )
            )
            return IngestionResult(
                accepted=False,
                message_id=message.message_id,
                classification=result,
                error=str(e),
            )

        self._audit.record(
            WebhookEvent(
                event_type=EVENT_PROCESSED,
                message_id=message.message_id,
                session_id=message.session_id,
                sender_phone=message.sender_phone,
                intent=result.intent.value,
                confidence=result.confidence,
                lead_created=lead_created,
                lead_id=lead.lead_id if lead_created else None,
                alert_sent=alert_sent,
            )
        )

        logger.info(
            "webhook message processed",
            extra={
                "extra_fields": safe_log_context(
                    message_id=message.message_id,
                    intent=result.intent.value,
                    source=result.source.value,
                    lead_created=lead_created,
                    alert_sent=alert_sent,
                )
            },
        )
        return IngestionResult(
            accepted=True,
            message_id=message.message_id,
            classification=result,
            lead=lead,
            lead_created=lead_created,
            alert_sent=alert_sent,
        )

    # ── Deferred queue ───────────────────────────────────────────────────────

    def process_queue(self) -> dict[str, int]:
        """Drain the deferred queue, one coalesced pass per sender.

        Queued texts of a sender are joined in arrival order and classified
        once; the latest message supplies the ids used for audit and lead
        idempotency. The debounce gate is not consulted.
        """
        entries = self._queue.drain()

        by_sender: dict[str, list[IncomingMessage]] = {}
        failed = 0
        for entry in entries:
            try:
                message = parse_incoming(entry.get("payload"))
            except InvalidPayloadError:
                failed += 1
                continue
            if message.direction == "outgoing":
                continue
            by_sender.setdefault(message.sender_phone, []).append(message)

        for messages in by_sender.values():
            latest = messages[-1]
            texts = [m.content for m in messages if m.content]
            with correlation_scope():
                outcome = self._handle(latest, "\n".join(texts) if texts else None)
            if not outcome.accepted:
                failed += 1

        logger.info(
            "deferred queue drained",
            extra={
                "extra_fields": safe_log_context(
                    processed=len(entries),
                    senders=len(by_sender),
                    failed=failed,
                )
            },
        )
        return {"processed": len(entries), "senders": len(by_sender), "failed": failed}

    # ── Operations ───────────────────────────────────────────────────────────

    def queue_size(self) -> int:
        return self._queue.size()

    def stats(self) -> dict[str, Any]:
        return {
            "queue_size": self.queue_size(),
            "auto_create_leads": self._settings.auto_create_leads,
            "min_confidence": self._settings.min_confidence_for_lead,
            "debounce_seconds": self._gate.ttl_seconds,
            "ai_configured": self._classifier.ai_configured,
            "environment": self._settings.environment,
            "events_last_24h": self._audit.recent_counts().unwrap_or({}),
        }

    def simulate(self, text: str, sender_phone: str | None = None) -> IngestionResult:
        """Run a synthetic incoming message through the pipeline.

        Skips signature verification; callers must restrict this to
        non-production environments.
        """
        now = utc_now()
        stamp = int(now.timestamp() * 1000)
        payload = {
            "message_id": f"test-{stamp}",
            "session_id": f"test-session-{stamp}",
            "sender_phone": sender_phone or SIMULATED_PHONE,
            "recipient_phone": None,
            "message_text": text,
            "message_type": "text",
            "direction": "incoming",
            "timestamp": now.isoformat(),
        }
        return self._intake(payload)
