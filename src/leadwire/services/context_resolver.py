"""Customer context for classification and automation decisions.

Assembles a read-only snapshot per message: linked CRM customer and seller,
recent sentiment, conversation statistics and the last few message texts.
Resolution is best-effort and reported as a Result; the ingestion service
proceeds without context on failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from leadwire.domain.intents import Sentiment
from leadwire.domain.phone import phone_suffix
from leadwire.domain.result import Result
from leadwire.domain.rules import SENTIMENT_THRESHOLD, score_sentiment
from leadwire.infra.db import txn
from leadwire.infra.repositories import customers_repository
from leadwire.observability.logging import get_logger
from leadwire.observability.redaction import mask_phone, safe_log_context

logger = get_logger(__name__)

RECENT_MESSAGE_LIMIT = 20
RECENT_MESSAGE_DAYS = 7
CONTEXT_MESSAGE_COUNT = 5
MAX_CONTEXT_TEXT = 200


@dataclass(frozen=True)
class LinkedCustomer:
    customer_id: int
    name: str | None
    seller_id: int | None
    seller_name: str | None = None


@dataclass(frozen=True)
class RecentSentiment:
    sentiment: Sentiment = Sentiment.NEUTRAL
    score: float = 0.0
    analyzed_messages: int = 0


@dataclass(frozen=True)
class CustomerContext:
    """Snapshot of what is known about a sender. Never persisted."""

    is_known: bool
    linked_customer: LinkedCustomer | None = None
    customer_name: str | None = None
    recent_sentiment: RecentSentiment = field(default_factory=RecentSentiment)
    stats: dict[str, Any] = field(default_factory=dict)
    recent_messages: tuple[str, ...] = ()

    @property
    def seller_id(self) -> int | None:
        if self.linked_customer is None:
            return None
        return self.linked_customer.seller_id

    @property
    def customer_id(self) -> int | None:
        if self.linked_customer is None:
            return None
        return self.linked_customer.customer_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_known": self.is_known,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "seller_id": self.seller_id,
            "seller_name": self.linked_customer.seller_name if self.linked_customer else None,
            "recent_sentiment": {
                "sentiment": self.recent_sentiment.sentiment.value,
                "score": self.recent_sentiment.score,
                "analyzed_messages": self.recent_sentiment.analyzed_messages,
            },
            "stats": self.stats,
        }


class CustomerDirectory(Protocol):
    """Storage lookups the resolver needs, keyed by phone suffix."""

    def find_linked_customer(self, phone_suffix: str) -> dict[str, Any] | None: ...

    def recent_messages(self, phone_suffix: str, limit: int) -> list[dict[str, Any]]: ...

    def message_stats(self, phone_suffix: str) -> dict[str, Any]: ...


class PgCustomerDirectory:
    """CustomerDirectory over the platform Postgres tables."""

    def find_linked_customer(self, phone_suffix: str) -> dict[str, Any] | None:
        with txn() as cur:
            return customers_repository.find_linked_customer(cur, phone_suffix=phone_suffix)

    def recent_messages(self, phone_suffix: str, limit: int) -> list[dict[str, Any]]:
        with txn() as cur:
            return customers_repository.list_recent_messages(
                cur,
                phone_suffix=phone_suffix,
                days=RECENT_MESSAGE_DAYS,
                limit=limit,
            )

    def message_stats(self, phone_suffix: str) -> dict[str, Any]:
        with txn() as cur:
            return customers_repository.get_message_stats(cur, phone_suffix=phone_suffix)


def summarize_sentiment(messages: list[dict[str, Any]]) -> RecentSentiment:
    """Average keyword sentiment over incoming message texts."""
    scores = [
        score_sentiment(m["text"]).score
        for m in messages
        if m.get("direction") == "incoming" and m.get("text")
    ]
    if not scores:
        return RecentSentiment()

    average = round(sum(scores) / len(scores), 2)
    if average > SENTIMENT_THRESHOLD:
        sentiment = Sentiment.POSITIVE
    elif average < -SENTIMENT_THRESHOLD:
        sentiment = Sentiment.NEGATIVE
    else:
        sentiment = Sentiment.NEUTRAL
    return RecentSentiment(sentiment=sentiment, score=average, analyzed_messages=len(scores))


def render_context_messages(messages: list[dict[str, Any]]) -> tuple[str, ...]:
    """Render newest-first rows as "[direction] text" lines, oldest first."""
    lines = [
        f"[{m.get('direction', 'incoming')}] {str(m['text'])[:MAX_CONTEXT_TEXT]}"
        for m in messages
        if m.get("text")
    ]
    return tuple(reversed(lines[:CONTEXT_MESSAGE_COUNT]))


class ContextResolver:
    """Builds CustomerContext snapshots from a CustomerDirectory."""

    def __init__(self, directory: CustomerDirectory) -> None:
        self._directory = directory

    def resolve(self, sender_phone: str) -> Result[CustomerContext]:
        """Resolve context for a sender.

        Returns:
            Result with the context, or a failure with error_code
            "invalid_phone" / "lookup_error".
        """
        suffix = phone_suffix(sender_phone)
        if suffix is None:
            return Result.failure("phone too short to match", "invalid_phone")

        try:
            record = self._directory.find_linked_customer(suffix)
            messages = self._directory.recent_messages(suffix, RECENT_MESSAGE_LIMIT)
            stats = self._directory.message_stats(suffix)
        except Exception as e:
            logger.warning(
                "customer context lookup failed",
                extra={
                    "extra_fields": safe_log_context(
                        phone=mask_phone(sender_phone),
                        error_type=type(e).__name__,
                    )
                },
            )
            return Result.failure(str(e), "lookup_error")

        linked = None
        customer_name = None
        if record is not None:
            customer_name = record.get("customer_name") or record.get("chat_name")
            if record.get("customer_id") is not None:
                linked = LinkedCustomer(
                    customer_id=int(record["customer_id"]),
                    name=record.get("customer_name"),
                    seller_id=record.get("seller_id"),
                    seller_name=record.get("seller_name"),
                )

        return Result.success(
            CustomerContext(
                is_known=record is not None,
                linked_customer=linked,
                customer_name=customer_name,
                recent_sentiment=summarize_sentiment(messages),
                stats=stats,
                recent_messages=render_context_messages(messages),
            )
        )
