"""Classification result models.

A ClassificationResult is produced once per message (or read back from the
classification cache) and never mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Intent(str, Enum):
    """Closed taxonomy of inbound message purposes."""

    QUOTE_REQUEST = "QUOTE_REQUEST"  # pedido de cotação/orçamento
    PRICE_CHECK = "PRICE_CHECK"  # consulta de preço
    STOCK_CHECK = "STOCK_CHECK"  # consulta de estoque
    ORDER_STATUS = "ORDER_STATUS"  # status do pedido
    COMPLAINT = "COMPLAINT"  # reclamação
    GENERAL_QUESTION = "GENERAL_QUESTION"
    NEGOTIATION = "NEGOTIATION"  # desconto/negociação
    PRODUCT_INFO = "PRODUCT_INFO"  # informação técnica
    PURCHASE_INTENT = "PURCHASE_INTENT"  # intenção clara de compra
    RETURN_REQUEST = "RETURN_REQUEST"  # devolução/troca
    TECHNICAL_SUPPORT = "TECHNICAL_SUPPORT"
    GREETING = "GREETING"
    THANKS = "THANKS"
    GOODBYE = "GOODBYE"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Any) -> Intent:
        """Map free-form input onto the taxonomy, UNKNOWN when unrecognised."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.UNKNOWN


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ClassificationSource(str, Enum):
    """Which classifier implementation produced a result."""

    AI = "ai"
    RULE_BASED = "rule-based"


# Intents that signal a sale in progress
PURCHASE_INTENTS = frozenset({Intent.QUOTE_REQUEST, Intent.PURCHASE_INTENT, Intent.PRICE_CHECK})

# Intents a seller should hear about even without urgency/negativity
ALERT_INTENTS = frozenset({Intent.COMPLAINT, Intent.PURCHASE_INTENT, Intent.QUOTE_REQUEST})


@dataclass(frozen=True)
class ProductEntity:
    """Product mention extracted from a message.

    `query` is the free text used for inventory matching; `code` is the
    manufacturer code when one was spotted (e.g. "6204").
    """

    query: str
    name: str | None = None
    code: str | None = None
    quantity: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "name": self.name,
            "code": self.code,
            "quantity": self.quantity,
        }

    @classmethod
    def from_value(cls, value: Any) -> ProductEntity | None:
        """Build from a dict (AI output/cache) or a bare string."""
        if isinstance(value, str):
            text = value.strip()
            return cls(query=text) if text else None
        if not isinstance(value, dict):
            return None

        query = value.get("query") or value.get("name") or value.get("code")
        if not query:
            return None

        quantity = value.get("quantity")
        try:
            quantity = int(quantity) if quantity is not None else None
        except (TypeError, ValueError, OverflowError):
            quantity = None

        return cls(
            query=str(query),
            name=value.get("name"),
            code=str(value["code"]) if value.get("code") else None,
            quantity=quantity,
        )


@dataclass(frozen=True)
class Entities:
    products: tuple[ProductEntity, ...] = ()
    values: tuple[str, ...] = ()
    dates: tuple[str, ...] = ()
    order_numbers: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "products": [p.to_dict() for p in self.products],
            "values": list(self.values),
            "dates": list(self.dates),
            "order_numbers": list(self.order_numbers),
        }

    @classmethod
    def from_dict(cls, data: Any) -> Entities:
        """Coerce a loosely-shaped dict into Entities; non-lists become empty."""
        if not isinstance(data, dict):
            return cls()

        def _strings(key: str) -> tuple[str, ...]:
            raw = data.get(key)
            if not isinstance(raw, list):
                return ()
            return tuple(str(item) for item in raw if item is not None)

        raw_products = data.get("products")
        products: list[ProductEntity] = []
        if isinstance(raw_products, list):
            for raw in raw_products:
                product = ProductEntity.from_value(raw)
                if product is not None:
                    products.append(product)

        return cls(
            products=tuple(products),
            values=_strings("values"),
            dates=_strings("dates"),
            order_numbers=_strings("order_numbers"),
        )


@dataclass(frozen=True)
class ClassificationResult:
    """Intent/sentiment classification of one message."""

    intent: Intent
    confidence: float
    sentiment: Sentiment
    urgency: Urgency
    source: ClassificationSource
    entities: Entities = field(default_factory=Entities)
    summary: str = ""
    model: str | None = None
    tokens_used: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "intent": self.intent.value,
            "confidence": self.confidence,
            "sentiment": self.sentiment.value,
            "urgency": self.urgency.value,
            "entities": self.entities.to_dict(),
            "summary": self.summary,
            "source": self.source.value,
            "model": self.model,
            "tokens_used": self.tokens_used,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClassificationResult:
        """Rebuild a result previously produced by to_dict()."""
        return cls(
            intent=Intent.parse(data.get("intent")),
            confidence=float(data.get("confidence", 0.0)),
            sentiment=Sentiment(data.get("sentiment", Sentiment.NEUTRAL.value)),
            urgency=Urgency(data.get("urgency", Urgency.LOW.value)),
            source=ClassificationSource(data.get("source", ClassificationSource.RULE_BASED.value)),
            entities=Entities.from_dict(data.get("entities")),
            summary=data.get("summary", ""),
            model=data.get("model"),
            tokens_used=int(data.get("tokens_used") or 0),
        )
