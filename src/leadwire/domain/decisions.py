"""Automation decisions over a classification result.

Pure logic: no I/O, no settings lookups. The ingestion service passes the
configured switches in explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from leadwire.domain.intents import (
    ALERT_INTENTS,
    PURCHASE_INTENTS,
    ClassificationResult,
    Sentiment,
    Urgency,
)

if TYPE_CHECKING:
    from leadwire.services.context_resolver import CustomerContext

DEFAULT_MIN_CONFIDENCE = 0.7


@dataclass(frozen=True)
class AutomationDecision:
    create_lead: bool
    alert_seller: bool


def should_create_lead(
    result: ClassificationResult,
    auto_create_leads: bool,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> bool:
    if not auto_create_leads:
        return False
    if result.intent not in PURCHASE_INTENTS:
        return False
    if result.confidence < min_confidence:
        return False
    return len(result.entities.products) > 0


def should_alert_seller(
    result: ClassificationResult,
    context: CustomerContext | None,
) -> bool:
    if context is None or context.seller_id is None:
        return False
    return (
        result.intent in ALERT_INTENTS
        or result.urgency == Urgency.HIGH
        or result.sentiment == Sentiment.NEGATIVE
    )


def decide(
    result: ClassificationResult,
    context: CustomerContext | None,
    auto_create_leads: bool,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
) -> AutomationDecision:
    """Decide lead creation and seller alerting independently.

    Args:
        result: Classification of the current message.
        context: Resolved customer context, None when resolution failed.
        auto_create_leads: Master switch for lead automation.
        min_confidence: Inclusive confidence threshold for lead creation.
    """
    return AutomationDecision(
        create_lead=should_create_lead(result, auto_create_leads, min_confidence),
        alert_seller=should_alert_seller(result, context),
    )
