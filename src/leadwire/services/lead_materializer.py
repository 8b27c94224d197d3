"""Turn a purchase-intent classification into a sales lead.

The lead insert is the only step that can fail the operation; product
matching and origin bookkeeping are best-effort.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Protocol

from leadwire.domain.intents import ClassificationResult, ProductEntity
from leadwire.domain.result import Result
from leadwire.infra.db import txn
from leadwire.infra.repositories import leads_repository
from leadwire.observability.logging import get_logger
from leadwire.observability.redaction import mask_phone, safe_log_context
from leadwire.services.context_resolver import CustomerContext
from leadwire.whatsapp.models import IncomingMessage

logger = get_logger(__name__)

NOTE_PREFIX = "[Auto] Via WhatsApp: "
NOTE_TEXT_LIMIT = 200
UNRESOLVED_PREFIX = "[Não encontrado] "
UNLINKED_CUSTOMER_ID = 0


class MaterializationFailure(Exception):
    """Raised by a LeadStore when the lead row cannot be written."""


@dataclass(frozen=True)
class LeadOutcome:
    success: bool
    lead_id: int | None = None
    products_added: int = 0
    unresolved_products: tuple[str, ...] = ()
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "lead_id": self.lead_id,
            "products_added": self.products_added,
            "unresolved_products": list(self.unresolved_products),
            "error": self.error,
        }


@dataclass(frozen=True)
class LeadItem:
    product_id: int | None
    quantity: int
    unit_price: Decimal | None
    description: str
    unresolved: bool = False


@dataclass(frozen=True)
class NewLead:
    customer_id: int
    seller_id: int
    note: str
    origin: str = "whatsapp"
    items: tuple[LeadItem, ...] = field(default_factory=tuple)


class LeadStore(Protocol):
    def insert_lead(self, lead: NewLead) -> int: ...

    def find_product(self, product: ProductEntity) -> dict[str, Any] | None: ...

    def insert_item(self, lead_id: int, item: LeadItem) -> None: ...

    def record_origin(self, lead_id: int, message: IncomingMessage, result: ClassificationResult) -> None: ...


class PgLeadStore:
    """LeadStore over the platform Postgres tables.

    insert_lead wraps driver errors in MaterializationFailure so callers only
    need to know one failure type.
    """

    def insert_lead(self, lead: NewLead) -> int:
        try:
            with txn() as cur:
                return leads_repository.insert_lead(
                    cur,
                    customer_id=lead.customer_id,
                    seller_id=lead.seller_id,
                    note=lead.note,
                    origin=lead.origin,
                )
        except Exception as e:
            raise MaterializationFailure(f"lead insert failed: {type(e).__name__}") from e

    def find_product(self, product: ProductEntity) -> dict[str, Any] | None:
        with txn() as cur:
            return leads_repository.find_product(cur, query=product.query, code=product.code)

    def insert_item(self, lead_id: int, item: LeadItem) -> None:
        with txn() as cur:
            leads_repository.insert_lead_item(
                cur,
                lead_id=lead_id,
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                description=item.description,
            )

    def record_origin(self, lead_id: int, message: IncomingMessage, result: ClassificationResult) -> None:
        with txn() as cur:
            leads_repository.insert_lead_origin(
                cur,
                lead_id=lead_id,
                session_id=message.session_id,
                message_id=message.message_id,
                sender_phone=message.sender_phone,
                intent=result.intent.value,
                confidence=result.confidence,
                entities=result.entities.to_dict(),
            )


def build_note(text: str) -> str:
    suffix = "..." if len(text) > NOTE_TEXT_LIMIT else ""
    return f"{NOTE_PREFIX}{text[:NOTE_TEXT_LIMIT]}{suffix}"


class LeadMaterializer:
    """Creates leads with line items for extracted product mentions.

    Args:
        store: Lead persistence.
        default_seller_id: Seller used when the sender has no linked seller.
    """

    def __init__(self, store: LeadStore, default_seller_id: int = 1) -> None:
        self._store = store
        self._default_seller_id = default_seller_id

    def _lookup(self, product: ProductEntity) -> Result[dict[str, Any] | None]:
        try:
            return Result.success(self._store.find_product(product))
        except Exception as e:
            return Result.failure(str(e), "product_lookup_error")

    def _item_for(self, product: ProductEntity) -> LeadItem:
        quantity = product.quantity or 1
        lookup = self._lookup(product)

        if not lookup.ok:
            logger.warning(
                "product lookup failed, adding unresolved item",
                extra={"extra_fields": safe_log_context(error_code=lookup.error_code)},
            )

        match = lookup.unwrap_or(None)
        if match is None:
            return LeadItem(
                product_id=None,
                quantity=quantity,
                unit_price=None,
                description=f"{UNRESOLVED_PREFIX}{product.query}",
                unresolved=True,
            )

        return LeadItem(
            product_id=match["product_id"],
            quantity=quantity,
            unit_price=Decimal(str(match.get("unit_price") or 0)),
            description=match.get("description") or product.query,
        )

    def create_lead(
        self,
        message: IncomingMessage,
        text: str,
        result: ClassificationResult,
        context: CustomerContext | None,
    ) -> LeadOutcome:
        """Create a lead for a classified message.

        Never raises; storage failures are reported in LeadOutcome.error.
        """
        seller_id = (context.seller_id if context else None) or self._default_seller_id
        customer_id = (context.customer_id if context else None) or UNLINKED_CUSTOMER_ID

        items = tuple(self._item_for(p) for p in result.entities.products)
        lead = NewLead(
            customer_id=customer_id,
            seller_id=seller_id,
            note=build_note(text),
            items=items,
        )

        try:
            lead_id = self._store.insert_lead(lead)
        except MaterializationFailure as e:
            logger.error(
                "lead creation failed",
                extra={
                    "extra_fields": safe_log_context(
                        phone=mask_phone(message.sender_phone),
                        message_id=message.message_id,
                        error=str(e),
                    )
                },
            )
            return LeadOutcome(success=False, error=str(e))

        added = 0
        for item in items:
            try:
                self._store.insert_item(lead_id, item)
                added += 1
            except Exception as e:
                logger.warning(
                    "lead item insert failed",
                    extra={"extra_fields": safe_log_context(lead_id=lead_id, error_type=type(e).__name__)},
                )

        try:
            self._store.record_origin(lead_id, message, result)
        except Exception as e:
            logger.warning(
                "lead origin not recorded",
                extra={"extra_fields": safe_log_context(lead_id=lead_id, error_type=type(e).__name__)},
            )

        unresolved = tuple(item.description for item in items if item.unresolved)
        logger.info(
            "lead created from whatsapp message",
            extra={
                "extra_fields": safe_log_context(
                    lead_id=lead_id,
                    intent=result.intent.value,
                    products=len(items),
                    unresolved=len(unresolved),
                    phone=mask_phone(message.sender_phone),
                )
            },
        )
        return LeadOutcome(
            success=True,
            lead_id=lead_id,
            products_added=added,
            unresolved_products=unresolved,
        )
