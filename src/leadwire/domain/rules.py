"""Deterministic intent classification from WhatsApp messages.

NO LLM. Uses regex and keyword lists; always available and never raises.
Security: NEVER log raw text (PII).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

from leadwire.domain.intents import (
    ClassificationResult,
    ClassificationSource,
    Entities,
    Intent,
    ProductEntity,
    Sentiment,
    Urgency,
)

RULE_MATCH_CONFIDENCE = 0.7
NO_MATCH_CONFIDENCE = 0.5

SENTIMENT_WEIGHT = 0.3
SENTIMENT_THRESHOLD = 0.2

# Checked in order; first matching intent wins
INTENT_PATTERNS: list[tuple[Intent, list[str]]] = [
    (
        Intent.QUOTE_REQUEST,
        [
            r"cota[çc][aã]o",
            r"or[çc]amento",
            r"preciso de",
            r"quero comprar",
            r"fazer pedido",
            r"me passa.*valor",
            r"voc[êe]s tem",
        ],
    ),
    (Intent.PRICE_CHECK, [r"pre[çc]o", r"quanto.*custa", r"qual.*valor", r"tabela"]),
    (Intent.STOCK_CHECK, [r"estoque", r"tem dispon[íi]vel", r"disponibilidade"]),
    (
        Intent.ORDER_STATUS,
        [
            r"meu pedido",
            r"status.*pedido",
            r"onde est[áa]",
            r"quando chega",
            r"previs[aã]o.*entrega",
            r"rastrear",
        ],
    ),
    (
        Intent.COMPLAINT,
        [
            r"reclama[çc][aã]o",
            r"problema",
            r"defeito",
            r"n[aã]o funciona",
            r"insatisfeito",
            r"errado",
            r"absurdo",
        ],
    ),
    (
        Intent.NEGOTIATION,
        [
            r"desconto",
            r"negociar",
            r"melhor pre[çc]o",
            r"condi[çc][aã]o especial",
            r"baixar o valor",
        ],
    ),
    (
        Intent.PURCHASE_INTENT,
        [r"quero \d+", r"preciso.*urgente", r"fechar.*pedido", r"confirma.*pedido"],
    ),
    (Intent.RETURN_REQUEST, [r"devolu[çc][aã]o", r"devolver", r"\btrocar?\b"]),
    (
        Intent.TECHNICAL_SUPPORT,
        [r"como (?:instal|mont|lubrific)", r"suporte t[ée]cnico", r"instala[çc][aã]o"],
    ),
    (
        Intent.PRODUCT_INFO,
        [r"especifica[çc][aã]o", r"medidas?", r"dimens[õo]es", r"ficha t[ée]cnica", r"serve (?:para|no|na)"],
    ),
    (Intent.GREETING, [r"^(oi|ol[áa]|bom dia|boa tarde|boa noite|e a[íi])\b"]),
    (Intent.THANKS, [r"obrigad[oa]", r"valeu", r"agrade[çc]o"]),
    (Intent.GOODBYE, [r"tchau", r"at[ée] mais", r"at[ée] logo"]),
]

_COMPILED_INTENTS: list[tuple[Intent, list[re.Pattern[str]]]] = [
    (intent, [re.compile(p, re.IGNORECASE) for p in patterns]) for intent, patterns in INTENT_PATTERNS
]

POSITIVE_WORDS: tuple[str, ...] = (
    "obrigado",
    "obrigada",
    "excelente",
    "ótimo",
    "perfeito",
    "maravilhoso",
    "adorei",
    "amei",
    "parabéns",
    "satisfeito",
    "recomendo",
    "agradeço",
    "top",
    "show",
)

NEGATIVE_WORDS: tuple[str, ...] = (
    "ruim",
    "péssimo",
    "horrível",
    "problema",
    "defeito",
    "insatisfeito",
    "decepcionado",
    "absurdo",
    "vergonha",
    "nunca mais",
    "não funciona",
    "errado",
    "atraso",
)

URGENCY_WORDS: tuple[str, ...] = ("urgente", "urgência", "urgencia", "hoje", "agora", "imediato", "rápido")


def _keyword_pattern(words: Sequence[str]) -> re.Pattern[str]:
    alternatives = "|".join(re.escape(w) for w in words)
    return re.compile(rf"(?<!\w)(?:{alternatives})(?!\w)", re.IGNORECASE)


# "insatisfeito" must not also count as "satisfeito"
_POSITIVE_RE = _keyword_pattern(POSITIVE_WORDS)
_NEGATIVE_RE = _keyword_pattern(NEGATIVE_WORDS)
_URGENCY_RE = _keyword_pattern(URGENCY_WORDS)

# Product vocabulary of a bearings/transmission distributor
_PRODUCT_NOUNS = {
    "rolamento": "rolamento",
    "rolamentos": "rolamento",
    "correia": "correia",
    "correias": "correia",
    "retentor": "retentor",
    "retentores": "retentor",
    "mancal": "mancal",
    "mancais": "mancal",
    "polia": "polia",
    "polias": "polia",
    "acoplamento": "acoplamento",
    "acoplamentos": "acoplamento",
}

# "5 rolamentos 6204", "rolamento 6204-2RS", "10 correias"
_PRODUCT_PATTERN = re.compile(
    r"(?:(?P<qty>\d{1,5})\s*(?:x\s*|un(?:idades?)?\.?\s+|p[çc]s?\.?\s+)?)?"
    r"(?P<noun>" + "|".join(sorted(_PRODUCT_NOUNS, key=len, reverse=True)) + r")\b"
    r"(?:\s+(?:de\s+)?(?P<code>[A-Z0-9]*\d[A-Z0-9]*(?:[-/][A-Z0-9]+)*))?",
    re.IGNORECASE,
)

_VALUE_PATTERN = re.compile(r"R\$\s*\d{1,3}(?:\.\d{3})*(?:,\d{2})?|R\$\s*\d+(?:,\d{2})?", re.IGNORECASE)
_DATE_PATTERN = re.compile(r"\b(\d{1,2}/\d{1,2}(?:/\d{2,4})?)\b")
_ORDER_NUMBER_PATTERN = re.compile(r"(?:pedido|pedidos|nf|nota)\s*(?:n[ºo°.]?\s*)?#?\s*(\d{3,})", re.IGNORECASE)


@dataclass(frozen=True)
class SentimentScore:
    sentiment: Sentiment
    score: float
    positive_hits: int
    negative_hits: int


def score_sentiment(text: str) -> SentimentScore:
    """Keyword sentiment: 0.3 per net hit, clamped to [-1, 1].

    Returns:
        SentimentScore with the bucket at a +/-0.2 threshold.
    """
    positives = len(_POSITIVE_RE.findall(text or ""))
    negatives = len(_NEGATIVE_RE.findall(text or ""))
    score = max(-1.0, min(1.0, (positives - negatives) * SENTIMENT_WEIGHT))
    score = round(score, 2)

    if score > SENTIMENT_THRESHOLD:
        sentiment = Sentiment.POSITIVE
    elif score < -SENTIMENT_THRESHOLD:
        sentiment = Sentiment.NEGATIVE
    else:
        sentiment = Sentiment.NEUTRAL

    return SentimentScore(
        sentiment=sentiment,
        score=score,
        positive_hits=positives,
        negative_hits=negatives,
    )


def match_intent(text: str) -> Intent | None:
    """Return the first intent whose patterns match, or None."""
    for intent, patterns in _COMPILED_INTENTS:
        if any(p.search(text) for p in patterns):
            return intent
    return None


def extract_products(text: str) -> list[ProductEntity]:
    """Extract product mentions with optional quantity and code."""
    products: list[ProductEntity] = []
    seen: set[str] = set()

    for match in _PRODUCT_PATTERN.finditer(text):
        name = _PRODUCT_NOUNS[match.group("noun").lower()]
        code = match.group("code")
        code = code.upper() if code else None
        query = f"{name} {code}" if code else name
        if query in seen:
            continue
        seen.add(query)

        qty = match.group("qty")
        products.append(
            ProductEntity(
                query=query,
                name=name,
                code=code,
                quantity=int(qty) if qty else None,
            )
        )

    return products


def extract_entities(text: str) -> Entities:
    """Extract products, currency values, dd/mm dates and order numbers."""
    return Entities(
        products=tuple(extract_products(text)),
        values=tuple(m.group(0).strip() for m in _VALUE_PATTERN.finditer(text)),
        dates=tuple(_DATE_PATTERN.findall(text)),
        order_numbers=tuple(_ORDER_NUMBER_PATTERN.findall(text)),
    )


def _urgency_for(intent: Intent, text: str) -> Urgency:
    if intent == Intent.PURCHASE_INTENT or _URGENCY_RE.search(text):
        return Urgency.HIGH
    if intent == Intent.COMPLAINT:
        return Urgency.MEDIUM
    return Urgency.LOW


def _summary_for(intent: Intent, entities: Entities) -> str:
    summary = f"Classificação por regras: {intent.value}"
    if entities.products:
        summary += " (" + ", ".join(p.query for p in entities.products) + ")"
    return summary


class RuleBasedClassifier:
    """Regex/keyword classifier.

    Total over its input: every text yields a result with a non-null intent
    and confidence in [0, 1].
    """

    source = ClassificationSource.RULE_BASED

    def classify(
        self,
        text: str,
        context_messages: Sequence[str] = (),
        customer_name: str | None = None,
    ) -> ClassificationResult:
        text = (text or "").strip()
        if not text:
            return unknown_result()

        matched = match_intent(text)
        intent = matched or Intent.GENERAL_QUESTION
        confidence = RULE_MATCH_CONFIDENCE if matched else NO_MATCH_CONFIDENCE

        sentiment = score_sentiment(text).sentiment
        if intent == Intent.COMPLAINT and sentiment == Sentiment.NEUTRAL:
            sentiment = Sentiment.NEGATIVE

        entities = extract_entities(text)

        return ClassificationResult(
            intent=intent,
            confidence=confidence,
            sentiment=sentiment,
            urgency=_urgency_for(intent, text),
            source=ClassificationSource.RULE_BASED,
            entities=entities,
            summary=_summary_for(intent, entities),
        )


def unknown_result() -> ClassificationResult:
    """Result for empty or too-short input."""
    return ClassificationResult(
        intent=Intent.UNKNOWN,
        confidence=0.0,
        sentiment=Sentiment.NEUTRAL,
        urgency=Urgency.LOW,
        source=ClassificationSource.RULE_BASED,
        summary="Mensagem vazia ou muito curta",
    )
