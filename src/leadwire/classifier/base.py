"""Classifier capability shared by the AI and rule-based implementations."""

from __future__ import annotations

from typing import Protocol, Sequence

from leadwire.domain.intents import ClassificationResult

CONTEXT_WINDOW = 5


def build_classifier_input(
    text: str,
    context_messages: Sequence[str] = (),
    customer_name: str | None = None,
) -> str:
    """Render the message plus conversation context as one prompt string.

    Only the last CONTEXT_WINDOW context messages are kept. The same string is
    sent to the AI backend and hashed for the classification cache.
    """
    rendered = text
    recent = [m for m in context_messages if m][-CONTEXT_WINDOW:]
    if recent:
        rendered = (
            "CONTEXTO DAS MENSAGENS ANTERIORES:\n"
            + "\n".join(recent)
            + "\n\nMENSAGEM ATUAL PARA ANALISAR:\n"
            + text
        )
    if customer_name:
        rendered = f"[Cliente: {customer_name}]\n\n{rendered}"
    return rendered


class ClassificationUnavailable(Exception):
    """Raised when a networked classifier cannot produce a result.

    Covers transport errors, timeouts, non-2xx responses, empty content and
    malformed JSON. Always recovered by falling back to the rule-based path.
    """


class Classifier(Protocol):
    """classify(text, context_messages, customer_name) -> ClassificationResult."""

    def classify(
        self,
        text: str,
        context_messages: Sequence[str] = (),
        customer_name: str | None = None,
    ) -> ClassificationResult: ...
