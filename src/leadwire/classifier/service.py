"""AI-first intent classification with rule-based fallback and caching.

The caller never branches on which implementation ran; the `source` field on
the result is the only observable difference.
"""

from __future__ import annotations

from typing import Sequence

from leadwire.classifier.base import (
    CONTEXT_WINDOW,
    ClassificationUnavailable,
    Classifier,
    build_classifier_input,
)
from leadwire.domain.intents import ClassificationResult
from leadwire.domain.rules import RuleBasedClassifier, unknown_result
from leadwire.infra.hashing import content_hash
from leadwire.infra.kv import KeyValueStore
from leadwire.observability.logging import get_logger
from leadwire.observability.redaction import safe_log_context

logger = get_logger(__name__)

CACHE_KEY_PREFIX = "classify:ai:"
DEFAULT_CACHE_TTL = 3600
MIN_TEXT_LENGTH = 2
CONVERSATION_WINDOW = 10
CONVERSATION_SEPARATOR = "\n---\n"


def cache_key_for(classifier_input: str) -> str:
    return f"{CACHE_KEY_PREFIX}{content_hash(classifier_input)}"


class IntentClassifier:
    """Facade selecting the AI backend at runtime, falling back to rules.

    Args:
        cache: Key-value store holding AI results.
        ai: Networked classifier, or None when no API credential is configured.
        rules: Local classifier (always available).
        cache_ttl: Seconds a cached AI result stays valid.
    """

    def __init__(
        self,
        cache: KeyValueStore,
        ai: Classifier | None = None,
        rules: Classifier | None = None,
        cache_ttl: int = DEFAULT_CACHE_TTL,
    ) -> None:
        self._cache = cache
        self._ai = ai
        self._rules = rules or RuleBasedClassifier()
        self._cache_ttl = cache_ttl

    @property
    def ai_configured(self) -> bool:
        return self._ai is not None

    def classify(
        self,
        text: str | None,
        context_messages: Sequence[str] | None = None,
        customer_name: str | None = None,
        use_cache: bool = True,
    ) -> ClassificationResult:
        """Classify one message.

        Args:
            text: Current message text.
            context_messages: Prior messages rendered as "[direction] text".
            customer_name: Linked customer name, added as a prompt header.
            use_cache: Read and write the AI result cache.

        Returns:
            ClassificationResult; never raises for classifier failures.
        """
        text = (text or "").strip()
        if len(text) < MIN_TEXT_LENGTH:
            return unknown_result()

        if self._ai is None:
            return self._rules.classify(text)

        context = list(context_messages or ())[-CONTEXT_WINDOW:]
        key = cache_key_for(build_classifier_input(text, context, customer_name))

        if use_cache:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("classification cache hit")
                return ClassificationResult.from_dict(cached)

        try:
            result = self._ai.classify(text, context, customer_name)
        except ClassificationUnavailable as exc:
            logger.warning(
                "ai classifier unavailable, using rule-based fallback",
                extra={"extra_fields": safe_log_context(error=str(exc), text_len=len(text))},
            )
            return self._rules.classify(text)
        except Exception as exc:
            logger.warning(
                "ai classifier failed, using rule-based fallback",
                extra={
                    "extra_fields": safe_log_context(
                        error_type=type(exc).__name__, text_len=len(text)
                    )
                },
            )
            return self._rules.classify(text)

        if use_cache:
            self._cache.set(key, result.to_dict(), ttl=self._cache_ttl)
        return result

    def classify_conversation(self, messages: Sequence[dict]) -> ClassificationResult:
        """Classify the overall conversation from its recent incoming texts.

        Args:
            messages: Message dicts with "direction" and "text" keys, oldest first.
        """
        incoming = [
            m.get("text")
            for m in messages
            if m.get("direction", "incoming") == "incoming" and m.get("text")
        ]
        combined = CONVERSATION_SEPARATOR.join(incoming[-CONVERSATION_WINDOW:])
        return self.classify(combined, use_cache=False)
