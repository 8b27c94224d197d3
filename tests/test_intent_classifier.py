"""Tests for the AI-first classifier facade (cache + fallback)."""

from unittest.mock import MagicMock

from leadwire.classifier.base import build_classifier_input
from leadwire.classifier.openai_backend import OpenAIClassifier
from leadwire.classifier.service import IntentClassifier, cache_key_for
from leadwire.domain.intents import ClassificationSource, Intent
from leadwire.infra.kv import InMemoryKVStore

from helpers import FakeAIClassifier, FakeClock, ai_result


def _classifier(ai=None, ttl=3600):
    clock = FakeClock()
    kv = InMemoryKVStore(clock=clock)
    return IntentClassifier(cache=kv, ai=ai, cache_ttl=ttl), kv, clock


class TestRuntimeSelection:
    def test_no_ai_uses_rules(self):
        classifier, _, _ = _classifier()
        result = classifier.classify("Preciso de 5 rolamentos 6204, qual o valor?")
        assert classifier.ai_configured is False
        assert result.source == ClassificationSource.RULE_BASED
        assert result.intent == Intent.QUOTE_REQUEST

    def test_ai_used_when_configured(self):
        ai = FakeAIClassifier()
        classifier, _, _ = _classifier(ai)
        result = classifier.classify("Preciso de 5 rolamentos 6204")
        assert classifier.ai_configured is True
        assert result.source == ClassificationSource.AI
        assert len(ai.calls) == 1

    def test_ai_failure_falls_back_to_rules(self):
        ai = FakeAIClassifier(fail=True)
        classifier, kv, _ = _classifier(ai)
        result = classifier.classify("Isso é um absurdo, produto com defeito!")
        assert result.source == ClassificationSource.RULE_BASED
        assert result.intent == Intent.COMPLAINT
        # fallback results are not cached
        assert kv.get(cache_key_for("Isso é um absurdo, produto com defeito!")) is None

    def test_unexpected_ai_error_falls_back_to_rules(self):
        ai = MagicMock()
        ai.classify.side_effect = RuntimeError("backend exploded")
        classifier, _, _ = _classifier(ai)
        result = classifier.classify("Isso é um absurdo, produto com defeito!")
        assert result.source == ClassificationSource.RULE_BASED
        assert result.intent == Intent.COMPLAINT

    def test_malformed_openai_answer_falls_back_to_rules(self):
        response = MagicMock()
        response.json.return_value = {
            "choices": [{"message": {"content": '{"intent": "COMPLAINT"}'}}],
            "usage": [1, 2],
        }
        session = MagicMock()
        session.post.return_value = response
        classifier, _, _ = _classifier(OpenAIClassifier(api_key="sk-test", session=session))
        result = classifier.classify("Preciso de 5 rolamentos 6204, qual o valor?")
        assert result.source == ClassificationSource.RULE_BASED
        assert result.intent == Intent.QUOTE_REQUEST

    def test_short_text_is_unknown_without_calling_ai(self):
        ai = FakeAIClassifier()
        classifier, _, _ = _classifier(ai)
        assert classifier.classify("k").intent == Intent.UNKNOWN
        assert classifier.classify(None).intent == Intent.UNKNOWN
        assert ai.calls == []


class TestCache:
    def test_second_call_served_from_cache(self):
        ai = FakeAIClassifier()
        classifier, _, _ = _classifier(ai)

        first = classifier.classify("Quero 10 correias A50")
        second = classifier.classify("Quero 10 correias A50")

        assert second == first
        assert second.source == ClassificationSource.AI
        assert len(ai.calls) == 1

    def test_cache_expires(self):
        ai = FakeAIClassifier()
        classifier, _, clock = _classifier(ai, ttl=60)
        classifier.classify("Quero 10 correias A50")
        clock.advance(61)
        classifier.classify("Quero 10 correias A50")
        assert len(ai.calls) == 2

    def test_use_cache_false_bypasses(self):
        ai = FakeAIClassifier()
        classifier, _, _ = _classifier(ai)
        classifier.classify("Quero 10 correias A50", use_cache=False)
        classifier.classify("Quero 10 correias A50", use_cache=False)
        assert len(ai.calls) == 2

    def test_context_changes_cache_key(self):
        ai = FakeAIClassifier()
        classifier, _, _ = _classifier(ai)
        classifier.classify("Quero 10 correias A50")
        classifier.classify("Quero 10 correias A50", context_messages=["[incoming] oi"])
        assert len(ai.calls) == 2

    def test_only_last_five_context_messages_sent(self):
        ai = FakeAIClassifier()
        classifier, _, _ = _classifier(ai)
        context = [f"[incoming] msg {i}" for i in range(8)]
        classifier.classify("Quero 10 correias A50", context_messages=context, customer_name="Oficina")
        _, sent_context, customer_name = ai.calls[0]
        assert sent_context == tuple(context[-5:])
        assert customer_name == "Oficina"


class TestConversation:
    def test_only_incoming_joined_and_uncached(self):
        ai = FakeAIClassifier(result=ai_result(intent=Intent.NEGOTIATION))
        classifier, _, _ = _classifier(ai)
        messages = [
            {"direction": "incoming", "text": "Oi"},
            {"direction": "outgoing", "text": "Olá, como posso ajudar?"},
            {"direction": "incoming", "text": "Consegue desconto?"},
        ]
        result = classifier.classify_conversation(messages)
        classifier.classify_conversation(messages)

        assert result.intent == Intent.NEGOTIATION
        assert ai.calls[0][0] == "Oi\n---\nConsegue desconto?"
        assert len(ai.calls) == 2


class TestClassifierInput:
    def test_plain_text(self):
        assert build_classifier_input("Oi") == "Oi"

    def test_context_and_customer_header(self):
        rendered = build_classifier_input("Qual o preço?", ["[incoming] Oi"], "Oficina")
        assert rendered.startswith("[Cliente: Oficina]\n\n")
        assert "CONTEXTO DAS MENSAGENS ANTERIORES:\n[incoming] Oi" in rendered
        assert rendered.endswith("MENSAGEM ATUAL PARA ANALISAR:\nQual o preço?")
