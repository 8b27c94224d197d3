"""Tests for the rule-based classifier (no network, no LLM)."""

import pytest

from leadwire.domain.intents import ClassificationSource, Intent, Sentiment, Urgency
from leadwire.domain.rules import (
    NO_MATCH_CONFIDENCE,
    RULE_MATCH_CONFIDENCE,
    RuleBasedClassifier,
    extract_entities,
    extract_products,
    match_intent,
    score_sentiment,
    unknown_result,
)


@pytest.fixture
def classifier():
    return RuleBasedClassifier()


class TestQuoteScenario:
    TEXT = "Preciso de 5 rolamentos 6204, qual o valor?"

    def test_quote_request(self, classifier):
        result = classifier.classify(self.TEXT)
        assert result.intent == Intent.QUOTE_REQUEST
        assert result.confidence == RULE_MATCH_CONFIDENCE == 0.7
        assert result.source == ClassificationSource.RULE_BASED

    def test_one_product_with_quantity_and_code(self, classifier):
        products = classifier.classify(self.TEXT).entities.products
        assert len(products) == 1
        assert products[0].query == "rolamento 6204"
        assert products[0].name == "rolamento"
        assert products[0].code == "6204"
        assert products[0].quantity == 5


class TestComplaintScenario:
    TEXT = "Isso é um absurdo, produto com defeito!"

    def test_complaint_negative(self, classifier):
        result = classifier.classify(self.TEXT)
        assert result.intent == Intent.COMPLAINT
        assert result.sentiment == Sentiment.NEGATIVE
        assert result.urgency == Urgency.MEDIUM

    def test_complaint_without_negative_words_is_negative(self, classifier):
        result = classifier.classify("Quero registrar uma reclamação")
        assert result.intent == Intent.COMPLAINT
        assert result.sentiment == Sentiment.NEGATIVE


class TestTotality:
    @pytest.mark.parametrize(
        "text",
        [
            "asdkjh qwe",
            "🙂🙂🙂",
            "1234567890",
            "a" * 5000,
            "   x   ",
            "\n\n\t",
            "R$ 10,00",
        ],
    )
    def test_always_returns_intent_and_bounded_confidence(self, classifier, text):
        result = classifier.classify(text)
        assert result.intent is not None
        assert 0.0 <= result.confidence <= 1.0
        assert result.source == ClassificationSource.RULE_BASED

    def test_no_match_is_general_question(self, classifier):
        result = classifier.classify("asdkjh qwe")
        assert result.intent == Intent.GENERAL_QUESTION
        assert result.confidence == NO_MATCH_CONFIDENCE

    def test_empty_is_unknown(self, classifier):
        assert classifier.classify("") == unknown_result()
        assert unknown_result().confidence == 0.0


class TestIntentPatterns:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Vocês fazem orçamento?", Intent.QUOTE_REQUEST),
            ("Qual o preço da correia A50?", Intent.PRICE_CHECK),
            ("Tem em estoque o mancal?", Intent.STOCK_CHECK),
            ("Quando chega meu pedido?", Intent.ORDER_STATUS),
            ("Consegue um desconto?", Intent.NEGOTIATION),
            ("Pode fechar o pedido", Intent.PURCHASE_INTENT),
            ("Quero fazer a devolução", Intent.RETURN_REQUEST),
            ("Como instalar o retentor?", Intent.TECHNICAL_SUPPORT),
            ("Quais as medidas da polia?", Intent.PRODUCT_INFO),
            ("Bom dia", Intent.GREETING),
            ("Muito obrigado", Intent.THANKS),
            ("Tchau", Intent.GOODBYE),
        ],
    )
    def test_match(self, text, expected):
        assert match_intent(text) == expected

    def test_first_pattern_wins(self):
        # "preciso de" (quote) is checked before "preço" (price)
        assert match_intent("Preciso de preço do 6205") == Intent.QUOTE_REQUEST

    def test_purchase_intent_is_high_urgency(self, classifier):
        assert classifier.classify("Pode confirmar o pedido").urgency == Urgency.HIGH

    def test_urgency_keyword(self, classifier):
        assert classifier.classify("Preciso de correias hoje").urgency == Urgency.HIGH


class TestSentiment:
    def test_positive(self):
        assert score_sentiment("Excelente atendimento, obrigado").sentiment == Sentiment.POSITIVE

    def test_single_negative_hit(self):
        score = score_sentiment("Chegou com atraso")
        assert score.score == -0.3
        assert score.sentiment == Sentiment.NEGATIVE

    def test_insatisfeito_not_counted_as_positive(self):
        score = score_sentiment("Estou insatisfeito")
        assert score.positive_hits == 0
        assert score.negative_hits == 1

    def test_score_clamped(self):
        text = " ".join(["ruim", "péssimo", "horrível", "problema", "defeito"])
        assert score_sentiment(text).score == -1.0

    def test_neutral(self):
        assert score_sentiment("Bom dia").sentiment == Sentiment.NEUTRAL


class TestEntities:
    def test_multiple_products(self):
        products = extract_products("10 correias A50 e 2 retentores")
        assert [(p.name, p.code, p.quantity) for p in products] == [
            ("correia", "A50", 10),
            ("retentor", None, 2),
        ]

    def test_duplicate_mentions_collapsed(self):
        assert len(extract_products("rolamento 6204 ou rolamento 6204?")) == 1

    def test_values_dates_orders(self):
        entities = extract_entities("Pedido 12345 de R$ 1.200,00 entregue 15/10")
        assert entities.order_numbers == ("12345",)
        assert entities.values == ("R$ 1.200,00",)
        assert entities.dates == ("15/10",)
