"""AI classifier over the OpenAI chat-completions HTTP API.

Security: NEVER log message text or the API key. Only log intent,
confidence, token usage and error types.
"""

from __future__ import annotations

import json
from typing import Any, Sequence

import requests

from leadwire.classifier.base import ClassificationUnavailable, build_classifier_input
from leadwire.domain.intents import (
    ClassificationResult,
    ClassificationSource,
    Entities,
    Intent,
    Sentiment,
    Urgency,
)
from leadwire.observability.logging import get_logger
from leadwire.observability.redaction import safe_log_context

logger = get_logger(__name__)

TEMPERATURE = 0.3
MAX_TOKENS = 500
DEFAULT_CONFIDENCE = 0.5

SYSTEM_PROMPT = """Você é um assistente especializado em análise de mensagens de clientes de uma distribuidora de rolamentos e peças industriais (Rolemak).

Sua tarefa é analisar mensagens de clientes do WhatsApp e identificar:
1. A INTENÇÃO principal da mensagem
2. As ENTIDADES mencionadas (produtos, quantidades, valores, datas)
3. O SENTIMENTO geral (positivo, neutro, negativo)
4. A URGÊNCIA percebida (baixa, média, alta)

INTENÇÕES DISPONÍVEIS:
- QUOTE_REQUEST: Cliente pedindo cotação/orçamento
- PRICE_CHECK: Consulta de preço específico
- STOCK_CHECK: Verificação de disponibilidade/estoque
- ORDER_STATUS: Pergunta sobre status de pedido
- COMPLAINT: Reclamação ou insatisfação
- GENERAL_QUESTION: Perguntas gerais
- NEGOTIATION: Pedido de desconto ou negociação
- PRODUCT_INFO: Pedido de informações técnicas sobre produto
- PURCHASE_INTENT: Expressa intenção clara de comprar
- RETURN_REQUEST: Solicitação de devolução ou troca
- TECHNICAL_SUPPORT: Problema técnico com produto
- GREETING: Apenas saudação (oi, bom dia)
- THANKS: Agradecimento
- GOODBYE: Despedida
- UNKNOWN: Não foi possível identificar

PRODUTOS COMUNS:
- Rolamentos (6204, 6205, 6206, etc.)
- Correias (A, B, C, etc.)
- Retentores
- Mancais
- Polias
- Acoplamentos

RESPONDA SEMPRE EM JSON com o seguinte formato:
{
  "intent": "NOME_DA_INTENCAO",
  "confidence": 0.0 a 1.0,
  "sentiment": "positive" | "neutral" | "negative",
  "urgency": "low" | "medium" | "high",
  "entities": {
    "products": [{"query": "texto do produto", "code": "código ou null", "quantity": numero ou null}],
    "values": ["R$ X,XX"],
    "dates": ["data mencionada"],
    "order_numbers": ["numero do pedido"]
  },
  "summary": "Resumo em uma frase do que o cliente quer"
}"""


def _clamp_confidence(value: Any) -> float:
    try:
        confidence = float(value) if value else DEFAULT_CONFIDENCE
    except (TypeError, ValueError):
        confidence = DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, confidence))


def _coerce_enum(enum_cls: Any, value: Any, default: Any) -> Any:
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default


def normalize_response(
    payload: dict[str, Any],
    model: str | None = None,
    tokens_used: int = 0,
) -> ClassificationResult:
    """Coerce a model JSON answer into a ClassificationResult.

    Unknown intents become UNKNOWN, confidence is clamped to [0, 1]
    (0.5 when missing), invalid sentiment/urgency fall back to neutral/low and
    non-list entity fields become empty.
    """
    return ClassificationResult(
        intent=Intent.parse(payload.get("intent")),
        confidence=_clamp_confidence(payload.get("confidence")),
        sentiment=_coerce_enum(Sentiment, payload.get("sentiment"), Sentiment.NEUTRAL),
        urgency=_coerce_enum(Urgency, payload.get("urgency"), Urgency.LOW),
        source=ClassificationSource.AI,
        entities=Entities.from_dict(payload.get("entities")),
        summary=str(payload.get("summary") or "Análise concluída"),
        model=model,
        tokens_used=tokens_used,
    )


class OpenAIClassifier:
    """Networked classifier. Fallible: raises ClassificationUnavailable.

    Args:
        api_key: OpenAI API key.
        model: Chat model name.
        base_url: API root, e.g. "https://api.openai.com/v1".
        timeout: Request timeout in seconds.
        session: Optional requests session (tests inject a mock).
    """

    source = ClassificationSource.AI

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-3.5-turbo",
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._url = f"{base_url.rstrip('/')}/chat/completions"
        self._timeout = timeout
        self._session = session or requests.Session()

    def _request_body(self, user_message: str) -> dict[str, Any]:
        return {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_message},
            ],
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
            "response_format": {"type": "json_object"},
        }

    def classify(
        self,
        text: str,
        context_messages: Sequence[str] = (),
        customer_name: str | None = None,
    ) -> ClassificationResult:
        user_message = build_classifier_input(text, context_messages, customer_name)
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self._session.post(
                self._url,
                json=self._request_body(user_message),
                headers=headers,
                timeout=self._timeout,
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as exc:
            raise ClassificationUnavailable(f"openai request failed: {type(exc).__name__}") from exc
        except ValueError as exc:
            raise ClassificationUnavailable("openai returned a non-JSON body") from exc

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ClassificationUnavailable("openai response missing message content") from exc
        if not content:
            raise ClassificationUnavailable("openai returned empty content")

        try:
            parsed = json.loads(content)
        except ValueError as exc:
            raise ClassificationUnavailable("openai content is not valid JSON") from exc
        if not isinstance(parsed, dict):
            raise ClassificationUnavailable("openai content is not a JSON object")

        try:
            usage = body.get("usage") or {}
            result = normalize_response(
                parsed,
                model=body.get("model") or self._model,
                tokens_used=int(usage.get("total_tokens") or 0),
            )
        except (AttributeError, TypeError, ValueError, OverflowError) as exc:
            raise ClassificationUnavailable(
                f"openai response has an unexpected shape: {type(exc).__name__}"
            ) from exc

        logger.info(
            "ai classification completed",
            extra={
                "extra_fields": safe_log_context(
                    intent=result.intent.value,
                    confidence=result.confidence,
                    tokens=result.tokens_used,
                )
            },
        )
        return result
