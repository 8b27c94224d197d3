"""Default pipeline assembly from Settings.

Routes obtain services through get_pipeline(); tests replace the whole graph
with set_pipeline().
"""

from __future__ import annotations

from dataclasses import dataclass

from leadwire.classifier.openai_backend import OpenAIClassifier
from leadwire.classifier.service import IntentClassifier
from leadwire.domain.rules import RuleBasedClassifier
from leadwire.infra.kv import InMemoryKVStore, KeyValueStore, RedisKVStore
from leadwire.infra.settings import Settings, load_settings
from leadwire.observability.logging import get_logger
from leadwire.services.audit import AuditLog, PgAuditStore
from leadwire.services.context_resolver import ContextResolver, PgCustomerDirectory
from leadwire.services.debounce import DebounceGate, DeferredQueue
from leadwire.services.ingestion import WebhookIngestionService
from leadwire.services.lead_materializer import LeadMaterializer, PgLeadStore
from leadwire.services.notifications import NotificationDispatcher, PgNotificationStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class Pipeline:
    settings: Settings
    ingestion: WebhookIngestionService
    notifications: NotificationDispatcher
    classifier: IntentClassifier


def build_kv_store(settings: Settings) -> KeyValueStore:
    """Redis when REDIS_URL is set, otherwise a process-local store."""
    if settings.redis_url:
        return RedisKVStore.from_url(settings.redis_url)
    logger.warning("REDIS_URL not set, using in-memory key-value store")
    return InMemoryKVStore()


def build_classifier(settings: Settings, kv: KeyValueStore) -> IntentClassifier:
    ai = None
    if settings.ai_configured:
        ai = OpenAIClassifier(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout=settings.openai_timeout_seconds,
        )
    return IntentClassifier(
        cache=kv,
        ai=ai,
        rules=RuleBasedClassifier(),
        cache_ttl=settings.classification_cache_ttl,
    )


def build_pipeline(settings: Settings, kv: KeyValueStore | None = None) -> Pipeline:
    """Wire the production graph: Postgres stores plus the given KV store."""
    if kv is None:
        kv = build_kv_store(settings)

    dispatcher = NotificationDispatcher(
        store=PgNotificationStore(),
        realtime=kv,
        realtime_max=settings.realtime_max,
        realtime_ttl=settings.realtime_ttl,
    )
    classifier = build_classifier(settings, kv)
    ingestion = WebhookIngestionService(
        settings=settings,
        gate=DebounceGate(kv, ttl_seconds=settings.debounce_seconds),
        queue=DeferredQueue(kv, max_size=settings.max_queue_size),
        resolver=ContextResolver(PgCustomerDirectory()),
        classifier=classifier,
        materializer=LeadMaterializer(PgLeadStore(), default_seller_id=settings.default_seller_id),
        dispatcher=dispatcher,
        audit=AuditLog(PgAuditStore()),
    )
    return Pipeline(
        settings=settings,
        ingestion=ingestion,
        notifications=dispatcher,
        classifier=classifier,
    )


# Module-level pipeline (lazy init, can be overridden for tests)
_pipeline: Pipeline | None = None


def get_pipeline() -> Pipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = build_pipeline(load_settings())
    return _pipeline


def set_pipeline(pipeline: Pipeline | None) -> None:
    """Set pipeline (for tests)."""
    global _pipeline
    _pipeline = pipeline
