"""Pipeline settings loaded from environment variables.

All knobs for the ingestion pipeline live here so services receive them
explicitly instead of reading os.environ at call time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

PRODUCTION = "production"

_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() not in _FALSE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the webhook pipeline.

    Attributes:
        environment: APP_ENV value; "production" enforces webhook signatures.
        webhook_secret: Shared HMAC secret with the messaging gateway.
        auto_create_leads: Master switch for lead automation.
        min_confidence_for_lead: Minimum classifier confidence to create a lead.
        debounce_seconds: Per-sender gate TTL.
        max_queue_size: Deferred queue capacity (oldest evicted).
        default_seller_id: Seller used when the customer has no linked seller.
        openai_api_key: Presence enables the AI classifier.
        classification_cache_ttl: Seconds an AI classification stays cached.
        realtime_max: Capacity of the per-user ephemeral notification buffer.
        realtime_ttl: TTL of the per-user ephemeral notification buffer.
    """

    environment: str = "development"
    webhook_secret: str = ""
    auto_create_leads: bool = False
    min_confidence_for_lead: float = 0.7
    debounce_seconds: int = 5
    max_queue_size: int = 1000
    default_seller_id: int = 1
    openai_api_key: str = ""
    openai_model: str = "gpt-3.5-turbo"
    openai_base_url: str = "https://api.openai.com/v1"
    openai_timeout_seconds: float = 15.0
    classification_cache_ttl: int = 3600
    redis_url: str = ""
    realtime_max: int = 50
    realtime_ttl: int = 86400
    jwt_secret: str = ""
    internal_task_secret: str = ""

    @property
    def is_production(self) -> bool:
        return self.environment == PRODUCTION

    @property
    def ai_configured(self) -> bool:
        return bool(self.openai_api_key)


def load_settings() -> Settings:
    """Build Settings from the current environment."""
    return Settings(
        environment=os.environ.get("APP_ENV", "development").strip().lower(),
        webhook_secret=os.environ.get("SUPERBOT_WEBHOOK_SECRET", ""),
        auto_create_leads=_env_bool("SUPERBOT_AUTO_CREATE_LEADS"),
        min_confidence_for_lead=_env_float("MIN_CONFIDENCE_FOR_LEAD", 0.7),
        debounce_seconds=_env_int("WEBHOOK_DEBOUNCE_SECONDS", 5),
        max_queue_size=_env_int("WEBHOOK_MAX_QUEUE_SIZE", 1000),
        default_seller_id=_env_int("DEFAULT_SELLER_ID", 1),
        openai_api_key=os.environ.get("OPENAI_API_KEY", ""),
        openai_model=os.environ.get("OPENAI_MODEL", "gpt-3.5-turbo"),
        openai_base_url=os.environ.get("OPENAI_BASE_URL", "https://api.openai.com/v1"),
        openai_timeout_seconds=_env_float("OPENAI_TIMEOUT_SECONDS", 15.0),
        classification_cache_ttl=_env_int("CLASSIFICATION_CACHE_TTL", 3600),
        redis_url=os.environ.get("REDIS_URL", ""),
        realtime_max=_env_int("NOTIFICATIONS_REALTIME_MAX", 50),
        realtime_ttl=_env_int("NOTIFICATIONS_REALTIME_TTL", 86400),
        jwt_secret=os.environ.get("JWT_SECRET", ""),
        internal_task_secret=os.environ.get("INTERNAL_TASK_SECRET", ""),
    )
