"""WhatsApp message models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

Direction = Literal["incoming", "outgoing"]


@dataclass(frozen=True)
class IncomingMessage:
    """Gateway message normalised for the ingestion pipeline.

    ATENÇÃO PII:
    - `sender_phone`, `recipient_phone`, `text` and `media_transcription` are PII
    - NEVER log them raw; use mask_phone() / text lengths
    """

    message_id: str
    session_id: str
    sender_phone: str
    recipient_phone: str | None
    text: str | None
    media_transcription: str | None
    direction: Direction
    type: str  # e.g., "text", "audio", "image"
    received_at: datetime

    @property
    def content(self) -> str | None:
        """Text to classify: message text, else audio transcription."""
        return self.text or self.media_transcription or None
