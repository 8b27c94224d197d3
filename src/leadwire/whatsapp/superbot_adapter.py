"""Superbot gateway adapter - validate and normalize webhook payloads."""

from typing import Any

from leadwire.domain.phone import normalize_phone
from leadwire.infra.time import parse_iso, utc_now

from .models import IncomingMessage

DIRECTIONS = ("incoming", "outgoing")


class InvalidPayloadError(Exception):
    """Raised when a Superbot payload has invalid shape."""

    pass


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_incoming(payload: Any) -> IncomingMessage:
    """Validate a Superbot payload and build an IncomingMessage.

    Accepts the gateway aliases: message_text -> text,
    transcription -> media_transcription, message_type -> type,
    timestamp -> received_at.

    Args:
        payload: Decoded JSON body from the gateway.

    Returns:
        IncomingMessage with the sender phone normalised.

    Raises:
        InvalidPayloadError: If sender_phone/session_id are missing or a field
            has the wrong shape.
    """
    if not isinstance(payload, dict):
        raise InvalidPayloadError("payload must be a JSON object")

    session_id = _optional_text(payload.get("session_id"))
    if not session_id:
        raise InvalidPayloadError("missing session_id")

    sender_phone = normalize_phone(_optional_text(payload.get("sender_phone")))
    if not sender_phone:
        raise InvalidPayloadError("missing sender_phone")

    direction = (_optional_text(payload.get("direction")) or "incoming").lower()
    if direction not in DIRECTIONS:
        raise InvalidPayloadError("invalid direction")

    raw_received = payload.get("received_at") or payload.get("timestamp")
    received_at = parse_iso(raw_received) if isinstance(raw_received, str) else None
    if received_at is None:
        received_at = utc_now()

    message_id = _optional_text(payload.get("message_id"))
    if not message_id:
        # Gateways that omit ids still get a stable key per session/instant
        message_id = f"{session_id}-{int(received_at.timestamp() * 1000)}"

    text = _optional_text(payload.get("text") or payload.get("message_text"))
    transcription = _optional_text(
        payload.get("media_transcription") or payload.get("transcription")
    )
    message_type = _optional_text(payload.get("type") or payload.get("message_type")) or "text"

    return IncomingMessage(
        message_id=message_id,
        session_id=session_id,
        sender_phone=sender_phone,
        recipient_phone=normalize_phone(_optional_text(payload.get("recipient_phone"))),
        text=text,
        media_transcription=transcription,
        direction=direction,  # type: ignore[arg-type]
        type=message_type,
        received_at=received_at,
    )
