"""Hashing utilities: webhook signatures and content keys.

- compute_signature()/verify_signature(): HMAC-SHA256 over the raw webhook body
- content_hash(): SHA-256 hex digest used to key cached classifications
"""

import hashlib
import hmac

_SIGNATURE_PREFIX = "sha256="


class SignatureVerificationError(Exception):
    """Raised when the webhook HMAC signature is missing or does not match."""

    pass


def compute_signature(payload_bytes: bytes, secret: str) -> str:
    """Compute the hex HMAC-SHA256 of a raw body.

    Args:
        payload_bytes: Raw request body bytes.
        secret: Shared webhook secret.

    Returns:
        Lowercase hex digest.
    """
    return hmac.new(
        key=secret.encode("utf-8"),
        msg=payload_bytes,
        digestmod=hashlib.sha256,
    ).hexdigest()


def verify_signature(payload_bytes: bytes, signature_header: str | None, secret: str) -> None:
    """Verify the gateway signature in constant time.

    The header may carry the bare hex digest or the "sha256=<hex>" form.

    Args:
        payload_bytes: Raw request body bytes.
        signature_header: Signature header value.
        secret: Shared webhook secret.

    Raises:
        SignatureVerificationError: If secret or signature is missing, or on mismatch.
    """
    if not secret:
        raise SignatureVerificationError("webhook secret not configured")

    if not signature_header:
        raise SignatureVerificationError("missing signature header")

    provided = signature_header.strip()
    if provided.startswith(_SIGNATURE_PREFIX):
        provided = provided[len(_SIGNATURE_PREFIX):]

    computed = compute_signature(payload_bytes, secret)

    if not hmac.compare_digest(computed, provided.lower()):
        raise SignatureVerificationError("signature mismatch")


def content_hash(text: str) -> str:
    """Return the SHA-256 hex digest of a text (UTF-8)."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
