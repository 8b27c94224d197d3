"""Phone identifier canonicalisation (Brazilian numbering).

Gateways deliver the same contact as "+55 (11) 99999-8888", "11999998888"
or "5511999998888@s.whatsapp.net". Everything keyed by sender (debounce gate,
customer lookup) goes through normalize_phone() first.
"""

import re

COUNTRY_CODE = "55"
SUFFIX_LENGTH = 9

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: str | None) -> str | None:
    """Strip formatting and ensure the country code prefix.

    - Already prefixed with 55 and at least 12 digits: kept as is.
    - At least 10 digits (area code + number): 55 is prepended.
    - Shorter inputs are returned as bare digits.

    Returns:
        Digits-only phone, or None for empty input.
    """
    if not phone:
        return None

    # Drop a WhatsApp JID suffix before stripping punctuation
    digits = _NON_DIGITS.sub("", phone.split("@", 1)[0])
    if not digits:
        return None

    if digits.startswith(COUNTRY_CODE) and len(digits) >= 12:
        return digits
    if len(digits) >= 10:
        return f"{COUNTRY_CODE}{digits}"
    return digits


def phone_suffix(phone: str | None) -> str | None:
    """Last 9 digits of the normalised phone, for fuzzy matching.

    The 9-digit tail survives missing country/area codes and the optional
    mobile "9" digit differences between systems.
    """
    normalized = normalize_phone(phone)
    if not normalized or len(normalized) < SUFFIX_LENGTH:
        return None
    return normalized[-SUFFIX_LENGTH:]
