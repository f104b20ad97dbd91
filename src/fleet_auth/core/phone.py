"""Phone number helpers.

Numbers are persisted and compared in E.164 form: a leading ``+``, the
country code and the national number, with no separators.
"""

import re

from src.fleet_auth.core.errors import InvalidPhoneFormat

E164_PATTERN = re.compile(r"^\+[1-9]\d{6,14}$")

# Ordered so that longer prefixes win over shorter ones sharing digits.
SUPPORTED_COUNTRY_CODES = (
    "+971",
    "+966",
    "+974",
    "+965",
    "+968",
    "+973",
    "+91",
    "+44",
    "+1",
)

_FORMATTING_CHARS = re.compile(r"[\s\-().]")


def is_e164(phone: str | None) -> bool:
    """Return True when ``phone`` is already a valid E.164 number."""
    return bool(phone) and E164_PATTERN.fullmatch(phone) is not None


def require_e164(phone: str | None) -> str:
    """Return ``phone`` unchanged or raise InvalidPhoneFormat."""
    if not is_e164(phone):
        raise InvalidPhoneFormat(phone)
    return phone


def normalize_phone(raw: str, default_country_code: str = "+971") -> str:
    """Normalize user or staff input into E.164.

    Formatting characters are dropped. Input without a leading ``+`` is
    treated as a national number: leading zeros are stripped and
    ``default_country_code`` is prefixed.

    Raises:
        InvalidPhoneFormat: if the result is not a valid E.164 number
    """
    if raw is None:
        raise InvalidPhoneFormat(raw)

    cleaned = _FORMATTING_CHARS.sub("", raw.strip())
    if cleaned.startswith("00"):
        cleaned = "+" + cleaned[2:]
    if not cleaned.startswith("+"):
        cleaned = f"{default_country_code}{cleaned.lstrip('0')}"

    return require_e164(cleaned)


def detect_country_code(phone: str, default: str = "+971") -> str:
    """Return the supported dialling prefix ``phone`` starts with."""
    if not phone.startswith("+"):
        return default
    for code in SUPPORTED_COUNTRY_CODES:
        if phone.startswith(code):
            return code
    return default


def mask_phone(phone: str | None) -> str:
    """Hide the middle digits of a phone number for log output."""
    if not phone:
        return "-"
    if len(phone) <= 8:
        return phone[:2] + "*" * (len(phone) - 2)
    return phone[:5] + "*" * (len(phone) - 8) + phone[-3:]
