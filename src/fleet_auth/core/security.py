"""Security utilities for verification sessions and driver credentials."""

import base64
import re
import secrets
import string
import time

UPPERCASE = string.ascii_uppercase
LOWERCASE = string.ascii_lowercase
DIGITS = string.digits
ALPHANUMERIC = UPPERCASE + LOWERCASE + DIGITS

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_LOCAL_PART_UNSAFE = re.compile(r"[^a-z0-9._-]")

_random = secrets.SystemRandom()


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token.

    Args:
        length: Number of random bytes to generate (default 32)

    Returns:
        URL-safe base64 encoded token
    """
    return (
        base64.urlsafe_b64encode(secrets.token_bytes(length))
        .decode("utf-8")
        .rstrip("=")
    )


def generate_session_id() -> str:
    """Generate an identifier for a verification session."""
    return generate_secure_token(24)


def generate_temp_password(length: int = 8) -> str:
    """Generate a temporary password for a staff-created driver login.

    The result always contains at least one uppercase letter, one
    lowercase letter and one digit; remaining characters are drawn from
    the full alphanumeric set and the whole string is shuffled.
    """
    if length < 3:
        raise ValueError("Temporary passwords need at least 3 characters")

    chars = [
        secrets.choice(UPPERCASE),
        secrets.choice(LOWERCASE),
        secrets.choice(DIGITS),
    ]
    chars.extend(secrets.choice(ALPHANUMERIC) for _ in range(length - 3))
    _random.shuffle(chars)
    return "".join(chars)


def login_email_local_part(name: str) -> str:
    """Turn a display name into an e-mail local part ("Ali Khan" -> "ali.khan")."""
    local = re.sub(r"\s+", ".", name.strip().lower())
    local = _LOCAL_PART_UNSAFE.sub("", local).strip(".")
    return local or "driver"


def synthesize_login_email(name: str, domain: str, unique: bool = False) -> str:
    """Build a login e-mail for a driver, optionally with a timestamp suffix."""
    local = login_email_local_part(name)
    if unique:
        local = f"{local}.{int(time.time() * 1000)}"
    return f"{local}@{domain}"


def is_valid_email(email: str | None) -> bool:
    return bool(email) and _EMAIL_PATTERN.fullmatch(email) is not None


def is_valid_code(code: str | None, length: int = 6) -> bool:
    """Check that a one-time code is exactly ``length`` ASCII digits."""
    return (
        code is not None
        and len(code) == length
        and all(c in DIGITS for c in code)
    )
