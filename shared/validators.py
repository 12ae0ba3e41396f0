"""
Input validators — framework-agnostic, pure functions.

Everything here runs before any store access: malformed input is rejected
without side effects.
"""

from __future__ import annotations

import re

import validators as _validators

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def validate_otp_format(code: str, length: int = 6) -> bool:
    """Return True if *code* is exactly *length* ASCII digits."""
    if not isinstance(code, str) or len(code) != length:
        return False
    return bool(re.fullmatch(r"[0-9]+", code))


def validate_reset_token_format(token: str) -> bool:
    """Return True if *token* has the canonical ``8-4-4-4-12`` hex UUID shape."""
    return isinstance(token, str) and bool(_UUID_RE.match(token))


def validate_password_strength(password: str) -> bool:
    """Validate a new account password.

    Rules:
    - At least 8 characters
    - Contains at least one uppercase and one lowercase letter
    - Contains at least one digit
    - Contains at least one character that is not a letter or digit

    Returns:
        True if the password meets all requirements.
    """
    if not isinstance(password, str) or len(password) < 8:
        return False
    if not re.search(r"[A-Z]", password):
        return False
    if not re.search(r"[a-z]", password):
        return False
    if not re.search(r"\d", password):
        return False
    if not re.search(r"[^A-Za-z0-9]", password):
        return False
    return True


def normalize_email(email: str) -> str:
    """Trim surrounding whitespace and lowercase *email*."""
    return str(email or "").strip().lower()


def validate_email(email: str) -> bool:
    """Return True if *email* is a syntactically valid address."""
    return bool(email) and bool(_validators.email(email))
