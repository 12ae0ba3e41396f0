"""
Random code and token generators — pure, side-effect-free functions.

All generators draw from the operating system CSPRNG (``secrets`` /
``uuid.uuid4``), never from a seeded PRNG.
"""

from __future__ import annotations

import secrets
import uuid


def generate_otp_code(length: int = 6) -> str:
    """Generate a numeric OTP uniformly from ``[10**(length-1), 10**length - 1]``.

    The leading digit is never zero, so the code always has exactly
    *length* digits.

    Args:
        length: Number of digits (default 6).

    Returns:
        String of decimal digits.
    """
    if length < 1:
        raise ValueError("length must be positive")
    low = 10 ** (length - 1)
    high = 10**length - 1
    return str(low + secrets.randbelow(high - low + 1))


def generate_reset_token() -> str:
    """Generate an opaque password-reset token.

    Returns:
        Canonical lowercase UUID4 string (122 random bits). The token is
        also its own lookup key in the reset store.
    """
    return str(uuid.uuid4())
