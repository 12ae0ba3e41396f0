"""
Cryptographic helpers — slow, salted hashing for secrets and passwords.

Uses argon2id (via argon2-cffi) for both OTP codes and account passwords.
A 6-digit OTP space is tiny, so a fast digest such as SHA-256 would let a
leaked table be brute-forced instantly; argon2's per-hash cost and salt keep
each offline guess expensive.
"""

from __future__ import annotations

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

_hasher = PasswordHasher()


def hash_secret(secret: str) -> str:
    """Hash *secret* (e.g. an OTP code) with argon2id.

    Returns:
        Argon2 hash string (includes algorithm parameters and salt).
    """
    return _hasher.hash(secret)


def verify_secret(secret: str, secret_hash: str) -> bool:
    """Check *secret* against an argon2 *secret_hash*.

    Returns:
        ``True`` on match; ``False`` on mismatch or an unparseable hash.
    """
    try:
        return _hasher.verify(secret_hash, secret)
    except (VerificationError, InvalidHashError):
        return False


def hash_password(plain_password: str) -> str:
    """Hash a new account password with argon2id."""
    return _hasher.hash(plain_password)
