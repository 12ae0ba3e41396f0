"""
Credential document models.

EmailVerificationDoc  — `email-verifications` collection (OTP records)
PasswordResetDoc      — `password-resets` collection (reset tokens)

OTP codes are stored only as an argon2 hash in ``code_hash``. At most one
EmailVerificationDoc per user has ``is_used == False``; issuing a new code
flips every earlier one (superseding).

Reset tokens are stored as-is in ``token``: they are 122-bit random UUIDs
and single-use, and the token doubles as the lookup key. ``used_at`` moves
from None to a timestamp exactly once.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from schemas.models.base import MongoBaseModel, PyObjectId


class EmailVerificationDoc(MongoBaseModel):
    """Document model for the `email-verifications` collection."""

    user_id: PyObjectId
    code_hash: str
    created_at: datetime
    expires_at: datetime
    attempts: int = Field(default=0, ge=0)
    is_used: bool = False


class PasswordResetDoc(MongoBaseModel):
    """Document model for the `password-resets` collection."""

    user_id: PyObjectId
    token: str
    created_at: datetime
    expires_at: datetime
    used_at: Optional[datetime] = None
    origin_ip: Optional[str] = None
