"""
User document model.

Maps to the `users` MongoDB collection. Only the fields the credential
lifecycle reads or writes are modelled; extra keys are ignored.

status values:
- PENDING: registered, email not yet verified
- ACTIVE:  email verified
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import ConfigDict

from schemas.models.base import MongoBaseModel

USER_STATUS_PENDING = "pending"
USER_STATUS_ACTIVE = "active"


class UserDoc(MongoBaseModel):
    """Document model for the `users` collection."""

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="ignore",
    )

    email: str
    user_name: Optional[str] = None
    password_hash: Optional[str] = None
    status: str = USER_STATUS_PENDING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_verified(self) -> bool:
        return self.status == USER_STATUS_ACTIVE
