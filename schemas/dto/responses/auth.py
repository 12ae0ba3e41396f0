"""
Response DTOs for the credential endpoints.

VerificationSentResponse  — send/resend verification
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class VerificationSentResponse(BaseModel):
    """Response body after an OTP has been issued."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    expires_in: str
    remaining_resends: Optional[int] = None
