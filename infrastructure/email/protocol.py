"""EmailProvider protocol — the notifier the credential services talk to.

Every method returns ``True`` on accepted delivery and ``False`` otherwise.
Callers treat both ``False`` and a raised exception as a delivery failure.
"""

from typing import Optional, Protocol


class EmailProvider(Protocol):
    async def send_verification_email(
        self, email: str, user_name: Optional[str], otp_code: str
    ) -> bool: ...

    async def send_password_reset_email(
        self, email: str, user_name: Optional[str], reset_token: str
    ) -> bool: ...

    async def send_password_reset_confirmation_email(
        self, email: str, user_name: Optional[str]
    ) -> bool: ...
