"""Access token verification for the HTTP layer.

The credential services never see access tokens; routes that require a
signed-in caller use AccessTokenVerifier through the require_access_token
dependency. RS256 is used when both keys are configured, HS256 otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import jwt

from config import JWTSettings
from shared.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class AccessTokenClaims:
    user_id: str
    email: Optional[str]
    role: str


class AccessTokenVerifier:
    def __init__(self, settings: JWTSettings) -> None:
        self._settings = settings
        if settings.use_rs256:
            self._algorithm = "RS256"
            # Keys provided via env may carry literal \n sequences
            self._key: str | bytes = settings.jwt_public_key.replace(
                "\\n", "\n"
            ).encode("utf-8")
        else:
            self._algorithm = "HS256"
            self._key = settings.jwt_secret

    def verify(self, bearer_token: str) -> Optional[AccessTokenClaims]:
        """Decode *bearer_token*; return its claims, or None when invalid."""
        if not bearer_token or not self._key:
            return None
        try:
            claims = jwt.decode(
                bearer_token,
                self._key,
                algorithms=[self._algorithm],
                audience=self._settings.jwt_audience,
                issuer=self._settings.jwt_issuer,
            )
        except jwt.InvalidTokenError as e:
            log.info("access_token_rejected", reason=type(e).__name__)
            return None

        subject = claims.get("sub")
        if not subject:
            return None
        return AccessTokenClaims(
            user_id=str(subject),
            email=claims.get("email"),
            role=str(claims.get("role") or "user"),
        )
