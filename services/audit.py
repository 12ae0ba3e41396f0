"""
Security audit trail for credential operations.

Every issuance, verification outcome, lockout, reset request and reset
consumption is written as one structured ``auth_audit`` event on the
``auth.audit`` logger, keyed by user id and (hashed) client IP, so log
shipping can route it to a separate retention bucket.
"""

from __future__ import annotations

from typing import Any, Optional

from structlog.stdlib import BoundLogger

from shared.logging import get_logger, hash_ip

AUDIT_LOGGER_NAME = "auth.audit"

OUTCOME_SUCCESS = "success"
OUTCOME_FAILURE = "failure"
OUTCOME_LOCKED_OUT = "locked_out"
OUTCOME_RATE_LIMITED = "rate_limited"
OUTCOME_SKIPPED = "skipped"

_WARNING_OUTCOMES = {OUTCOME_FAILURE, OUTCOME_LOCKED_OUT, OUTCOME_RATE_LIMITED}


class AuditLog:
    def __init__(self, logger: Optional[BoundLogger] = None) -> None:
        self._log = logger or get_logger(AUDIT_LOGGER_NAME)

    def record(
        self,
        action: str,
        *,
        outcome: str,
        user_id: Optional[str] = None,
        client_ip: Optional[str] = None,
        **fields: Any,
    ) -> None:
        emit = self._log.warning if outcome in _WARNING_OUTCOMES else self._log.info
        emit(
            "auth_audit",
            action=action,
            outcome=outcome,
            user_id=user_id,
            ip_hash=hash_ip(client_ip),
            **fields,
        )
