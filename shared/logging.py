"""
Logger factory and small helpers used across the service.

Provides:
- get_logger(): Get a configured logger instance
- hash_ip(): Hash IP addresses for privacy (None-safe)
"""

from __future__ import annotations

from typing import Optional

import structlog
from structlog.stdlib import BoundLogger

from shared.logging_config import hash_ip as _hash_ip
from shared.logging_config import setup_logging


def get_logger(name: str) -> BoundLogger:
    """
    Get a configured logger instance.

    Example:
        >>> log = get_logger(__name__)
        >>> log.info("otp_issued", user_id="123")
    """
    return structlog.get_logger(name)


def hash_ip(ip_address: Optional[str]) -> Optional[str]:
    """Hash *ip_address* in production; pass it through in development.

    Returns None when *ip_address* is None.
    """
    if ip_address is None:
        return None
    return _hash_ip(ip_address)


__all__ = ["get_logger", "hash_ip", "setup_logging"]
