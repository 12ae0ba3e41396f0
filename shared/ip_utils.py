"""
Client IP resolution for FastAPI requests.

The resolved address keys the per-IP reset-request rate limit and is stored
on reset credentials for audit, so it must never come back empty.
"""

from __future__ import annotations

from fastapi import Request

UNKNOWN_CLIENT_IP = "unknown"

# Proxy headers in priority order; the first non-empty value wins
FORWARDING_HEADERS: tuple[str, ...] = (
    "CF-Connecting-IP",
    "True-Client-IP",
    "X-Forwarded-For",
    "X-Real-IP",
)


def get_client_ip(request: Request) -> str:
    """Extract the originating client IP from a FastAPI ``Request``.

    For ``X-Forwarded-For`` only the first (client-most) hop is used. Falls
    back to the socket peer address, then to ``"unknown"``.
    """
    for header in FORWARDING_HEADERS:
        raw = request.headers.get(header)
        if not raw:
            continue
        first_hop = raw.split(",")[0].strip()
        if first_hop:
            return first_hop

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT_IP
