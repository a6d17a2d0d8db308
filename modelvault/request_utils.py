"""Utilities for handling FastAPI requests."""

from fastapi import Request


def get_client_ip(request: Request) -> str:
    """Extract client IP address with proxy support.

    Returns "unknown" if unable to determine.

    Notes:
        - Checks X-Forwarded-For header first (for load balancers/proxies)
        - Falls back to X-Real-IP header (for nginx proxy)
        - Finally uses request.client.host (direct connection)
    """
    forwarded_for: str | None = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        client_ip = forwarded_for.split(",")[0].strip()
        if client_ip:
            return client_ip

    real_ip: str | None = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return str(request.client.host)

    return "unknown"


def is_api_request(request: Request) -> bool:
    """Check if request is to an API endpoint."""
    return str(request.url.path).startswith("/api/")
