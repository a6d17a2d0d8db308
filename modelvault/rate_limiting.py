"""Simple in-memory rate limiting for the ModelVault API."""

import time
from collections import defaultdict
from typing import Final

from fastapi import Request, status
from fastapi.responses import JSONResponse

from .request_utils import get_client_ip, is_api_request

LOGIN_PATH: Final = "/api/auth/login"


class RateLimiter:
    """In-memory sliding-window rate limiter, keyed by client IP and bucket."""

    def __init__(self):
        self._requests: dict[tuple[str, str], list[float]] = defaultdict(list)
        # Requests per minute
        self._limits: Final = {
            "auth": 10,
            "write": 60,
            "general": 300,
        }
        self._enabled: bool = True

    def disable(self) -> None:
        """Disable rate limiting (for testing)."""
        self._enabled = False

    def enable(self) -> None:
        """Enable rate limiting."""
        self._enabled = True

    def reset(self) -> None:
        """Reset all rate limiting data."""
        self._requests.clear()

    def set_limits_for_testing(self, **limits: int) -> dict[str, int]:
        """Set rate limits for testing purposes. Returns original limits."""
        original = self._limits.copy()
        for limit_type, value in limits.items():
            if limit_type in self._limits:
                self._limits[limit_type] = value
        return original

    def restore_limits(self, original_limits: dict[str, int]) -> None:
        """Restore original rate limits after testing."""
        self._limits.update(original_limits)

    def get_request_count(self, ip: str, bucket: str = "general") -> int:
        """Get current request count for an IP in one bucket."""
        self._clean_old_requests((ip, bucket))
        return len(self._requests[(ip, bucket)])

    def get_rate_limit_info(self, request: Request) -> tuple[int, int, int]:
        """Return ``(limit, remaining, reset_time)`` for the request's bucket."""
        key = (get_client_ip(request), self.bucket_for(request))
        limit = self._limits[key[1]]

        self._clean_old_requests(key)
        remaining = max(0, limit - len(self._requests[key]))
        reset_time = int(time.time()) + 60

        return limit, remaining, reset_time

    def _clean_old_requests(
        self, key: tuple[str, str], window_seconds: int = 60
    ) -> None:
        cutoff_time = time.time() - window_seconds
        self._requests[key] = [
            timestamp for timestamp in self._requests[key] if timestamp > cutoff_time
        ]

    @staticmethod
    def bucket_for(request: Request) -> str:
        """Pick the bucket a request counts against."""
        path = str(request.url.path)
        if request.method == "POST" and path == LOGIN_PATH:
            return "auth"
        if request.method in ("POST", "PUT", "DELETE", "PATCH"):
            return "write"
        return "general"

    def check_rate_limit(self, request: Request) -> JSONResponse | None:
        """Record the request, or return a 429 response if the bucket is full."""
        if not self._enabled:
            return None

        bucket = self.bucket_for(request)
        key = (get_client_ip(request), bucket)
        limit = self._limits[bucket]

        self._clean_old_requests(key)
        current_requests = len(self._requests[key])

        if current_requests >= limit:
            retry_after = 60
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "type": "/problems/rate-limited",
                    "title": "Too Many Requests",
                    "status": status.HTTP_429_TOO_MANY_REQUESTS,
                    "detail": f"Rate limit of {limit} requests per minute exceeded",
                    "instance": str(request.url.path),
                    "kind": "rate_limited",
                    "limit": limit,
                    "limit_type": bucket,
                    "retry_after": retry_after,
                },
                media_type="application/problem+json",
                headers={"Retry-After": str(retry_after)},
            )

        self._requests[key].append(time.time())
        return None


# Global rate limiter instance
rate_limiter = RateLimiter()


async def rate_limit_middleware(request: Request, call_next):
    """Rate limiting middleware for FastAPI."""
    if is_api_request(request):
        rejection = rate_limiter.check_rate_limit(request)
        if rejection is not None:
            return rejection

    response = await call_next(request)

    if is_api_request(request):
        limit, remaining, reset_time = rate_limiter.get_rate_limit_info(request)

        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(reset_time)

    return response
