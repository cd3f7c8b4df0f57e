"""
In-memory rate limiting for preview builds.

Builds are CPU-bound (parse + transpile, optionally a Node subprocess), so
each client IP gets a fixed number per window. Single-process only.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import UTC, datetime, timedelta


class RateLimiter:
    """
    Simple in-memory rate limiter.

    Tracks request timestamps per key (client IP) within a sliding window.
    """

    def __init__(self):
        self._requests: dict[str, list[datetime]] = defaultdict(list)

    def check_rate_limit(self, key: str, max_requests: int, window_minutes: int = 1) -> bool:
        """
        Check and record one request for `key`.

        Args:
            key: Identifier to rate limit (client IP)
            max_requests: Maximum requests allowed in the window
            window_minutes: Window length in minutes (default 1)

        Returns:
            True if under the limit, False if limit exceeded
        """
        now = datetime.now(UTC)
        cutoff = now - timedelta(minutes=window_minutes)

        recent = [ts for ts in self._requests[key] if ts > cutoff]
        if len(recent) >= max_requests:
            self._requests[key] = recent
            return False

        recent.append(now)
        self._requests[key] = recent
        return True

    def cleanup_old_entries(self, max_age_minutes: int = 10):
        """Drop timestamps older than `max_age_minutes` and empty keys."""
        cutoff = datetime.now(UTC) - timedelta(minutes=max_age_minutes)
        for key in list(self._requests.keys()):
            self._requests[key] = [ts for ts in self._requests[key] if ts > cutoff]
            if not self._requests[key]:
                del self._requests[key]

    def reset(self):
        self._requests.clear()


# Global rate limiter instance
rate_limiter = RateLimiter()
