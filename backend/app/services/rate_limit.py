"""Simple in-memory fixed-window rate limiter keyed by client address."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)


class WindowEntry:
    """Request count for one client within one window."""

    def __init__(self, window_seconds: int):
        self.count = 0
        self.expires_at = datetime.now() + timedelta(seconds=window_seconds)

    def is_expired(self) -> bool:
        return datetime.now() > self.expires_at

    def seconds_left(self) -> int:
        return max(1, int((self.expires_at - datetime.now()).total_seconds()) + 1)


class RateLimiter:
    """Allows max_requests per client per window; max_requests <= 0 disables it."""

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._windows: Dict[str, WindowEntry] = {}
        self._lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self.max_requests > 0

    async def hit(self, key: str) -> Optional[int]:
        """Count one request. Returns seconds to wait when the limit is exceeded, else None."""
        if not self.enabled:
            return None
        async with self._lock:
            self._drop_expired()
            entry = self._windows.get(key)
            if entry is None:
                entry = WindowEntry(self.window_seconds)
                self._windows[key] = entry
            if entry.count >= self.max_requests:
                return entry.seconds_left()
            entry.count += 1
            return None

    async def reset(self) -> None:
        async with self._lock:
            self._windows.clear()

    def _drop_expired(self) -> None:
        expired = [k for k, entry in self._windows.items() if entry.is_expired()]
        for key in expired:
            del self._windows[key]


async def enforce_rate_limit(request: Request) -> None:
    """Dependency that rejects clients over their request budget with 429."""
    limiter: RateLimiter = request.app.state.rate_limiter
    client = request.client.host if request.client else "unknown"
    retry_after = await limiter.hit(client)
    if retry_after is not None:
        logger.warning(f"Rate limit exceeded for {client} on {request.url.path}")
        raise HTTPException(
            status_code=429,
            detail={
                "error": "Too many requests",
                "message": "Too many requests from this IP, please try again later.",
                "retryAfter": retry_after,
            },
            headers={"Retry-After": str(retry_after)},
        )
