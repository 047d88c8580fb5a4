# gradebook/core/rate_limiter.py
from .exceptions import RateLimited
from .security_store import SecurityStore


class RateLimiter:
    def __init__(self, store: SecurityStore):
        self.store = store

    async def check_rate_limit(
        self,
        key: str,
        max_requests: int = 60,
        window: int = 60,
        detail: str = "Rate limit exceeded"
    ):
        """Count one request for ``key``; raise once ``max_requests`` fall inside ``window`` seconds."""
        if not await self.store.hit(key, max_requests, window):
            raise RateLimited(detail)
