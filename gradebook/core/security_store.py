# gradebook/core/security_store.py
"""Shared security state: login-attempt records, revoked refresh tokens, rate-limit windows.

One store instance is created in the application lifespan and handed to the services
that need it. ``InMemorySecurityStore`` serves a single process; ``RedisSecurityStore``
is used when several instances run behind a load balancer.
"""
import asyncio
import json
import logging
import time
import uuid
from typing import Callable, Dict, List, Optional

import redis.asyncio as redis

from .config import settings

logger = logging.getLogger(__name__)

AttemptRecord = Dict[str, float]
AttemptUpdater = Callable[[Optional[AttemptRecord]], Optional[AttemptRecord]]


class SecurityStore:
    """Interface shared by the store backends."""

    async def update_attempts(self, ip: str, updater: AttemptUpdater) -> Optional[AttemptRecord]:
        """Atomically replace the record for ``ip`` with ``updater(current)``.

        Returning ``None`` from the updater removes the record.
        """
        raise NotImplementedError

    async def get_attempts(self, ip: str) -> Optional[AttemptRecord]:
        raise NotImplementedError

    async def all_attempts(self) -> Dict[str, AttemptRecord]:
        raise NotImplementedError

    async def revoke_token(self, token: str, expires_at: float) -> None:
        raise NotImplementedError

    async def is_token_revoked(self, token: str) -> bool:
        raise NotImplementedError

    async def revoke_if_new(self, token: str, expires_at: float) -> bool:
        """Revoke ``token`` in one step. False when it was already revoked."""
        raise NotImplementedError

    async def hit(self, key: str, max_requests: int, window: int) -> bool:
        """Register a request in a sliding window. False once the window is full."""
        raise NotImplementedError

    async def close(self) -> None:
        return None


class InMemorySecurityStore(SecurityStore):
    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = asyncio.Lock()
        self._attempts: Dict[str, AttemptRecord] = {}
        self._revoked: Dict[str, float] = {}
        self._requests: Dict[str, List[float]] = {}

    async def update_attempts(self, ip, updater):
        async with self._lock:
            record = updater(dict(self._attempts[ip]) if ip in self._attempts else None)
            if record is None:
                self._attempts.pop(ip, None)
            else:
                self._attempts[ip] = record
            return record

    async def get_attempts(self, ip):
        async with self._lock:
            record = self._attempts.get(ip)
            return dict(record) if record is not None else None

    async def all_attempts(self):
        async with self._lock:
            return {ip: dict(record) for ip, record in self._attempts.items()}

    async def revoke_token(self, token, expires_at):
        async with self._lock:
            now = self._clock()
            # drop entries whose token could no longer verify anyway
            self._revoked = {t: exp for t, exp in self._revoked.items() if exp > now}
            self._revoked[token] = expires_at

    async def is_token_revoked(self, token):
        async with self._lock:
            return token in self._revoked

    async def revoke_if_new(self, token, expires_at):
        async with self._lock:
            now = self._clock()
            self._revoked = {t: exp for t, exp in self._revoked.items() if exp > now}
            if token in self._revoked:
                return False
            self._revoked[token] = expires_at
            return True

    async def hit(self, key, max_requests, window):
        async with self._lock:
            now = self._clock()
            recent = [t for t in self._requests.get(key, []) if now - t < window]
            if len(recent) >= max_requests:
                self._requests[key] = recent
                return False
            recent.append(now)
            self._requests[key] = recent
            return True


class RedisSecurityStore(SecurityStore):
    prefix = "gradebook"

    def __init__(self, url: str, clock: Callable[[], float] = time.time):
        self._clock = clock
        self.redis: redis.Redis = redis.from_url(url, encoding="utf-8", decode_responses=True)

    def _key(self, *parts: str) -> str:
        return ":".join((self.prefix,) + parts)

    async def update_attempts(self, ip, updater):
        key = self._key("login", ip)
        async with self.redis.lock(self._key("lock", "login", ip), timeout=5):
            raw = await self.redis.get(key)
            record = updater(json.loads(raw) if raw else None)
            if record is None:
                await self.redis.delete(key)
            else:
                await self.redis.set(key, json.dumps(record))
            return record

    async def get_attempts(self, ip):
        raw = await self.redis.get(self._key("login", ip))
        return json.loads(raw) if raw else None

    async def all_attempts(self):
        records = {}
        prefix = self._key("login", "")
        async for key in self.redis.scan_iter(match=prefix + "*"):
            raw = await self.redis.get(key)
            if raw:
                records[key[len(prefix):]] = json.loads(raw)
        return records

    async def revoke_token(self, token, expires_at):
        ttl = max(int(expires_at - self._clock()), 1)
        await self.redis.set(self._key("revoked", token), "1", ex=ttl)

    async def is_token_revoked(self, token):
        return bool(await self.redis.exists(self._key("revoked", token)))

    async def revoke_if_new(self, token, expires_at):
        ttl = max(int(expires_at - self._clock()), 1)
        return bool(await self.redis.set(self._key("revoked", token), "1", ex=ttl, nx=True))

    async def hit(self, key, max_requests, window):
        bucket = self._key("rate", key)
        now = self._clock()
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.zremrangebyscore(bucket, 0, now - window)
            pipe.zcard(bucket)
            _, count = await pipe.execute()
        if count >= max_requests:
            return False
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.zadd(bucket, {f"{now}:{uuid.uuid4().hex}": now})
            pipe.expire(bucket, window)
            await pipe.execute()
        return True

    async def close(self):
        await self.redis.aclose()


def create_security_store() -> SecurityStore:
    """Build the store selected by ``settings.security_store``."""
    if settings.security_store == "redis":
        if not settings.redis_url:
            raise RuntimeError("security_store=redis requires REDIS_URL")
        logger.info("Using Redis security store")
        return RedisSecurityStore(settings.redis_url)
    logger.info("Using in-memory security store")
    return InMemorySecurityStore()
