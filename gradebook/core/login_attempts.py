# gradebook/core/login_attempts.py
"""Failed-login backoff per client IP.

Each IP moves between two states. It is open until ``max_attempts`` failures have been
recorded, then locked for ``base_lockout * 2 ** lockout_count`` seconds. ``lockout_count``
grows with every lockout and survives successful logins, so a repeat offender waits
longer each time. A successful login only clears the failure counter and any window.
"""
import logging
import math
import time
from typing import Callable, Dict, Optional

from .config import settings
from .security_store import AttemptRecord, SecurityStore

logger = logging.getLogger(__name__)


def _new_record() -> AttemptRecord:
    return {"attempts": 0, "lockout_until": 0, "lockout_count": 0}


class LoginAttemptTracker:
    def __init__(
        self,
        store: SecurityStore,
        max_attempts: int = settings.login_max_attempts,
        base_lockout_seconds: int = settings.login_base_lockout_seconds,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.base_lockout_seconds = base_lockout_seconds
        self.clock = clock

    def lockout_duration(self, lockout_count: int) -> int:
        return self.base_lockout_seconds * (2 ** lockout_count)

    async def is_locked_out(self, ip: str) -> int:
        """Remaining lockout seconds for ``ip``; 0 when it may try again."""
        now = self.clock()
        remaining = 0

        def check(record: Optional[AttemptRecord]) -> Optional[AttemptRecord]:
            nonlocal remaining
            if record is None or not record["lockout_until"]:
                return record
            if now < record["lockout_until"]:
                remaining = math.ceil(record["lockout_until"] - now)
                return record
            # window elapsed: back to open with a fresh counter
            record["attempts"] = 0
            record["lockout_until"] = 0
            return record

        await self.store.update_attempts(ip, check)
        return remaining

    async def record_failed_attempt(self, ip: str) -> AttemptRecord:
        now = self.clock()

        def fail(record: Optional[AttemptRecord]) -> AttemptRecord:
            record = record or _new_record()
            record["attempts"] += 1
            if record["attempts"] >= self.max_attempts:
                duration = self.lockout_duration(record["lockout_count"])
                record["lockout_until"] = now + duration
                record["lockout_count"] += 1
                logger.warning(
                    f"Login lockout for {ip}: {record['attempts']} failures, locked {duration}s"
                )
            return record

        return await self.store.update_attempts(ip, fail)

    async def record_successful_login(self, ip: str) -> None:
        def succeed(record: Optional[AttemptRecord]) -> Optional[AttemptRecord]:
            if record is None:
                return None
            record["attempts"] = 0
            record["lockout_until"] = 0
            return record

        await self.store.update_attempts(ip, succeed)

    async def clear(self, ip: str) -> None:
        await self.store.update_attempts(ip, lambda record: None)

    async def stats(self) -> Dict[str, int]:
        now = self.clock()
        records = await self.store.all_attempts()
        return {
            "totalIPs": len(records),
            "lockedIPs": sum(1 for r in records.values() if r["lockout_until"] and r["lockout_until"] > now),
            "totalAttempts": sum(int(r["attempts"]) for r in records.values()),
        }
