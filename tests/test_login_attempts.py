import pytest

from gradebook.core.login_attempts import LoginAttemptTracker
from gradebook.core.rate_limiter import RateLimiter
from gradebook.core.exceptions import RateLimited
from gradebook.core.security_store import InMemorySecurityStore

from conftest import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(clock):
    return LoginAttemptTracker(InMemorySecurityStore(clock), max_attempts=5, base_lockout_seconds=60, clock=clock)


async def fail(tracker, ip, times):
    for _ in range(times):
        await tracker.record_failed_attempt(ip)


async def test_open_until_max_attempts(tracker):
    await fail(tracker, "10.0.0.1", 4)
    assert await tracker.is_locked_out("10.0.0.1") == 0


async def test_fifth_failure_locks_for_base_window(tracker, clock):
    await fail(tracker, "10.0.0.1", 5)
    assert await tracker.is_locked_out("10.0.0.1") == 60

    clock.advance(15.5)
    assert await tracker.is_locked_out("10.0.0.1") == 45


async def test_window_expiry_reopens_and_resets_counter(tracker, clock):
    await fail(tracker, "10.0.0.1", 5)
    clock.advance(61)

    assert await tracker.is_locked_out("10.0.0.1") == 0
    record = await tracker.store.get_attempts("10.0.0.1")
    assert record["attempts"] == 0
    assert record["lockout_count"] == 1


async def test_lockout_doubles_for_repeat_offenders(tracker, clock):
    await fail(tracker, "10.0.0.1", 5)
    clock.advance(61)
    await tracker.is_locked_out("10.0.0.1")

    await fail(tracker, "10.0.0.1", 5)
    assert await tracker.is_locked_out("10.0.0.1") == 120


async def test_success_resets_attempts_but_keeps_multiplier(tracker, clock):
    await fail(tracker, "10.0.0.1", 5)
    clock.advance(61)
    await tracker.record_successful_login("10.0.0.1")

    record = await tracker.store.get_attempts("10.0.0.1")
    assert record["attempts"] == 0
    assert record["lockout_until"] == 0
    assert record["lockout_count"] == 1


async def test_ips_are_tracked_independently(tracker):
    await fail(tracker, "10.0.0.1", 5)
    assert await tracker.is_locked_out("10.0.0.2") == 0


async def test_stats_and_clear(tracker):
    await fail(tracker, "10.0.0.1", 5)
    await fail(tracker, "10.0.0.2", 2)

    assert await tracker.stats() == {"totalIPs": 2, "lockedIPs": 1, "totalAttempts": 7}

    await tracker.clear("10.0.0.1")
    assert await tracker.is_locked_out("10.0.0.1") == 0
    assert (await tracker.stats())["totalIPs"] == 1


async def test_rate_limiter_sliding_window(clock):
    limiter = RateLimiter(InMemorySecurityStore(clock))
    for _ in range(3):
        await limiter.check_rate_limit("contact:1.2.3.4", max_requests=3, window=60)

    with pytest.raises(RateLimited):
        await limiter.check_rate_limit("contact:1.2.3.4", max_requests=3, window=60)

    clock.advance(60)
    await limiter.check_rate_limit("contact:1.2.3.4", max_requests=3, window=60)


async def test_revoked_tokens_are_remembered(clock):
    store = InMemorySecurityStore(clock)
    await store.revoke_token("old-token", expires_at=clock.now + 3600)
    assert await store.is_token_revoked("old-token")
    assert not await store.is_token_revoked("new-token")
