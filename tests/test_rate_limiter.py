from datetime import timedelta

from oksnap.services.rate_limiter import RATE_LIMIT_PREFIX, RateLimiter

IP = "9.9.9.9"


def test_allows_up_to_max_requests_per_window(kv_store, clock):
    limiter = RateLimiter(kv_store, clock=clock)
    assert all(limiter.check(IP).allowed for _ in range(20))

    denied = limiter.check(IP)
    assert denied.allowed is False
    assert denied.retry_after == 900


def test_retry_after_counts_down(kv_store, clock):
    limiter = RateLimiter(kv_store, clock=clock, max_requests=1)
    limiter.check(IP)
    clock.advance(minutes=10, seconds=0.5)
    assert limiter.check(IP).retry_after == 300


def test_new_window_after_reset(kv_store, clock):
    limiter = RateLimiter(kv_store, clock=clock, max_requests=2)
    limiter.check(IP)
    limiter.check(IP)
    assert limiter.check(IP).allowed is False

    clock.advance(minutes=15, seconds=1)
    assert limiter.check(IP).allowed is True
    assert kv_store.get(RATE_LIMIT_PREFIX + IP)["count"] == 1


def test_ips_are_throttled_independently(kv_store, clock):
    limiter = RateLimiter(kv_store, clock=clock, max_requests=1)
    assert limiter.check("1.1.1.1").allowed
    assert limiter.check("2.2.2.2").allowed
    assert limiter.check("1.1.1.1").allowed is False


def test_unreadable_record_starts_a_new_window(kv_store, clock):
    kv_store.set(RATE_LIMIT_PREFIX + IP, {"count": 99, "resetTime": "not a date"})
    limiter = RateLimiter(kv_store, clock=clock)
    assert limiter.check(IP).allowed is True


def test_store_failure_fails_open(failing_store, clock):
    limiter = RateLimiter(failing_store, clock=clock, max_requests=1)
    assert all(limiter.check(IP).allowed for _ in range(5))


def test_expired_windows_of_one_off_ips_are_swept(kv_store, clock):
    limiter = RateLimiter(kv_store, clock=clock)
    for last_octet in range(50):
        limiter.check(f"10.0.0.{last_octet}")
    assert len(kv_store.keys()) == 50

    clock.advance(minutes=16)
    limiter.check(IP)
    assert kv_store.keys() == [RATE_LIMIT_PREFIX + IP]


def test_sweep_keeps_live_and_non_expiring_keys(kv_store, clock):
    kv_store.set("short", {"v": 1}, expires_at=clock() + timedelta(minutes=5))
    kv_store.set("long", {"v": 2}, expires_at=clock() + timedelta(hours=5))
    kv_store.set("forever", {"v": 3})

    clock.advance(minutes=10)
    kv_store.set("fresh", {"v": 4})
    assert sorted(kv_store.keys()) == ["forever", "fresh", "long"]
