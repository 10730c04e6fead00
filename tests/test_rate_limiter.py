from invoicely.core.rate_limiter import RateLimiter


def test_allows_up_to_limit():
    limiter = RateLimiter(requests=3, window=60)

    results = [limiter.is_allowed("ip:1", now=100.0) for _ in range(4)]

    assert results == [(True, 2), (True, 1), (True, 0), (False, 0)]


def test_window_slides():
    limiter = RateLimiter(requests=1, window=60)

    assert limiter.is_allowed("ip:1", now=100.0)[0]
    assert not limiter.is_allowed("ip:1", now=150.0)[0]
    assert limiter.is_allowed("ip:1", now=161.0)[0]


def test_clients_are_independent():
    limiter = RateLimiter(requests=1, window=60)

    assert limiter.is_allowed("ip:1", now=100.0)[0]
    assert limiter.is_allowed("ip:2", now=100.0)[0]


def test_cleanup_drops_idle_clients():
    limiter = RateLimiter(requests=5, window=60)
    limiter.last_cleanup = 0.0
    limiter.is_allowed("ip:old", now=10.0)

    limiter.is_allowed("ip:new", now=1000.0)

    assert "ip:old" not in limiter.clients
