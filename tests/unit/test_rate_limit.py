"""
Tests for request rate limits and per-caller job slots
"""
import pytest
from fastapi import HTTPException

from api.utils.rate_limit import ConcurrencyLimiter, EndpointRateLimit


class TestEndpointRateLimit:

    @pytest.mark.unit
    def test_window_fills(self):
        limiter = EndpointRateLimit({"process": {"calls": 2, "period": 60}})
        limiter.check_rate_limit("ip:1", "process")
        limiter.check_rate_limit("ip:1", "process")

        with pytest.raises(HTTPException) as exc_info:
            limiter.check_rate_limit("ip:1", "process")
        assert exc_info.value.status_code == 429
        assert 1 <= int(exc_info.value.headers["Retry-After"]) <= 60

    @pytest.mark.unit
    def test_callers_are_counted_separately(self):
        limiter = EndpointRateLimit({"api": {"calls": 1, "period": 60}})
        limiter.check_rate_limit("ip:1", "api")
        limiter.check_rate_limit("ip:2", "api")

    @pytest.mark.unit
    def test_unknown_bucket_is_unlimited(self):
        limiter = EndpointRateLimit({"api": {"calls": 1, "period": 60}})
        for _ in range(5):
            limiter.check_rate_limit("ip:1", "other")


class TestConcurrencyLimiter:

    @pytest.mark.unit
    def test_slots_are_capped_per_caller(self):
        limiter = ConcurrencyLimiter(max_concurrent=2)
        first = limiter.acquire("key:a")
        limiter.acquire("key:a")
        limiter.acquire("key:b")

        with pytest.raises(HTTPException) as exc_info:
            limiter.acquire("key:a")
        assert exc_info.value.status_code == 429
        assert exc_info.value.headers["Retry-After"] == "5"

        first.release()
        assert limiter.in_flight("key:a") == 1
        limiter.acquire("key:a")

    @pytest.mark.unit
    def test_double_release_is_ignored(self):
        limiter = ConcurrencyLimiter(max_concurrent=1)
        slot = limiter.acquire("key:a")
        slot.release()
        slot.release()
        assert limiter.in_flight("key:a") == 0
        assert "key:a" not in limiter.active
