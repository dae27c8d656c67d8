"""
Per-caller request and concurrency limits
"""
import time
from typing import Any, Dict, Optional

from fastapi import HTTPException
import structlog

logger = structlog.get_logger()


class EndpointRateLimit:
    """Fixed-window rate limiter keyed by caller and endpoint bucket."""

    def __init__(self, endpoint_limits: Optional[Dict[str, Dict[str, int]]] = None):
        self.clients: Dict[str, Dict[str, Any]] = {}
        self.endpoint_limits = endpoint_limits or {
            'api': {'calls': 100, 'period': 900},      # 100 per 15 min
            'process': {'calls': 20, 'period': 900},   # 20 media jobs per 15 min
        }

    def check_rate_limit(self, caller: str, endpoint: str) -> None:
        """Count a request against ``endpoint``; raise 429 once the window is full."""
        if endpoint not in self.endpoint_limits:
            return  # No limit defined

        limit_config = self.endpoint_limits[endpoint]
        max_calls = limit_config['calls']
        period = limit_config['period']

        client_id = f"{caller}:{endpoint}"
        current_time = time.time()

        # Clean old entries
        self.clients = {
            cid: data for cid, data in self.clients.items()
            if current_time - data["window_start"] < data["period"]
        }

        client_data = self.clients.get(client_id)
        if client_data is None:
            self.clients[client_id] = {
                "requests": 1,
                "window_start": current_time,
                "period": period,
            }
            return

        if client_data["requests"] >= max_calls:
            retry_after = max(1, int(period - (current_time - client_data["window_start"])))
            logger.warning(
                f"Rate limit exceeded for {endpoint}",
                client_id=client_id,
                requests=client_data["requests"],
                limit=max_calls,
            )
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded for {endpoint}. Max {max_calls} requests per {period // 60} minutes.",
                headers={"Retry-After": str(retry_after)},
            )
        client_data["requests"] += 1


class JobSlot:
    """A held concurrency slot. Releasing twice is a no-op."""

    def __init__(self, limiter: "ConcurrencyLimiter", caller: str):
        self.limiter = limiter
        self.caller = caller
        self.released = False

    def release(self) -> None:
        if not self.released:
            self.released = True
            self.limiter._release(self.caller)


class ConcurrencyLimiter:
    """Caps how many media jobs one caller may run at the same time."""

    def __init__(self, max_concurrent: int = 2):
        self.max_concurrent = max_concurrent
        self.active: Dict[str, int] = {}

    def acquire(self, caller: str) -> JobSlot:
        running = self.active.get(caller, 0)
        if running >= self.max_concurrent:
            logger.warning("Concurrent job limit reached", caller=caller, limit=self.max_concurrent)
            raise HTTPException(
                status_code=429,
                detail=f"Too many concurrent jobs. Max {self.max_concurrent} at a time.",
                headers={"Retry-After": "5"},
            )
        self.active[caller] = running + 1
        return JobSlot(self, caller)

    def _release(self, caller: str) -> None:
        remaining = self.active.get(caller, 0) - 1
        if remaining > 0:
            self.active[caller] = remaining
        else:
            self.active.pop(caller, None)

    def in_flight(self, caller: str) -> int:
        return self.active.get(caller, 0)
