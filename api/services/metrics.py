"""
Prometheus metrics for media operations
"""
import time
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram
import structlog

logger = structlog.get_logger()


class MediaMetricsService:
    """Counters and timings for processed operations."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.operations_total = Counter(
            'clipchat_operations_total',
            'Media operations by outcome',
            ['operation', 'mode', 'status'],
            registry=self.registry,
        )

        self.operation_duration_seconds = Histogram(
            'clipchat_operation_duration_seconds',
            'Media operation wall time in seconds',
            ['operation', 'mode'],
            buckets=[0.1, 0.5, 1, 2.5, 5, 10, 30, 60, 120, 300, 600],
            registry=self.registry,
        )

        self.jobs_in_flight = Gauge(
            'clipchat_jobs_in_flight',
            'Media jobs currently running',
            registry=self.registry,
        )

        self.bytes_processed_total = Counter(
            'clipchat_bytes_processed_total',
            'Bytes read from uploads and written to responses',
            ['direction'],
            registry=self.registry,
        )

        self.errors_total = Counter(
            'clipchat_errors_total',
            'Errors by code',
            ['code'],
            registry=self.registry,
        )

    def job_started(self) -> float:
        self.jobs_in_flight.inc()
        return time.monotonic()

    def job_finished(
        self,
        operation: str,
        mode: str,
        status: str,
        started: float,
        bytes_in: int = 0,
        bytes_out: int = 0,
    ) -> None:
        self.jobs_in_flight.dec()
        self.operations_total.labels(operation=operation, mode=mode, status=status).inc()
        self.operation_duration_seconds.labels(operation=operation, mode=mode).observe(time.monotonic() - started)
        if bytes_in:
            self.bytes_processed_total.labels(direction='in').inc(bytes_in)
        if bytes_out:
            self.bytes_processed_total.labels(direction='out').inc(bytes_out)

    def record_error(self, code: str) -> None:
        self.errors_total.labels(code=code).inc()
