"""
Metrics Collection with Prometheus.

Exposes purchase-flow metrics for monitoring.
"""

import time
from enum import Enum

from prometheus_client import Counter, Histogram, Info

from iap_credits.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    PLATFORM = "platform"
    OUTCOME = "outcome"


class PurchaseMetrics:
    """
    Centralized metrics for the purchase flow.

    Covers:
    - Purchase attempts by platform and outcome
    - Store verification latency
    - Credits issued
    - Audit writes that failed
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""
        self.service_info = Info(
            "iap_credits_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        self.purchases_total = Counter(
            "iap_purchases_total",
            "Total purchase attempts by outcome",
            [MetricLabels.PLATFORM, MetricLabels.OUTCOME],
        )

        self.verification_duration_seconds = Histogram(
            "iap_verification_duration_seconds",
            "Store verification duration in seconds",
            [MetricLabels.PLATFORM],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.credits_issued_total = Counter(
            "iap_credits_issued_total",
            "Total credits issued to users",
            [MetricLabels.PLATFORM],
        )

        self.failed_transaction_writes_total = Counter(
            "iap_failed_transaction_writes_total",
            "Failure records that could not be persisted",
        )

    def record_purchase(self, platform: str, outcome: str) -> None:
        """Record one purchase attempt."""
        if settings.metrics_enabled:
            self.purchases_total.labels(platform=platform, outcome=outcome).inc()

    def record_credits_issued(self, platform: str, amount: int) -> None:
        """Record credits applied to a balance."""
        if settings.metrics_enabled:
            self.credits_issued_total.labels(platform=platform).inc(amount)

    def record_failed_transaction_write(self) -> None:
        """Record an audit write that was dropped."""
        if settings.metrics_enabled:
            self.failed_transaction_writes_total.inc()


# Global metrics instance
metrics = PurchaseMetrics()


class track_verification:
    """
    Context manager for timing a store verification call.

    Usage:
        with track_verification("ios"):
            valid = await verifier.verify(token, product_id)
    """

    def __init__(self, platform: str) -> None:
        self.platform = platform
        self.start_time: float = 0.0

    def __enter__(self) -> "track_verification":
        """Start tracking."""
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Record duration, including failed calls."""
        if settings.metrics_enabled:
            metrics.verification_duration_seconds.labels(platform=self.platform).observe(
                time.perf_counter() - self.start_time
            )
