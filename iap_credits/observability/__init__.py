"""
Observability module - Logging and Metrics.
"""

from iap_credits.observability.logging import get_logger, log_context, setup_logging
from iap_credits.observability.metrics import metrics, track_verification

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "track_verification",
]
