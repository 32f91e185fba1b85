"""Speed test client library -- transfer sessions, estimation, and statistics."""

from .download import (
    ERROR,
    FINISHED,
    IDLE,
    RUNNING,
    STOPPED,
    ThroughputEstimator,
    TransferError,
    TransferSession,
)
from .stats import (
    SpeedSamples,
    calculate_mbps,
    calculate_progress,
    format_bytes,
    format_speed,
    mean_or_zero,
    smooth,
)

__all__ = [
    "ERROR",
    "FINISHED",
    "IDLE",
    "RUNNING",
    "STOPPED",
    "SpeedSamples",
    "ThroughputEstimator",
    "TransferError",
    "TransferSession",
    "calculate_mbps",
    "calculate_progress",
    "format_bytes",
    "format_speed",
    "mean_or_zero",
    "smooth",
]
