"""
Throughput statistics.

Pure functions and a small bounded sample buffer -- no I/O, no side
effects.  Everything here is deterministic and easy to unit-test.
"""
from __future__ import annotations

import statistics
from collections import deque
from typing import Deque, Iterable, List

from .constants import MAX_SAMPLES, MIB, SMOOTHING_FACTOR


# ---------------------------------------------------------------------------
# Sample buffer
# ---------------------------------------------------------------------------

class SpeedSamples:
    """FIFO of the most recent Mbps samples; the oldest is evicted when full."""

    def __init__(self, capacity: int = MAX_SAMPLES) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._samples: Deque[float] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._samples.maxlen or 0

    def add(self, mbps: float) -> None:
        self._samples.append(mbps)

    def mean(self) -> float:
        return statistics.mean(self._samples) if self._samples else 0.0

    def to_list(self) -> List[float]:
        return list(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def __bool__(self) -> bool:
        return bool(self._samples)


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------

def calculate_mbps(num_bytes: int, seconds: float) -> float:
    """Throughput in Mbps (2**20 bits per megabit) for *num_bytes* over *seconds*."""
    if seconds <= 0:
        return 0.0
    return num_bytes * 8 / MIB / seconds


def smooth(current: float, target: float, factor: float = SMOOTHING_FACTOR) -> float:
    """Move *current* a *factor* fraction of the way toward *target*."""
    return current + (target - current) * factor


def calculate_progress(received: int, total: int) -> float:
    """Percent complete, capped at 100."""
    if total <= 0:
        return 100.0
    return min(100.0, received / total * 100)


def mean_or_zero(values: Iterable[float]) -> float:
    values = list(values)
    return statistics.mean(values) if values else 0.0


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.2f} Mbps"


def format_bytes(num_bytes: int) -> str:
    """Human-readable binary size string."""
    if num_bytes >= 1024 * MIB:
        return f"{num_bytes / (1024 * MIB):.2f} GiB"
    if num_bytes >= MIB:
        return f"{num_bytes / MIB:.1f} MiB"
    if num_bytes >= 1024:
        return f"{num_bytes / 1024:.1f} KiB"
    return f"{num_bytes} B"
