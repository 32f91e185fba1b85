"""
Download throughput estimator.

A single GET streams a fixed-size payload; every slice handed back by the
response reader is folded into a :class:`TransferSession`.  Throughput is
sampled every ``SAMPLE_WINDOW`` seconds into a bounded FIFO, and the
displayed figure eases toward the sample mean so it does not jitter.

Each call to :meth:`ThroughputEstimator.start` owns its session; the
estimator only keeps a reference so that :meth:`~ThroughputEstimator.stop`
can reach it and so that overlapping starts are refused.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import aiohttp

from .constants import (
    COMMON_HEADERS,
    CONNECT_TIMEOUT,
    DEFAULT_SIZE_MB,
    DEFAULT_URL,
    MIB,
    READ_TIMEOUT,
    SAMPLE_WINDOW,
)
from .stats import SpeedSamples, calculate_mbps, calculate_progress, smooth

logger = logging.getLogger(__name__)

IDLE = "idle"
RUNNING = "running"
FINISHED = "finished"
STOPPED = "stopped"
ERROR = "error"


class TransferError(Exception):
    """The server answered with something other than a payload stream."""

    def __init__(self, status: int, body: str = "") -> None:
        self.status = status
        self.body = body
        detail = f": {body}" if body else ""
        super().__init__(f"HTTP {status}{detail}")


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

@dataclass
class TransferSession:
    """Bookkeeping for one measurement, from start until it ends."""

    url: str
    total_bytes: int
    status: str = IDLE
    bytes_received: int = 0
    window_bytes: int = 0
    window_start: float = 0.0
    started_at: float = 0.0
    ended_at: float = 0.0
    samples: SpeedSamples = field(default_factory=SpeedSamples)
    display_mbps: float = 0.0
    progress: float = 0.0
    error: Optional[str] = None
    cancelled: bool = False
    _task: Optional[asyncio.Task] = field(default=None, repr=False, compare=False)

    # -- Lifecycle ----------------------------------------------------------

    def begin(self, now: float) -> None:
        self.status = RUNNING
        self.started_at = now
        self.window_start = now

    def finish(self, now: float) -> None:
        self.status = FINISHED
        self.progress = 100.0
        self.ended_at = now

    def stop(self, now: float) -> None:
        self.status = STOPPED
        self.ended_at = now

    def fail(self, message: str, now: float) -> None:
        self.status = ERROR
        self.error = message
        self.ended_at = now

    def cancel(self) -> None:
        """Ask the read loop to unwind at its next suspension point."""
        self.cancelled = True
        task = self._task
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

    # -- Measurement --------------------------------------------------------

    def record(self, num_bytes: int, now: float) -> bool:
        """
        Account for *num_bytes* arriving at *now*.

        Returns True when this slice closed a sampling window.
        """
        self.bytes_received += num_bytes
        self.window_bytes += num_bytes

        sampled = False
        elapsed = now - self.window_start
        if elapsed >= SAMPLE_WINDOW:
            self.samples.add(calculate_mbps(self.window_bytes, elapsed))
            self.window_bytes = 0
            self.window_start = now
            sampled = True

        if self.samples:
            self.display_mbps = smooth(self.display_mbps, self.samples.mean())

        self.progress = calculate_progress(self.bytes_received, self.total_bytes)
        return sampled

    # -- Derived values -----------------------------------------------------

    @property
    def duration_s(self) -> float:
        if self.ended_at <= self.started_at:
            return 0.0
        return self.ended_at - self.started_at

    @property
    def average_mbps(self) -> float:
        return calculate_mbps(self.bytes_received, self.duration_s)

    def to_dict(self) -> dict:
        result: dict = {
            "url": self.url,
            "status": self.status,
            "bytes_expected": self.total_bytes,
            "bytes_received": self.bytes_received,
            "duration_s": round(self.duration_s, 3),
            "average_mbps": round(self.average_mbps, 2),
            "display_mbps": round(self.display_mbps, 2),
            "progress": round(self.progress, 1),
            "samples": [round(s, 2) for s in self.samples.to_list()],
        }
        if self.error:
            result["error"] = self.error
        return result


# ---------------------------------------------------------------------------
# Estimator
# ---------------------------------------------------------------------------

class ThroughputEstimator:
    """
    Drives at most one :class:`TransferSession` at a time.

    ``on_progress(percent, display_mbps)`` is called after every received
    slice.  :meth:`stop` cancels the running transfer; the session then ends
    as ``stopped`` rather than ``error``.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_URL,
        size_mb: int = DEFAULT_SIZE_MB,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.size_mb = size_mb
        self.on_progress: Optional[Callable[[float, float], None]] = None
        self._clock = clock
        self._active: Optional[TransferSession] = None

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.size_mb}m"

    @property
    def running(self) -> bool:
        return self._active is not None

    async def start(self) -> Optional[TransferSession]:
        """Run one measurement to completion.  Returns None if one is already running."""
        if self._active is not None:
            logger.debug("measurement already running; start ignored")
            return None

        session = TransferSession(url=self.url, total_bytes=self.size_mb * MIB)
        self._active = session
        session.begin(self._clock())

        try:
            session._task = asyncio.ensure_future(self._read_loop(session))
            await session._task
        except asyncio.CancelledError:
            if not session.cancelled:
                session.fail("cancelled", self._clock())
                raise
            session.stop(self._clock())
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, TransferError) as exc:
            logger.warning("transfer from %s failed: %s", session.url, exc)
            session.fail(f"network error: {exc}", self._clock())
        else:
            if session.cancelled:
                session.stop(self._clock())
            else:
                session.finish(self._clock())
        finally:
            self._active = None

        logger.debug("session ended: %s", session.status)
        return session

    def stop(self) -> bool:
        """Cancel the running session.  Returns False if nothing was running."""
        session = self._active
        if session is None:
            return False
        session.cancel()
        return True

    async def _read_loop(self, session: TransferSession) -> None:
        timeout = aiohttp.ClientTimeout(
            total=None, connect=CONNECT_TIMEOUT, sock_read=READ_TIMEOUT
        )
        async with aiohttp.ClientSession(headers=COMMON_HEADERS, timeout=timeout) as http:
            async with http.get(session.url) as resp:
                if resp.status != 200:
                    body = (await resp.text()).strip()
                    raise TransferError(resp.status, body)

                if resp.content_length:
                    session.total_bytes = resp.content_length

                while not session.cancelled:
                    data = await resp.content.readany()
                    if not data:
                        break

                    session.record(len(data), self._clock())
                    if self.on_progress:
                        self.on_progress(session.progress, session.display_mbps)
