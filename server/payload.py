"""
Synthetic payload generation and streaming.

One chunk buffer is built per request and sliced for every write; the
whole payload is never held in memory.  ``StreamResponse.write`` drains
the transport once its buffer passes the high-water mark, so the loop in
:func:`stream_payload` only produces as fast as the client consumes.
"""
from __future__ import annotations

import logging
import time
from typing import Iterator

from aiohttp import web

from .constants import CHUNK_SIZE, MAX_CHUNK_SIZE, MIB, MIN_CHUNK_SIZE

logger = logging.getLogger(__name__)

_PATTERN = bytes(range(256))


def make_chunk(size: int = CHUNK_SIZE) -> bytes:
    """Return *size* bytes of ``i % 256`` filler."""
    if not MIN_CHUNK_SIZE <= size <= MAX_CHUNK_SIZE:
        raise ValueError(
            f"chunk size must be between {MIN_CHUNK_SIZE} and {MAX_CHUNK_SIZE} bytes"
        )
    whole, rest = divmod(size, len(_PATTERN))
    return _PATTERN * whole + _PATTERN[:rest]


def iter_chunks(total: int, chunk_size: int = CHUNK_SIZE) -> Iterator[memoryview]:
    """Yield views over a single buffer until exactly *total* bytes are produced."""
    if total < 0:
        raise ValueError("total must be non-negative")

    view = memoryview(make_chunk(chunk_size))
    remaining = total
    while remaining > 0:
        n = min(chunk_size, remaining)
        yield view[:n]
        remaining -= n


async def stream_payload(
    response: web.StreamResponse,
    total: int,
    chunk_size: int = CHUNK_SIZE,
) -> int:
    """
    Write *total* bytes to an already-prepared *response*.

    Returns the number of bytes handed to the transport.  A client that goes
    away mid-stream simply ends production early.
    """
    sent = 0
    t0 = time.perf_counter()

    try:
        for chunk in iter_chunks(total, chunk_size):
            await response.write(chunk)
            sent += len(chunk)
        await response.write_eof()
    except ConnectionResetError:
        logger.debug(
            "client disconnected after %.1f MiB of %.1f MiB",
            sent / MIB, total / MIB,
        )
        return sent

    elapsed = time.perf_counter() - t0
    logger.info(
        "streamed %.1f MiB in %.2f s (%.1f Mbps)",
        sent / MIB,
        elapsed,
        (sent * 8 / MIB / elapsed) if elapsed > 0 else 0.0,
    )
    return sent
