"""
Size-request parsing.

Turns the path component of a download request into a validated byte
count.  Nothing here touches the network, so the whole grammar can be
unit-tested directly.
"""
from __future__ import annotations

import re
from dataclasses import dataclass

from .constants import (
    DEFAULT_SIZE_MB,
    MAX_SIZE_MB,
    MIB,
    MIN_SIZE_MB,
    UNIT_MULTIPLIERS,
)

_SIZE_RE = re.compile(r"(\d+)([kmg]?)", re.IGNORECASE | re.ASCII)


class SizeError(ValueError):
    """Raised for a malformed or out-of-range size request."""


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SizeLimits:
    """Accepted size range and the size served for an empty request (MiB)."""

    min_mb: int = MIN_SIZE_MB
    max_mb: int = MAX_SIZE_MB
    default_mb: int = DEFAULT_SIZE_MB

    def __post_init__(self) -> None:
        if self.min_mb < 1:
            raise ValueError("min_mb must be at least 1")
        if not self.min_mb <= self.default_mb <= self.max_mb:
            raise ValueError(
                f"default_mb ({self.default_mb}) must lie within "
                f"[{self.min_mb}, {self.max_mb}]"
            )

    @property
    def min_bytes(self) -> int:
        return self.min_mb * MIB

    @property
    def max_bytes(self) -> int:
        return self.max_mb * MIB


@dataclass(frozen=True)
class SizeRequest:
    """A parsed, in-bounds size request."""

    magnitude: int
    unit: str
    bytes: int

    @property
    def label(self) -> str:
        """Short name used for the download filename, e.g. ``100m``."""
        return f"{self.magnitude}{self.unit}"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_size(path: str, limits: SizeLimits = SizeLimits()) -> SizeRequest:
    """
    Parse *path* (without slashes) into a :class:`SizeRequest`.

    An empty path selects ``limits.default_mb``.  Otherwise the path must be
    an integer with an optional ``k``/``m``/``g`` suffix (case-insensitive,
    binary multiples).  Raises :class:`SizeError` on bad input.
    """
    path = path.strip("/")

    if not path:
        return SizeRequest(
            magnitude=limits.default_mb,
            unit="m",
            bytes=limits.default_mb * MIB,
        )

    m = _SIZE_RE.fullmatch(path)
    if not m:
        raise SizeError(f"malformed size path: {path!r}")

    magnitude = int(m.group(1))
    unit = m.group(2).lower()
    total = magnitude * UNIT_MULTIPLIERS[unit]

    if not limits.min_bytes <= total <= limits.max_bytes:
        raise SizeError(
            f"size out of range: {path} is {total} bytes, "
            f"allowed {limits.min_mb}m-{limits.max_mb}m"
        )

    return SizeRequest(magnitude=magnitude, unit=unit, bytes=total)
