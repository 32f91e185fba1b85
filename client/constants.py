"""
Shared constants used across all client modules.

Centralises magic numbers, default headers, and tunables so they live in
exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = "speedstream/1.0 (+aiohttp)"

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Accept-Encoding": "identity",   # payload size must equal bytes on the wire
    "Cache-Control": "no-store",
}

# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

DEFAULT_URL = "http://127.0.0.1:8080"

# ---------------------------------------------------------------------------
# Transfer
# ---------------------------------------------------------------------------

MIB = 1024 * 1024
DEFAULT_SIZE_MB = 100
CONNECT_TIMEOUT = 5.0            # seconds
READ_TIMEOUT = 10.0              # seconds of silence before giving up

# ---------------------------------------------------------------------------
# Sampling / smoothing
# ---------------------------------------------------------------------------

SAMPLE_WINDOW = 0.5              # 500 ms between throughput samples
MAX_SAMPLES = 8                  # rolling sample capacity
SMOOTHING_FACTOR = 0.25          # display easing toward the sample mean

# ---------------------------------------------------------------------------
# CLI limits
# ---------------------------------------------------------------------------

MIN_REPEAT = 1
MAX_REPEAT = 1000
MIN_PORT = 1
MAX_PORT = 65535
