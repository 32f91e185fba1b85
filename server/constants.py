"""
In-source limits and defaults for the payload server.

Sizes are expressed in MiB: one "m" in a request path is 1,048,576 bytes.
"""

# ---------------------------------------------------------------------------
# Units (binary convention throughout)
# ---------------------------------------------------------------------------

KIB = 1024
MIB = 1024 * KIB
GIB = 1024 * MIB

UNIT_MULTIPLIERS = {
    "": 1,
    "k": KIB,
    "m": MIB,
    "g": GIB,
}

# ---------------------------------------------------------------------------
# Size bounds
# ---------------------------------------------------------------------------

MIN_SIZE_MB = 10
MAX_SIZE_MB = 1000
DEFAULT_SIZE_MB = 100

# ---------------------------------------------------------------------------
# Chunking
# ---------------------------------------------------------------------------

CHUNK_SIZE = 64 * KIB
MIN_CHUNK_SIZE = 64 * KIB
MAX_CHUNK_SIZE = 1 * MIB

# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
LOCATIONS_URL = "https://speed.cloudflare.com/locations"
UPSTREAM_TIMEOUT = 10.0          # seconds for the /locations proxy

USAGE_TEXT = (
    "Usage:\n"
    "  GET /            speed test page\n"
    "  GET /<n>m        stream <n> MiB of payload (e.g. /100m)\n"
    "  GET /download    stream the default size\n"
    "  GET /locations   upstream location metadata\n"
)
