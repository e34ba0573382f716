"""
Shared constants used across all netcheck modules.

Centralises magic numbers, default headers, and tunables so they live in
exactly one place.
"""

# ---------------------------------------------------------------------------
# HTTP headers
# ---------------------------------------------------------------------------

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/144.0.0.0 Safari/537.36"
)

COMMON_HEADERS = {
    "User-Agent": USER_AGENT,
    "Accept": "*/*",
    "Cache-Control": "no-store",
}

UPLOAD_CONTENT_TYPE = "application/octet-stream"

# ---------------------------------------------------------------------------
# Default endpoints
# ---------------------------------------------------------------------------

DEFAULT_DOWNLOAD_URL = "https://speed.cloudflare.com/__down?bytes=524288000"
DEFAULT_UPLOAD_URL = "https://speed.cloudflare.com/__up"
DEFAULT_LATENCY_URL = "https://speed.cloudflare.com/favicon.ico"
LATENCY_PATH = "/favicon.ico"

PROVIDER_URLS = (
    "https://ipapi.co/json/",
    "https://ipwho.is/",
)

# ---------------------------------------------------------------------------
# Stream limits
# ---------------------------------------------------------------------------

MIN_STREAMS = 1
MAX_STREAMS = 32
DEFAULT_STREAMS = 8

MIN_PASSES = 1
MAX_PASSES = 10
DEFAULT_PASSES = 2

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

DEFAULT_PING_COUNT = 5
PING_PENALTY_MS = 1000.0         # recorded for a failed latency probe
PING_TIMEOUT = 5.0               # seconds, per latency request

DEFAULT_DURATION = 12.0          # seconds per download / upload pass
MIN_DURATION = 1.0
MAX_DURATION = 120.0

WARMUP_SECONDS = 2.0             # buckets in this window are excluded
BUCKET_WIDTH_MS = 250
MIN_ELAPSED_SECONDS = 0.2        # floor for the whole-run average

# ---------------------------------------------------------------------------
# Data transfer
# ---------------------------------------------------------------------------

CHUNK_SIZE = 64 * 1024           # read size and generated upload chunk
UPLOAD_YIELD_INTERVAL = 256 * 1024

# ---------------------------------------------------------------------------
# Run model
# ---------------------------------------------------------------------------

PHASE_WEIGHTS = (
    ("latency", 0.25),
    ("download", 0.35),
    ("upload", 0.30),
    ("finalize", 0.10),
)

HINT_DOWNLINK_SCALE = 10         # browser hints top out near 10 Mbps
SIMULATED_BASELINE_MBPS = 10.0
SIMULATED_UPLOAD_RATIO = 0.7
RAMP_TICK_SECONDS = 0.1
