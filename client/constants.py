"""
Shared constants used across the client and ui packages.

Centralises magic numbers, endpoint paths, and tunables so they live in
exactly one place.
"""

# ---------------------------------------------------------------------------
# Measurement service endpoints
# ---------------------------------------------------------------------------

DEFAULT_BASE_URL = "http://localhost:5000/api"
DOWNLOAD_PATH = "/speedtest/download"
UPLOAD_PING_PATH = "/speedtest/upload_ping"

BASE_URL_ENV = "WARPSPEED_BASE_URL"
CONFIG_ENV = "WARPSPEED_CONFIG"

COMMON_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "warpspeed/0.1",
}

# ---------------------------------------------------------------------------
# Timing
# ---------------------------------------------------------------------------

SETTLE_SECONDS = 2.0             # pause after each phase so its result shows
REQUEST_TIMEOUT = 120.0          # seconds; the service measures server-side
CONNECT_TIMEOUT = 10.0

MIN_FPS = 1
MAX_FPS = 120
DEFAULT_FPS = 30

# ---------------------------------------------------------------------------
# Starfield
# ---------------------------------------------------------------------------

MAX_DEPTH = 1000.0
PIXELS_PER_PARTICLE = 500        # one particle per 500 px of viewport area
MIN_PARTICLE_SIZE = 1.0
MAX_PARTICLE_SIZE = 3.0
FADE_ALPHA = 0.1                 # previous frame keeps 90 % of its intensity

REFERENCE_FPS = 60.0
RUNNING_SPEED = 5 * REFERENCE_FPS   # depth units per second
IDLE_SPEED = 1 * REFERENCE_FPS

# Terminal cells are mapped onto a virtual pixel grid.
CELL_WIDTH_PX = 8
CELL_HEIGHT_PX = 16

# ---------------------------------------------------------------------------
# Gauge
# ---------------------------------------------------------------------------

SPIN_STEP_DEGREES = 15.0
SPIN_TICK_SECONDS = 0.016
DEGREES_PER_MBPS = 3.6           # 100 Mbps sweeps the whole dial
MAX_GAUGE_ANGLE = 359.0
