"""
GridAtlas — Configuration
Environment-driven settings for the data clients, cache and models.

Values are read once at import, after ``.env`` is loaded.  Missing API
tokens are not an error: the affected source serves simulated data.
"""
import os

from dotenv import load_dotenv

load_dotenv()

# ===================================================================
# Credentials
# ===================================================================

NOAA_API_TOKEN = os.getenv("NOAA_API_TOKEN") or None
EIA_API_TOKEN = os.getenv("EIA_API_TOKEN") or None

# ===================================================================
# Logging
# ===================================================================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ===================================================================
# Upstream requests
# ===================================================================

REQUEST_TIMEOUT_SECONDS = float(os.getenv("REQUEST_TIMEOUT_SECONDS", "30"))
MAX_ATTEMPTS = int(os.getenv("MAX_ATTEMPTS", "2"))
RETRY_BACKOFF_SECONDS = float(os.getenv("RETRY_BACKOFF_SECONDS", "1.0"))

# Cache lifetimes
RECORDS_TTL_HOURS = float(os.getenv("RECORDS_TTL_HOURS", "24"))
WEATHER_TTL_HOURS = float(os.getenv("WEATHER_TTL_HOURS", "12"))

# ===================================================================
# Model assumptions
# ===================================================================

CAPACITY_FACTOR = float(os.getenv("CAPACITY_FACTOR", "0.5"))
URBAN_POPULATION_THRESHOLD = int(os.getenv("URBAN_POPULATION_THRESHOLD", "500000"))
URBAN_PREMIUM = float(os.getenv("URBAN_PREMIUM", "1.05"))
ANNUAL_DEMAND_GROWTH = float(os.getenv("ANNUAL_DEMAND_GROWTH", "0.015"))

# ===================================================================
# Validation
# ===================================================================

if not 0 < CAPACITY_FACTOR <= 1:
    raise RuntimeError(f"CAPACITY_FACTOR must be in (0, 1], got {CAPACITY_FACTOR}")
if MAX_ATTEMPTS < 1:
    raise RuntimeError(f"MAX_ATTEMPTS must be >= 1, got {MAX_ATTEMPTS}")
