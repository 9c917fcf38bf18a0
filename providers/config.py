"""Configuration for satellite and geocoding providers"""

import os

from dotenv import load_dotenv

load_dotenv()

# Sentinel Hub
SENTINEL_HUB_CLIENT_ID = os.getenv("SENTINEL_HUB_CLIENT_ID") or os.getenv("SENTINEL_CLIENT_ID")
SENTINEL_HUB_CLIENT_SECRET = os.getenv("SENTINEL_HUB_CLIENT_SECRET") or os.getenv("SENTINEL_CLIENT_SECRET")

SENTINEL_HUB_BASE_URL = os.getenv("SENTINEL_HUB_BASE_URL", "https://services.sentinel-hub.com")
TOKEN_URL = f"{SENTINEL_HUB_BASE_URL}/auth/realms/main/protocol/openid-connect/token"
CATALOG_URL = f"{SENTINEL_HUB_BASE_URL}/api/v1/catalog/1.0.0/search"
PROCESS_URL = f"{SENTINEL_HUB_BASE_URL}/api/v1/process"
STATISTICS_URL = f"{SENTINEL_HUB_BASE_URL}/api/v1/statistics"

COLLECTION_S2L2A = "sentinel-2-l2a"
CRS_WGS84 = "http://www.opengis.net/def/crs/OGC/1.3/CRS84"
MAX_CLOUD_COVER_PERCENT = 10.0
CATALOG_LIMIT = 50

# Refresh the token when less than this many seconds remain
TOKEN_SAFETY_MARGIN_SECONDS = 60

# Nominatim (OpenStreetMap)
NOMINATIM_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org/search")
NOMINATIM_USER_AGENT = os.getenv(
    "NOMINATIM_USER_AGENT",
    "TerraVision-AI/1.0 (Agronomist Agent; contact@terravision.example)",
)
NOMINATIM_RATE_LIMIT_SECONDS = 1.0

# Default render size
DEFAULT_IMAGE_WIDTH = 512
DEFAULT_IMAGE_HEIGHT = 512
