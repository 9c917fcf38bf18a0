"""Outbound provider clients: Nominatim geocoding and Sentinel Hub imagery"""

from .auth import TokenCache
from .geocoding import GeocodingClient
from .geometry import BoundingBox, DateRange, polygon_from_bbox
from .models import LocationResult, ProviderError, SceneDescriptor, VegetationStatistics
from .sentinel import SentinelHubClient, extract_ndvi_stats

__all__ = [
    "BoundingBox",
    "DateRange",
    "GeocodingClient",
    "LocationResult",
    "ProviderError",
    "SceneDescriptor",
    "SentinelHubClient",
    "TokenCache",
    "VegetationStatistics",
    "extract_ndvi_stats",
    "polygon_from_bbox",
]
