"""Geocoding client for converting place names to bounding boxes

Uses OpenStreetMap Nominatim API (free, no API key required).
Nominatim's usage policy allows one request per second, which is
enforced per process.
"""

import logging
import threading
import time
from typing import Callable, Optional

import requests

from . import config
from .geometry import nominatim_bbox_to_bbox
from .models import LocationResult, ProviderError

logger = logging.getLogger(__name__)


class GeocodingClient:
    """Client for Nominatim place search"""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        url: str = config.NOMINATIM_URL,
        min_interval: float = config.NOMINATIM_RATE_LIMIT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": config.NOMINATIM_USER_AGENT,
            "Accept": "application/json",
        })
        self.url = url
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_request: Optional[float] = None

    def _wait_for_slot(self):
        with self._lock:
            now = self._clock()
            if self._last_request is not None:
                elapsed = now - self._last_request
                if elapsed < self.min_interval:
                    self._sleep(self.min_interval - elapsed)
                    now = self._clock()
            self._last_request = now

    def lookup_location(self, query: str) -> Optional[LocationResult]:
        """
        Look up a place by name (e.g. "Iowa", "Berlin").

        Args:
            query: Free-text place name or address

        Returns:
            LocationResult with the bbox normalized to
            [min_lon, min_lat, max_lon, max_lat], or None when nothing
            usable matched.

        Raises:
            ProviderError: network failure, non-OK status or malformed body
        """
        query = query.strip()
        if not query:
            return None

        self._wait_for_slot()

        params = {
            "q": query,
            "format": "json",
            "limit": 1,
            "addressdetails": 0,
        }

        try:
            response = self.session.get(self.url, params=params, timeout=10)
        except requests.RequestException as e:
            raise ProviderError(f"Geocoding request failed: {e}")

        if not response.ok:
            raise ProviderError(f"Geocoding failed ({response.status_code}): {response.text}")

        try:
            results = response.json()
        except ValueError:
            raise ProviderError("Geocoding returned a malformed body")

        if not isinstance(results, list) or not results:
            logger.info(f"[Geocoding] No match for {query!r}")
            return None

        first = results[0]
        if not isinstance(first, dict):
            raise ProviderError("Geocoding returned a malformed body")

        raw_bbox = first.get("boundingbox")
        if not isinstance(raw_bbox, list) or len(raw_bbox) != 4:
            return None

        try:
            bbox = nominatim_bbox_to_bbox(raw_bbox)
        except ValueError as e:
            logger.warning(f"[Geocoding] Unusable bbox for {query!r}: {e}")
            return None

        return LocationResult(
            display_name=first.get("display_name") or query,
            bbox=bbox.as_list(),
            place_id=str(first.get("place_id", "")),
        )
