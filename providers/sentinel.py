"""
Sentinel Hub API Client - Catalog, Statistical and Process APIs

All calls share one TokenCache. Every failure (network, HTTP status,
malformed body) is raised as ProviderError; nothing is retried.
"""

import json
import logging
import math
from datetime import datetime, timezone
from typing import Iterable, Optional

import requests

from . import config
from .auth import TokenCache
from .geometry import BoundingBox, DateLike, DateRange, day_end, day_start
from .models import ProviderError, SceneDescriptor, VegetationStatistics

logger = logging.getLogger(__name__)

RENDER_HEALTH_INDEX = "health-index"
RENDER_TRUE_COLOR = "true-color"

# True color: B04 (R), B03 (G), B02 (B) with a 2.5x brightness boost
TRUE_COLOR_EVALSCRIPT = """
//VERSION=3
function setup() {
  return {
    input: ["B02", "B03", "B04"],
    output: { bands: 3, sampleType: "AUTO" }
  };
}
function evaluatePixel(sample) {
  return [2.5 * sample.B04, 2.5 * sample.B03, 2.5 * sample.B02];
}
""".strip()

# NDVI health map: red (bare/stressed) -> green (dense/healthy)
NDVI_IMAGE_EVALSCRIPT = """
//VERSION=3
function setup() {
  return {
    input: [{ bands: ["B04", "B08"] }],
    output: { id: "default", bands: 3 }
  };
}
function evaluatePixel(sample) {
  const sum = sample.B08 + sample.B04;
  const ndvi = sum === 0 ? 0 : (sample.B08 - sample.B04) / sum;
  if (ndvi < -0.2) return [0.8, 0.2, 0.2];
  if (ndvi < 0) return [0.9, 0.5, 0.3];
  if (ndvi < 0.2) return [0.85, 0.6, 0.2];
  if (ndvi < 0.4) return [0.5, 0.7, 0.2];
  if (ndvi < 0.6) return [0.2, 0.75, 0.2];
  return [0.1, 0.6, 0.1];
}
""".strip()

# Single-band NDVI plus a validity mask for the Statistical API
NDVI_STATS_EVALSCRIPT = """
//VERSION=3
function setup() {
  return {
    input: [{ bands: ["B04", "B08", "dataMask"] }],
    output: [
      { id: "ndvi", bands: 1, sampleType: "FLOAT32" },
      { id: "dataMask", bands: 1 }
    ]
  };
}
function evaluatePixel(samples) {
  const sum = samples.B08 + samples.B04;
  const ndvi = sum === 0 ? 0 : (samples.B08 - samples.B04) / sum;
  const valid = samples.dataMask === 1 && sum > 0 ? 1 : 0;
  return { ndvi: [ndvi], dataMask: [valid] };
}
""".strip()

RENDER_EVALSCRIPTS = {
    RENDER_HEALTH_INDEX: NDVI_IMAGE_EVALSCRIPT,
    RENDER_TRUE_COLOR: TRUE_COLOR_EVALSCRIPT,
}

STATS_OUTPUT_ID = "ndvi"
STATS_BAND_KEY = "B0"


def _parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return datetime.min.replace(tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def select_best_scene(
    features: Iterable[dict],
    max_cloud_cover: float = config.MAX_CLOUD_COVER_PERCENT,
) -> Optional[SceneDescriptor]:
    """
    Pick the most recent capture among features under the cloud threshold.

    The catalog already filters on cloud cover; features that still exceed
    the threshold are dropped here as well. Equal timestamps keep their
    input order.
    """
    candidates = []
    for feature in features:
        props = feature.get("properties") or {}
        cloud_cover = props.get("eo:cloud_cover")
        if cloud_cover is not None and cloud_cover >= max_cloud_cover:
            continue
        candidates.append(feature)

    if not candidates:
        return None

    newest_first = sorted(
        candidates,
        key=lambda f: _parse_timestamp((f.get("properties") or {}).get("datetime")),
        reverse=True,
    )
    best = newest_first[0]
    props = best.get("properties") or {}
    return SceneDescriptor(
        id=str(best.get("id", "")),
        timestamp=props.get("datetime", ""),
        cloud_cover=props.get("eo:cloud_cover"),
    )


def _expect(value, kind: type, what: str):
    if not isinstance(value, kind):
        raise ProviderError(f"Sentinel Hub Statistical API returned a malformed body ({what})")
    return value


def extract_ndvi_stats(response: dict) -> Optional[VegetationStatistics]:
    """
    Pull first-interval NDVI stats out of a Statistical API response.

    The band is normally keyed "B0"; otherwise the first band present is used.
    Returns None when the interval has no usable data (missing, or NaN for a
    fully masked day).

    Raises:
        ProviderError: the response does not have the Statistical API shape
    """
    data = _expect(_expect(response, dict, "response").get("data") or [], list, "data")
    if not data:
        return None

    outputs = _expect(_expect(data[0], dict, "interval").get("outputs") or {}, dict, "outputs")
    output = _expect(outputs.get(STATS_OUTPUT_ID) or {}, dict, STATS_OUTPUT_ID)
    bands = _expect(output.get("bands") or {}, dict, "bands")
    if not bands:
        return None

    band = _expect(bands.get(STATS_BAND_KEY) or bands[next(iter(bands))] or {}, dict, "band")
    stats = band.get("stats")
    if not stats:
        return None

    try:
        result = VegetationStatistics.model_validate(stats)
    except ValueError:
        # fully masked days omit some of the fields
        return None

    if not all(math.isfinite(v) for v in (result.mean, result.min, result.max, result.st_dev)):
        return None
    return result


class SentinelHubClient:
    """Sentinel Hub client for catalog search, NDVI statistics and image rendering"""

    def __init__(
        self,
        token_cache: Optional[TokenCache] = None,
        session: Optional[requests.Session] = None,
        catalog_url: str = config.CATALOG_URL,
        statistics_url: str = config.STATISTICS_URL,
        process_url: str = config.PROCESS_URL,
        collection: str = config.COLLECTION_S2L2A,
    ):
        self.session = session or requests.Session()
        self.token_cache = token_cache or TokenCache(session=self.session)
        self.catalog_url = catalog_url
        self.statistics_url = statistics_url
        self.process_url = process_url
        self.collection = collection

    def _post(self, url: str, label: str, accept: str, timeout: int, **kwargs) -> requests.Response:
        token = self.token_cache.get_token()
        headers = {"Authorization": f"Bearer {token}", "Accept": accept}
        if "json" in kwargs:
            headers["Content-Type"] = "application/json"

        try:
            response = self.session.post(url, headers=headers, timeout=timeout, **kwargs)
        except requests.RequestException as e:
            raise ProviderError(f"Sentinel Hub {label} request failed: {e}")

        if not response.ok:
            if response.status_code == 401:
                # revoked or rotated credentials; the next call fetches a new token
                self.token_cache.invalidate()
            raise ProviderError(
                f"Sentinel Hub {label} failed ({response.status_code}): {response.text}"
            )
        return response

    def search_scenes(
        self,
        bbox: BoundingBox,
        date_range: DateRange,
        max_cloud_cover: float = config.MAX_CLOUD_COVER_PERCENT,
        limit: int = config.CATALOG_LIMIT,
    ) -> Optional[SceneDescriptor]:
        """
        Search the Sentinel-2 L2A catalog and return the newest clear scene.

        Args:
            bbox: Area of interest
            date_range: Inclusive calendar range
            max_cloud_cover: Cloud cover threshold in percent (strictly below)
            limit: Catalog page size

        Returns:
            The most recent scene under the threshold, or None when nothing
            matches (an empty catalog answer is not an error).
        """
        payload = {
            "bbox": bbox.as_list(),
            "datetime": date_range.to_interval(),
            "collections": [self.collection],
            "limit": limit,
            "filter-lang": "cql2-json",
            "filter": {
                "op": "<",
                "args": [{"property": "eo:cloud_cover"}, max_cloud_cover],
            },
        }
        logger.info(f"[Sentinel] Catalog search {payload['datetime']} bbox={payload['bbox']}")

        response = self._post(
            self.catalog_url, "Catalog search", "application/geo+json", 15, json=payload
        )
        try:
            features = response.json().get("features") or []
        except (ValueError, AttributeError):
            raise ProviderError("Sentinel Hub Catalog search returned a malformed body")

        scene = select_best_scene(features, max_cloud_cover)
        logger.info(
            f"[Sentinel] {len(features)} feature(s), selected "
            f"{scene.id if scene else 'none'}"
        )
        return scene

    def get_vegetation_stats(self, geometry: dict, date: DateLike) -> dict:
        """
        Request daily NDVI statistics for a GeoJSON polygon from the Statistical API.

        Returns the raw response; use extract_ndvi_stats() to read it.
        """
        payload = {
            "input": {
                "bounds": {
                    "geometry": geometry,
                    "properties": {"crs": config.CRS_WGS84},
                },
                "data": [{
                    "type": self.collection,
                    "dataFilter": {"mosaickingOrder": "leastCC"},
                }],
            },
            "aggregation": {
                "timeRange": {"from": day_start(date), "to": day_end(date)},
                "aggregationInterval": {"of": "P1D"},
                "evalscript": NDVI_STATS_EVALSCRIPT,
                "resx": 100,
                "resy": 100,
            },
            "calculations": {
                "default": {"statistics": {"default": {}}},
            },
        }
        logger.info(f"[Sentinel] Statistics for {day_start(date)}")

        response = self._post(
            self.statistics_url, "Statistical API", "application/json", 30, json=payload
        )
        try:
            body = response.json()
        except ValueError:
            raise ProviderError("Sentinel Hub Statistical API returned a malformed body")
        if not isinstance(body, dict):
            raise ProviderError("Sentinel Hub Statistical API returned a malformed body")
        return body

    def render_image(
        self,
        bbox: BoundingBox,
        date: DateLike,
        width: int = config.DEFAULT_IMAGE_WIDTH,
        height: int = config.DEFAULT_IMAGE_HEIGHT,
        mode: str = RENDER_HEALTH_INDEX,
    ) -> bytes:
        """
        Render a PNG for one day with the Process API.

        Args:
            mode: "health-index" (NDVI red->green) or "true-color"

        Returns:
            Raw PNG bytes
        """
        if mode not in RENDER_EVALSCRIPTS:
            raise ValueError(f"Unknown render mode: {mode}")

        request_body = {
            "input": {
                "bounds": {
                    "properties": {"crs": config.CRS_WGS84},
                    "bbox": bbox.as_list(),
                },
                "data": [{
                    "type": self.collection,
                    "dataFilter": {
                        "timeRange": {"from": day_start(date), "to": day_end(date)},
                    },
                }],
            },
            "output": {
                "width": width,
                "height": height,
                "responses": [{"identifier": "default", "format": {"type": "image/png"}}],
            },
        }
        logger.info(f"[Sentinel] Rendering {mode} {width}x{height} for {day_start(date)}")

        response = self._post(
            self.process_url,
            "Process API",
            "image/png",
            60,
            files={
                "request": (None, json.dumps(request_body), "application/json"),
                "evalscript": (None, RENDER_EVALSCRIPTS[mode], "text/plain"),
            },
        )
        return response.content
