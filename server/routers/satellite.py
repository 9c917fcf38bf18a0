"""Direct satellite endpoints (no language model involved)

ProviderError is not handled here; the app turns it into a 502.
"""
import json
import logging
from datetime import date as Date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response

from providers import BoundingBox, DateRange, SentinelHubClient, extract_ndvi_stats
from providers.geometry import parse_date
from ..dependencies import get_sentinel_client
from ..models import SceneSearchResponse, StatsResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/satellite", tags=["satellite"])

USAGE = {
    "search": "GET ?action=search&bbox=minLon,minLat,maxLon,maxLat&from=YYYY-MM-DD&to=YYYY-MM-DD",
    "ndviImage": "GET ?action=ndvi-image&bbox=...&date=YYYY-MM-DD&width=512&height=512",
    "stats": "GET ?action=stats&geometry=<GeoJSON Polygon string>&date=YYYY-MM-DD",
}

MIN_IMAGE_SIZE = 64
MAX_IMAGE_SIZE = 1024


def parse_bbox(value: Optional[str]) -> BoundingBox:
    if not value:
        raise HTTPException(400, "Missing bbox (minLon,minLat,maxLon,maxLat)")
    try:
        return BoundingBox.from_sequence([float(v) for v in value.split(",")])
    except ValueError as e:
        raise HTTPException(400, f"Invalid bbox (minLon,minLat,maxLon,maxLat): {e}")


def parse_day(value: Optional[str], name: str) -> Date:
    if not value:
        raise HTTPException(400, f"Missing {name}")
    try:
        return parse_date(value)
    except ValueError:
        raise HTTPException(400, f"Invalid {name}, expected YYYY-MM-DD")


def parse_polygon(value: Optional[str]) -> dict:
    if not value:
        raise HTTPException(400, "Missing geometry (JSON) for stats")
    try:
        polygon = json.loads(value)
    except json.JSONDecodeError:
        raise HTTPException(400, "Invalid geometry JSON")
    if not isinstance(polygon, dict) or polygon.get("type") != "Polygon" \
            or not isinstance(polygon.get("coordinates"), list):
        raise HTTPException(400, "geometry must be a GeoJSON Polygon")
    return polygon


def clamp_size(value: Optional[int]) -> int:
    return min(MAX_IMAGE_SIZE, max(MIN_IMAGE_SIZE, value or 512))


def describe_ndvi(mean: float) -> str:
    if mean < 0.3:
        return "Low vegetation index may indicate stress or drought."
    if mean > 0.6:
        return "Healthy vegetation."
    return "Moderate vegetation cover."


def search(client: SentinelHubClient, bbox: Optional[str], from_: Optional[str], to: Optional[str]):
    box = parse_bbox(bbox)
    start, end = parse_day(from_, "from"), parse_day(to, "to")
    try:
        date_range = DateRange(start, end)
    except ValueError as e:
        raise HTTPException(400, str(e))

    scene = client.search_scenes(box, date_range)
    if scene is None:
        return SceneSearchResponse(found=False, message="No suitable image found")
    return SceneSearchResponse(found=True, id=scene.id, timestamp=scene.timestamp, cloud_cover=scene.cloud_cover)


def ndvi_image(client: SentinelHubClient, bbox: Optional[str], day: Optional[str],
               width: Optional[int], height: Optional[int]) -> Response:
    box = parse_bbox(bbox)
    png = client.render_image(box, parse_day(day, "date"), clamp_size(width), clamp_size(height))
    return Response(content=png, media_type="image/png")


def stats(client: SentinelHubClient, geometry: Optional[str], day: Optional[str]) -> StatsResponse:
    when = parse_day(day, "date")
    raw = client.get_vegetation_stats(parse_polygon(geometry), when)

    ndvi = extract_ndvi_stats(raw)
    if ndvi is None:
        logger.info(f"[Satellite] No NDVI statistics for {when}")
        return StatsResponse(raw=raw)

    summary = (
        f"Mean NDVI: {ndvi.mean:.3f}, Min: {ndvi.min:.3f}, Max: {ndvi.max:.3f}, "
        f"StdDev: {ndvi.st_dev:.3f}. {describe_ndvi(ndvi.mean)}"
    )
    return StatsResponse(raw=raw, ndvi_stats=ndvi.model_dump(by_alias=True), for_llm=summary)


@router.get("")
def satellite(
    action: Optional[str] = None,
    bbox: Optional[str] = None,
    date: Optional[str] = None,
    geometry: Optional[str] = None,
    width: Optional[int] = None,
    height: Optional[int] = None,
    from_: Optional[str] = Query(default=None, alias="from"),
    to: Optional[str] = None,
    client: SentinelHubClient = Depends(get_sentinel_client),
):
    """
    Call the Sentinel Hub clients directly.

    Actions:
    - search: most recent clear scene for bbox and date range
    - ndvi-image: NDVI health map PNG for bbox and date
    - stats: NDVI statistics for a GeoJSON polygon and date
    Without an action, returns usage.
    """
    if action == "search":
        return search(client, bbox, from_, to)
    if action == "ndvi-image":
        return ndvi_image(client, bbox, date, width, height)
    if action == "stats":
        return stats(client, geometry, date)
    return {"usage": USAGE}
