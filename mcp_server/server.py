"""
Vegetation Health MCP Server

Exposes the agent's four tools (locate, findScenes, computeStats,
renderImage) over MCP so other agents can use them. Every call goes
through the same ToolRegistry as the built-in orchestrator, so argument
validation and error payloads are identical.

Run:
    python -m mcp_server.server
"""

import logging
import uuid
from typing import Optional

from fastmcp import FastMCP

from agents.tools import (
    COMPUTE_STATS,
    FIND_SCENES,
    LOCATE,
    RENDER_IMAGE,
    build_default_registry,
)

logger = logging.getLogger(__name__)

# Initialize MCP server
mcp = FastMCP("Vegetation Health Tools")

registry = build_default_registry()


async def _call(name: str, arguments: dict) -> dict:
    invocation = await registry.invoke(f"mcp_{uuid.uuid4().hex[:12]}", name, arguments)
    return invocation.result if isinstance(invocation.result, dict) else invocation.model_payload()


@mcp.tool(name=LOCATE)
async def locate(query: str) -> dict:
    """
    Look up a place by name to get its bounding box.

    Args:
        query: Place name or address (e.g. "Iowa", "Berlin")

    Returns:
        {"displayName", "bbox": [minLon, minLat, maxLon, maxLat], "placeId"}
        or {"error": message} when nothing matched
    """
    return await _call(LOCATE, {"query": query})


@mcp.tool(name=FIND_SCENES)
async def find_scenes(bbox: list[float], date_from: str, date_to: str) -> dict:
    """
    Find the most recent Sentinel-2 L2A scene with less than 10% cloud cover.

    Args:
        bbox: [minLon, minLat, maxLon, maxLat]
        date_from: Start date YYYY-MM-DD
        date_to: End date YYYY-MM-DD

    Returns:
        {"found": true, "id", "timestamp", "cloudCover"},
        {"found": false, "message"} or {"error"}
    """
    return await _call(FIND_SCENES, {"bbox": bbox, "dateRange": {"from": date_from, "to": date_to}})


@mcp.tool(name=COMPUTE_STATS)
async def compute_stats(bbox: list[float], date: str) -> dict:
    """
    NDVI statistics for a bounding box on one date.

    Use a date returned by findScenes.

    Returns:
        {"mean", "min", "max", "stDev", "sampleCount", "noDataCount"} or {"error"}
    """
    return await _call(COMPUTE_STATS, {"bbox": bbox, "date": date})


@mcp.tool(name=RENDER_IMAGE)
async def render_image(bbox: list[float], date: str, mode: Optional[str] = None) -> dict:
    """
    Render an NDVI health map (or true color image) as a PNG data URL.

    Args:
        bbox: [minLon, minLat, maxLon, maxLat]
        date: YYYY-MM-DD, taken from a findScenes timestamp
        mode: "health-index" (default) or "true-color"

    Returns:
        {"success": true, "imageDataUrl", "message"} or {"error"}
    """
    arguments = {"bbox": bbox, "date": date}
    if mode:
        arguments["mode"] = mode
    return await _call(RENDER_IMAGE, arguments)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    mcp.run()
