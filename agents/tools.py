"""Tool registry: the four capabilities the agent can call

Each tool is a closed variant: a name, a JSON parameter schema shown to the
model, a pydantic model that validates the model's arguments, and an async
executor. Executors never raise; provider failures come back as
{"error": message} so the model can explain them to the user.
"""

import asyncio
import base64
import logging
from dataclasses import dataclass
from datetime import date
from types import MappingProxyType
from typing import Annotated, Any, Awaitable, Callable, Iterable, Iterator, Literal, Optional, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictFloat,
    StrictInt,
    ValidationError,
    model_validator,
)

from providers import config as provider_config
from providers.auth import TokenCache
from providers.geocoding import GeocodingClient
from providers.geometry import BoundingBox, DateRange, polygon_from_bbox
from providers.sentinel import RENDER_HEALTH_INDEX, RENDER_TRUE_COLOR, SentinelHubClient, extract_ndvi_stats

from .transcript import ToolInvocation

logger = logging.getLogger(__name__)

LOCATE = "locate"
FIND_SCENES = "findScenes"
COMPUTE_STATS = "computeStats"
RENDER_IMAGE = "renderImage"


class ToolValidationError(ValueError):
    """Arguments did not match the tool's declared shape"""

    def __init__(self, message: str, details: Optional[list[dict]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_payload(self) -> dict:
        return {"error": self.message, "details": self.details}


# Argument types
def _check_bbox(values: list) -> list[float]:
    return BoundingBox.from_sequence(values).as_list()


def _date_part(value: Any) -> Any:
    # findScenes returns full timestamps; tools work on the calendar day
    if isinstance(value, str) and "T" in value:
        return value.split("T")[0]
    return value


BBoxArg = Annotated[
    list[Union[StrictFloat, StrictInt]],
    Field(min_length=4, max_length=4),
    AfterValidator(_check_bbox),
]
DateArg = Annotated[date, BeforeValidator(_date_part)]


class LocateArguments(BaseModel):
    query: str = Field(..., min_length=1)


class DateRangeArguments(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    from_: DateArg = Field(..., alias="from")
    to: DateArg

    @model_validator(mode="after")
    def _ordered(self):
        if self.from_ > self.to:
            raise ValueError("dateRange.from must not be after dateRange.to")
        return self


class FindScenesArguments(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    bbox: BBoxArg
    date_range: DateRangeArguments = Field(..., alias="dateRange")


class ComputeStatsArguments(BaseModel):
    bbox: BBoxArg
    date: DateArg


class RenderImageArguments(BaseModel):
    bbox: BBoxArg
    date: DateArg
    mode: Literal["health-index", "true-color"] = RENDER_HEALTH_INDEX


# Parameter schemas shown to the model
_BBOX_SCHEMA = {
    "type": "array",
    "items": {"type": "number"},
    "minItems": 4,
    "maxItems": 4,
    "description": "Bounding box [minLon, minLat, maxLon, maxLat] in WGS84 degrees",
}
_DATE_SCHEMA = {
    "type": "string",
    "description": "Date YYYY-MM-DD; use the date part of a findScenes timestamp",
}

LOCATE_SCHEMA = {
    "type": "object",
    "properties": {
        "query": {
            "type": "string",
            "description": "Place name or address to geocode (e.g. Iowa, Berlin, Nebraska)",
        },
    },
    "required": ["query"],
}
FIND_SCENES_SCHEMA = {
    "type": "object",
    "properties": {
        "bbox": _BBOX_SCHEMA,
        "dateRange": {
            "type": "object",
            "properties": {
                "from": {"type": "string", "description": "Start date YYYY-MM-DD"},
                "to": {"type": "string", "description": "End date YYYY-MM-DD"},
            },
            "required": ["from", "to"],
        },
    },
    "required": ["bbox", "dateRange"],
}
COMPUTE_STATS_SCHEMA = {
    "type": "object",
    "properties": {"bbox": _BBOX_SCHEMA, "date": _DATE_SCHEMA},
    "required": ["bbox", "date"],
}
RENDER_IMAGE_SCHEMA = {
    "type": "object",
    "properties": {
        "bbox": _BBOX_SCHEMA,
        "date": _DATE_SCHEMA,
        "mode": {
            "type": "string",
            "enum": [RENDER_HEALTH_INDEX, RENDER_TRUE_COLOR],
            "description": "health-index (NDVI, red = low, green = high) or true-color. Default health-index",
        },
    },
    "required": ["bbox", "date"],
}


@dataclass(frozen=True)
class ToolSpec:
    """Declarative tool contract shared by the model and the registry"""
    name: str
    description: str
    parameter_schema: dict
    arguments_model: type
    executor: Callable[[Any], Awaitable[dict]]


class ToolRegistry:
    """Immutable name -> ToolSpec mapping with validation and execution"""

    def __init__(self, tools: Iterable[ToolSpec]):
        self._tools = MappingProxyType({tool.name: tool for tool in tools})

    def __iter__(self) -> Iterator[ToolSpec]:
        return iter(self._tools.values())

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> Optional[ToolSpec]:
        return self._tools.get(name)

    def validate(self, name: str, arguments: Any) -> BaseModel:
        """
        Check arguments against the tool's declared shape.

        Raises:
            ToolValidationError: unknown tool, non-object arguments, or
                a missing/mistyped/wrong-length field
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolValidationError(
                f"Unknown tool '{name}'. Available tools: {', '.join(self._tools)}"
            )
        if not isinstance(arguments, dict):
            raise ToolValidationError(f"Arguments for {name} must be a JSON object")

        try:
            return tool.arguments_model.model_validate(arguments)
        except ValidationError as e:
            details = [
                {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
                for err in e.errors()
            ]
            summary = "; ".join(f"{d['loc'] or 'arguments'}: {d['msg']}" for d in details)
            raise ToolValidationError(f"Invalid arguments for {name}: {summary}", details)

    async def invoke(self, call_id: str, name: str, arguments: Any) -> ToolInvocation:
        """Validate and run one tool call. Never raises."""
        try:
            parsed = self.validate(name, arguments)
        except ToolValidationError as e:
            logger.warning(f"[Tools] Rejected {name}: {e.message}")
            return ToolInvocation(
                call_id=call_id,
                tool_name=name,
                arguments=arguments,
                state="errored",
                result=e.to_payload(),
                error_message=e.message,
            )

        logger.debug(f"[Tools] Running {name} with {arguments}")
        try:
            result = await self._tools[name].executor(parsed)
        except Exception as e:
            logger.exception(f"[Tools] {name} raised")
            return ToolInvocation(
                call_id=call_id,
                tool_name=name,
                arguments=arguments,
                state="errored",
                error_message=f"{name} failed: {e}",
            )

        return ToolInvocation(
            call_id=call_id,
            tool_name=name,
            arguments=arguments,
            state="completed",
            result=result,
        )


class SatelliteTools:
    """Executors for the four tools, bound to the provider clients"""

    def __init__(
        self,
        geocoder: GeocodingClient,
        sentinel: SentinelHubClient,
        image_width: int = provider_config.DEFAULT_IMAGE_WIDTH,
        image_height: int = provider_config.DEFAULT_IMAGE_HEIGHT,
    ):
        self.geocoder = geocoder
        self.sentinel = sentinel
        self.image_width = image_width
        self.image_height = image_height

    async def locate(self, args: LocateArguments) -> dict:
        try:
            location = await asyncio.to_thread(self.geocoder.lookup_location, args.query)
        except Exception as e:
            return {"error": str(e) or "Geocoding failed."}

        if location is None:
            return {"error": "Location not found. Please try another name or add more detail."}
        return {
            "displayName": location.display_name,
            "bbox": location.bbox,
            "placeId": location.place_id,
        }

    async def find_scenes(self, args: FindScenesArguments) -> dict:
        bbox = BoundingBox.from_sequence(args.bbox)
        date_range = DateRange(args.date_range.from_, args.date_range.to)
        try:
            scene = await asyncio.to_thread(self.sentinel.search_scenes, bbox, date_range)
        except Exception as e:
            return {"error": str(e) or "Catalog search failed."}

        if scene is None:
            return {
                "found": False,
                "message": "No suitable image found for this area and date range (e.g. cloud cover too high).",
            }
        return {
            "found": True,
            "id": scene.id,
            "timestamp": scene.timestamp,
            "cloudCover": scene.cloud_cover,
        }

    async def compute_stats(self, args: ComputeStatsArguments) -> dict:
        polygon = polygon_from_bbox(BoundingBox.from_sequence(args.bbox))
        try:
            response = await asyncio.to_thread(self.sentinel.get_vegetation_stats, polygon, args.date)
            stats = extract_ndvi_stats(response)
        except Exception as e:
            return {"error": str(e) or "Statistics request failed."}

        if stats is None:
            return {"error": "No NDVI statistics returned for this area/date."}
        return stats.model_dump(by_alias=True)

    async def render_image(self, args: RenderImageArguments) -> dict:
        bbox = BoundingBox.from_sequence(args.bbox)
        try:
            png = await asyncio.to_thread(
                self.sentinel.render_image,
                bbox,
                args.date,
                self.image_width,
                self.image_height,
                args.mode,
            )
        except Exception as e:
            return {"error": str(e) or "Image generation failed."}

        label = "NDVI health map" if args.mode == RENDER_HEALTH_INDEX else "True color image"
        return {
            "success": True,
            "imageDataUrl": f"data:image/png;base64,{base64.b64encode(png).decode('ascii')}",
            "message": f"{label} generated. Describe it to the user or suggest they view it.",
        }


def build_registry(tools: SatelliteTools) -> ToolRegistry:
    """Declare the four tools against a SatelliteTools instance."""
    return ToolRegistry([
        ToolSpec(
            name=LOCATE,
            description=(
                "Look up a place by name (city, region, country) to get its bounding box. "
                "Use when the user mentions a location without coordinates."
            ),
            parameter_schema=LOCATE_SCHEMA,
            arguments_model=LocateArguments,
            executor=tools.locate,
        ),
        ToolSpec(
            name=FIND_SCENES,
            description=(
                "Search the satellite catalog for Sentinel-2 L2A imagery with less than 10% cloud cover "
                "in a bounding box and date range. Returns the most recent clear scene and its capture "
                "timestamp. Use before computeStats or renderImage."
            ),
            parameter_schema=FIND_SCENES_SCHEMA,
            arguments_model=FindScenesArguments,
            executor=tools.find_scenes,
        ),
        ToolSpec(
            name=COMPUTE_STATS,
            description=(
                "Get NDVI statistics (mean, min, max, stDev, sampleCount, noDataCount) for a bounding box "
                "on one date. Only use a date taken from a findScenes timestamp."
            ),
            parameter_schema=COMPUTE_STATS_SCHEMA,
            arguments_model=ComputeStatsArguments,
            executor=tools.compute_stats,
        ),
        ToolSpec(
            name=RENDER_IMAGE,
            description=(
                "Generate a PNG image for a bounding box on one date: an NDVI health map "
                "(red = low vegetation, green = high) or a true color image. Use when the user wants "
                "to see a map. Only use a date taken from a findScenes timestamp."
            ),
            parameter_schema=RENDER_IMAGE_SCHEMA,
            arguments_model=RenderImageArguments,
            executor=tools.render_image,
        ),
    ])


def build_default_registry(
    image_width: int = provider_config.DEFAULT_IMAGE_WIDTH,
    image_height: int = provider_config.DEFAULT_IMAGE_HEIGHT,
    token_cache: Optional[TokenCache] = None,
) -> ToolRegistry:
    """Registry wired to live Nominatim and Sentinel Hub clients."""
    sentinel = SentinelHubClient(token_cache=token_cache or TokenCache())
    return build_registry(SatelliteTools(GeocodingClient(), sentinel, image_width, image_height))
