"""Provider result models"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProviderError(Exception):
    """Uniform failure raised by every provider client (network, HTTP status, payload, auth)."""


class LocationResult(BaseModel):
    """Geocoding match"""
    model_config = ConfigDict(frozen=True)

    display_name: str
    bbox: list[float] = Field(..., min_length=4, max_length=4)  # [min_lon, min_lat, max_lon, max_lat]
    place_id: str


class SceneDescriptor(BaseModel):
    """One catalog capture"""
    id: str
    timestamp: str  # ISO-8601 capture datetime
    cloud_cover: Optional[float] = None


class VegetationStatistics(BaseModel):
    """Aggregate NDVI values over a polygon for one day"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    mean: float
    min: float
    max: float
    st_dev: float = Field(alias="stDev")
    sample_count: Optional[int] = Field(default=None, alias="sampleCount")
    no_data_count: Optional[int] = Field(default=None, alias="noDataCount")
