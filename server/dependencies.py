"""Process-wide agent and provider instances"""
from functools import lru_cache

from agents import AgentOrchestrator, build_orchestrator
from agents.tools import SatelliteTools, build_registry
from providers import GeocodingClient, SentinelHubClient, TokenCache

from .config import settings


@lru_cache(maxsize=1)
def get_token_cache() -> TokenCache:
    """Shared Sentinel Hub credential cache"""
    return TokenCache()


@lru_cache(maxsize=1)
def get_sentinel_client() -> SentinelHubClient:
    return SentinelHubClient(token_cache=get_token_cache())


@lru_cache(maxsize=1)
def get_geocoding_client() -> GeocodingClient:
    return GeocodingClient()


@lru_cache(maxsize=1)
def get_orchestrator() -> AgentOrchestrator:
    """Build the orchestrator once; tool declarations never change afterwards."""
    registry = build_registry(SatelliteTools(
        get_geocoding_client(),
        get_sentinel_client(),
        image_width=settings.image_width,
        image_height=settings.image_height,
    ))
    return build_orchestrator(
        provider=settings.ai_provider,
        gemini_model=settings.gemini_model,
        openai_model=settings.openai_model,
        max_steps=settings.max_steps,
        request_timeout=settings.request_timeout_seconds,
        registry=registry,
    )
