"""API request/response models"""
from pydantic import BaseModel, Field
from typing import Optional, Any

from agents.transcript import Message


# Chat API models
class ChatRequest(BaseModel):
    """Conversation transcript submitted by the client"""
    messages: list[Message] = Field(..., min_length=1, max_length=200)


# Satellite API models
class SceneSearchResponse(BaseModel):
    """Direct catalog search result"""
    found: bool
    id: Optional[str] = None
    timestamp: Optional[str] = None
    cloud_cover: Optional[float] = None
    message: Optional[str] = None


class StatsResponse(BaseModel):
    """Direct statistics result"""
    raw: dict[str, Any]
    ndvi_stats: Optional[dict[str, Any]] = None
    for_llm: Optional[str] = None
