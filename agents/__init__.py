"""Vegetation Health Agent

A single orchestrator drives a language model through a bounded
tool-calling loop:

    User transcript
        │
        ▼
    AgentOrchestrator ── LanguageModel (Gemini or OpenAI)
        │
        ├── locate        (Nominatim geocoding)
        ├── findScenes    (Sentinel Hub Catalog)
        ├── computeStats  (Sentinel Hub Statistical API)
        └── renderImage   (Sentinel Hub Process API)

Usage:
    # HTTP / WebSocket server
    uvicorn server.main:app

    # Programmatic
    from agents import build_orchestrator
"""

from .agent import AgentOrchestrator, build_orchestrator
from .transcript import Message, ToolInvocation

__all__ = ["AgentOrchestrator", "Message", "ToolInvocation", "build_orchestrator"]
