"""TerraVision agent API

Routes:
    POST /api/chat        agent event stream (NDJSON)
    WS   /ws/chat         agent event stream (JSON frames)
    GET  /api/satellite   direct Sentinel Hub access
    GET  /health, /api/config
"""
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

# Provider credentials are read at import time
load_dotenv()

from providers import ProviderError
from providers import config as provider_config
from .config import settings
from .routers import chat, satellite, websocket

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="TerraVision Agent API",
    description="Vegetation health questions answered from Sentinel-2 imagery by a tool-calling agent",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat.router)
app.include_router(satellite.router)
app.include_router(websocket.router)


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    """Upstream (Sentinel Hub / Nominatim) failures are a bad gateway, not a server bug."""
    logger.error(f"[API] {request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "service": "terravision-agent-api",
        "sentinel_credentials": bool(
            provider_config.SENTINEL_HUB_CLIENT_ID and provider_config.SENTINEL_HUB_CLIENT_SECRET
        ),
        "ai_provider": settings.ai_provider,
    }


@app.get("/api/config")
async def get_config():
    """Agent limits and endpoints the frontend needs"""
    return {
        "ai_provider": settings.ai_provider,
        "model": settings.gemini_model if settings.ai_provider == "gemini" else settings.openai_model,
        "max_steps": settings.max_steps,
        "request_timeout_seconds": settings.request_timeout_seconds,
        "image_size": [settings.image_width, settings.image_height],
        "chat_endpoint": "/api/chat",
        "ws_endpoint": f"ws://{settings.host}:{settings.port}/ws/chat",
    }


# Registered last so the API routes win
if settings.frontend_dir.exists():
    app.mount("/", StaticFiles(directory=str(settings.frontend_dir), html=True), name="frontend")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
