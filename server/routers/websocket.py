"""WebSocket endpoint for streamed chat"""
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from agents import AgentOrchestrator
from ..config import settings
from ..dependencies import get_orchestrator
from ..models import ChatRequest
from ..websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["websocket"])

ws_manager = WebSocketManager(max_connections=settings.max_connections)


@router.websocket("/ws/chat")
async def websocket_chat(websocket: WebSocket, orchestrator: AgentOrchestrator = Depends(get_orchestrator)):
    """
    Streamed chat over a WebSocket.

    Client sends:
    - {"messages": [...]}: run the agent on this transcript
    - {"type": "ping"}: answered with pong

    Server sends the agent events (text_delta, tool_start,
    tool_complete/tool_error, step_complete, complete/error) as JSON
    frames, or `invalid_request` for a malformed transcript.
    """
    if not await ws_manager.connect(websocket):
        return

    try:
        while True:
            data = await websocket.receive_json()

            if isinstance(data, dict) and data.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            try:
                request = ChatRequest.model_validate(data)
            except ValidationError as e:
                await websocket.send_json({"type": "invalid_request", "error": str(e)})
                continue

            if request.messages[-1].role != "user":
                await websocket.send_json({
                    "type": "invalid_request",
                    "error": "The last message must be from the user",
                })
                continue

            async for event in orchestrator.stream(request.messages):
                await ws_manager.send_event(websocket, event)

    except WebSocketDisconnect:
        logger.info("[WebSocket] Client disconnected")
    finally:
        ws_manager.disconnect(websocket)


@router.get("/ws/stats")
async def websocket_stats():
    """Get WebSocket connection statistics"""
    return {
        "total_connections": ws_manager.get_connection_count(),
        "max_connections": ws_manager.max_connections,
    }
