"""Chat API endpoints"""
import json
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from agents import AgentOrchestrator
from agents.transcript import AgentEvent, Message
from ..dependencies import get_orchestrator
from ..models import ChatRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


def encode_event(event: AgentEvent) -> str:
    """One NDJSON line"""
    return json.dumps(event.model_dump(mode="json")) + "\n"


async def ndjson_events(orchestrator: AgentOrchestrator, messages: list[Message]) -> AsyncIterator[str]:
    async for event in orchestrator.stream(messages):
        yield encode_event(event)


@router.post("")
async def chat(request: ChatRequest, orchestrator: AgentOrchestrator = Depends(get_orchestrator)):
    """
    Run the agent on a transcript and stream events back.

    The body is newline-delimited JSON: text_delta, tool_start,
    tool_complete/tool_error and step_complete events, ending with
    either `complete` or `error` (incomplete response).
    """
    if request.messages[-1].role != "user":
        raise HTTPException(status_code=400, detail="The last message must be from the user")

    logger.info(f"[Chat] New request with {len(request.messages)} message(s)")
    return StreamingResponse(
        ndjson_events(orchestrator, request.messages),
        media_type="application/x-ndjson",
    )
