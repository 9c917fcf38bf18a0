"""Run the vegetation health agent programmatically

Usage:
    python run.py ["question"]

Streams the agent's events to stdout for one question.
"""

import asyncio
import logging
import sys

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


async def main(query: str):
    """Run the agent on a single question and print the stream."""
    from agents import Message, build_orchestrator
    from server.config import settings

    orchestrator = build_orchestrator(
        provider=settings.ai_provider,
        gemini_model=settings.gemini_model,
        openai_model=settings.openai_model,
        max_steps=settings.max_steps,
        request_timeout=settings.request_timeout_seconds,
        image_width=settings.image_width,
        image_height=settings.image_height,
    )

    print(f"Query: {query}\n")
    print("=" * 60)

    async for event in orchestrator.stream([Message(role="user", content=query)]):
        if event.type == "text_delta":
            print(event.text, end="", flush=True)
        elif event.type == "tool_start":
            print(f"\n[{event.tool_name}] {event.arguments}")
        elif event.type in ("tool_complete", "tool_error"):
            result = event.result
            if isinstance(result, dict) and "imageDataUrl" in result:
                result = {**result, "imageDataUrl": f"<{len(result['imageDataUrl'])} chars>"}
            print(f"[{event.tool_name} -> {event.type}] {result if result is not None else event.error}")
        elif event.type == "complete":
            print(f"\n\n[done: {event.finish_reason} after {event.steps} step(s), {len(event.images)} image(s)]")
        elif event.type == "error":
            print(f"\n\n[incomplete: {event.error}]")


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    question = " ".join(sys.argv[1:]) or "How healthy is the vegetation in Iowa right now?"
    asyncio.run(main(question))
