"""Agent Orchestrator - bounded tool-calling loop

This is the main entry point for the vegetation health agent. Each step
sends the transcript, the system policy and the tool declarations to the
language model. Tool calls it requests are validated and executed, their
results are appended to the transcript, and the loop continues until the
model answers without tool calls or the step budget runs out.

The loop runs as an asyncio task that puts events on a queue;
AgentOrchestrator.stream() drains that queue for the transport layer.

Call ordering (locate -> findScenes -> computeStats/renderImage) is asked
for in the system prompt only. Tool executions are not gated on it.
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, Optional, Union

from .llm import LanguageModel, ModelTextDelta, ModelToolCall, create_model
from .prompts import get_system_prompt
from .tools import RENDER_IMAGE, ToolRegistry, build_default_registry
from .transcript import (
    AgentComplete,
    AgentError,
    AgentEvent,
    Message,
    StepComplete,
    TextDelta,
    ToolCallResult,
    ToolCallStart,
    ToolInvocation,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 5
DEFAULT_REQUEST_TIMEOUT = 60.0

_DONE = object()


class AgentOrchestrator:
    """
    Drives the model <-> tool loop for one transcript at a time.

    Holds no per-request state, so one instance can serve concurrent
    requests.
    """

    def __init__(
        self,
        model: LanguageModel,
        registry: ToolRegistry,
        system_prompt: Union[str, Callable[[], str], None] = None,
        max_steps: int = DEFAULT_MAX_STEPS,
        request_timeout: Optional[float] = DEFAULT_REQUEST_TIMEOUT,
    ):
        if max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        self.model = model
        self.registry = registry
        self.system_prompt = system_prompt if system_prompt is not None else get_system_prompt
        self.max_steps = max_steps
        self.request_timeout = request_timeout

    def _system(self) -> str:
        if callable(self.system_prompt):
            return self.system_prompt()
        return self.system_prompt

    async def stream(self, messages: list[Message]) -> AsyncIterator[AgentEvent]:
        """
        Run the loop and yield events as they happen.

        The last event is always AgentComplete or AgentError. Closing the
        generator early cancels the loop; tool calls already running in
        worker threads are left to finish.
        """
        if not messages:
            raise ValueError("transcript must contain at least one message")
        if messages[-1].role != "user":
            logger.warning("[Orchestrator] Last message is not from the user")

        queue: asyncio.Queue = asyncio.Queue()
        producer = asyncio.create_task(self._produce(list(messages), queue))
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.request_timeout if self.request_timeout else None

        try:
            while True:
                timeout = None if deadline is None else max(0.0, deadline - loop.time())
                try:
                    event = await asyncio.wait_for(queue.get(), timeout)
                except asyncio.TimeoutError:
                    logger.warning(f"[Orchestrator] Request timed out after {self.request_timeout}s")
                    yield AgentError(error=f"Request timed out after {self.request_timeout:g}s")
                    return

                if event is _DONE:
                    return
                yield event
        finally:
            if not producer.done():
                producer.cancel()

    async def run(self, messages: list[Message]) -> Union[AgentComplete, AgentError]:
        """Run to completion and return the terminal event."""
        last = None
        async for event in self.stream(messages):
            last = event
        return last

    async def _produce(self, transcript: list[Message], queue: asyncio.Queue):
        try:
            await self._run_loop(transcript, queue)
        except asyncio.CancelledError:
            logger.info("[Orchestrator] Loop cancelled")
            raise
        except Exception as e:
            logger.exception("[Orchestrator] Loop failed")
            await queue.put(AgentError(error=f"Agent failed: {e}"))
        finally:
            queue.put_nowait(_DONE)

    async def _run_loop(self, transcript: list[Message], queue: asyncio.Queue):
        system = self._system()
        new_messages: list[Message] = []
        images: list[str] = []
        final_text = ""
        finish_reason = "step_budget"
        step = 0

        for step in range(1, self.max_steps + 1):
            text_parts: list[str] = []
            calls: list[ModelToolCall] = []

            async for output in self.model.stream_turn(system, transcript, self.registry):
                if isinstance(output, ModelTextDelta):
                    if output.text:
                        text_parts.append(output.text)
                        await queue.put(TextDelta(step=step, text=output.text))
                else:
                    calls.append(output)

            logger.info(f"[Orchestrator] Step {step}: {len(calls)} tool call(s)")
            invocations = await self._run_tools(step, calls, queue) if calls else []

            message = Message(role="assistant", content="".join(text_parts), tool_invocations=invocations)
            transcript.append(message)
            new_messages.append(message)
            final_text = message.content
            images.extend(_rendered_images(invocations))

            await queue.put(StepComplete(step=step, tool_calls=len(calls)))

            if not calls:
                finish_reason = "stop"
                break

        if finish_reason == "step_budget":
            logger.info(f"[Orchestrator] Step budget of {self.max_steps} exhausted")

        await queue.put(AgentComplete(
            final_message=final_text,
            steps=step,
            finish_reason=finish_reason,
            images=images,
            messages=new_messages,
        ))

    async def _run_tools(self, step: int, calls: list[ModelToolCall], queue: asyncio.Queue) -> list[ToolInvocation]:
        """Run one turn's tool calls concurrently; results keep request order."""
        for call in calls:
            await queue.put(ToolCallStart(
                step=step,
                call_id=call.call_id,
                tool_name=call.name,
                arguments=call.arguments,
            ))

        async def run_one(call: ModelToolCall) -> ToolInvocation:
            invocation = await self.registry.invoke(call.call_id, call.name, call.arguments)
            await queue.put(ToolCallResult(
                type="tool_complete" if invocation.state == "completed" else "tool_error",
                step=step,
                call_id=invocation.call_id,
                tool_name=invocation.tool_name,
                result=invocation.result,
                error=invocation.error_message,
            ))
            return invocation

        return list(await asyncio.gather(*(run_one(call) for call in calls)))


def _rendered_images(invocations: list[ToolInvocation]) -> list[str]:
    return [
        inv.result["imageDataUrl"]
        for inv in invocations
        if inv.tool_name == RENDER_IMAGE
        and inv.state == "completed"
        and isinstance(inv.result, dict)
        and inv.result.get("imageDataUrl")
    ]


def build_orchestrator(
    provider: str = "gemini",
    gemini_model: Optional[str] = None,
    openai_model: Optional[str] = None,
    max_steps: int = DEFAULT_MAX_STEPS,
    request_timeout: Optional[float] = DEFAULT_REQUEST_TIMEOUT,
    image_width: int = 512,
    image_height: int = 512,
    model: Optional[LanguageModel] = None,
    registry: Optional[ToolRegistry] = None,
) -> AgentOrchestrator:
    """Wire the selected model backend to the live tool registry."""
    if model is None:
        kwargs = {}
        if gemini_model:
            kwargs["gemini_model"] = gemini_model
        if openai_model:
            kwargs["openai_model"] = openai_model
        model = create_model(provider, **kwargs)

    return AgentOrchestrator(
        model=model,
        registry=registry or build_default_registry(image_width, image_height),
        max_steps=max_steps,
        request_timeout=request_timeout,
    )
