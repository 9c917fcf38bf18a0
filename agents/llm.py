"""Language model backends for the agent loop

A backend takes the system policy, the transcript and the tool declarations
and streams back text deltas and tool call requests for ONE model turn.
Automatic function calling is always disabled: the orchestrator runs tools.
"""

import json
import logging
import os
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Iterable, Optional, Protocol, Union

from google import genai
from google.genai import types
from openai import AsyncOpenAI

from .tools import ToolSpec
from .transcript import Message

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
DEFAULT_OPENAI_MODEL = "gpt-4o"


@dataclass
class ModelTextDelta:
    text: str


@dataclass
class ModelToolCall:
    call_id: str
    name: str
    arguments: Any = field(default_factory=dict)


ModelOutput = Union[ModelTextDelta, ModelToolCall]


class LanguageModel(Protocol):
    """One streamed model turn"""

    def stream_turn(
        self,
        system: str,
        messages: list[Message],
        tools: Iterable[ToolSpec],
    ) -> AsyncIterator[ModelOutput]:
        ...


def new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:12]}"


# Gemini
def to_gemini_contents(messages: list[Message]) -> list[types.Content]:
    """
    Convert the transcript to Gemini contents.

    An assistant message becomes a model turn (text + function_call parts)
    followed by a user turn carrying the function_response parts.
    """
    contents = []
    for message in messages:
        if message.role == "user":
            contents.append(types.Content(role="user", parts=[types.Part(text=message.content)]))
            continue

        parts = []
        if message.content:
            parts.append(types.Part(text=message.content))
        for invocation in message.tool_invocations:
            args = invocation.arguments if isinstance(invocation.arguments, dict) else {}
            parts.append(types.Part(function_call=types.FunctionCall(
                id=invocation.call_id,
                name=invocation.tool_name,
                args=args,
            )))
        if parts:
            contents.append(types.Content(role="model", parts=parts))

        if message.tool_invocations:
            contents.append(types.Content(role="user", parts=[
                types.Part(function_response=types.FunctionResponse(
                    id=invocation.call_id,
                    name=invocation.tool_name,
                    response=invocation.model_payload(),
                ))
                for invocation in message.tool_invocations
            ]))
    return contents


def to_gemini_tools(tools: Iterable[ToolSpec]) -> list[types.Tool]:
    declarations = [
        types.FunctionDeclaration(
            name=tool.name,
            description=tool.description,
            parameters=tool.parameter_schema,
        )
        for tool in tools
    ]
    return [types.Tool(function_declarations=declarations)]


class GeminiModel:
    """Gemini backend (google-genai)"""

    def __init__(self, model: str = DEFAULT_GEMINI_MODEL, api_key: Optional[str] = None,
                 client: Optional[genai.Client] = None):
        if client is None:
            api_key = api_key or os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
            if not api_key:
                raise ValueError("GEMINI_API_KEY not found in environment")
            client = genai.Client(api_key=api_key)
        self.client = client
        self.model = model

    async def stream_turn(self, system, messages, tools):
        config = types.GenerateContentConfig(
            system_instruction=system,
            tools=to_gemini_tools(tools),
            automatic_function_calling=types.AutomaticFunctionCallingConfig(disable=True),
        )
        stream = await self.client.aio.models.generate_content_stream(
            model=self.model,
            contents=to_gemini_contents(messages),
            config=config,
        )
        async for chunk in stream:
            if not chunk.candidates:
                continue
            content = chunk.candidates[0].content
            if not content or not content.parts:
                continue
            for part in content.parts:
                if part.function_call and part.function_call.name:
                    yield ModelToolCall(
                        call_id=part.function_call.id or new_call_id(),
                        name=part.function_call.name,
                        arguments=dict(part.function_call.args or {}),
                    )
                elif part.text and not part.thought:
                    yield ModelTextDelta(part.text)


# OpenAI
def to_openai_messages(system: str, messages: list[Message]) -> list[dict]:
    """Convert the transcript to chat-completions messages."""
    converted = [{"role": "system", "content": system}]
    for message in messages:
        if message.role == "user":
            converted.append({"role": "user", "content": message.content})
            continue
        if not message.content and not message.tool_invocations:
            # null content is only accepted alongside tool_calls
            continue

        entry = {"role": "assistant", "content": message.content or None}
        if message.tool_invocations:
            entry["tool_calls"] = [
                {
                    "id": invocation.call_id,
                    "type": "function",
                    "function": {
                        "name": invocation.tool_name,
                        "arguments": (
                            json.dumps(invocation.arguments)
                            if not isinstance(invocation.arguments, str)
                            else invocation.arguments
                        ),
                    },
                }
                for invocation in message.tool_invocations
            ]
        converted.append(entry)

        for invocation in message.tool_invocations:
            converted.append({
                "role": "tool",
                "tool_call_id": invocation.call_id,
                "content": json.dumps(invocation.model_payload(), default=str),
            })
    return converted


def to_openai_tools(tools: Iterable[ToolSpec]) -> list[dict]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameter_schema,
            },
        }
        for tool in tools
    ]


def parse_tool_arguments(raw: str) -> Any:
    """Decode streamed JSON arguments; undecodable text is passed through for validation to reject."""
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


class OpenAIModel:
    """OpenAI backend (chat completions with streamed tool calls)"""

    def __init__(self, model: str = DEFAULT_OPENAI_MODEL, api_key: Optional[str] = None,
                 client: Optional[AsyncOpenAI] = None):
        if client is None:
            api_key = api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("OPENAI_API_KEY not found in environment")
            client = AsyncOpenAI(api_key=api_key)
        self.client = client
        self.model = model

    async def stream_turn(self, system, messages, tools):
        stream = await self.client.chat.completions.create(
            model=self.model,
            messages=to_openai_messages(system, messages),
            tools=to_openai_tools(tools),
            stream=True,
        )

        # Tool call fragments arrive keyed by index
        pending: dict[int, dict] = {}
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta.content:
                yield ModelTextDelta(delta.content)
            for fragment in delta.tool_calls or []:
                entry = pending.setdefault(fragment.index, {"id": "", "name": "", "arguments": ""})
                if fragment.id:
                    entry["id"] = fragment.id
                if fragment.function:
                    if fragment.function.name:
                        entry["name"] += fragment.function.name
                    if fragment.function.arguments:
                        entry["arguments"] += fragment.function.arguments

        for index in sorted(pending):
            entry = pending[index]
            yield ModelToolCall(
                call_id=entry["id"] or new_call_id(),
                name=entry["name"],
                arguments=parse_tool_arguments(entry["arguments"]),
            )


def create_model(provider: str, gemini_model: str = DEFAULT_GEMINI_MODEL,
                 openai_model: str = DEFAULT_OPENAI_MODEL) -> LanguageModel:
    """`gemini` selects Gemini; anything else selects OpenAI."""
    if (provider or "").lower() == "gemini":
        logger.info(f"[LLM] Using Gemini model {gemini_model}")
        return GeminiModel(model=gemini_model)
    logger.info(f"[LLM] Using OpenAI model {openai_model}")
    return OpenAIModel(model=openai_model)
