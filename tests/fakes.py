"""Test doubles shared across the suite"""
import asyncio
from typing import Any, Callable, Optional, Union
from unittest.mock import MagicMock

from agents.llm import ModelTextDelta, ModelToolCall
from agents.tools import SatelliteTools, build_registry

Turn = Union[list, Callable[[list], list]]


def make_response(status: int = 200, json_data: Any = None, text: str = "", content: bytes = b""):
    """requests.Response stand-in"""
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.text = text
    response.content = content
    if isinstance(json_data, Exception):
        response.json.side_effect = json_data
    else:
        response.json.return_value = json_data
    return response


def text(value: str) -> ModelTextDelta:
    return ModelTextDelta(value)


def call(name: str, arguments: Any, call_id: Optional[str] = None) -> ModelToolCall:
    return ModelToolCall(call_id=call_id or f"call_{name}", name=name, arguments=arguments)


class ScriptedModel:
    """
    LanguageModel that replays scripted turns.

    A turn is a list of outputs, or a callable that receives the
    transcript and returns the list. Once the script runs out the
    last turn repeats.
    """

    def __init__(self, turns: list, delay: float = 0.0, error: Optional[Exception] = None):
        self.turns = turns
        self.delay = delay
        self.error = error
        self.calls: list[list] = []
        self.systems: list[str] = []

    async def stream_turn(self, system, messages, tools):
        index = len(self.calls)
        self.calls.append(list(messages))
        self.systems.append(system)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

        turn = self.turns[min(index, len(self.turns) - 1)]
        outputs = turn(messages) if callable(turn) else turn
        for output in outputs:
            yield output


def mock_registry(geocoder=None, sentinel=None):
    """Registry whose executors call MagicMock provider clients"""
    geocoder = geocoder or MagicMock()
    sentinel = sentinel or MagicMock()
    return build_registry(SatelliteTools(geocoder, sentinel)), geocoder, sentinel


def stats_response(stats: dict, band: str = "B0") -> dict:
    """Statistical API body with one daily interval"""
    return {
        "status": "OK",
        "data": [{
            "interval": {"from": "2024-07-28T00:00:00Z", "to": "2024-07-29T00:00:00Z"},
            "outputs": {"ndvi": {"bands": {band: {"stats": stats}}}},
        }],
    }
