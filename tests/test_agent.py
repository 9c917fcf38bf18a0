"""Tests for the agent orchestrator loop"""
import asyncio
import time
from datetime import date

import pytest

from agents.agent import AgentOrchestrator
from agents.tools import COMPUTE_STATS, FIND_SCENES, LOCATE, RENDER_IMAGE
from agents.transcript import IMAGE_PLACEHOLDER, AgentComplete, AgentError, Message
from providers.models import LocationResult, ProviderError, SceneDescriptor

from fakes import ScriptedModel, call, mock_registry, stats_response, text

IOWA = LocationResult(
    display_name="Iowa, United States",
    bbox=[-96.6397, 40.3755, -90.1401, 43.5012],
    place_id="297041",
)
IOWA_SCENE = SceneDescriptor(id="S2B_MSIL2A_20240728", timestamp="2024-07-28T17:05:12Z", cloud_cover=2.1)


def ask(question: str) -> list[Message]:
    return [Message(role="user", content=question)]


async def collect(orchestrator: AgentOrchestrator, messages: list[Message]) -> list:
    return [event async for event in orchestrator.stream(messages)]


def last_results(messages: list[Message]) -> list:
    return [inv.result for inv in messages[-1].tool_invocations]


class TestIowaScenario:
    """Question about a named place runs locate, findScenes, then stats and image"""

    @pytest.fixture
    def clients(self, sample_stats):
        registry, geocoder, sentinel = mock_registry()
        geocoder.lookup_location.return_value = IOWA
        sentinel.search_scenes.return_value = IOWA_SCENE
        sentinel.get_vegetation_stats.return_value = stats_response(sample_stats)
        sentinel.render_image.return_value = b"\x89PNG"
        return registry, geocoder, sentinel

    @pytest.fixture
    def model(self):
        def search(messages):
            bbox = last_results(messages)[0]["bbox"]
            return [call(FIND_SCENES, {"bbox": bbox, "dateRange": {"from": "2024-06-30", "to": "2024-07-30"}})]

        def analyse(messages):
            found = last_results(messages)[0]
            bbox = messages[-2].tool_invocations[0].result["bbox"]
            return [
                call(COMPUTE_STATS, {"bbox": bbox, "date": found["timestamp"]}, "call_stats"),
                call(RENDER_IMAGE, {"bbox": bbox, "date": found["timestamp"]}, "call_image"),
            ]

        def answer(messages):
            stats = last_results(messages)[0]
            return [text(f"On 2024-07-28 the mean NDVI was {stats['mean']}, "), text("which indicates healthy crops.")]

        return ScriptedModel([[call(LOCATE, {"query": "Iowa"})], search, analyse, answer])

    @pytest.mark.asyncio
    async def test_full_workflow(self, clients, model):
        registry, geocoder, sentinel = clients
        orchestrator = AgentOrchestrator(model, registry)

        result = await orchestrator.run(ask("How healthy is the vegetation in Iowa?"))

        assert isinstance(result, AgentComplete)
        assert result.finish_reason == "stop"
        assert result.steps == 4
        assert "0.71" in result.final_message
        assert "2024-07-28" in result.final_message

        geocoder.lookup_location.assert_called_once_with("Iowa")
        bbox, date_range = sentinel.search_scenes.call_args[0]
        assert bbox.as_list() == IOWA.bbox
        assert date_range.start == date(2024, 6, 30)
        _, stats_day = sentinel.get_vegetation_stats.call_args[0]
        assert stats_day == date(2024, 7, 28)

    @pytest.mark.asyncio
    async def test_image_delivered_but_hidden_from_model(self, clients, model):
        registry, _, _ = clients
        orchestrator = AgentOrchestrator(model, registry)

        result = await orchestrator.run(ask("Show me Iowa"))

        assert len(result.images) == 1
        assert result.images[0].startswith("data:image/png;base64,")
        image_invocation = model.calls[3][-1].tool_invocations[1]
        assert image_invocation.result["imageDataUrl"] == result.images[0]
        assert image_invocation.model_payload()["imageDataUrl"] == IMAGE_PLACEHOLDER

    @pytest.mark.asyncio
    async def test_event_sequence(self, clients, model):
        registry, _, _ = clients
        events = await collect(AgentOrchestrator(model, registry), ask("Iowa?"))

        types = [event.type for event in events]
        assert types[:3] == ["tool_start", "tool_complete", "step_complete"]
        assert types[-1] == "complete"
        assert types.count("step_complete") == 4
        assert types.count("text_delta") == 2
        step_of = {e.tool_name: e.step for e in events if e.type == "tool_start"}
        assert step_of == {LOCATE: 1, FIND_SCENES: 2, COMPUTE_STATS: 3, RENDER_IMAGE: 3}

    @pytest.mark.asyncio
    async def test_transcript_of_new_messages(self, clients, model):
        registry, _, _ = clients
        messages = ask("Iowa?")

        result = await AgentOrchestrator(model, registry).run(messages)

        assert len(messages) == 1
        assert [len(m.tool_invocations) for m in result.messages] == [1, 1, 2, 0]
        assert all(m.role == "assistant" for m in result.messages)


class TestStepBudget:

    @pytest.mark.asyncio
    async def test_stops_after_max_steps(self):
        registry, geocoder, _ = mock_registry()
        geocoder.lookup_location.return_value = IOWA
        model = ScriptedModel([[call(LOCATE, {"query": "Iowa"})]])

        result = await AgentOrchestrator(model, registry, max_steps=5).run(ask("loop forever"))

        assert len(model.calls) == 5
        assert result.finish_reason == "step_budget"
        assert result.steps == 5
        assert geocoder.lookup_location.call_count == 5

    def test_rejects_zero_budget(self):
        registry, _, _ = mock_registry()
        with pytest.raises(ValueError):
            AgentOrchestrator(ScriptedModel([[]]), registry, max_steps=0)

    @pytest.mark.asyncio
    async def test_plain_answer_is_one_step(self):
        registry, _, _ = mock_registry()
        model = ScriptedModel([[text("Hello! Ask me about a field.")]])

        result = await AgentOrchestrator(model, registry).run(ask("hi"))

        assert result.steps == 1
        assert result.finish_reason == "stop"
        assert result.final_message == "Hello! Ask me about a field."
        assert result.images == []


class TestToolFailures:

    @pytest.mark.asyncio
    async def test_provider_error_is_shown_to_model(self):
        registry, _, sentinel = mock_registry()
        sentinel.search_scenes.side_effect = ProviderError("Sentinel Hub Catalog search failed (503): down")
        model = ScriptedModel([
            [call(FIND_SCENES, {"bbox": IOWA.bbox, "dateRange": {"from": "2024-06-30", "to": "2024-07-30"}})],
            [text("The imagery service is unavailable right now.")],
        ])

        result = await AgentOrchestrator(model, registry).run(ask("Iowa?"))

        seen = model.calls[1][-1].tool_invocations[0].model_payload()
        assert "503" in seen["error"]
        assert result.finish_reason == "stop"
        assert result.final_message == "The imagery service is unavailable right now."

    @pytest.mark.asyncio
    async def test_invalid_arguments_are_tool_errors(self):
        registry, _, sentinel = mock_registry()
        model = ScriptedModel([
            [call(COMPUTE_STATS, {"bbox": [1, 2, 3], "date": "2024-07-28"})],
            [text("I need a full bounding box.")],
        ])

        events = await collect(AgentOrchestrator(model, registry), ask("stats"))

        errors = [e for e in events if e.type == "tool_error"]
        assert len(errors) == 1
        assert "Invalid arguments" in errors[0].error
        invocation = model.calls[1][-1].tool_invocations[0]
        assert invocation.state == "errored"
        assert "error" in invocation.model_payload()
        sentinel.get_vegetation_stats.assert_not_called()

    @pytest.mark.asyncio
    async def test_unknown_tool_does_not_abort(self):
        registry, _, _ = mock_registry()
        model = ScriptedModel([[call("launchRocket", {})], [text("Sorry, I can't do that.")]])

        result = await AgentOrchestrator(model, registry).run(ask("launch"))

        assert isinstance(result, AgentComplete)
        assert result.messages[0].tool_invocations[0].state == "errored"


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_results_keep_request_order(self):
        registry, geocoder, _ = mock_registry()

        def lookup(query):
            if query == "slow":
                time.sleep(0.2)
            return IOWA

        geocoder.lookup_location.side_effect = lookup
        model = ScriptedModel([
            [call(LOCATE, {"query": "slow"}, "first"), call(LOCATE, {"query": "fast"}, "second")],
            [text("done")],
        ])

        events = await collect(AgentOrchestrator(model, registry), ask("two places"))

        starts = [e.call_id for e in events if e.type == "tool_start"]
        completions = [e.call_id for e in events if e.type == "tool_complete"]
        assert starts == ["first", "second"]
        assert completions == ["second", "first"]
        complete = events[-1]
        assert [inv.call_id for inv in complete.messages[0].tool_invocations] == ["first", "second"]


class TestTermination:

    @pytest.mark.asyncio
    async def test_model_failure_ends_with_error(self):
        registry, _, _ = mock_registry()
        model = ScriptedModel([], error=RuntimeError("quota exceeded"))

        result = await AgentOrchestrator(model, registry).run(ask("hi"))

        assert isinstance(result, AgentError)
        assert result.incomplete is True
        assert "quota exceeded" in result.error

    @pytest.mark.asyncio
    async def test_timeout_ends_with_error(self):
        registry, _, _ = mock_registry()
        model = ScriptedModel([[text("too late")]], delay=1.0)

        result = await AgentOrchestrator(model, registry, request_timeout=0.05).run(ask("hi"))

        assert isinstance(result, AgentError)
        assert "timed out" in result.error

    @pytest.mark.asyncio
    async def test_empty_transcript(self):
        registry, _, _ = mock_registry()
        with pytest.raises(ValueError):
            await AgentOrchestrator(ScriptedModel([[]]), registry).run([])

    @pytest.mark.asyncio
    async def test_system_prompt_is_dated(self):
        registry, _, _ = mock_registry()
        model = ScriptedModel([[text("ok")]])

        await AgentOrchestrator(model, registry).run(ask("hi"))

        assert date.today().isoformat() in model.systems[0]
        assert "findScenes" in model.systems[0]


class TestCancellation:

    @pytest.mark.asyncio
    async def test_closing_stream_stops_the_loop(self):
        registry, geocoder, _ = mock_registry()

        def lookup(query):
            time.sleep(0.05)
            return IOWA

        geocoder.lookup_location.side_effect = lookup
        model = ScriptedModel([[call(LOCATE, {"query": "Iowa"})]])
        stream = AgentOrchestrator(model, registry, max_steps=5).stream(ask("where is Iowa"))

        async for event in stream:
            if event.type == "step_complete":
                break
        await stream.aclose()

        turns = len(model.calls)
        await asyncio.sleep(0.4)
        assert len(model.calls) == turns
        assert turns < 5
