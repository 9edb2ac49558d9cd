"""
End-to-end pipeline behaviour with fake adapters on both model tiers.

The fast adapter serves Perception then Interpretation (in that order); the
strong adapter serves Reasoning.
"""
from __future__ import annotations

import asyncio
import json

import pytest

from eduvane.adapters import GenerationRequest
from eduvane.errors import AdapterTransportError, PerceptionEmpty, PerceptionFailure
from eduvane.orchestrator import AIOrchestrator
from eduvane.schemas import Intent
from eduvane.services import InterpretationService, PerceptionService, ReasoningService

from tests.fakes import FakeAdapter

pytestmark = pytest.mark.anyio

LONG_DIVISION_OCR = "  12\n----\n12 ) 144\n   12\n   --\n    24\n    24\n    --\n     0\nAnswer: 12"


def _build(fast: FakeAdapter, strong: FakeAdapter, valid_settings) -> AIOrchestrator:
    return AIOrchestrator(
        PerceptionService(fast),
        InterpretationService(fast),
        ReasoningService(strong),
        settings_loader=lambda: valid_settings,
        adapters=[fast, strong],
    )


async def test_long_division_image_is_scored(valid_settings):
    fast = FakeAdapter(
        [
            LONG_DIVISION_OCR,
            json.dumps({"intent": "ANALYZE", "subject": "Math", "topic": "Long Division"}),
        ]
    )
    strong = FakeAdapter(
        [
            json.dumps(
                {
                    "score": 95,
                    "feedback": "Your long division is accurate and clearly laid out.",
                    "improvement_steps": ["Check with multiplication", "Label remainders", "Try 3-digit divisors"],
                    "confidence_score": 0.82,
                }
            )
        ]
    )
    orchestrator = _build(fast, strong, valid_settings)

    result = await orchestrator.evaluate_work_flow(b"fake-jpeg", "image/jpeg")

    assert 0 <= result.score <= 100
    assert result.feedback
    assert len(result.improvement_steps) >= 1
    assert result.subject == "Math"
    # OCR text flows verbatim into both downstream stages
    assert LONG_DIVISION_OCR.strip() in fast.requests[1].prompt
    assert LONG_DIVISION_OCR.strip() in strong.requests[0].prompt
    assert fast.requests[0].image is not None


@pytest.mark.parametrize("ocr", ["", "   ", "\n\t\n"])
async def test_empty_perception_aborts_before_downstream_calls(ocr, valid_settings):
    fast = FakeAdapter([ocr])
    strong = FakeAdapter()
    orchestrator = _build(fast, strong, valid_settings)

    with pytest.raises(PerceptionEmpty):
        await orchestrator.evaluate_work_flow(b"blank", "image/png")

    assert fast.calls == 1
    assert strong.calls == 0


async def test_perception_failure_stops_pipeline(valid_settings):
    fast = FakeAdapter([AdapterTransportError("HTTP 500", status_code=500)])
    strong = FakeAdapter()
    orchestrator = _build(fast, strong, valid_settings)
    with pytest.raises(PerceptionFailure):
        await orchestrator.evaluate_work_flow(b"img", "image/png")
    assert fast.calls == 1
    assert strong.calls == 0


async def test_interpretation_garbage_still_reaches_reasoning(valid_settings):
    fast = FakeAdapter(["The mitochondria is the powerhouse", "%%% not json"])
    strong = FakeAdapter([json.dumps({"score": 60, "feedback": "Solid recall.", "improvement_steps": ["Add detail"]})])
    orchestrator = _build(fast, strong, valid_settings)

    result = await orchestrator.evaluate_work_flow(b"img", "image/png")

    assert result.subject == "General"
    assert result.score == 60


async def test_subject_hint_replaces_general(valid_settings):
    fast = FakeAdapter(["x = 4", json.dumps({"intent": "ANALYZE", "subject": "General"})])
    strong = FakeAdapter(["not json"])
    orchestrator = _build(fast, strong, valid_settings)

    result = await orchestrator.evaluate_work_flow(b"img", "image/png", subject_hint="Algebra")

    assert result.subject == "Algebra"
    assert "Subject: Algebra" in strong.requests[0].prompt
    assert result.score == 0


async def test_newtons_laws_practice_flow(valid_settings):
    fast = FakeAdapter(
        [json.dumps({"intent": "PRACTICE", "subject": "Physics", "topic": "Newton's Laws", "count": 10})]
    )
    produced = [{"id": f"n{i}", "text": f"Newton question {i}", "type": "PROBLEM"} for i in range(1, 8)]
    strong = FakeAdapter([json.dumps(produced)])
    orchestrator = _build(fast, strong, valid_settings)

    questions = await orchestrator.generate_practice_flow("10 Physics problems on Newton's Laws")

    assert len(questions) == 7
    assert all(q.text for q in questions)
    assert [q.id for q in questions] == [p["id"] for p in produced]
    prompt = strong.requests[0].prompt
    assert "10" in prompt and "Medium" in prompt and "Physics" in prompt and "Newton's Laws" in prompt
    # Re-serialisation keeps presentation order
    assert [q["id"] for q in json.loads(json.dumps([q.model_dump() for q in questions]))] == [p["id"] for p in produced]


async def test_practice_requests_are_independent(valid_settings):
    intent = json.dumps({"intent": "PRACTICE", "subject": "Math", "topic": "Primes", "count": 2})
    fast = FakeAdapter([intent, intent])
    strong = FakeAdapter(
        [
            json.dumps([{"id": "a", "text": "Is 7 prime?"}, {"id": "b", "text": "Is 9 prime?"}]),
            json.dumps([{"id": "c", "text": "List primes below 20."}]),
        ]
    )
    orchestrator = _build(fast, strong, valid_settings)
    first = await orchestrator.generate_practice_flow("2 prime questions")
    second = await orchestrator.generate_practice_flow("2 prime questions")
    assert [q.id for q in first] == ["a", "b"]
    assert [q.id for q in second] == ["c"]


async def test_transport_error_in_reasoning_propagates(valid_settings):
    fast = FakeAdapter([json.dumps({"intent": "PRACTICE", "subject": "Math"})])
    strong = FakeAdapter([AdapterTransportError("quota exceeded", status_code=429)])
    orchestrator = _build(fast, strong, valid_settings)
    with pytest.raises(AdapterTransportError) as exc_info:
        await orchestrator.generate_practice_flow("math practice")
    assert exc_info.value.status_code == 429


async def test_route_command_returns_hint_only(valid_settings):
    fast = FakeAdapter([json.dumps({"intent": "HISTORY", "subject": "Chemistry", "topic": "Acids"})])
    orchestrator = _build(fast, FakeAdapter(), valid_settings)
    route = await orchestrator.route_command("show my chemistry history")
    assert route.intent == Intent.HISTORY
    assert route.model_dump().keys() == {"intent", "subject", "topic"}


async def test_cancellation_propagates_to_inflight_call(valid_settings):
    started = asyncio.Event()
    cancelled = asyncio.Event()

    class SlowAdapter(FakeAdapter):
        async def generate(self, request: GenerationRequest) -> str:
            started.set()
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return "never"

    slow = SlowAdapter(model="slow")
    strong = FakeAdapter()
    orchestrator = _build(slow, strong, valid_settings)
    task = asyncio.ensure_future(orchestrator.evaluate_work_flow(b"img", "image/png"))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert cancelled.is_set()
    assert strong.calls == 0


async def test_aclose_closes_both_adapters(valid_settings):
    fast, strong = FakeAdapter(), FakeAdapter()
    await _build(fast, strong, valid_settings).aclose()
    assert fast.closed and strong.closed
