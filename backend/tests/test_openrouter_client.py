from __future__ import annotations

import json

import httpx
import pytest

from eduvane.adapters import GenerationRequest, InlineImage, build_adapter
from eduvane.errors import AdapterTransportError
from eduvane.openrouter_client import OpenRouterClient, object_root, to_json_schema
from eduvane.schemas import Intent, IntentResult
from eduvane.services import ReasoningService
from eduvane.settings import Settings

pytestmark = pytest.mark.anyio

OR_KEY = "sk-or-v1-0123456789abcdef0123"


def _cfg() -> Settings:
    return Settings(LLM_PROVIDER="openrouter", OPENROUTER_API_KEY=OR_KEY)


async def test_payload_maps_image_schema_and_reasoning():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"choices": [{"message": {"content": "[]"}}]})

    client = OpenRouterClient(OR_KEY, model="google/gemini-2.5-pro", cfg=_cfg(), transport=httpx.MockTransport(handler))
    schema = {"type": "array", "items": {"type": "object", "propertyOrdering": ["id"], "properties": {"id": {"type": "string"}}}}
    try:
        out = await client.generate(
            GenerationRequest(
                prompt="make questions",
                image=InlineImage(data=b"abc", mime_type="image/jpeg"),
                response_schema=schema,
                thinking_budget=2048,
            )
        )
    finally:
        await client.aclose()
    assert out == "[]"
    sent = seen[0]
    assert sent.headers["Authorization"] == f"Bearer {OR_KEY}"
    body = json.loads(sent.content)
    assert body["model"] == "google/gemini-2.5-pro"
    content = body["messages"][0]["content"]
    assert content[0]["image_url"]["url"].startswith("data:image/jpeg;base64,")
    assert content[1] == {"type": "text", "text": "make questions"}
    sent_schema = body["response_format"]["json_schema"]["schema"]
    # Array replies are requested under an object root
    assert sent_schema["type"] == "object"
    assert sent_schema["required"] == ["questions"]
    assert sent_schema["properties"]["questions"]["type"] == "array"
    assert "propertyOrdering" not in sent_schema["properties"]["questions"]["items"]
    assert body["reasoning"] == {"max_tokens": 2048}


async def test_status_error_is_transport_error():
    client = OpenRouterClient(
        OR_KEY, cfg=_cfg(), transport=httpx.MockTransport(lambda r: httpx.Response(401, text="bad key"))
    )
    try:
        with pytest.raises(AdapterTransportError) as exc_info:
            await client.generate(GenerationRequest(prompt="x"))
    finally:
        await client.aclose()
    assert exc_info.value.status_code == 401
    assert exc_info.value.provider == "openrouter"


async def test_build_adapter_selects_provider():
    adapter = build_adapter(_cfg(), model="some/model")
    try:
        assert isinstance(adapter, OpenRouterClient)
        assert adapter.model == "some/model"
    finally:
        await adapter.aclose()


async def test_object_schemas_are_sent_unwrapped():
    schema = {"type": "object", "properties": {"score": {"type": "number"}}}
    assert object_root(to_json_schema(schema)) == schema


async def test_wrapped_question_reply_is_understood_by_reasoning():
    reply = json.dumps({"questions": [{"id": "a", "text": "Is 7 prime?", "type": "PROBLEM"}]})
    client = OpenRouterClient(
        OR_KEY,
        cfg=_cfg(),
        transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"choices": [{"message": {"content": reply}}]})),
    )
    context = IntentResult(intent=Intent.PRACTICE, subject="Math", topic="Primes", count=3)
    try:
        questions = await ReasoningService(client).generate_practice_items(context)
    finally:
        await client.aclose()
    assert [q.id for q in questions] == ["a"]
