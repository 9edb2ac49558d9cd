from __future__ import annotations

import pytest

from eduvane.errors import AdapterTransportError, ConfigurationError, PerceptionFailure, PerceptionInputError
from eduvane.services.perception import PERCEPTION_INSTRUCTION, PerceptionService

from tests.fakes import FakeAdapter

pytestmark = pytest.mark.anyio


async def test_extracts_text_with_inline_image_and_fixed_instruction():
    adapter = FakeAdapter(["  144 / 12 = 12\n"])
    service = PerceptionService(adapter, timeout=30)

    text = await service.extract_verbatim(b"jpeg-bytes", "image/jpg")

    assert text == "144 / 12 = 12"
    req = adapter.requests[0]
    assert req.image.data == b"jpeg-bytes"
    assert req.image.mime_type == "image/jpeg"
    assert req.prompt == PERCEPTION_INSTRUCTION
    assert req.timeout == 30
    assert req.response_schema is None


def test_instruction_forbids_correction_and_grading():
    lowered = PERCEPTION_INSTRUCTION.lower()
    assert "do not correct" in lowered
    assert "do not grade" in lowered
    assert "interpret" in lowered


@pytest.mark.parametrize(
    "payload,mime",
    [(b"", "image/png"), (b"%PDF-1.7", "application/pdf"), (b"data", ""), (b"data", "text/plain")],
)
async def test_rejects_bad_input_without_calling_adapter(payload, mime):
    adapter = FakeAdapter()
    service = PerceptionService(adapter)
    with pytest.raises(PerceptionInputError):
        await service.extract_verbatim(payload, mime)
    assert adapter.calls == 0


async def test_adapter_failure_becomes_perception_failure():
    adapter = FakeAdapter([AdapterTransportError("HTTP 503", status_code=503, provider="gemini")])
    service = PerceptionService(adapter)
    with pytest.raises(PerceptionFailure) as exc_info:
        await service.extract_verbatim(b"png", "image/png")
    assert exc_info.value.status_code == 503
    assert isinstance(exc_info.value.__cause__, AdapterTransportError)


async def test_empty_transcription_is_returned_not_raised():
    service = PerceptionService(FakeAdapter(["   \n"]))
    assert await service.extract_verbatim(b"png", "image/png") == ""


async def test_credential_missing_at_call_time_is_not_a_perception_failure():
    adapter = FakeAdapter([ConfigurationError("GEMINI_API_KEY is not configured")])
    with pytest.raises(ConfigurationError) as exc_info:
        await PerceptionService(adapter).extract_verbatim(b"img", "image/png")
    assert not isinstance(exc_info.value, AdapterTransportError)
