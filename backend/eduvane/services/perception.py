"""
Perception stage: mechanical transcription of an uploaded image.

The instruction below is fixed. It forbids correction, grading and
interpretation, and callers have no way to extend or replace it.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from ..adapters import GenerationRequest, InlineImage, ModelAdapter
from ..errors import AdapterTransportError, PerceptionFailure, PerceptionInputError

logger = logging.getLogger(__name__)

SUPPORTED_IMAGE_TYPES = frozenset({"image/png", "image/jpeg", "image/webp", "image/heic", "image/heif"})

PERCEPTION_INSTRUCTION = (
    "You are an OCR engine. Transcribe ALL visible text and mathematical notation in this image verbatim, "
    "in reading order, preserving line breaks.\n"
    "Rules:\n"
    "- Do NOT correct spelling, grammar, arithmetic or any other mistakes; copy errors exactly as written.\n"
    "- Do NOT grade, score, summarize, explain or interpret the content.\n"
    "- Do NOT add commentary, headings or text that is not in the image.\n"
    "- Mark illegible fragments as [illegible].\n"
    "- If the image contains no text, return an empty response.\n"
    "Return only the transcription."
)


def normalize_mime_type(mime_type: Optional[str]) -> str:
    value = (mime_type or "").split(";", 1)[0].strip().lower()
    if value == "image/jpg":
        return "image/jpeg"
    return value


class PerceptionService:
    def __init__(self, adapter: ModelAdapter, *, timeout: Optional[float] = None) -> None:
        self._adapter = adapter
        self._timeout = timeout

    async def extract_verbatim(self, image_bytes: bytes, mime_type: str) -> str:
        """Return a best-effort verbatim transcription of the image.

        Raises:
            PerceptionInputError: empty payload or a non-image MIME type (PDF included).
            PerceptionFailure: the adapter call failed.
        """
        if not image_bytes:
            raise PerceptionInputError("image payload is empty")
        mime = normalize_mime_type(mime_type)
        if mime not in SUPPORTED_IMAGE_TYPES:
            raise PerceptionInputError(
                f"unsupported media type {mime or '<none>'!r}; expected one of {sorted(SUPPORTED_IMAGE_TYPES)}"
            )
        request = GenerationRequest(
            prompt=PERCEPTION_INSTRUCTION,
            image=InlineImage(data=image_bytes, mime_type=mime),
            timeout=self._timeout,
        )
        started = time.perf_counter()
        try:
            text = await self._adapter.generate(request)
        except AdapterTransportError as exc:
            logger.warning("perception failed model=%s error=%s", self._adapter.model, exc)
            raise PerceptionFailure(str(exc), status_code=exc.status_code, provider=exc.provider) from exc
        logger.info(
            "perception done model=%s chars=%d elapsed=%.2fs",
            self._adapter.model,
            len(text or ""),
            time.perf_counter() - started,
        )
        return (text or "").strip()
