"""
Interpretation stage: classify free text (OCR output or a typed command) into
an IntentResult.

Interpretation sits upstream of both pipelines, so a reply in the wrong shape
never raises here: it degrades to the UNKNOWN/General default and is logged.
Transport errors still propagate.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional

from ..adapters import GenerationRequest, ModelAdapter
from ..errors import InterpretationParseError
from ..json_utils import extract_json_block
from ..schemas import (
    DEFAULT_COUNT,
    DEFAULT_SUBJECT,
    DEFAULT_TOPIC,
    Difficulty,
    Intent,
    IntentResult,
)

logger = logging.getLogger(__name__)

INTENT_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "intent": {"type": "string", "enum": [i.value for i in Intent]},
        "subject": {"type": "string"},
        "topic": {"type": "string"},
        "difficulty": {"type": "string", "enum": [d.value for d in Difficulty]},
        "count": {"type": "integer"},
    },
    "required": ["intent", "subject"],
    "propertyOrdering": ["intent", "subject", "topic", "difficulty", "count"],
}


def build_intent_prompt(free_text: str) -> str:
    return (
        "You classify learner input for an educational assistant. Do not answer or evaluate the input.\n"
        "Decide the intent:\n"
        "- ANALYZE: the text is (or asks to evaluate) a piece of student work\n"
        "- PRACTICE: a request for practice questions or exercises\n"
        "- HISTORY: a request to review past work or progress\n"
        "- CHAT: a general question or conversation\n"
        "- UNKNOWN: none of the above\n"
        "Also extract: subject (school subject such as Math, Physics, Biology, English; use General if unclear), "
        "topic (the specific topic; use the subject if unclear), difficulty (Easy, Medium or Hard; Medium if not stated), "
        f"count (number of items requested; {DEFAULT_COUNT} if not stated).\n\n"
        "Return ONLY a JSON object with keys: intent, subject, topic, difficulty, count.\n\n"
        f"Input:\n\"\"\"\n{free_text}\n\"\"\""
    )


def _clean_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def coerce_intent(data: Any, *, max_count: int) -> IntentResult:
    """Validate a decoded reply field by field, defaulting anything outside the schema.

    Raises:
        InterpretationParseError: the reply is not a JSON object at all.
    """
    if not isinstance(data, dict):
        raise InterpretationParseError(f"expected a JSON object, got {type(data).__name__}")

    raw_intent = (_clean_str(data.get("intent")) or "").upper()
    try:
        intent = Intent(raw_intent)
    except ValueError:
        intent = Intent.UNKNOWN

    subject = _clean_str(data.get("subject")) or DEFAULT_SUBJECT
    topic = _clean_str(data.get("topic"))
    if topic is None:
        topic = subject if subject != DEFAULT_SUBJECT else DEFAULT_TOPIC

    raw_difficulty = (_clean_str(data.get("difficulty")) or "").capitalize()
    try:
        difficulty = Difficulty(raw_difficulty)
    except ValueError:
        difficulty = Difficulty.MEDIUM

    try:
        count = int(float(data.get("count")))
    except (TypeError, ValueError, OverflowError):
        count = DEFAULT_COUNT
    if count < 1:
        count = DEFAULT_COUNT
    count = min(count, max_count)

    return IntentResult(intent=intent, subject=subject, topic=topic, difficulty=difficulty, count=count)


class InterpretationService:
    def __init__(
        self,
        adapter: ModelAdapter,
        *,
        timeout: Optional[float] = None,
        max_input_chars: int = 8000,
        max_count: int = 20,
    ) -> None:
        self._adapter = adapter
        self._timeout = timeout
        self._max_input_chars = max_input_chars
        self._max_count = max_count

    async def parse_intent(self, free_text: str) -> IntentResult:
        text = (free_text or "").strip()
        if not text:
            logger.info("interpretation skipped: empty input")
            return IntentResult.unknown()
        if len(text) > self._max_input_chars:
            logger.info("interpretation input truncated from %d to %d chars", len(text), self._max_input_chars)
            text = text[: self._max_input_chars]

        request = GenerationRequest(
            prompt=build_intent_prompt(text),
            response_schema=INTENT_SCHEMA,
            timeout=self._timeout,
        )
        started = time.perf_counter()
        raw = await self._adapter.generate(request)
        elapsed = time.perf_counter() - started
        try:
            try:
                data = extract_json_block(raw)
            except ValueError as exc:
                raise InterpretationParseError(str(exc)) from exc
            result = coerce_intent(data, max_count=self._max_count)
        except InterpretationParseError as exc:
            logger.warning("interpretation reply unparseable, using default: %s", exc)
            return IntentResult.unknown()
        logger.info(
            "interpretation done model=%s intent=%s subject=%s elapsed=%.2fs",
            self._adapter.model,
            result.intent.value,
            result.subject,
            elapsed,
        )
        return result
