"""
Primary Reasoning stage: the only place user-facing narrative is produced.

Two entry points share the higher-capability adapter:
    - generate_narrative_evaluation: score first, then feedback conditioned on
      that score, then improvement steps.
    - generate_practice_items: questions targeting the classified subject,
      topic, difficulty and count.

Replies in the wrong shape are recovered with defensive defaults so callers
always receive something renderable.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from ..adapters import GenerationRequest, ModelAdapter
from ..errors import ReasoningParseError
from ..json_utils import extract_json_block
from ..schemas import EvaluationResult, IntentResult, PracticeQuestion

logger = logging.getLogger(__name__)

INCONCLUSIVE_FEEDBACK = (
    "Diagnosis inconclusive: we could not produce a reliable assessment of this work. "
    "This says nothing about your ability, so please try again."
)
FALLBACK_STEPS = [
    "Upload a clearer, well-lit photo of your complete work and try again.",
]

EVALUATION_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "score": {"type": "number"},
        "feedback": {"type": "string"},
        "improvement_steps": {"type": "array", "items": {"type": "string"}},
        "confidence_score": {"type": "number"},
    },
    "required": ["score", "feedback", "improvement_steps", "confidence_score"],
    # Generation order: the narrative must be conditioned on the score
    "propertyOrdering": ["score", "feedback", "improvement_steps", "confidence_score"],
}

QUESTIONS_SCHEMA: Dict[str, Any] = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "id": {"type": "string"},
            "text": {"type": "string"},
            "type": {"type": "string"},
        },
        "required": ["id", "text", "type"],
        "propertyOrdering": ["id", "text", "type"],
    },
}


def build_evaluation_prompt(raw_text: str, context: IntentResult) -> str:
    return (
        "Act as an encouraging AI learning assistant reviewing a student's work.\n"
        f"Subject: {context.subject}\n"
        f"Topic: {context.topic}\n\n"
        "Work in this order:\n"
        "1. FIRST decide a score from 0 to 100 based on accuracy and understanding.\n"
        "2. THEN write conversational, encouraging feedback (max 3 sentences) that is consistent with that score "
        "and names specific conceptual or procedural errors, if any.\n"
        "3. List exactly 3 clear, actionable improvement steps.\n"
        "4. Give confidence_score between 0 and 1 for how certain you are of this assessment "
        "(lower it when the transcription is incomplete or ambiguous).\n\n"
        "Maintain a non-judgmental tone. Do not claim absolute authority; present the assessment as a suggestion.\n"
        "The transcription below is verbatim OCR and may contain recognition noise.\n\n"
        "Return ONLY a JSON object with keys in this order: score, feedback, improvement_steps, confidence_score.\n\n"
        f"Student work (verbatim transcription):\n\"\"\"\n{raw_text}\n\"\"\""
    )


def build_questions_prompt(context: IntentResult) -> str:
    return (
        f"Generate {context.count} {context.difficulty.value} level practice questions for "
        f"{context.subject} on the topic of \"{context.topic}\".\n"
        "Each question must be self-contained and answerable without extra material.\n"
        "Label each question with a type such as PROBLEM, ESSAY, ANALYSIS or SHORT_ANSWER.\n"
        "Return ONLY a JSON array of objects with keys: id, text, type. "
        "Order the array in the sequence the questions should be presented."
    )


def _safe_float(value: Any) -> Optional[float]:
    try:
        if value is None or isinstance(value, bool):
            return None
        result = float(value)
    except (TypeError, ValueError):
        return None
    if result != result:  # NaN
        return None
    return result


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def coerce_evaluation(data: Any, context: IntentResult) -> EvaluationResult:
    """Build an EvaluationResult from a decoded reply, defaulting field by field.

    Raises:
        ReasoningParseError: the reply is not a JSON object.
    """
    if not isinstance(data, dict):
        raise ReasoningParseError(f"expected a JSON object, got {type(data).__name__}")

    score = _safe_float(data.get("score"))
    feedback = data.get("feedback")
    feedback = feedback.strip() if isinstance(feedback, str) else ""
    steps_raw = data.get("improvement_steps", data.get("improvementSteps"))
    steps: List[str] = []
    if isinstance(steps_raw, list):
        steps = [str(s).strip() for s in steps_raw if isinstance(s, (str, int, float)) and str(s).strip()]
    confidence = _safe_float(data.get("confidence_score", data.get("confidenceScore")))

    if score is None or not feedback:
        # Without a score the narrative has nothing to be consistent with
        logger.warning("reasoning reply missing score or feedback; applying defaults")
        score, feedback, confidence = 0.0, INCONCLUSIVE_FEEDBACK, 0.0
    return EvaluationResult(
        subject=context.subject,
        topic=context.topic,
        score=_clamp(score, 0.0, 100.0),
        feedback=feedback,
        improvement_steps=steps or list(FALLBACK_STEPS),
        confidence_score=_clamp(confidence if confidence is not None else 0.0, 0.0, 1.0),
    )


def inconclusive_evaluation(context: IntentResult) -> EvaluationResult:
    return EvaluationResult(
        subject=context.subject,
        topic=context.topic,
        score=0.0,
        feedback=INCONCLUSIVE_FEEDBACK,
        improvement_steps=list(FALLBACK_STEPS),
        confidence_score=0.0,
    )


def coerce_questions(data: Any, *, limit: int) -> List[PracticeQuestion]:
    """Normalize a decoded reply into at most `limit` questions, preserving order.

    Raises:
        ReasoningParseError: neither an array nor an object holding a `questions` array.
    """
    items = data.get("questions") if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise ReasoningParseError("expected a JSON array of questions")

    questions: List[PracticeQuestion] = []
    seen_ids: set[str] = set()
    for item in items:
        if len(questions) >= limit:
            break
        if isinstance(item, str):
            item = {"text": item}
        if not isinstance(item, dict):
            continue
        text = item.get("text")
        if not isinstance(text, str) or not text.strip():
            continue
        qid = str(item.get("id") or "").strip()
        if not qid or qid in seen_ids:
            qid = f"q{len(questions) + 1}"
            while qid in seen_ids:
                qid = f"{qid}-{len(seen_ids)}"
        seen_ids.add(qid)
        qtype = str(item.get("type") or "").strip().upper() or "PROBLEM"
        questions.append(PracticeQuestion(id=qid, text=text.strip(), type=qtype))
    return questions


class ReasoningService:
    def __init__(
        self,
        adapter: ModelAdapter,
        *,
        timeout: Optional[float] = None,
        thinking_budget: Optional[int] = None,
        max_input_chars: int = 8000,
    ) -> None:
        self._adapter = adapter
        self._timeout = timeout
        self._thinking_budget = thinking_budget
        self._max_input_chars = max_input_chars

    async def generate_narrative_evaluation(self, raw_text: str, context: IntentResult) -> EvaluationResult:
        text = raw_text or ""
        if len(text) > self._max_input_chars:
            text = text[: self._max_input_chars]
        request = GenerationRequest(
            prompt=build_evaluation_prompt(text, context),
            response_schema=EVALUATION_SCHEMA,
            thinking_budget=self._thinking_budget,
            timeout=self._timeout,
        )
        started = time.perf_counter()
        raw = await self._adapter.generate(request)
        elapsed = time.perf_counter() - started
        try:
            try:
                data = extract_json_block(raw)
            except ValueError as exc:
                raise ReasoningParseError(str(exc)) from exc
            result = coerce_evaluation(data, context)
        except ReasoningParseError as exc:
            logger.warning("evaluation reply unparseable, returning inconclusive result: %s", exc)
            return inconclusive_evaluation(context)
        logger.info(
            "evaluation done model=%s score=%.1f elapsed=%.2fs", self._adapter.model, result.score, elapsed
        )
        return result

    async def generate_practice_items(self, context: IntentResult) -> List[PracticeQuestion]:
        request = GenerationRequest(
            prompt=build_questions_prompt(context),
            response_schema=QUESTIONS_SCHEMA,
            timeout=self._timeout,
        )
        started = time.perf_counter()
        raw = await self._adapter.generate(request)
        elapsed = time.perf_counter() - started
        try:
            try:
                data = extract_json_block(raw)
            except ValueError as exc:
                raise ReasoningParseError(str(exc)) from exc
            questions = coerce_questions(data, limit=context.count)
        except ReasoningParseError as exc:
            logger.warning("question reply unparseable, returning no questions: %s", exc)
            return []
        if len(questions) < context.count:
            logger.info("model returned %d of %d requested questions", len(questions), context.count)
        logger.info("questions done model=%s items=%d elapsed=%.2fs", self._adapter.model, len(questions), elapsed)
        return questions
