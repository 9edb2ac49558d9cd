"""
AI Orchestrator: composes the three stages into the two named pipelines.

Intent:
    Single gateway for model interactions. Stages run strictly in sequence
    because each consumes the previous stage's output; there is no shared
    mutable state between invocations, so independent pipelines may run
    concurrently on one orchestrator.

Failure policy:
    - Transport failures propagate untouched; callers may retry the whole
      pipeline, never a single stage.
    - Empty OCR text aborts Evaluate-Work with PerceptionEmpty before any
      downstream call is made.
    - Cancellation of the awaiting task propagates into the in-flight
      adapter request and yields no result.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from .adapters import ModelAdapter, build_adapter
from .errors import ConfigurationError, PerceptionEmpty
from .schemas import DEFAULT_SUBJECT, CommandRoute, EvaluationResult, PracticeQuestion
from .services import InterpretationService, PerceptionService, ReasoningService
from .settings import Settings, load_settings

logger = logging.getLogger(__name__)

_PLACEHOLDER_KEYS = {"change-me", "changeme", "your-api-key", "your_api_key", "placeholder", "xxx", "none", "null"}
MIN_KEY_LENGTH = 20


def check_configuration(cfg: Settings) -> None:
    """Raise ConfigurationError unless the selected provider is usable.

    Checks the credential is present and minimally well formed and that both
    model tiers are named. No network call is made.
    """
    env_name = "OPENROUTER_API_KEY" if cfg.llm_provider == "openrouter" else "GEMINI_API_KEY"
    key = cfg.api_key
    if not key or not key.strip():
        raise ConfigurationError(f"{env_name} is not configured")
    if key != key.strip() or any(ch.isspace() for ch in key):
        raise ConfigurationError(f"{env_name} must not contain whitespace")
    if key.lower() in _PLACEHOLDER_KEYS or len(key) < MIN_KEY_LENGTH:
        raise ConfigurationError(f"{env_name} looks malformed")
    if not cfg.fast_model or not cfg.reasoning_model:
        raise ConfigurationError("both the fast and the reasoning model identifiers must be set")


class AIOrchestrator:
    def __init__(
        self,
        perception: PerceptionService,
        interpretation: InterpretationService,
        reasoning: ReasoningService,
        *,
        settings_loader: Callable[[], Settings] = load_settings,
        adapters: Optional[List[ModelAdapter]] = None,
    ) -> None:
        self.perception = perception
        self.interpretation = interpretation
        self.reasoning = reasoning
        self._settings_loader = settings_loader
        self._adapters = list(adapters or [])

    @classmethod
    def from_settings(cls, cfg: Settings) -> "AIOrchestrator":
        """Build both adapter tiers and the three stages once, at application start-up."""
        fast = build_adapter(cfg, model=cfg.fast_model)
        strong = build_adapter(cfg, model=cfg.reasoning_model)
        return cls(
            PerceptionService(fast, timeout=cfg.timeout_perception_seconds),
            InterpretationService(
                fast,
                timeout=cfg.timeout_interpretation_seconds,
                max_input_chars=cfg.max_input_chars,
                max_count=cfg.max_practice_items,
            ),
            ReasoningService(
                strong,
                timeout=cfg.timeout_reasoning_seconds,
                thinking_budget=cfg.reasoning_thinking_budget,
                max_input_chars=cfg.max_input_chars,
            ),
            adapters=[fast, strong],
        )

    def check_configuration(self) -> None:
        check_configuration(self._settings_loader())

    def validate_configuration(self) -> bool:
        """Pre-flight check; call before exposing pipeline entry points to users."""
        try:
            self.check_configuration()
        except ConfigurationError as exc:
            logger.warning("configuration invalid: %s", exc)
            return False
        return True

    async def evaluate_work_flow(
        self, image_bytes: bytes, mime_type: str, *, subject_hint: Optional[str] = None
    ) -> EvaluationResult:
        """Perception -> Interpretation -> Reasoning.evaluate."""
        raw_text = await self.perception.extract_verbatim(image_bytes, mime_type)
        if not raw_text.strip():
            logger.info("evaluate-work aborted: perception returned no text")
            raise PerceptionEmpty("no readable text was found in the image")
        context = await self.interpretation.parse_intent(raw_text)
        hint = (subject_hint or "").strip()
        if hint and context.subject == DEFAULT_SUBJECT:
            context = context.model_copy(update={"subject": hint})
        return await self.reasoning.generate_narrative_evaluation(raw_text, context)

    async def generate_practice_flow(self, prompt_text: str) -> List[PracticeQuestion]:
        """Interpretation -> Reasoning.generate_practice_items."""
        context = await self.interpretation.parse_intent(prompt_text)
        return await self.reasoning.generate_practice_items(context)

    async def route_command(self, command: str) -> CommandRoute:
        """Classify a command-bar entry into a navigation hint (Interpretation only)."""
        context = await self.interpretation.parse_intent(command)
        return CommandRoute(intent=context.intent, subject=context.subject, topic=context.topic)

    async def aclose(self) -> None:
        for adapter in self._adapters:
            await adapter.aclose()
