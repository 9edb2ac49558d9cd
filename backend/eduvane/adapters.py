"""
Model adapter contract shared by the pipeline stages.

Stages depend on `ModelAdapter` only; concrete vendors (Gemini, OpenRouter)
live in their own client modules and are chosen once at start-up by
`build_adapter`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from .errors import ConfigurationError
from .settings import Settings, load_settings


@dataclass(frozen=True)
class InlineImage:
    """Binary image payload sent inline with a request."""

    data: bytes
    mime_type: str


@dataclass(frozen=True)
class GenerationRequest:
    """One call to a generative model.

    Parameters:
        prompt: Instruction text.
        image: Optional inline image placed before the instruction.
        response_schema: Provider-neutral JSON schema for the reply. Types are
            lower-case JSON-schema names; `propertyOrdering` is honoured by
            providers that support it and dropped by the rest.
        thinking_budget: Reasoning effort hint in tokens for slow, high-quality calls.
        timeout: Per-call timeout in seconds; the client default applies when None.
    """

    prompt: str
    image: Optional[InlineImage] = None
    response_schema: Optional[Dict[str, Any]] = None
    thinking_budget: Optional[int] = None
    timeout: Optional[float] = None


class ModelAdapter(Protocol):
    """Single remote generation call; no retries, one typed failure.

    `generate` raises `AdapterTransportError` for every network, HTTP status,
    timeout or envelope failure. The one exception is a credential that is
    missing when the call is made: that raises `ConfigurationError` before any
    request is sent, and stages let it through unwrapped so callers report a
    configuration state rather than a retryable outage.
    """

    model: str

    async def generate(self, request: GenerationRequest) -> str: ...

    async def aclose(self) -> None: ...


ApiKeyLoader = Callable[[], Optional[str]]


def credential_loader(attribute: str) -> ApiKeyLoader:
    """Return a loader that re-reads one credential from configuration on each call."""

    def _load() -> Optional[str]:
        return getattr(load_settings(), attribute)

    return _load


def build_adapter(cfg: Settings, *, model: str) -> ModelAdapter:
    """Instantiate the adapter family selected by `LLM_PROVIDER` for one model tier."""
    # Local imports keep the clients free to import this module.
    if cfg.llm_provider == "openrouter":
        from .openrouter_client import OpenRouterClient

        return OpenRouterClient(model=model, cfg=cfg)
    if cfg.llm_provider == "gemini":
        from .gemini_client import GeminiClient

        return GeminiClient(model=model, cfg=cfg)
    raise ConfigurationError(f"Unknown LLM provider: {cfg.llm_provider!r}")


__all__ = [
    "InlineImage",
    "GenerationRequest",
    "ModelAdapter",
    "ApiKeyLoader",
    "credential_loader",
    "build_adapter",
]
