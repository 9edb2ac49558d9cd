from __future__ import annotations

import pytest
from pydantic import ValidationError

from eduvane.errors import ConfigurationError
from eduvane.orchestrator import AIOrchestrator, check_configuration
from eduvane.services import InterpretationService, PerceptionService, ReasoningService
from eduvane.settings import Settings, load_settings

from tests.conftest import VALID_KEY
from tests.fakes import FakeAdapter


def _orchestrator(loader=load_settings) -> AIOrchestrator:
    adapter = FakeAdapter()
    return AIOrchestrator(
        PerceptionService(adapter),
        InterpretationService(adapter),
        ReasoningService(adapter),
        settings_loader=loader,
    )


def test_valid_gemini_configuration_passes(valid_settings):
    check_configuration(valid_settings)


@pytest.mark.parametrize(
    "key",
    [None, "", "   ", "change-me", "short-key", "AIza with spaces 0123456789abcdef"],
)
def test_missing_or_malformed_key_is_rejected(key):
    cfg = Settings(GEMINI_API_KEY=key, LLM_PROVIDER="gemini")
    with pytest.raises(ConfigurationError):
        check_configuration(cfg)


def test_openrouter_provider_checks_its_own_key():
    cfg = Settings(LLM_PROVIDER="openrouter", GEMINI_API_KEY=VALID_KEY, OPENROUTER_API_KEY=None)
    with pytest.raises(ConfigurationError, match="OPENROUTER_API_KEY"):
        check_configuration(cfg)

    cfg = Settings(LLM_PROVIDER="openrouter", OPENROUTER_API_KEY="sk-or-v1-0123456789abcdef0123")
    check_configuration(cfg)
    assert cfg.fast_model.startswith("google/")


def test_unknown_provider_rejected_at_load():
    with pytest.raises(ValidationError):
        Settings(LLM_PROVIDER="cloud")


@pytest.mark.parametrize("name", ["AI_TIMEOUT_PERCEPTION", "AI_TIMEOUT_INTERPRETATION", "AI_TIMEOUT_REASONING"])
def test_timeouts_out_of_range_rejected(monkeypatch, name):
    monkeypatch.setenv(name, "0")
    with pytest.raises(ValidationError):
        load_settings()


def test_validate_configuration_is_idempotent(monkeypatch):
    orchestrator = _orchestrator()

    monkeypatch.setenv("GEMINI_API_KEY", VALID_KEY)
    assert orchestrator.validate_configuration() is True
    assert orchestrator.validate_configuration() is True

    monkeypatch.delenv("GEMINI_API_KEY")
    assert orchestrator.validate_configuration() is False
    assert orchestrator.validate_configuration() is False


def test_validate_configuration_rereads_environment(monkeypatch):
    orchestrator = _orchestrator()
    monkeypatch.setenv("GEMINI_API_KEY", "placeholder")
    assert orchestrator.validate_configuration() is False
    # Credential rotated in place; no restart required
    monkeypatch.setenv("GEMINI_API_KEY", VALID_KEY)
    assert orchestrator.validate_configuration() is True


@pytest.mark.anyio
async def test_from_settings_splits_model_tiers():
    cfg = Settings(
        GEMINI_API_KEY=VALID_KEY,
        GEMINI_MODEL_FAST="fast-model",
        GEMINI_MODEL_REASONING="strong-model",
    )
    orchestrator = AIOrchestrator.from_settings(cfg)
    try:
        assert orchestrator.perception._adapter.model == "fast-model"
        assert orchestrator.interpretation._adapter is orchestrator.perception._adapter
        assert orchestrator.reasoning._adapter.model == "strong-model"
    finally:
        await orchestrator.aclose()
