"""
Error taxonomy for the orchestration pipeline.

Two families:
    - "The remote service is unreachable or rejected the call": propagated to
      the caller untouched (AdapterTransportError, PerceptionFailure).
    - "The remote service replied but not in the expected shape": raised by the
      parsers and recovered inside the owning service with safe defaults
      (InterpretationParseError, ReasoningParseError).

Configuration and input problems have their own types so the HTTP layer can
map them to distinct states.
"""

from __future__ import annotations

from typing import Optional


class EduvaneError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(EduvaneError):
    """Missing or malformed credential/model configuration."""


class AdapterTransportError(EduvaneError):
    """Network, auth, HTTP status or timeout failure of a model adapter call.

    Parameters:
        status_code: HTTP status when the remote answered with an error status.
        provider: Adapter family that failed (for logs and API payloads).
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None, provider: Optional[str] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider


class PerceptionFailure(AdapterTransportError):
    """Adapter call failed during OCR; the pipeline aborts before Interpretation."""


class PerceptionInputError(EduvaneError, ValueError):
    """Empty image payload or a MIME type the Perception stage does not accept."""


class PerceptionEmpty(EduvaneError):
    """OCR succeeded but produced no usable text."""

    code = "PERCEPTION_EMPTY"


class InterpretationParseError(EduvaneError):
    """Interpretation reply could not be parsed; absorbed into a default IntentResult."""


class ReasoningParseError(EduvaneError):
    """Reasoning reply could not be parsed; absorbed into defensive defaults."""


__all__ = [
    "EduvaneError",
    "ConfigurationError",
    "AdapterTransportError",
    "PerceptionFailure",
    "PerceptionInputError",
    "PerceptionEmpty",
    "InterpretationParseError",
    "ReasoningParseError",
]
