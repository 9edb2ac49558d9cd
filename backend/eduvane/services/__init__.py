"""Pipeline stages. Each wraps exactly one category of remote-model call."""

from .interpretation import InterpretationService
from .perception import PerceptionService
from .reasoning import ReasoningService

__all__ = ["PerceptionService", "InterpretationService", "ReasoningService"]
