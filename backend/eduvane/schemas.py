from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class Intent(str, Enum):
    ANALYZE = "ANALYZE"
    PRACTICE = "PRACTICE"
    HISTORY = "HISTORY"
    CHAT = "CHAT"
    UNKNOWN = "UNKNOWN"


class Difficulty(str, Enum):
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


DEFAULT_SUBJECT = "General"
DEFAULT_TOPIC = "Undetermined"
DEFAULT_COUNT = 5


class IntentResult(BaseModel):
    """Structured classification handed from Interpretation to Reasoning. Never persisted."""

    model_config = ConfigDict(frozen=True)

    intent: Intent = Intent.UNKNOWN
    subject: str = DEFAULT_SUBJECT
    topic: str = DEFAULT_TOPIC
    difficulty: Difficulty = Difficulty.MEDIUM
    count: int = Field(default=DEFAULT_COUNT, ge=1)

    @classmethod
    def unknown(cls) -> "IntentResult":
        return cls()


class EvaluationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject: str
    topic: str
    score: float = Field(ge=0, le=100)
    feedback: str = Field(min_length=1)
    improvement_steps: List[str] = Field(min_length=1)
    # Self-reported by the model; an opaque ranking signal, not a calibrated probability
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)


class PracticeQuestion(BaseModel):
    id: str
    text: str = Field(min_length=1)
    type: str = "PROBLEM"


class Submission(EvaluationResult):
    id: str
    timestamp: str
    image_url: str | None = None


class PracticeSet(BaseModel):
    id: str
    subject: str
    topic: str
    difficulty: Difficulty = Difficulty.MEDIUM
    questions: List[PracticeQuestion]
    timestamp: str


class CommandRoute(BaseModel):
    """Navigation hint for the command bar; carries no narrative text."""

    intent: Intent
    subject: str
    topic: str


__all__ = [
    "Intent",
    "Difficulty",
    "DEFAULT_SUBJECT",
    "DEFAULT_TOPIC",
    "DEFAULT_COUNT",
    "IntentResult",
    "EvaluationResult",
    "PracticeQuestion",
    "Submission",
    "PracticeSet",
    "CommandRoute",
]
