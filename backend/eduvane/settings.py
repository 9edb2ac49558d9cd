from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator

class Settings(BaseSettings):
	# Which adapter family backs both pipeline tiers: "gemini" or "openrouter"
	llm_provider: str = Field(default="gemini", validation_alias="LLM_PROVIDER")

	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	# Fast tier serves Perception + Interpretation, reasoning tier serves Primary Reasoning
	gemini_model_fast: str = Field(default="gemini-2.5-flash-lite", validation_alias="GEMINI_MODEL_FAST")
	gemini_model_reasoning: str = Field(default="gemini-2.5-pro", validation_alias="GEMINI_MODEL_REASONING")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# OpenRouter configuration (only used when LLM_PROVIDER=openrouter)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model_fast: str = Field(default="google/gemini-2.5-flash-lite", validation_alias="OPENROUTER_MODEL_FAST")
	openrouter_model_reasoning: str = Field(default="google/gemini-2.5-pro", validation_alias="OPENROUTER_MODEL_REASONING")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="Eduvane Learning Intelligence", validation_alias="OPENROUTER_TITLE")

	# Per-stage timeouts in seconds; there are no automatic retries anywhere in the pipeline
	timeout_perception_seconds: int = Field(default=30, validation_alias="AI_TIMEOUT_PERCEPTION")
	timeout_interpretation_seconds: int = Field(default=15, validation_alias="AI_TIMEOUT_INTERPRETATION")
	timeout_reasoning_seconds: int = Field(default=60, validation_alias="AI_TIMEOUT_REASONING")
	# Reasoning effort hint for the evaluation call (0 disables thinking on models that allow it)
	reasoning_thinking_budget: int | None = Field(default=2048, validation_alias="AI_REASONING_THINKING_BUDGET")
	# Guard against pathologically large inputs before they reach the adapter
	max_input_chars: int = Field(default=8000, validation_alias="AI_MAX_INPUT_CHARS")
	max_practice_items: int = Field(default=20, validation_alias="AI_MAX_PRACTICE_ITEMS")
	max_upload_bytes: int = Field(default=10 * 1024 * 1024, validation_alias="MAX_UPLOAD_BYTES")

	# Auth configuration
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	access_token_expire_minutes: int = Field(default=120, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")
	# Request budget for newly registered accounts (guests are not metered)
	default_requests_limit: int = Field(default=1000, validation_alias="DEFAULT_REQUESTS_LIMIT")
	# Bounds of the in-memory guest store
	guest_max_records: int = Field(default=50, ge=1, validation_alias="GUEST_MAX_RECORDS")
	guest_max_sessions: int = Field(default=500, ge=1, validation_alias="GUEST_MAX_SESSIONS")
	guest_max_image_bytes: int = Field(default=256 * 1024 * 1024, ge=1, validation_alias="GUEST_MAX_IMAGE_BYTES")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

	@field_validator("timeout_perception_seconds", "timeout_interpretation_seconds", "timeout_reasoning_seconds")
	@classmethod
	def _timeout_in_range(cls, value: int) -> int:
		if value <= 0 or value > 300:
			raise ValueError(f"timeout out of range (1..300), got: {value}")
		return value

	@field_validator("llm_provider")
	@classmethod
	def _known_provider(cls, value: str) -> str:
		value = (value or "").strip().lower()
		if value not in {"gemini", "openrouter"}:
			raise ValueError("LLM_PROVIDER must be 'gemini' or 'openrouter'")
		return value

	@property
	def api_key(self) -> str | None:
		"""Credential of the currently selected provider."""
		if self.llm_provider == "openrouter":
			return self.openrouter_api_key
		return self.gemini_api_key

	@property
	def fast_model(self) -> str:
		return self.openrouter_model_fast if self.llm_provider == "openrouter" else self.gemini_model_fast

	@property
	def reasoning_model(self) -> str:
		return self.openrouter_model_reasoning if self.llm_provider == "openrouter" else self.gemini_model_reasoning


def load_settings() -> Settings:
	"""Read configuration afresh; used wherever a value must not be cached (e.g. credentials)."""
	return Settings()


settings = load_settings()
