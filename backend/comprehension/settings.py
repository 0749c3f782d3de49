from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	# Optional: separate model for grading, which is latency sensitive
	gemini_model_grading: str | None = Field(default=None, validation_alias="GEMINI_MODEL_GRADING")
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")
	gemini_timeout_seconds: float = Field(default=30.0, validation_alias="GEMINI_TIMEOUT_SECONDS")

	# OpenRouter fallback configuration (optional)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model: str = Field(default="x-ai/grok-4-fast:free", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="Reading Comprehension Challenge", validation_alias="OPENROUTER_TITLE")

	# Grading: "semantic" calls the model, "local" uses the answer matcher only
	grader_mode: str = Field(default="semantic", validation_alias="GRADER_MODE")
	# accept_answer | use_local_matcher | reject
	grader_unavailable_policy: str = Field(default="accept_answer", validation_alias="GRADER_UNAVAILABLE_POLICY")
	grader_timeout_seconds: float | None = Field(default=None, validation_alias="GRADER_TIMEOUT_SECONDS")
	matcher_short_token_max: int = Field(default=2, validation_alias="MATCHER_SHORT_TOKEN_MAX")

	question_count: int = Field(default=6, validation_alias="QUESTION_COUNT")

	# Checkpoints older than this are purged at startup; history is kept
	checkpoint_max_age_days: int = Field(default=7, validation_alias="CHECKPOINT_MAX_AGE_DAYS")

	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
