from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	# Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
	gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
	gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
	gemini_image_model: str = Field(default="gemini-2.5-flash-image", validation_alias="GEMINI_IMAGE_MODEL")
	gemini_tts_model: str = Field(default="gemini-2.5-pro-preview-tts", validation_alias="GEMINI_TTS_MODEL")
	gemini_tts_voice: str = Field(default="Kore", validation_alias="GEMINI_TTS_VOICE")
	# Vertex configuration
	vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
	vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

	# OpenRouter fallback for plain text generation (optional)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	openrouter_model: str = Field(default="x-ai/grok-4-fast:free", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="IGCSE Mandarin Tutor", validation_alias="OPENROUTER_TITLE")

	# OpenAI speech, used for single characters only
	openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")
	openai_base_url: str = Field(default="https://api.openai.com/v1", validation_alias="OPENAI_BASE_URL")
	openai_tts_model: str = Field(default="tts-1", validation_alias="OPENAI_TTS_MODEL")
	openai_tts_voice: str = Field(default="alloy", validation_alias="OPENAI_TTS_VOICE")

	# Rate-limit backoff for generation calls
	ai_retry_attempts: int = Field(default=3, validation_alias="AI_RETRY_ATTEMPTS")
	ai_retry_delay_seconds: float = Field(default=2.0, validation_alias="AI_RETRY_DELAY_SECONDS")

	# Feedback enhancement is best-effort: short timeout, at most one retry
	feedback_timeout_seconds: float = Field(default=8.0, validation_alias="FEEDBACK_TIMEOUT_SECONDS")
	feedback_retries: int = Field(default=1, validation_alias="FEEDBACK_RETRIES")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

	cors_origins: str = Field(default="*", validation_alias="CORS_ORIGINS")
	log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

	@property
	def cors_origin_list(self) -> list[str]:
		return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

settings = Settings()
