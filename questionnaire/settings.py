from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    # Generation backend: "gemini" (REST API) or "huggingface" (local model)
    generation_backend: str = Field(default="gemini", validation_alias="GENERATION_BACKEND")
    gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
    gemini_model: str = Field(default="gemini-1.5-pro-latest", validation_alias="GEMINI_MODEL")
    gemini_base_url: str | None = Field(default=None, validation_alias="GEMINI_BASE_URL")
    hf_model_name: str = Field(default="mistralai/Mistral-7B-Instruct-v0.2", validation_alias="HF_MODEL_NAME")
    hf_load_in_4bit: bool = Field(default=True, validation_alias="HF_LOAD_IN_4BIT")
    hf_device: str = Field(default="cuda", validation_alias="HF_DEVICE")

    # Upper bounds for external calls, in seconds
    generation_timeout_seconds: float = Field(default=30.0, validation_alias="GENERATION_TIMEOUT_SECONDS")
    repository_timeout_seconds: float = Field(default=5.0, validation_alias="REPOSITORY_TIMEOUT_SECONDS")

    # Sliding expiry for abandoned sessions
    session_ttl_seconds: int = Field(default=3600, validation_alias="SESSION_TTL_SECONDS")

    # Admit per-question approval when no fully-approved group exists for a language
    allow_ungrouped_fallback: bool = Field(default=True, validation_alias="ALLOW_UNGROUPED_FALLBACK")

    questions_path: str = Field(default="data/questions.json", validation_alias="QUESTIONS_PATH")
    # Empty string disables submission archiving
    submissions_dir: str = Field(default="outputs/submissions", validation_alias="SUBMISSIONS_DIR")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
