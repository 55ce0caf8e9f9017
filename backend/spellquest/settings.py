from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
    # Provider can be "vertex" (Vertex AI Express) or "ai_studio" (Generative Language API)
    gemini_provider: str = Field(default="ai_studio", validation_alias="GEMINI_PROVIDER")
    gemini_model: str = Field(default="gemini-2.5-flash", validation_alias="GEMINI_MODEL")
    # Optional: model override for reading-room audio analysis
    gemini_model_audio: str | None = Field(default=None, validation_alias="GEMINI_MODEL_AUDIO")
    vertex_region: str = Field(default="us-central1", validation_alias="GEMINI_VERTEX_REGION")
    vertex_project: str | None = Field(default=None, validation_alias="GEMINI_VERTEX_PROJECT")

    # OpenRouter fallback configuration (optional)
    openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
    openrouter_model: str = Field(default="x-ai/grok-4-fast:free", validation_alias="OPENROUTER_MODEL")
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
    openrouter_referer: str = Field(default="https://localhost", validation_alias="OPENROUTER_HTTP_REFERER")
    openrouter_title: str = Field(default="SpellQuest", validation_alias="OPENROUTER_TITLE")

    # Auth configuration
    jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=120, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")
    # Seed teacher account created alongside the demo classes
    seed_teacher_email: str = Field(default="mr.d@spellquest.school.nz", validation_alias="SEED_TEACHER_EMAIL")
    seed_teacher_password: str = Field(default="spellquest", validation_alias="SEED_TEACHER_PASSWORD")

    # Database
    database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")

    # Record storage: the version tag is embedded in every record key
    storage_version: str = Field(default="v23", validation_alias="STORAGE_VERSION")
    legacy_storage_versions: List[str] = Field(
        default_factory=lambda: ["v22", "v21", "v20", "v19", "v18"],
        validation_alias="LEGACY_STORAGE_VERSIONS",
    )

    # Auth sessions idle longer than this are purged
    session_retention_days: int = Field(default=7, validation_alias="SESSION_RETENTION_DAYS")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # pydantic-settings v2 style config
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
