"""Application configuration."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"


def _settings_config() -> SettingsConfigDict:
    return SettingsConfigDict(
        env_file=str(_ENV_FILE) if _ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="",
    )


class AWSSettings(BaseSettings):
    """S3 bucket holding uploaded PDFs and the OCR text cache, plus Textract region."""
    region: str = Field(default="ap-south-1", validation_alias="AWS_REGION")
    bucket: str = Field(default="", validation_alias="S3_BUCKET")
    disable_ocr_cache: bool = Field(default=False, validation_alias="DISABLE_OCR_CACHE")

    model_config = _settings_config()


class LLMSettings(BaseSettings):
    """OpenAI-compatible chat completion settings, one model per tier."""
    api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    api_url: str = Field(
        default="https://api.openai.com/v1/chat/completions",
        validation_alias="OPENAI_API_URL",
    )
    model_primary: str = Field(default="gpt-4o-mini", validation_alias="OPENAI_MODEL_PRIMARY")
    model_secondary: str = Field(default="gpt-4.1-mini", validation_alias="OPENAI_MODEL_SECONDARY")
    timeout_ms: int = Field(default=4000, validation_alias="OPENAI_TIMEOUT_MS")
    cache_ttl_sec: int = Field(default=120, validation_alias="OPENAI_EXTRACT_CACHE_TTL_SEC")

    model_config = _settings_config()


class ExtractionSettings(BaseSettings):
    """Text acquisition and windowing knobs."""
    text_mode: Literal["fast", "ocr", "auto"] = Field(default="auto", validation_alias="TEXT_MODE")
    auto_ocr_threshold: int = Field(default=500, validation_alias="AUTO_OCR_THRESHOLD")
    fast_page_limit: Optional[int] = Field(default=4, validation_alias="OPENAI_PAGE_LIMIT")
    ocr_timeout_sec: float = Field(default=120.0, validation_alias="OCR_TIMEOUT_SEC")
    ocr_poll_interval_sec: float = Field(default=2.0, validation_alias="OCR_POLL_INTERVAL_SEC")

    window_max_chars: int = Field(default=8000, validation_alias="WINDOW_MAX_CHARS")
    window_fallback_chars: int = Field(default=4000, validation_alias="WINDOW_FALLBACK_CHARS")
    window_lead_in: int = Field(default=800, validation_alias="WINDOW_LEAD_IN")
    window_tail: int = Field(default=2200, validation_alias="WINDOW_TAIL")

    model_config = _settings_config()


class Settings(BaseSettings):
    """Unified application settings with nested models."""

    app_name: str = Field(default="Policy Intake", validation_alias="APP_NAME")
    app_version: str = "0.1.0"
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    api_v1_prefix: str = "/api/v1"

    aws: AWSSettings = Field(default_factory=lambda: AWSSettings())
    llm: LLMSettings = Field(default_factory=lambda: LLMSettings())
    extraction: ExtractionSettings = Field(default_factory=lambda: ExtractionSettings())

    model_config = _settings_config()

    @property
    def ocr_cache_enabled(self) -> bool:
        return bool(self.aws.bucket) and not self.aws.disable_ocr_cache


def get_settings() -> Settings:
    """Get application settings instance.

    Returns:
        Settings: Application settings loaded from environment
    """
    return Settings()


settings = get_settings()
