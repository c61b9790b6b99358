import logging
from typing import List, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

DEFAULT_RESOLUTIONS = ["low", "medium", "high"]


class StreamProcessingSettings(BaseSettings):
    """
    Limits for stream processing, read from STREAM_* environment variables.

    Out-of-range values are corrected rather than rejected so a bad .env
    never keeps the engine from starting; each correction is logged.
    """

    max_context_tokens: int = 15000
    token_per_char_ratio: float = 0.25
    default_page_size: int = 1000
    max_page_size: int = 5000
    redaction_enabled: bool = True  # omit GPS coordinates from rendered output
    resolutions: List[str] = Field(default_factory=lambda: list(DEFAULT_RESOLUTIONS))
    large_dataset_threshold: int = 10000  # data points
    context_safety_margin: int = 2000  # tokens held back from every page
    max_retries: int = 3
    processing_timeout: float = 30.0  # seconds, bounds the ai-summary call

    class Config:
        env_prefix = "STREAM_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @model_validator(mode="after")
    def _correct_limits(self) -> "StreamProcessingSettings":
        if self.default_page_size <= 0:
            self._correct("default_page_size", 1000)
        if self.max_page_size <= 0:
            self._correct("max_page_size", 5000)
        if self.max_page_size < self.default_page_size:
            self._correct("max_page_size", self.default_page_size * 5)

        if self.max_context_tokens <= 0:
            self._correct("max_context_tokens", 15000)
        if self.context_safety_margin < 0:
            self._correct("context_safety_margin", 2000)
        if self.context_safety_margin >= self.max_context_tokens:
            self._correct("context_safety_margin", self.max_context_tokens // 10)

        if self.token_per_char_ratio <= 0 or self.token_per_char_ratio > 1:
            self._correct("token_per_char_ratio", 0.25)

        if self.large_dataset_threshold <= 0:
            self._correct("large_dataset_threshold", 10000)
        if self.max_retries < 0:
            self._correct("max_retries", 3)
        if self.processing_timeout <= 0:
            self._correct("processing_timeout", 30.0)
        if not self.resolutions:
            self._correct("resolutions", list(DEFAULT_RESOLUTIONS))
        return self

    def _correct(self, name: str, value) -> None:
        logger.warning(
            "Invalid stream setting %s=%r, using %r", name, getattr(self, name), value
        )
        setattr(self, name, value)


class Settings(BaseSettings):
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-5"
    database_url: str = "sqlite:///./fitstream.db"
    log_level: str = "INFO"
    user_id: int = 1  # single-user MVP; multi-user: swap for JWT claim
    stream: StreamProcessingSettings = Field(default_factory=StreamProcessingSettings)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
