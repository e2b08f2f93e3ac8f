"""Environment-based configuration for TumorLens."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024


class Settings(BaseSettings):
    """Application settings loaded from TUMORLENS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TUMORLENS_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8083
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Authentication (None = disabled)
    api_key: str | None = None

    # Remote classification endpoint
    api_url: str = "https://affddb7ddcca425d64.gradio.live/"
    predict_path: str = "api/predict/"
    # None leaves the httpx client default in place
    request_timeout: float | None = Field(default=None, gt=0)

    # Input limits
    max_file_size: int = Field(default=MAX_UPLOAD_BYTES, ge=1)

    # Bundled sample override (None = packaged sample-mri.png)
    sample_image: str | None = None


def get_settings() -> Settings:
    """Create and return application settings."""
    return Settings()
