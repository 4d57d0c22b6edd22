"""Configuration settings for gestao-contas."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlatSettings(BaseSettings):
    """Flat settings read from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Hosted backend
    backend_url: str = Field(
        default="http://localhost:54321", validation_alias="BACKEND_URL"
    )
    backend_anon_key: SecretStr = Field(..., validation_alias="BACKEND_ANON_KEY")
    backend_email: str | None = Field(default=None, validation_alias="BACKEND_EMAIL")
    backend_password: SecretStr | None = Field(
        default=None, validation_alias="BACKEND_PASSWORD"
    )
    backend_timeout: float = Field(default=30.0, validation_alias="BACKEND_TIMEOUT")
    backend_max_retries: int = Field(default=3, validation_alias="BACKEND_MAX_RETRIES")

    # Storage buckets
    attachments_bucket: str = Field(
        default="attachments", validation_alias="ATTACHMENTS_BUCKET"
    )
    generated_bills_bucket: str = Field(
        default="generated-bills", validation_alias="GENERATED_BILLS_BUCKET"
    )
    generated_reports_bucket: str = Field(
        default="generated-reports", validation_alias="GENERATED_REPORTS_BUCKET"
    )

    # PDF rendering
    pdf_logo_path: Path | None = Field(default=None, validation_alias="PDF_LOGO_PATH")
    pdf_image_width_mm: float = Field(default=180.0, validation_alias="PDF_IMAGE_WIDTH_MM")
    attachment_fetch_timeout: float = Field(
        default=20.0, validation_alias="ATTACHMENT_FETCH_TIMEOUT"
    )

    # Postal code lookup
    postal_code_api_url: str = Field(
        default="https://viacep.com.br/ws", validation_alias="POSTAL_CODE_API_URL"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> FlatSettings:
    """Get cached settings instance."""
    return FlatSettings()
