"""
Configuration loader for the batch image resizer.

Environment variables are centralized here to keep the rest of the code
focused on the resize pipeline and to make operational tuning clear.
"""

from functools import lru_cache
from pathlib import Path
import tempfile

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Request workspace
    workspace_root: Path = Field(Path(tempfile.gettempdir()) / "resize_service")
    cleanup_grace_seconds: float = Field(0.0)

    # Upload limits
    max_files: int = Field(20)
    max_file_size_mb: int = Field(50)
    max_dimension: int = Field(16383)

    # Encoding
    output_quality: int = Field(80)
    zip_compression_level: int = Field(9)
    max_workers: int = Field(1)

    # API
    host: str = Field("0.0.0.0")
    port: int = Field(5000)
    cors_origins: str = Field("*")
    log_level: str = Field("INFO")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    @field_validator("output_quality")
    @classmethod
    def validate_quality(cls, v: int) -> int:
        if not 1 <= v <= 100:
            raise ValueError("OUTPUT_QUALITY must be between 1 and 100")
        return v

    @field_validator("zip_compression_level")
    @classmethod
    def validate_compression_level(cls, v: int) -> int:
        if not 0 <= v <= 9:
            raise ValueError("ZIP_COMPRESSION_LEVEL must be between 0 and 9")
        return v

    @field_validator("max_workers", "max_files", "max_file_size_mb", "max_dimension")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings to avoid reparsing env on every call."""
    return Settings()
