"""Runtime settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings pulled from PY_TERRAIN_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PY_TERRAIN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="plain", description="Logging format (plain or json)")

    # Map Generation Configuration
    default_width: int = Field(default=256, description="Default map width")
    default_height: int = Field(default=256, description="Default map height")
    default_preset: str = Field(default="continent", description="Preset used when no config is given")
    default_output: str = Field(default="terrain.png", description="Default output file")
    max_map_width: int = Field(default=4096, description="Max allowed map width")
    max_map_height: int = Field(default=4096, description="Max allowed map height")


# Instantiate singleton settings object
settings = Settings()
