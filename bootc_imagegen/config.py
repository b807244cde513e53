"""Configuration settings for bootc_imagegen.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_output_dir() -> Path:
    """Return the default output directory."""
    return Path.cwd() / "output"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the BOOTC_IMG_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="BOOTC_IMG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Container runtime
    runtime: str = Field(
        default="podman",
        description="Container runtime CLI used to pull and run images",
    )
    elevate_with: str = Field(
        default="sudo",
        description="Command used to gain elevated privilege (empty to disable)",
    )

    # Paths
    storage_root: Path = Field(
        default=Path("/var/lib/containers/storage"),
        description="Container storage graph root shared with the builder",
    )
    storage_run_root: Path = Field(
        default=Path("/run/containers/storage"),
        description="Container storage run root",
    )
    containers_config_dir: Path = Field(
        default=Path("/etc/containers"),
        description="Directory holding the container storage configuration",
    )
    output_dir: Path = Field(
        default_factory=_default_output_dir,
        description="Directory the builder writes its artifacts to",
    )

    # Operational modes
    prepare_environment: bool = Field(
        default=True,
        description="Reset container storage before pulling (CI runner workaround)",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Concurrency
    checksum_workers: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Maximum concurrent artifact checksum computations",
    )

    # Timeouts (in seconds, None = no timeout)
    pull_timeout: int | None = Field(
        default=None,
        ge=60,
        description="Timeout for image pulls",
    )
    build_timeout: int | None = Field(
        default=None,
        ge=60,
        description="Timeout for the builder run",
    )


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
