"""Configuration management using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from pathlib import Path
from typing import Optional
import os


class Settings(BaseSettings):
    """Library settings loaded from environment variables (prefix ``LLM_BRIDGE_``).

    API keys are deliberately absent: callers hand keys to the provider factory.
    """

    # HTTP timeouts (seconds)
    request_timeout: float = Field(default=120.0, description="Timeout for completion requests")
    probe_timeout: float = Field(default=15.0, description="Timeout for capability probe requests")
    list_models_timeout: float = Field(default=10.0, description="Timeout for model listing calls")

    # Request defaults
    default_max_tokens: int = 4096

    # Capability probing
    auto_probe: bool = Field(default=True, description="Schedule background probes for unknown models")
    capability_stale_after: int = Field(
        default=7 * 24 * 60 * 60,
        description="Seconds after which probe/metadata capabilities are re-probed",
    )
    probe_retry_interval: int = Field(
        default=300,
        description="Minimum seconds between probe attempts for the same model",
    )

    # Rate limiting
    rate_limit_capacity: int = 10
    rate_limit_refill_per_second: float = 2.0

    # Static capability seed (bundled YAML is used when unset)
    static_capabilities_path: Optional[Path] = None

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="LLM_BRIDGE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("static_capabilities_path", mode="before")
    @classmethod
    def expand_static_capabilities_path(cls, value):
        if value in (None, ""):
            return None
        return Path(os.path.expandvars(str(value))).expanduser()

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, value):
        if value in (None, ""):
            return "INFO"
        return str(value).strip().upper()


# Global settings instance
settings = Settings()
