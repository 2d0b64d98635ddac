"""Configuration module for kvconn.

Implements Pydantic v2 Settings for configuration management with support for:
- Environment variables (KVCONN_* prefix)
- YAML/TOML configuration files
- Command-line argument overrides
- Fail-fast validation at startup

Configuration priority (later overrides earlier):
1. Built-in defaults
2. Configuration file (YAML/TOML)
3. Environment variables
4. Command-line arguments
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Connection and application configuration with sensible defaults.

    Example:
        # Load from environment only
        settings = Settings()

        # Override specific values
        settings = Settings(redis_hostname="cache.internal", redis_retries=3)
    """

    model_config = SettingsConfigDict(
        env_prefix="KVCONN_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown fields
    )

    # ========================================
    # Application Settings
    # ========================================

    debug: bool = Field(default=False, description="Enable debug mode with verbose logging")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    log_format: Literal["json", "text"] = Field(default="json", description="Log output format")

    # ========================================
    # Redis Endpoint
    # ========================================

    redis_hostname: str = Field(
        default="localhost",
        description="Hostname or IP of the Redis server (ignored when a unix socket is set)",
    )

    redis_port: int = Field(default=6379, ge=1, le=65535, description="Redis server port")

    redis_unix_socket: str | None = Field(
        default=None,
        description="Unix socket path; takes precedence over hostname and port",
    )

    redis_password: str | None = Field(
        default=None, description="Password for AUTH (no AUTH is sent when unset)"
    )

    redis_database: int | None = Field(
        default=0, ge=0, description="Logical database index (None skips SELECT)"
    )

    # ========================================
    # Transport
    # ========================================

    redis_connection_timeout_seconds: float | None = Field(
        default=None, gt=0, description="Timeout for establishing the connection"
    )

    redis_data_timeout_seconds: float | None = Field(
        default=None, gt=0, description="Timeout for socket reads and writes"
    )

    redis_use_ssl: bool = Field(default=False, description="Connect over TLS")

    redis_socket_flags: int = Field(
        default=0,
        ge=0,
        le=3,
        description="Socket flag bitmask (1=keepalive, 2=skip TLS certificate verification)",
    )

    # ========================================
    # Retry Policy
    # ========================================

    redis_retries: int = Field(
        default=0,
        ge=0,
        le=100,
        description="Number of retries for commands failing with a connection error",
    )

    redis_retry_interval_seconds: float = Field(
        default=0.0, ge=0.0, le=60.0, description="Wait between retries"
    )

    # ========================================
    # Validators
    # ========================================

    @field_validator("redis_unix_socket")
    @classmethod
    def validate_unix_socket(cls, v: str | None) -> str | None:
        """Reject empty unix socket paths."""
        if v is not None and not v.strip():
            raise ValueError("redis_unix_socket must be a non-empty path when set")
        return v

    # ========================================
    # Helper Methods
    # ========================================

    def to_dict(self) -> dict:
        """Convert settings to dictionary, masking secrets."""
        data = self.model_dump()
        if data.get("redis_password"):
            data["redis_password"] = "***REDACTED***"
        return data


# ========================================
# Global Settings Instance
# ========================================

_settings: Settings | None = None


def get_settings() -> Settings:
    """Get global settings instance (singleton).

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set global settings instance.

    Args:
        settings: Settings instance to use globally
    """
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Reset global settings (mainly for testing)."""
    global _settings
    _settings = None


def load_settings_from_file(config_file: Path | str) -> Settings:
    """Load settings from YAML or TOML configuration file.

    Args:
        config_file: Path to configuration file

    Returns:
        Settings instance loaded from file

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file format is invalid

    Example:
        settings = load_settings_from_file("config/prod.yaml")
        set_settings(settings)
    """
    config_path = Path(config_file)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    if suffix in [".yaml", ".yml"]:
        import yaml

        with open(config_path) as f:
            config_data = yaml.safe_load(f) or {}
    elif suffix == ".toml":
        import tomllib

        with open(config_path, "rb") as f:
            config_data = tomllib.load(f)
    else:
        raise ValueError(f"Unsupported config file format: {suffix}. Use .yaml, .yml, or .toml")

    return Settings(**config_data)
