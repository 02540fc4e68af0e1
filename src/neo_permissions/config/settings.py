"""
Configuration for the permission resolution engine.

Values are read from environment variables prefixed with
``PERMISSION_ENGINE_`` (or a ``.env`` file) through pydantic-settings.
"""
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


class PermissionEngineSettings(BaseSettings):
    """Engine settings shared by the decision service and its collaborators."""
    
    model_config = SettingsConfigDict(
        env_prefix="PERMISSION_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )
    
    # Decision behaviour
    debug_trail: bool = Field(default=False, description="Populate the full trail on check_permission")
    max_delegation_hops: int = Field(default=5, ge=1, description="Hard cap on delegation chain walks")
    default_delegation_depth: int = Field(default=1, ge=1)
    audit_enabled: bool = Field(default=True)
    
    # Grant store
    db_schema: str = Field(default="admin")
    
    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default=DEFAULT_LOG_FORMAT)
    
    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        """Accept any case for the level name."""
        level = value.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {value}")
        return level
    
    @field_validator("db_schema")
    @classmethod
    def validate_schema_name(cls, value: str) -> str:
        """Schema names are interpolated into SQL, so only identifiers pass."""
        if not value.replace("_", "").isalnum():
            raise ValueError(f"Invalid schema name: {value}")
        return value


@lru_cache()
def get_settings() -> PermissionEngineSettings:
    """Get cached engine settings."""
    return PermissionEngineSettings()
