# python
# app/core/config.py
"""Configuration settings for the MindMesh AI chat backend.

Uses Pydantic BaseSettings for environment variable management.
"""
import secrets
from enum import Enum

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentEnum(str, Enum):
    development = "development"
    testing = "testing"
    staging = "staging"
    production = "production"


class LogLevelEnum(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormatEnum(str, Enum):
    simple = "simple"
    json = "json"


class Settings(BaseSettings):
    # Pydantic v2 settings configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ===== Application Settings =====
    app_name: str = Field(default="MindMesh AI API", description="Application name")
    environment: EnvironmentEnum = Field(
        default=EnvironmentEnum.development, description="Environment type"
    )
    debug: bool = Field(default=False, description="Debug mode")
    version: str = Field(default="1.0.0", description="Application version")

    # ===== Security Settings =====
    auth_jwt_secret: str | None = Field(
        default=None, description="Secret used to verify bearer token signatures"
    )
    algorithm: str = Field(default="HS256", description="JWT algorithm")
    secret_key: str = Field(
        default_factory=lambda: secrets.token_urlsafe(32),
        description="Application secret key",
    )

    # ===== Database Settings =====
    database_url: str | None = Field(default=None, description="Database connection URL")
    test_database_url: str | None = Field(default=None, description="Test database URL")

    # ===== AI Gateway =====
    ai_gateway_url: str | None = Field(
        default=None, description="OpenAI-compatible chat completions endpoint"
    )
    ai_api_key: str | None = Field(default=None, description="Bearer key for the AI gateway")
    ai_model: str | None = Field(default=None, description="Model name sent to the gateway")
    ai_system_prompt: str | None = Field(
        default=None, description="Optional system prompt prepended to every request"
    )
    ai_request_timeout: int = Field(default=60, description="AI request timeout in seconds")
    ai_stream_max_line_length: int = Field(
        default=1_048_576,
        description="Longest stream line (in characters) kept while waiting for more data",
    )

    # ===== Chat =====
    default_conversation_title: str = Field(
        default="New Conversation", description="Placeholder title for new conversations"
    )
    conversation_title_length: int = Field(
        default=50, description="Characters of the first message used as title"
    )

    # ===== Monitoring & Logging =====
    log_level: LogLevelEnum = Field(default=LogLevelEnum.INFO, description="Logging level")
    log_format: LogFormatEnum = Field(default=LogFormatEnum.json, description="Log format")

    # ===== CORS Settings =====
    allowed_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173,http://localhost:8080,http://127.0.0.1:3000",
        description="Allowed CORS origins (comma-separated)",
    )

    @property
    def allowed_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    # ===== Server Settings =====
    host: str = Field(default="127.0.0.1", description="Host to bind the server")
    port: int = Field(default=8000, description="Port to bind the server")

    # ===== Computed Properties =====
    @property
    def is_development(self) -> bool:
        return self.environment == EnvironmentEnum.development

    @property
    def is_production(self) -> bool:
        return self.environment == EnvironmentEnum.production

    @property
    def is_testing(self) -> bool:
        return self.environment == EnvironmentEnum.testing

    @property
    def has_ai_enabled(self) -> bool:
        return bool(self.ai_gateway_url)

    @property
    def verifies_tokens(self) -> bool:
        return bool(self.auth_jwt_secret)

    # ===== Validation Methods =====
    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v):
        if v and isinstance(v, str):
            lv = v.lower()
            if lv in ["dev", "develop"]:
                return "development"
            if lv in ["prod"]:
                return "production"
            return lv
        return v

    @field_validator("conversation_title_length")
    @classmethod
    def validate_title_length(cls, v):
        if v < 1 or v > 255:
            raise ValueError("Conversation title length must be between 1 and 255")
        return v

    @field_validator("ai_stream_max_line_length")
    @classmethod
    def validate_max_line_length(cls, v):
        if v < 1024:
            raise ValueError("Stream line limit must be at least 1024 characters")
        return v

    @model_validator(mode="after")
    def set_computed_fields(self):
        if not self.test_database_url and self.database_url and "neondb" in self.database_url:
            self.test_database_url = self.database_url.replace("neondb", "neondb_test")
        return self


settings = Settings()


class ConfigValidator:
    @staticmethod
    def validate_required_settings():
        errors = []
        if not settings.database_url:
            errors.append("DATABASE_URL is required")
        if settings.is_production and not settings.ai_gateway_url:
            errors.append("AI_GATEWAY_URL is required in production")
        if settings.is_production and not settings.auth_jwt_secret:
            errors.append("AUTH_JWT_SECRET is required in production")
        if errors:
            raise ValueError(f"Configuration errors: {', '.join(errors)}")

    @staticmethod
    def get_feature_status() -> dict:
        return {
            "ai_enabled": settings.has_ai_enabled,
            "token_verification": settings.verifies_tokens,
            "environment": settings.environment,
        }


def get_config_summary() -> dict:
    return {
        "app_name": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
        "debug": settings.debug,
        "features": ConfigValidator.get_feature_status(),
        "database_configured": bool(settings.database_url),
        "ai_model": settings.ai_model,
    }


__all__ = [
    "settings",
    "Settings",
    "ConfigValidator",
    "get_config_summary",
    "EnvironmentEnum",
    "LogLevelEnum",
    "LogFormatEnum",
]
