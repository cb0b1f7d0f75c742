"""
Configuration for the gen-code service.

Settings come from environment variables (optionally a `.env` file) and are
validated by Pydantic. Required credentials are checked at startup rather
than import time so tests can build the app without real keys.
"""

from pathlib import Path
from typing import Annotated, Any

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
import structlog

from gencode.core.exceptions import ConfigurationError

load_dotenv()

SUPPORTED_MODELS = ("deepseek", "openai")


class Settings(BaseSettings):
    """Application settings; environment variables override defaults."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    server_host: str = Field(default="0.0.0.0", description="Server host")
    server_port: int = Field(default=8080, ge=1, le=65535, description="Server port")
    api_title: str = "gen-code"
    api_version: str = "1.0.0"
    cors_origins: Annotated[list[str], NoDecode] = Field(
        default=["*"], description="Allowed CORS origins (comma-separated)"
    )

    # GitHub
    github_token: str = Field(default="", description="GitHub personal access token")
    github_owner: str = Field(
        default="", description="Default owner/org for new repositories"
    )
    github_api_url: str = "https://api.github.com"

    # LLM
    deepseek_api_key: str = ""
    deepseek_base_url: str = "https://api.deepseek.com"
    deepseek_model: str = "deepseek-chat"
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4-turbo-preview"
    default_model: str = Field(default="deepseek", description="deepseek or openai")

    # Tasks
    max_concurrent_tasks: int = Field(default=5, ge=1, le=100)
    idempotency_ttl_hours: int = Field(
        default=24, ge=1, description="How long an Idempotency-Key stays bound"
    )
    task_timeout: int = Field(default=600, ge=1, description="Job timeout in seconds")
    temp_dir: Path = Path("./tmp")
    heartbeat_interval_seconds: float = Field(default=15.0, gt=0)
    subscriber_queue_size: int = Field(default=10, ge=1)

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> Any:
        """Accept a comma-separated string as well as a list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("default_model")
    @classmethod
    def check_default_model(cls, v: str) -> str:
        if v not in SUPPORTED_MODELS:
            raise ValueError(f"Unknown model: {v}")
        return v

    def api_key_for(self, model: str) -> str:
        """Return the API key configured for a producer name."""
        return {
            "deepseek": self.deepseek_api_key,
            "openai": self.openai_api_key,
        }.get(model, "")

    def configured_models(self) -> list[str]:
        return [model for model in SUPPORTED_MODELS if self.api_key_for(model)]

    def validate_required(self) -> None:
        """
        Check the credentials the service cannot run without.

        Raises:
            ConfigurationError: If the GitHub token or every LLM key is missing,
                or the default model has no key.
        """
        if not self.github_token:
            raise ConfigurationError("GITHUB_TOKEN is required")

        if not self.configured_models():
            raise ConfigurationError(
                "at least one LLM API key (DEEPSEEK_API_KEY or OPENAI_API_KEY) is required"
            )

        if not self.api_key_for(self.default_model):
            raise ConfigurationError(
                f"{self.default_model.upper()}_API_KEY is required when using "
                f"{self.default_model} model"
            )

    def get_cors_config(self) -> dict[str, Any]:
        return {
            "allow_origins": self.cors_origins,
            "allow_credentials": "*" not in self.cors_origins,
            "allow_methods": ["GET", "POST", "OPTIONS"],
            "allow_headers": ["Content-Type", "Idempotency-Key"],
        }


settings = Settings()


def configure_structlog(level: str | None = None, json_logs: bool | None = None) -> None:
    """Initialize structlog on top of stdlib logging."""
    import logging
    import sys

    level_name = (level or settings.log_level).upper()
    use_json = settings.log_json if json_logs is None else json_logs

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        stream=sys.stdout,
        force=True,
        format="%(message)s",
    )

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso" if use_json else "%H:%M:%S"),
        structlog.stdlib.add_log_level,
    ]
    if use_json:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True, pad_event=30))

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
