"""Application configuration using Pydantic v2 Settings.

Centralized configuration that loads from environment variables
and provides type-safe access throughout the application.
"""

import logging
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings have sensible defaults and can be overridden via
    environment variables or a .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Rendering
    currency_symbol: str = Field(
        default="$",
        description="Symbol prefixed to formatted currency amounts.",
    )
    date_format: str = Field(
        default="%m/%d/%Y",
        description="strftime format used by the formatDate helper.",
    )
    default_customer_name: str = Field(
        default="Valued Customer",
        description="Fallback when an estimate has no customer name.",
    )
    page_break_marker: str = Field(
        default="___PAGE_BREAK___",
        description="Marker inserted between rendered pages.",
    )

    # Limits
    max_page_chars: int = Field(
        default=500_000,
        description="Largest page source (in characters) that will be compiled.",
    )
    max_template_tokens: int = Field(
        default=5_000,
        description="Mustache tokens interpreted per page; the rest render as errors.",
    )
    max_block_depth: int = Field(
        default=16,
        description="Deepest allowed nesting of block helpers (#each, #if, ...).",
    )
    max_pages: int = Field(
        default=200,
        description="Pages rendered per document; the rest render as errors.",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR.",
    )
    log_dir: Path | None = Field(
        default=None,
        description="Directory for info.log/error.log. Console only when unset.",
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Normalize log level to uppercase."""
        return v.upper()

    @field_validator("max_page_chars", "max_template_tokens", "max_block_depth", "max_pages")
    @classmethod
    def ensure_positive(cls, v: int) -> int:
        """Reject limits that would disable rendering entirely."""
        if v <= 0:
            raise ValueError("limits must be positive integers")
        return v

    def configure_logging(self) -> None:
        """Configure global logging based on settings."""
        import structlog

        level = getattr(logging, self.log_level, logging.INFO)

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.stdlib.PositionalArgumentsFormatter(),
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        logging.basicConfig(
            format="%(message)s",
            level=level,
        )

        logger.setLevel(level)


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global Settings instance.

    Returns:
        The singleton Settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
