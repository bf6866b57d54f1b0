"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - cast_default_step_limit <= cast_max_step_limit

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
"""

from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://backstage:backstage@db:5432/backstage"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting platforms hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Anthropic
    anthropic_api_key: str = "sk-ant-placeholder"
    anthropic_base_url: str | None = None
    model_proxy_base_url: str | None = None
    anthropic_max_retries: int = 3
    anthropic_timeout_seconds: int = 300
    anthropic_base_delay_ms: int = 1000
    anthropic_max_delay_ms: int = 60_000

    # Casting
    cast_default_step_limit: int = 20
    cast_max_step_limit: int = 50
    cast_max_tokens: int | None = None

    # Remote shell (SSH)
    ssh_connect_timeout_seconds: int = 15
    ssh_command_timeout_seconds: int = 120
    ssh_known_hosts: str | None = None
    ssh_max_log_entries: int = 500

    # Browser tools (MCP stdio server)
    browser_mcp_command: str = "npx"
    browser_mcp_args: list[str] = ["@playwright/mcp@latest", "--headless"]
    browser_mcp_start_timeout_seconds: int = 60

    # Auth
    auth_user_header: str = "x-user-id"

    # API
    cors_origins: list[str] = ["http://localhost:3000"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    @model_validator(mode="after")
    def check_step_limits(self) -> "Settings":
        if self.cast_default_step_limit > self.cast_max_step_limit:
            raise ValueError("cast_default_step_limit exceeds cast_max_step_limit")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
