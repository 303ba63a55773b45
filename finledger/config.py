"""
Runtime configuration for the ledger service.

Values come from environment variables prefixed with ``FINLEDGER_`` or a
local ``.env`` file.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DB_PATH = BASE_DIR / "database" / "finance.db"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FINLEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = Field(
        default=f"sqlite:///{DEFAULT_DB_PATH}",
        description="SQLAlchemy URL of the embedded ledger database",
    )
    balance_tolerance: float = Field(
        default=0.01,
        ge=0.0,
        description="Largest cached-vs-computed difference not reported as drift",
    )
    auto_fix_on_startup: bool = Field(
        default=True,
        description="Repair balance drift found by the startup validation",
    )
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)
    reload: bool = Field(default=False, description="Restart the API server on code changes")
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False, description="Render log lines as JSON")
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed front-end origins",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Cached settings; call ``get_settings.cache_clear()`` to reload."""
    return Settings()
