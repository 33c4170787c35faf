from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic (SQLite file next to the repo).
    - Every field can be overridden with a `CRM_`-prefixed environment variable.
    - `jwt_secret` must be overridden outside local development.
    """

    model_config = SettingsConfigDict(env_prefix="CRM_", extra="ignore")

    db_url: str | None = None
    security_config_path: str | None = None
    log_level: str = "INFO"

    jwt_secret: str = "dev-secret-change-me-before-deploying-anywhere"
    jwt_algorithm: str = "HS256"
    jwt_leeway_seconds: int = 30

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "crm.db"
        return f"sqlite:///{db_path}"

    def resolved_security_config_path(self) -> Path:
        if self.security_config_path:
            return Path(self.security_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "security_config.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
