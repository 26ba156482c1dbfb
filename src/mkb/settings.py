"""
mkb.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (ESI application secret).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Env-driven configuration. ESI application credentials come from the
    developer application registered at developers.eveonline.com.
    """

    model_config = SettingsConfigDict(
        env_prefix="MKB_", case_sensitive=False, populate_by_name=True
    )

    # Environment controls toggle behavior like auto-init DB tables.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "mkb"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 3000

    # ESI application (SSO client)
    esi_application_id: str = ""
    esi_application_secret: str = Field(default="", repr=False)
    esi_redirect_uri: str = "http://localhost:3000/auth/callback"

    sso_base_url: str = "https://login.eveonline.com"
    sso_jwks_url: str = "https://login.eveonline.com/oauth/jwks"
    esi_base_url: str = "https://esi.evetech.net/latest"
    http_timeout_seconds: float = 10.0
    user_agent: str = "mkb/0.1.0"

    # Persistence. DATABASE_URL is honoured without prefix for compatibility with
    # the usual container conventions.
    database_url: str = Field(
        default="sqlite+aiosqlite:///./mkb.db",
        validation_alias=AliasChoices("MKB_DATABASE_URL", "DATABASE_URL", "database_url"),
    )

    # Jobs
    job_queue_size: int = 100
    scheduler_enabled: bool = True
    refresh_interval_seconds: float = 5 * 60
    fetch_interval_seconds: float = 10 * 60
    resolve_interval_seconds: float = 60 * 60
    refresh_window_minutes: int = 20
    resolve_batch_size: int = 200

    @model_validator(mode="after")
    def _require_esi_credentials_in_prod(self) -> Settings:
        if self.env == "prod" and not (self.esi_application_id and self.esi_application_secret):
            raise ValueError(
                "MKB_ESI_APPLICATION_ID and MKB_ESI_APPLICATION_SECRET must be set in prod"
            )
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Job intervals are in seconds so tests can shrink them without touching code.
