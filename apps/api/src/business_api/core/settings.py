from functools import lru_cache
from typing import Annotated, Literal
from uuid import UUID

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./business.db"
    cors_allow_origins: Annotated[list[str], NoDecode] = Field(default_factory=lambda: ["*"])
    tracing_enabled: bool = True
    log_level: str = "INFO"

    # User service (identity + memberships)
    user_service_url: str = "http://user-server:3000"
    user_service_timeout_seconds: float = 10.0

    # Keycloak service-to-service credentials
    keycloak_token_url: str | None = None
    keycloak_client_id: str | None = None
    keycloak_client_secret: str | None = None
    token_refresh_skew_seconds: int = 30

    # Keycloak bearer verification
    keycloak_issuer: str | None = None
    keycloak_jwks_url: str | None = None
    keycloak_audience: str | None = None
    allowed_roles: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["admin", "brand_manager", "manager", "owner", "staff"]
    )

    # Operator console (PKCE public client)
    keycloak_authorize_url: str | None = None
    keycloak_public_client_id: str | None = None

    @field_validator("cors_allow_origins", "allowed_roles", mode="before")
    @classmethod
    def _parse_csv_list(cls, value: object) -> list[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, (list, tuple, set)):
            return [str(item).strip() for item in value if str(item).strip()]
        return []

    # Loyalty defaults
    default_business_id: UUID | None = None
    coupon_expiry_days: int = 30
    default_prize_step: int = 15
    crm_max_page_size: int = 200

    # Analytics
    analytics_customer_count_source: Literal["remote", "local"] = "remote"
    analytics_remote_customer_limit: int = 10000

    # Membership counter sync
    membership_sync_max_attempts: int = 3
    membership_sync_backoff_seconds: float = 0.5

    @property
    def resolved_jwks_url(self) -> str | None:
        if self.keycloak_jwks_url:
            return self.keycloak_jwks_url
        if self.keycloak_issuer:
            return f"{self.keycloak_issuer.rstrip('/')}/protocol/openid-connect/certs"
        return None


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
