from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "Europe/London"

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Apple Wallet (PassKit web service + APNs)
    PASS_TYPE_ID: str = "pass.com.vigocoffee.loyalty"
    # Default placeholder keeps local/test runs working. Real deployments
    # must override via env.
    PASS_AUTH_SECRET: str = "default-secret-change-in-production"
    APNS_KEY_ID: Optional[str] = None
    APNS_TEAM_ID: Optional[str] = None
    APNS_KEY_PATH: Optional[str] = None
    APNS_PRODUCTION: bool = False
    APNS_TIMEOUT_SECONDS: float = 10.0

    # Google Wallet
    GOOGLE_WALLET_ISSUER_ID: Optional[str] = None
    GOOGLE_WALLET_CLASS_ID: str = "loyaltyvigocoffee"
    GOOGLE_WALLET_SERVICE_ACCOUNT_EMAIL: Optional[str] = None
    GOOGLE_WALLET_SERVICE_ACCOUNT_KEY_BASE64: Optional[str] = None
    GOOGLE_WALLET_TIMEOUT_SECONDS: float = 10.0
    GOOGLE_WALLET_PROBE_TIMEOUT_SECONDS: float = 2.0

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v

    @property
    def apple_wallet_configured(self) -> bool:
        return bool(
            self.APNS_KEY_ID
            and self.APNS_TEAM_ID
            and self.APNS_KEY_PATH
            and self.PASS_TYPE_ID
        )

    @property
    def google_wallet_configured(self) -> bool:
        return bool(
            self.GOOGLE_WALLET_ISSUER_ID
            and self.GOOGLE_WALLET_SERVICE_ACCOUNT_EMAIL
            and self.GOOGLE_WALLET_SERVICE_ACCOUNT_KEY_BASE64
        )


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
