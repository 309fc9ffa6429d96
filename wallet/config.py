"""Settings for the VoucherVault wallet core."""

import secrets
from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven configuration values."""

    model_config = SettingsConfigDict(
        env_prefix="VOUCHERVAULT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    network_fee: Decimal = Field(
        default=Decimal("7.50"),
        ge=0,
        description="Fixed fee subtracted from every redeemed voucher.",
    )
    currency: str = Field(default="ZAR")
    pin_retry_limit: Optional[int] = Field(
        default=None,
        ge=1,
        description="Incorrect PIN attempts allowed per redemption. None means unlimited.",
    )
    pbkdf2_iterations: int = Field(default=100_000, ge=1)
    voucher_hash_key: SecretStr = Field(
        default_factory=lambda: SecretStr(secrets.token_hex(32)),
        description="HMAC key for voucher code fingerprints in the audit log.",
    )
    workflow_ttl_seconds: float = Field(
        default=900.0,
        gt=0,
        description="Redemptions older than this are dropped from the registry.",
    )
    groq_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("VOUCHERVAULT_GROQ_API_KEY", "GROQ_API_KEY"),
    )
    groq_model: str = Field(default="llama-3.3-70b-versatile")
    risk_timeout_seconds: float = Field(default=10.0, gt=0)
    log_level: str = Field(default="INFO")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()
