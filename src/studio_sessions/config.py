"""Application configuration."""

import os
from decimal import Decimal

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class RefundTier(BaseModel):
    """Share of the paid amount returned when canceling early enough."""

    min_days_before_session: int
    percentage: Decimal


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    api_token: str
    studio_timezone: str = "UTC"
    payment_deadline_days: int = 5
    changes_deadline_days: int = 5
    default_editing_days: int = 14
    default_deposit_percentage: Decimal = Decimal("50")
    require_full_payment_for_completion: bool = True
    refund_tiers: list[RefundTier] = []
    studio_initiated_full_refund: bool = True
    notification_webhook_url: str | None = None
    notification_max_attempts: int = 3
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
