"""
Configuration settings for the entitlement service
"""
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Checkout environments understood by the payment provider
CHECKOUT_TEST_MODE = "test_mode"
CHECKOUT_LIVE_MODE = "live_mode"

DEFAULT_PRODUCT_ID = "pdt_eCqU7zSrzmDHYstrWiYwu"


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Payment provider configuration
    webhook_secret: Optional[str] = Field(default=None, alias="DODO_PAYMENTS_WEBHOOK_KEY")
    checkout_environment: str = Field(default=CHECKOUT_TEST_MODE, alias="DODO_PAYMENTS_ENVIRONMENT")
    checkout_return_url: Optional[str] = Field(default=None, alias="DODO_PAYMENTS_RETURN_URL")
    product_id: str = Field(default=DEFAULT_PRODUCT_ID, alias="DODO_PAYMENTS_PRODUCT_ID")

    # Key-value store binding
    redis_url: Optional[str] = Field(default=None, alias="REDIS_URL")
    key_prefix: str = Field(default="entitlement:", alias="ENTITLEMENT_KEY_PREFIX")

    # Trial window length (TRIAL_DURATION)
    trial_duration_hours: float = Field(default=24, alias="TRIAL_DURATION_HOURS")

    # Environment configuration
    env: Optional[str] = Field(default=None, alias="ENV")

    @property
    def is_live_checkout(self) -> bool:
        return self.checkout_environment == CHECKOUT_LIVE_MODE


# Instantiate settings object
settings = Settings()

# Determine if we're in production mode
IS_PRODUCTION = bool(settings.env and settings.env.lower() == "production")
