# Configuration management for the application
from datetime import timedelta, timezone
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Application settings loaded from environment variables

    # API settings
    api_title: str = "Clinic Booking API"
    api_description: str = "Availability, booking and rewards API for skin clinics"
    api_version: str = "1.0.0"
    environment: Literal["development", "test", "production"] = "development"

    # CORS settings - for production, replace with specific origins
    cors_origins: List[str] = ["*"]

    # Phorest API settings - required for provider calls
    phorest_base_url: str = "https://api-gateway-us.phorest.com/third-party-api-server/api/business"
    phorest_business_id: str = ""
    phorest_username: str = ""
    phorest_password: str = ""
    phorest_default_branch_id: Optional[str] = None

    # Every outbound provider call carries a timeout
    provider_timeout_seconds: float = 30.0
    slot_fetch_timeout_seconds: float = 15.0

    # Clinics run on a fixed offset (Perth, UTC+8, no daylight saving)
    business_utc_offset_hours: int = 8

    # First-name markers of placeholder staff accounts
    test_account_markers: List[str] = ["test", "led"]

    # Rewards store settings
    store_type: Literal["memory", "redis"] = "memory"
    redis_url: str = ""
    store_key_prefix: str = "clinic"
    seed_demo_leaderboard: bool = True

    # E-mail settings - sending is skipped when smtp_user is empty
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_sender_name: str = "Skin Societe"
    staff_notification_email: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def business_timezone(self) -> timezone:
        return timezone(timedelta(hours=self.business_utc_offset_hours))


# Create settings instance
settings = Settings()
