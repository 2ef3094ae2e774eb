# inventory_sync/core/config.py

import os
from functools import lru_cache
from typing import List, Optional, Annotated
from pydantic import BeforeValidator, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from inventory_sync.core.enums import ConflictPolicy, SyncDirection, SyncFrequency


def _parse_email_list(value):
    if value in (None, "", []):
        return []
    if isinstance(value, str):
        return [email.strip() for email in value.split(",") if email.strip()]
    if isinstance(value, (list, tuple, set)):
        return [str(email).strip() for email in value if str(email).strip()]
    return []


EmailList = Annotated[List[str], NoDecode, BeforeValidator(_parse_email_list)]


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file).

    A Settings instance is built once at startup and handed to the sync
    engine, monitor and dispatcher constructors.
    """
    # Database settings
    DATABASE_URL: str = ""

    # Stock sync
    SYNC_FREQUENCY: SyncFrequency = SyncFrequency.HOURLY
    SYNC_DIRECTION: SyncDirection = SyncDirection.BOTH
    SYNC_SCHEDULE_ENABLED: bool = True
    BATCH_SIZE: int = 50
    STOCK_THRESHOLD: int = 5
    CONFLICT_RESOLUTION: str = "both"  # zoho, woocommerce, manual or a policy name
    SYNC_ON_ORDER: bool = True
    NOTIFY_DISTRIBUTORS: bool = True
    LOG_RETENTION_DAYS: int = 30
    ALERT_COOLDOWN_HOURS: int = 24

    # Zoho Inventory API
    ZOHO_API_BASE_URL: str = "https://www.zohoapis.com"
    ZOHO_ACCOUNTS_URL: str = "https://accounts.zoho.com"
    ZOHO_ORGANIZATION_ID: str = ""
    ZOHO_CLIENT_ID: str = ""
    ZOHO_CLIENT_SECRET: str = ""
    ZOHO_REFRESH_TOKEN: str = ""
    ZOHO_ACCESS_TOKEN: str = ""
    ZOHO_API_TIMEOUT: float = 30.0
    ZOHO_MAX_RETRIES: int = 3
    ZOHO_RETRY_DELAY: float = 1.0

    # WooCommerce REST API
    WOOCOMMERCE_URL: str = ""
    WOOCOMMERCE_CONSUMER_KEY: str = ""
    WOOCOMMERCE_CONSUMER_SECRET: str = ""
    WOOCOMMERCE_WEBHOOK_SECRET: str = ""
    WOOCOMMERCE_API_TIMEOUT: float = 30.0

    # Notifications
    EMAIL_NOTIFICATIONS: bool = True
    ADMIN_NOTIFICATIONS: bool = True
    BATCH_NOTIFICATIONS: bool = False
    BATCH_FLUSH_DELAY_SECONDS: int = 300
    ADMIN_EMAIL: str = ""
    NOTIFICATION_EMAILS: EmailList = []
    DISTRIBUTOR_EMAILS: EmailList = []
    STORE_NAME: str = "Inventory"
    ADMIN_URL: str = ""

    # SMTP / Email
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    SMTP_TIMEOUT: int = 30
    SMTP_FROM_EMAIL: Optional[str] = None
    SMTP_FROM_NAME: Optional[str] = None

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    model_config = SettingsConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists('.env') else None,
        case_sensitive=True,
    )

    @field_validator("CONFLICT_RESOLUTION")
    @classmethod
    def _check_conflict_resolution(cls, value: str) -> str:
        # Raises ValueError for anything that is neither a policy nor an alias
        ConflictPolicy.from_setting(value)
        return value

    @field_validator("BATCH_SIZE")
    @classmethod
    def _check_batch_size(cls, value: int) -> int:
        if value < 1:
            raise ValueError("BATCH_SIZE must be at least 1")
        return value

    @property
    def conflict_policy(self) -> ConflictPolicy:
        return ConflictPolicy.from_setting(self.CONFLICT_RESOLUTION)


@lru_cache()
def get_settings():
    """Cached settings to avoid loading .env file for every request"""
    return Settings()

def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()
