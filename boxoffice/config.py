from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    APP_NAME: str = "boxoffice"
    DEBUG: bool = False
    DATABASE_URL: str
    REDIS_URL: str = "redis://localhost:6379/0"
    SENTRY_DSN: str = ""
    # Reservation lifecycle
    BOOKING_TTL_MINUTES: int = 15
    TX_MAX_RETRIES: int = 3
    REAPER_INTERVAL_SECONDS: int = 60
    # Payment provider settings (configure secrets in .env)
    CURRENCY: str = "eur"
    PAYMENT_PROVIDER: str = "stripe"
    STRIPE_SECRET_KEY: str = ""
    STRIPE_API_BASE: str = "https://api.stripe.com/v1"
    STRIPE_WEBHOOK_SECRET: str = ""
    PAYMENT_PROVIDER_TIMEOUT_SECONDS: float = 10.0
    # Confirmation side effects
    INVOICE_TAX_RATE: Decimal = Decimal("0.23")
    NOTIFICATION_PROVIDER: str = "log"
    NOTIFICATION_SENDER: str = "tickets@boxoffice.local"


settings = Settings()
