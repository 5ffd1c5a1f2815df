"""Application configuration from environment variables.

Settings are frozen: components receive the instance at construction and
never read process state afterwards.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "TourBook"
    debug: bool = True
    secret_key: str = "dev-secret-change-in-production"
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Database
    database_url: str = "postgresql+asyncpg://tourbook:tourbook@db:5432/tourbook"
    database_echo: bool = False

    # Auth (tokens are issued by the identity service, we only verify them)
    access_token_expire_minutes: int = 60
    jwt_algorithm: str = "HS256"

    # Bookings
    max_booking_days: int = 30

    # Stripe
    payment_currency: str = "usd"
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_webhook_tolerance_seconds: int = 300
    stripe_timeout_seconds: float = 10.0
    stripe_max_network_retries: int = 2

    model_config = {"env_prefix": "TB_", "env_file": ".env", "extra": "ignore", "frozen": True}


settings = Settings()
