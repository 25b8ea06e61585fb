from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "Booking Cancellations API"
    LOG_LEVEL: str = "INFO"
    # Comma-separated origins for CORS (e.g. https://shop.example.com). If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    DATABASE_URL: str

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v
    REDIS_URL: str = "redis://localhost:6379/0"

    # HMAC key for cancellation magic links. Empty means "reuse SECRET_KEY".
    CANCELLATION_TOKEN_SECRET: str = ""
    WEBSITE_URL: str = "http://localhost:3000"  # storefront base for /cancel/<token>
    ADMIN_NOTIFICATION_EMAIL: str = ""
    CANCELLATION_URGENT_AFTER_DAYS: int = 3
    # Run notification tasks in-process instead of sending them to the broker (local dev without a worker)
    NOTIFICATIONS_EAGER: bool = False

    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 25
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM: str = "noreply@bookings.local"

    SENDGRID_API_KEY: str = ""
    SENDGRID_FROM_EMAIL: str = ""
    # Queued emails are retried by the worker until this many attempts have failed
    EMAIL_MAX_ATTEMPTS: int = 5

    # First back-office account, created by seed on startup if both are set
    ADMIN_EMAIL: str = ""
    ADMIN_PASSWORD: str = ""

    @property
    def cancellation_secret(self) -> str:
        return self.CANCELLATION_TOKEN_SECRET or self.SECRET_KEY


settings = Settings()
