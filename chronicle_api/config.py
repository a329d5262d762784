from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
import os

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:8080",
    "https://blog-frontned-9v3r.vercel.app",
    "https://chronicle-flow.vercel.app",
]


class Settings(BaseSettings):
    """Application settings loaded from the environment and .env (or custom env file)"""

    # Allow overriding env_file via CHRONICLE_ENV_FILE environment variable
    model_config = SettingsConfigDict(  # type: ignore[misc]
        env_file=os.environ.get('CHRONICLE_ENV_FILE', '.env'),
        env_file_encoding='utf-8',
        extra='ignore'
    )

    # Server
    HOST: str = "127.0.0.1"
    PORT: int = 5000

    # Application Mode
    # Valid values: "development", "production", "testing"
    APPLICATION_MODE: str = Field(
        default="development",
        validation_alias=AliasChoices("APPLICATION_MODE", "NODE_ENV")
    )

    # Cross-origin access
    CORS_ORIGIN: str = ""
    FRONTEND_URL: str = ""
    KNOWN_FRONTEND_ORIGIN: str = "https://blog-frontned-9v3r.vercel.app"
    DEFAULT_STREAM_ORIGIN: str = "http://localhost:8080"

    # Realtime events
    REALTIME_PUBLIC_URL: str = Field(
        default="",
        validation_alias=AliasChoices("REALTIME_PUBLIC_URL", "PUBLIC_API_URL")
    )
    SSE_HEARTBEAT_INTERVAL: float = Field(default=30.0, gt=0)  # Seconds between keep-alive comments
    SSE_MAX_PENDING_FRAMES: int = Field(default=1000, gt=0)  # Undelivered frames before a client is dropped

    # Debug routes
    DEBUG_API: bool = False
    ALLOW_DEBUG: bool = False

    # Document store (reported only)
    MONGODB_URI: str = Field(
        default="mongodb://localhost:27017/fb",
        validation_alias=AliasChoices("MONGODB_URI", "MONGO_URI")
    )

    # Auth tokens
    JWT_SECRET: str = "dev_jwt_secret_change_me"

    # Mail
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASS: str = ""
    SMTP_SECURE: bool = False
    GMAIL_USER: str = ""
    GMAIL_PASSWORD: str = ""
    MAIL_FROM: str = ""

    # Content generation
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-1.5-flash"

    # Media uploads
    CLOUDINARY_CLOUD_NAME: str = ""
    CLOUDINARY_API_KEY: str = ""
    CLOUDINARY_API_SECRET: str = ""
    MEDIA_FOLDER: str = "fb-blogs"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_CATEGORIES: str = ""

    @property
    def application_mode(self) -> str:
        """Return application mode (development, production, testing)"""
        return self.APPLICATION_MODE.lower()

    @property
    def is_production(self) -> bool:
        return self.application_mode == "production"

    @property
    def is_development(self) -> bool:
        return self.application_mode == "development"

    @property
    def configured_origins(self) -> list[str]:
        """Origins from CORS_ORIGIN, or FRONTEND_URL when CORS_ORIGIN is unset"""
        raw = self.CORS_ORIGIN or self.FRONTEND_URL
        return raw.split(',') if raw else []

    @property
    def debug_api_enabled(self) -> bool:
        return self.DEBUG_API or not self.is_production

    @property
    def debug_env_enabled(self) -> bool:
        return self.ALLOW_DEBUG or not self.is_production

    @property
    def realtime_public_url(self) -> str | None:
        if not self.REALTIME_PUBLIC_URL:
            return None
        return self.REALTIME_PUBLIC_URL.rstrip('/')

    @property
    def smtp_configured(self) -> bool:
        return bool(self.SMTP_HOST and self.SMTP_PORT and self.SMTP_USER and self.SMTP_PASS)

    @property
    def gmail_configured(self) -> bool:
        return bool(self.GMAIL_USER and self.GMAIL_PASSWORD)

    @property
    def media_configured(self) -> bool:
        return bool(self.CLOUDINARY_CLOUD_NAME and self.CLOUDINARY_API_KEY and self.CLOUDINARY_API_SECRET)

    @property
    def log_level(self) -> str:
        return self.LOG_LEVEL.upper()

    @property
    def log_categories(self) -> list[str]:
        if not self.LOG_CATEGORIES:
            return []
        return [cat.strip() for cat in self.LOG_CATEGORIES.split(',')]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
